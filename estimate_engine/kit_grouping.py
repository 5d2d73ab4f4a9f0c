"""
Kit grouping for client presentation.

Low-value line items are folded into named kits; anything expensive,
primary (roofing material, underlayment), labor, equipment or optional
stays on its own line. Each item lands in the first kit that matches and
is never split. A kit becomes one synthetic line whose total is the sum of
its members. Output is sorted by total, largest first.

Two policies exist:
    display grouping  - flashing / fastener kits, items over $1,500 standalone
    proposal grouping - PROPOSAL_KITS + "Additional Materials", over $1,000 standalone
"""

import logging
from dataclasses import dataclass, field
from typing import Callable

from estimate_engine.database import (
    CUSTOM_FLASHING_KEYWORDS,
    DISPLAY_STANDALONE_THRESHOLD,
    FASTENER_KEYWORDS,
    FLASHING_SHAPE_KEYWORDS,
    PROPOSAL_CATCH_ALL_KIT,
    PROPOSAL_KITS,
    PROPOSAL_STANDALONE_THRESHOLD,
    STANDALONE_CATEGORIES,
    STANDALONE_NAME_KEYWORDS,
)
from estimate_engine.models import LineItem

logger = logging.getLogger(__name__)


@dataclass
class GroupedLineItem:
    id: str
    name: str
    category: str
    total: float
    quantity: float = 1
    unit: str = "kit"
    price: float = 0.0
    description: str | None = None
    is_kit: bool = False
    is_optional: bool = False
    item_ids: list[str] = field(default_factory=list)
    item_names: list[str] = field(default_factory=list)

    @classmethod
    def standalone(cls, item: LineItem) -> "GroupedLineItem":
        return cls(
            id=item.id,
            name=item.name,
            category=item.category,
            total=item.total,
            quantity=item.quantity,
            unit=item.unit,
            price=item.price,
            description=item.proposal_description,
            is_optional=item.is_optional,
            item_ids=[item.id],
            item_names=[item.name],
        )


def is_standalone_item(item: LineItem, threshold: float = DISPLAY_STANDALONE_THRESHOLD) -> bool:
    """Items never folded into a kit."""
    if item.total > threshold:
        return True
    name = item.name.lower()
    if any(k in name for k in STANDALONE_NAME_KEYWORDS):
        return True
    if item.category in STANDALONE_CATEGORIES:
        return True
    return item.is_optional


# ---------------------------------------------------------------------------
# Display kits
# ---------------------------------------------------------------------------

def _is_aluminum_flashing(name: str) -> bool:
    if "copper" in name:
        return False
    return any(k in name for k in FLASHING_SHAPE_KEYWORDS + ("hip & ridge",))


def _is_copper_flashing(name: str) -> bool:
    return "copper" in name and any(k in name for k in FLASHING_SHAPE_KEYWORDS)


def _is_fastener(name: str) -> bool:
    return any(k in name for k in FASTENER_KEYWORDS)


def _is_custom_flashing(name: str) -> bool:
    return any(k in name for k in CUSTOM_FLASHING_KEYWORDS)


@dataclass(frozen=True)
class DisplayKit:
    name: str
    description: str
    matches: Callable[[str], bool]


DISPLAY_KITS = [
    DisplayKit("Aluminum Flashing Kit",
               "Painted aluminum drip edge, valley, step and transition flashing",
               _is_aluminum_flashing),
    DisplayKit("Copper Flashing Kit",
               "Copper valley, step and transition flashing",
               _is_copper_flashing),
    DisplayKit("Fastener Kit",
               "Coil nails, screws and cap fasteners",
               _is_fastener),
    DisplayKit("Custom Flashing Kit",
               "Eave, rake, ridge and hip trim flashing",
               _is_custom_flashing),
]


def _kit_line(kit_id: str, name: str, description: str, category: str,
              members: list[LineItem]) -> GroupedLineItem:
    total = sum(i.total for i in members)
    return GroupedLineItem(
        id=kit_id,
        name=name,
        category=category,
        total=total,
        quantity=1,
        unit="kit",
        price=total,
        description=description,
        is_kit=True,
        item_ids=[i.id for i in members],
        item_names=[i.name for i in members],
    )


def _sorted(lines: list[GroupedLineItem]) -> list[GroupedLineItem]:
    return sorted(lines, key=lambda line: line.total, reverse=True)


def group_items_into_kits(items: list[LineItem],
                          threshold: float = DISPLAY_STANDALONE_THRESHOLD) -> list[GroupedLineItem]:
    """Display grouping: fold flashing and fasteners into kits; unmatched items stay as they are."""
    output: list[GroupedLineItem] = []
    members: dict[str, list[LineItem]] = {kit.name: [] for kit in DISPLAY_KITS}

    for item in items:
        if is_standalone_item(item, threshold):
            output.append(GroupedLineItem.standalone(item))
            continue
        name = item.name.lower()
        kit = next((k for k in DISPLAY_KITS if k.matches(name)), None)
        if kit is None:
            output.append(GroupedLineItem.standalone(item))
        else:
            members[kit.name].append(item)

    for kit in DISPLAY_KITS:
        grouped = members[kit.name]
        if grouped:
            kit_id = "kit-" + kit.name.lower().replace(" ", "-")
            output.append(_kit_line(kit_id, kit.name, kit.description, grouped[0].category, grouped))

    return _sorted(output)


# ---------------------------------------------------------------------------
# Proposal kits
# ---------------------------------------------------------------------------

def _proposal_kit_for(item: LineItem) -> dict:
    upper = item.name.upper()
    for kit in PROPOSAL_KITS:
        if any(p in upper for p in kit["patterns"]):
            return kit
    return PROPOSAL_CATCH_ALL_KIT


def group_proposal_kits(items: list[LineItem],
                        threshold: float = PROPOSAL_STANDALONE_THRESHOLD) -> list[GroupedLineItem]:
    """
    Proposal grouping: every groupable item goes into the first matching
    PROPOSAL_KITS entry, or "Additional Materials" when none match.
    """
    output: list[GroupedLineItem] = []
    members: dict[str, list[LineItem]] = {}
    kits_by_name = {kit["name"]: kit for kit in PROPOSAL_KITS + [PROPOSAL_CATCH_ALL_KIT]}

    for item in items:
        if is_standalone_item(item, threshold):
            output.append(GroupedLineItem.standalone(item))
        else:
            members.setdefault(_proposal_kit_for(item)["name"], []).append(item)

    for name, grouped in members.items():
        kit = kits_by_name[name]
        kit_id = "kit-" + name.lower().replace(" & ", "-").replace(" ", "-")
        output.append(_kit_line(kit_id, name, kit["description"], kit["category"], grouped))

    logger.info(f"Proposal grouping: {len(items)} item(s) -> {len(output)} line(s), {len(members)} kit(s)")
    return _sorted(output)

"""
Auto-selection rules applied after a measurement report is loaded.

Roof type is detected first by an ordered list of RoofTypeRule records
(first match wins, default non-metal). Item rules are SelectionRule records
grouped as underlayment, nails and equipment; every rule whose condition
holds fires, so a job can pick up several items. Within one rule the
keywords are tried in order and the first catalog item (in catalog order)
whose lower-cased name contains the keyword, and none of the exclusion
keywords, wins. No scoring.

The result carries the detected roof type and an ordered audit trail that
starts with "Detected roof type: <type>".
"""

import logging
from dataclasses import dataclass, field
from typing import Callable

from estimate_engine.models import PriceItem, VendorQuote, VendorQuoteItem

logger = logging.getLogger(__name__)

ROOF_METAL = "metal"
ROOF_NON_METAL = "non-metal"
ROOF_SYNTHETIC = "synthetic"
ROOF_PRESIDENTIAL = "asphalt-presidential"
ROOF_BASIC = "asphalt-basic"

METAL_VENDORS = ("schafer", "tra", "rocky-mountain")
METAL_ITEM_KEYWORDS = ("standing seam", "panel", "coil", "ag panel", "pro panel",
                       "r panel", "metal panel")
RINGSHANK_KEYWORDS = ("ringshank", "ring shank")
OVERNIGHT_CREWS = ("sergio", "hugo")


@dataclass
class AutoSelectionContext:
    job_description: str = ""
    available_price_items: list[PriceItem] = field(default_factory=list)
    vendor_quotes: list[VendorQuote] = field(default_factory=list)
    vendor_quote_items: list[VendorQuoteItem] = field(default_factory=list)
    selected_labor_items: list[str] = field(default_factory=list)


@dataclass
class AutoSelectionResult:
    auto_selected_item_ids: list[str]
    detected_roof_type: str
    applied_rules: list[str]
    item_quantities: dict[str, float] = field(default_factory=dict)
    # Catalog ids that conflict with an exclusive pick, e.g. the other supplemental underlayment
    excluded_item_ids: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Roof type detection
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RoofTypeRule:
    roof_type: str
    description: str
    matches: Callable[[AutoSelectionContext], bool]


def _description_has(*keywords: str) -> Callable[[AutoSelectionContext], bool]:
    def check(context: AutoSelectionContext) -> bool:
        text = context.job_description.lower()
        return any(k in text for k in keywords)
    return check


def _has_metal_vendor(context: AutoSelectionContext) -> bool:
    return any(q.vendor in METAL_VENDORS for q in context.vendor_quotes)


def _has_metal_vendor_items(context: AutoSelectionContext) -> bool:
    return any(
        k in item.name.lower()
        for item in context.vendor_quote_items
        for k in METAL_ITEM_KEYWORDS
    )


ROOF_TYPE_RULES = [
    RoofTypeRule(ROOF_METAL, "metal fabricator quote", _has_metal_vendor),
    RoofTypeRule(ROOF_METAL, "metal vendor line items", _has_metal_vendor_items),
    RoofTypeRule(ROOF_SYNTHETIC, "synthetic system in description",
                 _description_has("davinci", "brava", "synthetic slate", "synthetic shake")),
    RoofTypeRule(ROOF_PRESIDENTIAL, "presidential shingles in description",
                 _description_has("presidential")),
    RoofTypeRule(ROOF_BASIC, "asphalt shingles in description",
                 _description_has("shingle", "asphalt", "composition")),
    RoofTypeRule(ROOF_METAL, "metal roof in description",
                 _description_has("metal roof", "metal panel", "standing seam")),
    RoofTypeRule(ROOF_NON_METAL, "tile/slate/shake in description",
                 _description_has("tile", "slate", "cedar shake", "wood shake")),
]


def detect_roof_type(context: AutoSelectionContext) -> str:
    for rule in ROOF_TYPE_RULES:
        if rule.matches(context):
            logger.debug(f"Roof type {rule.roof_type}: {rule.description}")
            return rule.roof_type
    return ROOF_NON_METAL


# ---------------------------------------------------------------------------
# Item selection rules
# ---------------------------------------------------------------------------

def find_item_by_keywords(price_items: list[PriceItem],
                          keywords: tuple[str, ...],
                          exclude: tuple[str, ...] = ()) -> PriceItem | None:
    """First catalog item matching the highest-priority keyword, skipping excluded names."""
    candidates = [
        p for p in price_items
        if not any(x in p.name.lower() for x in exclude)
    ]
    for keyword in keywords:
        keyword = keyword.lower()
        for item in candidates:
            if keyword in item.name.lower():
                return item
    return None


def selected_crew(context: AutoSelectionContext, crews: tuple[str, ...] = OVERNIGHT_CREWS) -> str | None:
    """Name of the first listed crew with a selected labor item, or None."""
    catalog = {p.id: p for p in context.available_price_items}
    names = [catalog[i].name.lower() for i in context.selected_labor_items if i in catalog]
    for crew in crews:
        if any(crew in name for name in names):
            return crew.capitalize()
    return None


@dataclass(frozen=True)
class SelectionRule:
    group: str
    description: str
    keywords: tuple[str, ...]
    condition: Callable[[AutoSelectionContext, str], bool] = lambda context, roof_type: True
    exclude: tuple[str, ...] = ()
    quantity: float | None = None
    # Exclusive rules in a group are alternatives: when one fires the others are off limits
    exclusive: bool = False


def _roof_is(*types: str) -> Callable[[AutoSelectionContext, str], bool]:
    return lambda context, roof_type: roof_type in types


def _roof_is_not(*types: str) -> Callable[[AutoSelectionContext, str], bool]:
    return lambda context, roof_type: roof_type not in types


SELECTION_RULES = [
    # Underlayment: PSU 30 on every roof, plus exactly one supplemental layer
    SelectionRule("underlayment", "PSU 30 High Temp - Always selected",
                  ("psu 30", "psu30", "owens corning psu", "high temp")),
    SelectionRule("underlayment", "GAF Versa Shield - Selected for metal roof",
                  ("versa shield", "versashield", "gaf versa"),
                  condition=_roof_is(ROOF_METAL), exclusive=True),
    SelectionRule("underlayment", "SolarHide Radiant Barrier - Selected for non-metal roof",
                  ("solarhide", "solar hide", "radiant barrier"),
                  condition=_roof_is_not(ROOF_METAL), exclusive=True),

    # Nails: one variant per roof type
    SelectionRule("nails", "1 3/4\" Ringshank nails - Selected for synthetic system",
                  ("ringshank", "ring shank", "1 3/4", "1.75"),
                  condition=_roof_is(ROOF_SYNTHETIC), exclusive=True),
    SelectionRule("nails", "1 3/4\" Non-ringshank nails - Selected for Presidential shingles",
                  ("1 3/4", "1.75", "nail"),
                  condition=_roof_is(ROOF_PRESIDENTIAL), exclude=RINGSHANK_KEYWORDS,
                  exclusive=True),
    SelectionRule("nails", "1 1/2\" Non-ringshank nails - Selected for basic shingles",
                  ("1 1/2", "1.5", "nail"),
                  condition=_roof_is(ROOF_BASIC), exclude=RINGSHANK_KEYWORDS,
                  exclusive=True),

    # Equipment & fees
    SelectionRule("equipment", "Porta Potty - Always selected",
                  ("porta potty", "porto potty", "portable", "restroom"), quantity=1),
    # Trailer haul-away, never the rolloff dumpster
    SelectionRule("equipment", "Debris Haulaway & Landfill - Always selected",
                  ("debris haulaway", "landfill"), exclude=("rolloff",), quantity=1),
    SelectionRule("equipment", "Overnights - Auto-selected for {crew}'s crew",
                  ("overnight", "overnights"),
                  condition=lambda context, roof_type: selected_crew(context) is not None,
                  quantity=1),
]


def apply_auto_selection_rules(context: AutoSelectionContext,
                               rules: list[SelectionRule] = SELECTION_RULES) -> AutoSelectionResult:
    """
    Detect the roof type and run every selection rule in order.

    Returns:
        AutoSelectionResult with de-duplicated ids (first-selected order),
        the detected roof type and the applied-rule audit trail.
    """
    roof_type = detect_roof_type(context)
    selected: list[str] = []
    quantities: dict[str, float] = {}
    applied = [f"Detected roof type: {roof_type}"]
    fired_groups: set[str] = set()
    # group -> ids matched by exclusive rules that did not fire
    alternatives: dict[str, list[str]] = {}

    for rule in rules:
        fires = rule.condition(context, roof_type)
        item = find_item_by_keywords(context.available_price_items, rule.keywords, rule.exclude)
        if not fires:
            if rule.exclusive and item is not None:
                alternatives.setdefault(rule.group, []).append(item.id)
            continue
        if item is None:
            logger.debug(f"No catalog match for rule '{rule.description}'")
            continue
        if rule.exclusive:
            fired_groups.add(rule.group)
        if item.id not in selected:
            selected.append(item.id)
        if rule.quantity is not None:
            quantities[item.id] = rule.quantity
        applied.append(rule.description.format(crew=selected_crew(context) or ""))

    excluded = [
        item_id
        for group, ids in alternatives.items() if group in fired_groups
        for item_id in ids if item_id not in selected
    ]

    logger.info(f"Auto-selection: roof type {roof_type}, {len(selected)} item(s) selected")
    return AutoSelectionResult(
        auto_selected_item_ids=selected,
        detected_roof_type=roof_type,
        applied_rules=applied,
        item_quantities=quantities,
        excluded_item_ids=list(dict.fromkeys(excluded)),
    )

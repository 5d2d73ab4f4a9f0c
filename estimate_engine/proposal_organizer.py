"""
LLM-assisted proposal organization.

Items are referenced by integer id (1..N) so the model can neither invent
nor rename items; totals always come from the calculator, never the
model. After the response comes back every id is checked: unknown ids are
dropped, ids already placed are not placed twice, and any id the model
omitted becomes its own standalone group.

If the call raises, times out or returns something that does not validate,
every item becomes its own group (identity grouping).
"""

import json
import logging
import concurrent.futures
from dataclasses import dataclass, field

from pydantic import BaseModel, Field, ValidationError

from estimate_engine import config
from estimate_engine.extraction import Extractor, extract_json
from estimate_engine.models import Estimate, LineItem

logger = logging.getLogger(__name__)

ORGANIZE_MAX_TOKENS = 2000
PROPOSAL_SECTIONS = ("materials", "labor", "equipment")


# ---------------------------------------------------------------------------
# Response schema
# ---------------------------------------------------------------------------

class ProposalGroup(BaseModel):
    display_name: str = Field(alias="displayName", min_length=1)
    item_ids: list[int] = Field(alias="itemIds")


class OrganizerResponse(BaseModel):
    groups: list[ProposalGroup]


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------

@dataclass
class OrganizerItem:
    id: int
    name: str
    total: float
    category: str  # materials | labor | equipment
    locked: bool = False


@dataclass
class OrganizedItem:
    display_name: str
    total: float
    item_ids: list[int]
    locked: bool = False


@dataclass
class OrganizedProposal:
    materials: list[OrganizedItem] = field(default_factory=list)
    labor: list[OrganizedItem] = field(default_factory=list)
    equipment: list[OrganizedItem] = field(default_factory=list)
    used_fallback: bool = False

    def section(self, category: str) -> list[OrganizedItem]:
        return getattr(self, category)

    def sort(self) -> None:
        for category in PROPOSAL_SECTIONS:
            self.section(category).sort(key=lambda g: g.total, reverse=True)


# ---------------------------------------------------------------------------
# Item map
# ---------------------------------------------------------------------------

def build_item_map(estimate: Estimate,
                   locked_ids: set[str] | None = None,
                   extra_equipment: list[tuple[str, float]] | None = None) -> dict[int, OrganizerItem]:
    """
    Number the estimate's items 1..N: materials + accessories, then labor,
    then equipment, then any extra equipment groups (e.g. vendor delivery).

    `locked_ids` holds the ids of line items whose name was edited by
    hand; those must keep their exact name.
    """
    locked_ids = locked_ids or set()
    sources: list[tuple[str, list[LineItem]]] = [
        ("materials", estimate.by_category.get("materials", []) + estimate.by_category.get("accessories", [])),
        ("labor", estimate.by_category.get("labor", [])),
        ("equipment", estimate.by_category.get("equipment", [])),
    ]

    item_map: dict[int, OrganizerItem] = {}
    next_id = 1
    for category, items in sources:
        for item in items:
            item_map[next_id] = OrganizerItem(
                id=next_id, name=item.name, total=item.total,
                category=category, locked=item.id in locked_ids,
            )
            next_id += 1
    for name, total in extra_equipment or []:
        item_map[next_id] = OrganizerItem(id=next_id, name=name, total=total, category="equipment")
        next_id += 1
    return item_map


def build_organize_prompt(items: list[OrganizerItem],
                          job_description: str | None = None,
                          customer_address: str | None = None) -> str:
    lines = "\n".join(
        f"{i.id}: {i.name} (${i.total:.2f}) [{i.category}]{' LOCKED' if i.locked else ''}"
        for i in items
    )
    context = ""
    if job_description:
        context += f"JOB DESCRIPTION: {job_description}\n"
    if customer_address:
        context += f"CUSTOMER ADDRESS: {customer_address}\n"

    return f"""Organize these roofing estimate items for a professional client proposal.
Group small related items (flashing, fasteners, sealants) under short client-friendly names.
Keep primary roofing systems, underlayments and labor as their own lines.

RULES:
- Items marked LOCKED must stay standalone with their exact name
- Every item ID must appear in exactly one group
- Respond with ONLY valid JSON

{context}
ITEMS:
{lines}

JSON FORMAT:
{{"groups":[{{"displayName":"Group Name","itemIds":[1,2,3]}},{{"displayName":"Standalone Item","itemIds":[4]}}]}}"""


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------

def identity_grouping(item_map: dict[int, OrganizerItem]) -> OrganizedProposal:
    """Every item as its own group."""
    proposal = OrganizedProposal(used_fallback=True)
    for item in item_map.values():
        proposal.section(item.category).append(
            OrganizedItem(display_name=item.name, total=item.total, item_ids=[item.id], locked=item.locked)
        )
    proposal.sort()
    return proposal


def reconcile_groups(response: OrganizerResponse, item_map: dict[int, OrganizerItem]) -> OrganizedProposal:
    """Turn validated model groups into an OrganizedProposal covering every id exactly once."""
    proposal = OrganizedProposal()
    used: set[int] = set()

    for group in response.groups:
        ids = []
        for item_id in group.item_ids:
            if item_id not in item_map:
                logger.warning(f"Organizer returned unknown item ID {item_id}; ignoring")
                continue
            if item_id in used:
                logger.warning(f"Organizer placed item ID {item_id} in more than one group; keeping the first")
                continue
            used.add(item_id)
            ids.append(item_id)
        if not ids:
            continue

        members = [item_map[i] for i in ids]
        # Locked items stay standalone under their exact name
        locked = [m for m in members if m.locked]
        if locked and len(members) > 1:
            logger.warning(f"Organizer merged locked item(s) into '{group.display_name}'; splitting them out")
        for m in locked:
            proposal.section(m.category).append(OrganizedItem(
                display_name=m.name, total=m.total, item_ids=[m.id], locked=True,
            ))
        rest = [m for m in members if not m.locked]
        if rest:
            proposal.section(rest[0].category).append(OrganizedItem(
                display_name=group.display_name,
                total=sum(m.total for m in rest),
                item_ids=[m.id for m in rest],
            ))

    missing = [i for i in item_map if i not in used]
    if missing:
        logger.warning(
            f"Organizer missed {len(missing)} item(s), adding as standalone groups: "
            + ", ".join(f"ID {i}: \"{item_map[i].name}\" (${item_map[i].total:.2f})" for i in missing)
        )
        for item_id in missing:
            item = item_map[item_id]
            proposal.section(item.category).append(OrganizedItem(
                display_name=item.name, total=item.total, item_ids=[item_id], locked=item.locked,
            ))

    proposal.sort()
    return proposal


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def _call_with_timeout(extractor: Extractor, prompt: str, timeout: float) -> str:
    executor = concurrent.futures.ThreadPoolExecutor(max_workers=1)
    try:
        future = executor.submit(extractor, prompt, None, ORGANIZE_MAX_TOKENS)
        return future.result(timeout=timeout)
    finally:
        # Do not wait on a call that already timed out
        executor.shutdown(wait=False)


def organize_proposal(estimate: Estimate,
                      extractor: Extractor | None,
                      locked_ids: set[str] | None = None,
                      extra_equipment: list[tuple[str, float]] | None = None,
                      timeout: float | None = None) -> OrganizedProposal:
    """
    Group the estimate's items for the client proposal.

    Never raises for collaborator problems: any failure, timeout or invalid
    response yields identity grouping with `used_fallback=True`.
    """
    item_map = build_item_map(estimate, locked_ids, extra_equipment)
    if not item_map:
        return OrganizedProposal()
    if extractor is None:
        logger.warning("No extraction service configured; using one group per item")
        return identity_grouping(item_map)

    timeout = config.ORGANIZE_TIMEOUT_SECONDS if timeout is None else timeout
    prompt = build_organize_prompt(
        list(item_map.values()),
        job_description=f"Job for {estimate.customer_info.name}" if estimate.customer_info.name else None,
        customer_address=estimate.customer_info.address or None,
    )
    logger.info(f"Organizing {len(item_map)} item(s) for proposal (timeout {timeout:.0f}s)")

    try:
        raw = _call_with_timeout(extractor, prompt, timeout)
        response = OrganizerResponse.model_validate(json.loads(extract_json(raw)))
    except concurrent.futures.TimeoutError:
        logger.warning(f"Proposal organizer timed out after {timeout:.0f}s; using one group per item")
        return identity_grouping(item_map)
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning(f"Proposal organizer returned invalid JSON: {type(e).__name__}: {e}")
        return identity_grouping(item_map)
    except Exception as e:
        logger.error(f"Proposal organizer failed: {type(e).__name__}: {e}")
        return identity_grouping(item_map)

    return reconcile_groups(response, item_map)

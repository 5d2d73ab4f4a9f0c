"""
Proposal descriptions: the fixed description map for common catalog items
and bulk generation of missing descriptions through the extraction
collaborator.

Bulk generation is sequential, one call per item in input order. Progress
is reported as (current, total) after each item, the cancel check runs
between items, and a failed item is logged and skipped.
"""

import logging
from dataclasses import replace
from typing import Callable

from estimate_engine.database import DESCRIPTION_MAP
from estimate_engine.extraction import Extractor
from estimate_engine.models import LineItem, PriceItem

logger = logging.getLogger(__name__)

DESCRIPTION_MAX_TOKENS = 100

DESCRIPTION_PROMPT = """You are a professional roofing contractor writing proposal descriptions for a client-facing estimate.

Write a SHORT, professional description for this roofing item in this EXACT format:

Format: Product Name - 6-13 word description

The description must:
- Start with the product name, followed by a dash
- Be 6-13 words after the dash
- Be concise and informative, not salesy

Item name: {name}
Category: {category}
Unit: {unit}

Examples:
- "Copper Valley - premium copper flashing for lifetime leak protection in roof valleys"
- "Titanium PSU 30 - high-temperature synthetic underlayment with superior tear strength"
- "Complete Roof Labor - includes tear-off deck prep underlayment and finish roofing"

For LABOR use "Labor Name - brief description of work included".
For EQUIPMENT/FEES use "Item Name - what is being provided".

Return ONLY the description, no other text."""


def proposal_description_for(item: LineItem | PriceItem) -> str:
    """Item's own description, else the mapped one, else its name."""
    if item.proposal_description and item.proposal_description.strip():
        return item.proposal_description
    return DESCRIPTION_MAP.get(item.name, item.name)


def apply_description_map(items: list[LineItem]) -> list[LineItem]:
    """Copies of `items` with mapped descriptions filled in where missing."""
    return [
        item if item.proposal_description or item.name not in DESCRIPTION_MAP
        else replace(item, proposal_description=DESCRIPTION_MAP[item.name])
        for item in items
    ]


def generate_descriptions(price_items: list[PriceItem],
                          extractor: Extractor,
                          on_progress: Callable[[int, int], None] | None = None,
                          should_cancel: Callable[[], bool] | None = None) -> dict[str, str]:
    """
    Generate descriptions for catalog items that have none.

    Returns:
        Mapping of item id -> generated description for the items that
        succeeded. Cancellation returns what was generated so far.
    """
    pending = [p for p in price_items if not (p.proposal_description or "").strip()]
    results: dict[str, str] = {}
    total = len(pending)
    if total == 0:
        return results

    logger.info(f"Generating proposal descriptions for {total} item(s)")
    for i, item in enumerate(pending):
        if should_cancel is not None and should_cancel():
            logger.info(f"Description generation cancelled after {i}/{total} item(s)")
            break
        try:
            text = extractor(
                DESCRIPTION_PROMPT.format(name=item.name, category=item.category, unit=item.unit),
                None,
                DESCRIPTION_MAX_TOKENS,
            ).strip().strip('"')
            if text:
                results[item.id] = text
        except Exception as e:
            logger.error(f"Error generating description for {item.name}: {type(e).__name__}: {e}")
        if on_progress is not None:
            on_progress(i + 1, total)

    logger.info(f"Generated {len(results)}/{total} description(s)")
    return results

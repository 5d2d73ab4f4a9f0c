"""
Quantity takeoff from roof measurements, line-item construction and
estimate sanity review.

Quantities come from coverage rates when the catalog item carries one,
otherwise from name-based special cases, otherwise from the unit's
calculation type (area / linear / count / flat).
"""

import logging
import math

from estimate_engine.database import UNIT_TYPES
from estimate_engine.models import Estimate, LineItem, Measurements, PriceItem, VendorQuote, VendorQuoteItem
from estimate_engine.vendors import match_schafer_description, normalize_vendor

logger = logging.getLogger(__name__)

FLAT_FEE_KEYWORDS = ("delivery", "fuel", "porto", "rolloff", "reprographic")
OPTIONAL_NAME_KEYWORDS = ("skylight",)
UNDERLAYMENT_KEYWORDS = ("underlayment", "ice & water", "sharkskin", "felt", "synthetic")
TEAR_OFF_SQUARES_PER_ROLLOFF = 15
MIN_MATERIALS_PER_SQUARE = 50


# ---------------------------------------------------------------------------
# Quantity derivation
# ---------------------------------------------------------------------------

def _linear_by_coverage(name: str, m: Measurements, coverage: float) -> float:
    if "starter" in name:
        length = m.eave_length + m.rake_length
    elif "valley" in name:
        length = m.valley_length
    elif "eave" in name or "drip" in name:
        length = m.eave_length
    elif "rake" in name:
        length = m.rake_length
    elif "ridge" in name or "h&r" in name:
        # H&R caps cover both ridges and hips
        length = m.ridge_length + m.hip_length
    elif "hip" in name:
        length = m.hip_length
    else:
        length = m.eave_length
    return math.ceil(length / coverage)


def _linear_direct(name: str, m: Measurements) -> float:
    if "valley" in name:
        return m.valley_length
    if "eave" in name or "drip" in name:
        return m.eave_length
    if "rake" in name:
        return m.rake_length
    if "ridge" in name:
        return m.ridge_length
    if "hip" in name:
        return m.hip_length
    if "h&r" in name:
        return m.ridge_length + m.hip_length
    return 0


def _count_direct(name: str, m: Measurements) -> float:
    if any(k in name for k in ("boot", "pipe", "jack", "flash", "vent")):
        return m.penetrations
    if "skylight" in name or "velux" in name:
        return m.skylights
    if "chimney" in name:
        return m.chimneys
    return 0


def calculate_item_quantity(item: PriceItem, m: Measurements, is_tear_off: bool = False) -> float:
    name = item.name.lower()
    coverage = item.coverage or None
    coverage_unit = item.coverage_unit.lower() if item.coverage_unit else None

    if coverage and coverage_unit:
        if coverage_unit == "lf":
            return _linear_by_coverage(name, m, coverage)
        if coverage_unit == "sqft":
            return math.ceil(m.total_sqft / coverage)
        if coverage_unit == "sq":
            return math.ceil(m.total_squares / coverage)
        return 0

    # Manual-entry items: 0 unless a known flat fee
    if item.unit == "each":
        return 1 if any(k in name for k in FLAT_FEE_KEYWORDS) else 0

    if "osb" in name or "oriented strand" in name:
        return m.total_squares * 3
    if "starter" in name:
        return m.eave_length + m.rake_length
    if any(k in name for k in FLAT_FEE_KEYWORDS) or item.unit == "flat":
        if "rolloff" in name and is_tear_off:
            return math.ceil(m.total_squares / TEAR_OFF_SQUARES_PER_ROLLOFF)
        return 1
    if item.category == "labor":
        return m.total_squares

    unit_type = UNIT_TYPES.get(item.unit)
    if unit_type is None:
        return 0
    calc_type = unit_type["calc_type"]
    if calc_type == "area":
        return m.total_sqft if item.unit == "sf" else m.total_squares
    if calc_type == "linear":
        return _linear_direct(name, m)
    if calc_type == "count":
        return _count_direct(name, m)
    if calc_type == "flat":
        return 1
    return 0


def calculate_item_quantities(price_items: list[PriceItem], m: Measurements,
                              is_tear_off: bool = False) -> dict[str, float]:
    """Derive a quantity for every catalog item from the measurements."""
    return {item.id: calculate_item_quantity(item, m, is_tear_off) for item in price_items}


# ---------------------------------------------------------------------------
# Line items
# ---------------------------------------------------------------------------

def is_optional_item(name: str) -> bool:
    lowered = name.lower()
    return any(k in lowered for k in OPTIONAL_NAME_KEYWORDS)


def build_line_items(selected_ids: list[str],
                     quantities: dict[str, float],
                     price_items: list[PriceItem],
                     vendor_quote_items: list[VendorQuoteItem] | None = None,
                     vendor_adjusted_prices: dict[str, float] | None = None,
                     vendor_quotes: list[VendorQuote] | None = None,
                     ) -> tuple[list[LineItem], list[LineItem]]:
    """Turn selected ids into (line_items, optional_items).

    Vendor quote lines take their adjusted price when one is given and
    fall back to their own quantity. Lines from a Schafer quote (the
    default vendor when the quote is unknown) get the matching Schafer
    proposal description. Unknown ids are skipped with a warning.
    """
    catalog = {p.id: p for p in price_items}
    vendor_items = {v.id: v for v in vendor_quote_items or []}
    quote_vendors = {q.id: q.vendor for q in vendor_quotes or []}
    adjusted = vendor_adjusted_prices or {}

    line_items: list[LineItem] = []
    optional_items: list[LineItem] = []
    for item_id in selected_ids:
        if item_id in vendor_items:
            v = vendor_items[item_id]
            qty = quantities.get(item_id, v.quantity)
            price = adjusted.get(item_id, v.price)
            description = None
            if normalize_vendor(quote_vendors.get(v.vendor_quote_id)) == "schafer":
                matched = match_schafer_description(v.name)
                description = matched if matched != v.name else None
            line = LineItem(
                id=v.id, name=v.name, unit=v.unit, price=price,
                category="vendor-quote", base_quantity=qty, quantity=qty,
                total=qty * price, proposal_description=description,
            )
        elif item_id in catalog:
            line = LineItem.from_price_item(
                catalog[item_id], quantities.get(item_id, 0),
                price=adjusted.get(item_id),
                is_optional=is_optional_item(catalog[item_id].name),
            )
        else:
            logger.warning(f"Selected item {item_id} is not in the catalog; skipping")
            continue

        if line.is_optional:
            optional_items.append(line)
        else:
            line_items.append(line)
    return line_items, optional_items


# ---------------------------------------------------------------------------
# Sanity review
# ---------------------------------------------------------------------------

def review_estimate(estimate: Estimate) -> list[str]:
    """
    Flag suspicious selections and settings. Never blocks, only warns.
    """
    warnings = []

    if estimate.waste_percent == 0:
        warnings.append("Waste % is 0 - typically should be 10-15%")

    if not estimate.by_category.get("labor"):
        warnings.append("No labor items selected")

    materials = estimate.by_category.get("materials", [])
    if not any(k in i.name.lower() for i in materials for k in UNDERLAYMENT_KEYWORDS):
        warnings.append("No underlayment selected - most roofs require underlayment")

    trims = materials + estimate.by_category.get("accessories", [])
    if not any("drip edge" in i.name.lower() for i in trims):
        warnings.append("No drip edge selected")

    if estimate.margin_percent < 25:
        warnings.append("Margin is below 25% - is this intentional?")
    if estimate.margin_percent > 60:
        warnings.append("Margin is above 60% - is this intentional?")

    if estimate.totals.get("materials", 0) < estimate.measurements.total_squares * MIN_MATERIALS_PER_SQUARE:
        warnings.append("Materials cost seems low for roof size - verify items are selected")

    return warnings

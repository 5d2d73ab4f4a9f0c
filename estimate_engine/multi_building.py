"""
Multi-building aggregation.

Several physically separate structures on one job share a single financial
cascade. Each building contributes its own material selections; labor,
equipment and vendor quote items are job-level and are added exactly once.

    per building : materials (summed by item id, qty <= 0 skipped)
    job level    : labor   = total squares x labor price
                   equipment from EQUIPMENT_RULES against total squares
                   vendor quote items at their own quantity

The combined Measurements sum every additive field and take the first
measured building's pitch and complexity as representative.
"""

import logging
import math
from dataclasses import dataclass, field

from estimate_engine.database import EQUIPMENT_RULES, RULE_PER_SQUARES
from estimate_engine.financials import FinancialSettings, build_estimate
from estimate_engine.models import (
    ADDITIVE_MEASUREMENT_FIELDS,
    SLOPE_BAND_FIELDS,
    Building,
    CustomerInfo,
    Estimate,
    EquipmentRule,
    Measurements,
    PriceItem,
    VendorQuote,
    VendorQuoteItem,
)
from estimate_engine.quantities import build_line_items

logger = logging.getLogger(__name__)

UNSELECTED_ROOF_SYSTEM = "Unselected"


@dataclass
class BuildingSubtotal:
    building_name: str
    roof_system: str
    materials_total: float
    item_count: int


@dataclass
class EquipmentLine:
    name: str
    quantity: float
    unit_price: float
    total: float


@dataclass
class MultiBuildingResult:
    combined_selected_items: list[str] = field(default_factory=list)
    combined_item_quantities: dict[str, float] = field(default_factory=dict)
    building_subtotals: dict[str, BuildingSubtotal] = field(default_factory=dict)
    labor_total: float = 0.0
    equipment_total: float = 0.0
    equipment_items: list[EquipmentLine] = field(default_factory=list)
    combined_measurements: Measurements = field(default_factory=Measurements)
    total_squares: float = 0.0


def combine_measurements(buildings: list[Building]) -> Measurements:
    """Sum additive fields across buildings; pitch/complexity come from the first one measured."""
    measured = [b.measurements for b in buildings if b.measurements is not None]
    if not measured:
        return Measurements()

    combined = {name: sum(getattr(m, name) for m in measured) for name in ADDITIVE_MEASUREMENT_FIELDS}
    for name in ("penetrations", "skylights", "chimneys"):
        combined[name] = int(combined[name])

    # Slope bands only when at least one building reports them
    for name in SLOPE_BAND_FIELDS:
        values = [getattr(m, name) for m in measured if getattr(m, name) is not None]
        combined[name] = sum(values) if values else None

    first = measured[0]
    return Measurements(
        predominant_pitch=first.predominant_pitch,
        complexity=first.complexity,
        **combined,
    )


def _equipment_quantity(rule: EquipmentRule, total_squares: float) -> float:
    if rule.rule_type == RULE_PER_SQUARES:
        return math.ceil(total_squares / rule.squares_per_unit)
    return rule.default_qty


def _add(result: MultiBuildingResult, item_id: str, qty: float) -> None:
    if item_id not in result.combined_selected_items:
        result.combined_selected_items.append(item_id)
    result.combined_item_quantities[item_id] = result.combined_item_quantities.get(item_id, 0) + qty


def _selected_crew(buildings: list[Building], catalog: dict[str, PriceItem]) -> PriceItem | None:
    for building in buildings:
        for item_id in building.selected_items:
            item = catalog.get(item_id)
            if item is not None and item.category == "labor" and item.unit == "sq":
                return item
    return None


def assemble_multi_building(buildings: list[Building],
                            price_items: list[PriceItem],
                            equipment_rules: list[EquipmentRule] = EQUIPMENT_RULES,
                            vendor_quote_items: list[VendorQuoteItem] | None = None,
                            vendor_quantities: dict[str, float] | None = None,
                            vendor_adjusted_prices: dict[str, float] | None = None,
                            labor_item_id: str | None = None) -> MultiBuildingResult:
    """
    Merge every building's selections into one job-level selection.

    Args:
        buildings: Buildings in display order.
        price_items: The catalog.
        equipment_rules: Job-level equipment rules, matched by exact name.
        vendor_quote_items: Job-level vendor lines, each added once.
        vendor_quantities: Optional quantity overrides for vendor lines.
        vendor_adjusted_prices: Optional price overrides keyed by item id.
        labor_item_id: Labor item to charge; defaults to the first
            per-square labor item any building selected, then to the first
            labor item in the catalog.

    Returns:
        MultiBuildingResult with combined ids/quantities and subtotals.
    """
    vendor_quote_items = vendor_quote_items or []
    vendor_quantities = vendor_quantities or {}
    adjusted = vendor_adjusted_prices or {}
    catalog = {p.id: p for p in price_items}
    vendor_ids = {v.id for v in vendor_quote_items}
    equipment_names = {r.item_name for r in equipment_rules}

    result = MultiBuildingResult()
    result.total_squares = sum(
        b.measurements.total_squares for b in buildings if b.measurements is not None
    )
    result.combined_measurements = combine_measurements(buildings)

    # 1. Per-building materials
    for building in buildings:
        materials_total = 0.0
        item_count = 0
        for item_id in building.selected_items:
            if item_id in vendor_ids:
                continue
            item = catalog.get(item_id)
            if item is None:
                logger.warning(f"{building.name}: selected item {item_id} is not in the catalog; skipping")
                continue
            # Labor and rule-driven equipment are charged once at job level
            if item.category == "labor" or item.name in equipment_names:
                continue
            qty = building.item_quantities.get(item_id, 0)
            if qty <= 0:
                continue

            _add(result, item_id, qty)
            price = adjusted.get(item_id, item.price)
            materials_total += price * qty
            item_count += 1

        result.building_subtotals[building.id] = BuildingSubtotal(
            building_name=building.name,
            roof_system=building.roof_system or UNSELECTED_ROOF_SYSTEM,
            materials_total=materials_total,
            item_count=item_count,
        )

    # 2. Labor
    if labor_item_id is not None:
        labor_item = catalog.get(labor_item_id)
    else:
        labor_item = _selected_crew(buildings, catalog) or next(
            (p for p in price_items if p.category == "labor"), None
        )
    if labor_item is not None and result.total_squares > 0:
        _add(result, labor_item.id, result.total_squares)
        result.labor_total = result.total_squares * labor_item.price

    # 3. Equipment
    by_name = {p.name: p for p in reversed(price_items)}
    for rule in equipment_rules:
        price_item = by_name.get(rule.item_name)
        if price_item is None:
            continue
        qty = _equipment_quantity(rule, result.total_squares)
        if qty <= 0:
            continue
        _add(result, price_item.id, qty)
        total = qty * price_item.price
        result.equipment_total += total
        result.equipment_items.append(EquipmentLine(
            name=price_item.name, quantity=qty, unit_price=price_item.price, total=total,
        ))

    # 4. Vendor items, one quantity per item
    for v_item in vendor_quote_items:
        if v_item.id not in result.combined_selected_items:
            result.combined_selected_items.append(v_item.id)
        result.combined_item_quantities[v_item.id] = vendor_quantities.get(v_item.id, v_item.quantity)

    logger.info(
        f"Combined {len(buildings)} building(s): {result.total_squares} squares, "
        f"{len(result.combined_selected_items)} item(s), labor ${result.labor_total:,.2f}, "
        f"equipment ${result.equipment_total:,.2f}"
    )
    return result


def calculate_multi_building_estimate(buildings: list[Building],
                                      price_items: list[PriceItem],
                                      settings: FinancialSettings,
                                      equipment_rules: list[EquipmentRule] = EQUIPMENT_RULES,
                                      vendor_quote_items: list[VendorQuoteItem] | None = None,
                                      vendor_quantities: dict[str, float] | None = None,
                                      vendor_adjusted_prices: dict[str, float] | None = None,
                                      labor_item_id: str | None = None,
                                      customer_info: CustomerInfo | None = None,
                                      vendor_quotes: list[VendorQuote] | None = None,
                                      ) -> tuple[Estimate, MultiBuildingResult]:
    """Assemble the buildings and run the combined selection through the cascade."""
    result = assemble_multi_building(
        buildings, price_items, equipment_rules,
        vendor_quote_items=vendor_quote_items,
        vendor_quantities=vendor_quantities,
        vendor_adjusted_prices=vendor_adjusted_prices,
        labor_item_id=labor_item_id,
    )
    line_items, optional_items = build_line_items(
        result.combined_selected_items,
        result.combined_item_quantities,
        price_items,
        vendor_quote_items=vendor_quote_items,
        vendor_adjusted_prices=vendor_adjusted_prices,
        vendor_quotes=vendor_quotes,
    )
    estimate = build_estimate(
        line_items, settings,
        optional_items=optional_items,
        measurements=result.combined_measurements,
        customer_info=customer_info,
    )
    return estimate, result

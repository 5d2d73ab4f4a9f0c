"""
Calculated accessories: heat tape, snow guards and snow fence from eave /
valley lengths and roof pitch, plus catalog price lookup with defaults.

    heat tape   triangles = ceil(eave / 3), 6 LF per triangle, + valley run
    snow guards eave x rows (each)
    snow fence  eave x rows (LF)

Rows by pitch: <=4/12 -> 1, <=7/12 -> 2, <=10/12 -> 3, steeper -> 4.
"""

import math
import re
from dataclasses import dataclass

from estimate_engine.models import PriceItem

DEFAULT_PITCH_RISE = 7

DEFAULT_ACCESSORY_PRICES = {
    "heat_tape_material": 5.0,
    "heat_tape_labor": 7.5,
    "snow_fence_material": 12.0,
    "snow_fence_labor": 5.0,
    "snow_guard_material": 7.0,
    "snow_guard_labor": 5.0,
    "skylight": 2400.0,
}

# (price key, [(name fragment, category), ...]) tried in order
ACCESSORY_LOOKUPS = {
    "heat_tape_material": [("heat tape", "materials"), ("heat tape", "accessories")],
    "heat_tape_labor": [("heat tape install", "labor"), ("heat tape", "labor")],
    "snow_fence_material": [("snow fence", "materials"), ("colorgard", "materials"),
                            ("snow fence", "accessories")],
    "snow_fence_labor": [("snow fence install", "labor"), ("snow fence", "labor")],
    "snow_guard_material": [("rmsg yeti snowguard", "materials"), ("snowguard", "materials"),
                            ("snow guard", "materials")],
    "snow_guard_labor": [("snowguard install", "labor"), ("snow guard install", "labor")],
    "skylight": [("skylight", "accessories"), ("skylight", "materials")],
}


@dataclass
class HeatTapeCalc:
    eave_length: float
    valley_length: float
    triangles: int
    eave_cable: float
    valley_cable: float
    total_lf: float
    material_cost: float
    labor_cost: float


@dataclass
class SnowRetentionCalc:
    eave_length: float
    pitch: str
    num_rows: int
    total_quantity: float
    unit: str  # each | lf
    material_cost: float
    labor_cost: float
    type: str  # snowguard | snowfence


def parse_pitch(pitch: str) -> int:
    """Rise of an "N/12" pitch; 7 when the string cannot be read."""
    match = re.search(r"(\d+)/(\d+)", pitch or "")
    if not match:
        return DEFAULT_PITCH_RISE
    return int(match.group(1))


def rows_for_pitch(pitch: str) -> int:
    rise = parse_pitch(pitch)
    if rise <= 4:
        return 1
    if rise <= 7:
        return 2
    if rise <= 10:
        return 3
    return 4


def calculate_heat_tape(eave: float, valley: float,
                        material_price: float = 5.0, labor_price: float = 7.5) -> HeatTapeCalc:
    triangles = math.ceil(eave / 3)
    eave_cable = triangles * 6  # 3' up + 3' down
    total_lf = eave_cable + valley
    return HeatTapeCalc(
        eave_length=eave,
        valley_length=valley,
        triangles=triangles,
        eave_cable=eave_cable,
        valley_cable=valley,
        total_lf=total_lf,
        material_cost=total_lf * material_price,
        labor_cost=total_lf * labor_price,
    )


def _snow_retention(kind: str, unit: str, eave: float, pitch: str,
                    material_price: float, labor_price: float) -> SnowRetentionCalc:
    num_rows = rows_for_pitch(pitch)
    total = eave * num_rows
    return SnowRetentionCalc(
        eave_length=eave,
        pitch=pitch,
        num_rows=num_rows,
        total_quantity=total,
        unit=unit,
        material_cost=total * material_price,
        labor_cost=total * labor_price,
        type=kind,
    )


def calculate_snow_guards(eave: float, pitch: str,
                          material_price: float = 7.0, labor_price: float = 5.0) -> SnowRetentionCalc:
    return _snow_retention("snowguard", "each", eave, pitch, material_price, labor_price)


def calculate_snow_fence(eave: float, pitch: str,
                         material_price: float = 12.0, labor_price: float = 5.0) -> SnowRetentionCalc:
    """Snow fence for metal roofs, in linear feet."""
    return _snow_retention("snowfence", "lf", eave, pitch, material_price, labor_price)


def find_price_item_by_name(price_items: list[PriceItem], search: str,
                            category: str | None = None) -> PriceItem | None:
    lowered = search.lower()
    for item in price_items:
        if (category is None or item.category == category) and lowered in item.name.lower():
            return item
    return None


def get_accessory_prices(price_items: list[PriceItem]) -> dict[str, float]:
    """Accessory unit prices from the catalog, falling back to the defaults."""
    prices = {}
    for key, lookups in ACCESSORY_LOOKUPS.items():
        found = None
        for fragment, category in lookups:
            found = find_price_item_by_name(price_items, fragment, category)
            if found is not None:
                break
        prices[key] = found.price if found is not None else DEFAULT_ACCESSORY_PRICES[key]
    return prices

"""
Shared data types for the estimate engine.

Catalog entries, line items, measurements, buildings and the reconciled
Estimate. Plain dataclasses; the arithmetic lives in the other modules.
"""

from dataclasses import dataclass, field, asdict


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

@dataclass
class PriceItem:
    """One catalog entry. `price` is the unit cost."""

    id: str
    name: str
    unit: str
    price: float
    category: str
    coverage: float | None = None
    coverage_unit: str | None = None
    proposal_description: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "PriceItem":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            unit=str(data.get("unit") or "each"),
            price=float(data.get("price") or 0.0),
            category=str(data.get("category") or "materials"),
            coverage=_optional_float(data.get("coverage")),
            coverage_unit=data.get("coverage_unit"),
            proposal_description=data.get("proposal_description"),
        )


@dataclass
class VendorQuote:
    id: str
    vendor: str  # schafer | tra | rocky-mountain
    file_name: str = ""


@dataclass
class VendorQuoteItem:
    """A priced line read from a fabricator quote. Job-level, never per building."""

    id: str
    vendor_quote_id: str
    name: str
    quantity: float
    price: float
    unit: str = "each"
    category: str = "vendor-quote"
    vendor_category: str = ""

    @property
    def extended_price(self) -> float:
        return self.quantity * self.price

    @classmethod
    def from_dict(cls, data: dict) -> "VendorQuoteItem":
        return cls(
            id=str(data["id"]),
            vendor_quote_id=str(data.get("vendor_quote_id", "")),
            name=str(data.get("name", "")),
            quantity=float(data.get("quantity") or 0.0),
            price=float(data.get("price") or 0.0),
            unit=str(data.get("unit") or "each"),
            category=str(data.get("category") or "vendor-quote"),
            vendor_category=str(data.get("vendor_category") or ""),
        )


# ---------------------------------------------------------------------------
# Estimate building blocks
# ---------------------------------------------------------------------------

@dataclass
class LineItem:
    """A selected catalog item with quantity and extended total."""

    id: str
    name: str
    unit: str
    price: float
    category: str
    base_quantity: float
    quantity: float
    total: float
    waste_added: float = 0.0
    is_optional: bool = False
    coverage: float | None = None
    coverage_unit: str | None = None
    proposal_description: str | None = None

    @classmethod
    def from_price_item(cls, item: PriceItem, quantity: float,
                        price: float | None = None,
                        is_optional: bool = False) -> "LineItem":
        unit_price = item.price if price is None else price
        return cls(
            id=item.id,
            name=item.name,
            unit=item.unit,
            price=unit_price,
            category=item.category,
            base_quantity=quantity,
            quantity=quantity,
            total=quantity * unit_price,
            is_optional=is_optional,
            coverage=item.coverage,
            coverage_unit=item.coverage_unit,
            proposal_description=item.proposal_description,
        )

    @classmethod
    def from_dict(cls, data: dict) -> "LineItem":
        quantity = float(data.get("quantity") or 0.0)
        price = float(data.get("price") or 0.0)
        total = data.get("total")
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            unit=str(data.get("unit") or "each"),
            price=price,
            category=str(data.get("category") or "materials"),
            base_quantity=float(data.get("base_quantity", quantity) or 0.0),
            quantity=quantity,
            total=float(total) if total is not None else quantity * price,
            waste_added=float(data.get("waste_added") or 0.0),
            is_optional=bool(data.get("is_optional", False)),
            coverage=_optional_float(data.get("coverage")),
            coverage_unit=data.get("coverage_unit"),
            proposal_description=data.get("proposal_description"),
        )


# Fields summed when several buildings are combined into one job
ADDITIVE_MEASUREMENT_FIELDS = (
    "total_squares",
    "ridge_length",
    "hip_length",
    "valley_length",
    "eave_length",
    "rake_length",
    "penetrations",
    "skylights",
    "chimneys",
)

SLOPE_BAND_FIELDS = ("steep_squares", "standard_squares", "flat_squares")


@dataclass
class Measurements:
    """Physical quantities for one building, lengths in feet, area in squares."""

    total_squares: float = 0.0
    predominant_pitch: str = "0/12"
    ridge_length: float = 0.0
    hip_length: float = 0.0
    valley_length: float = 0.0
    eave_length: float = 0.0
    rake_length: float = 0.0
    penetrations: int = 0
    skylights: int = 0
    chimneys: int = 0
    complexity: str = "standard"
    steep_squares: float | None = None
    standard_squares: float | None = None
    flat_squares: float | None = None

    def __post_init__(self):
        for name in ADDITIVE_MEASUREMENT_FIELDS + SLOPE_BAND_FIELDS:
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"Measurement '{name}' must be >= 0 (got {value})")

    @property
    def total_sqft(self) -> float:
        return self.total_squares * 100

    @classmethod
    def from_dict(cls, data: dict) -> "Measurements":
        kwargs = {}
        for name in ADDITIVE_MEASUREMENT_FIELDS:
            if data.get(name) is not None:
                kwargs[name] = float(data[name])
        for name in ("penetrations", "skylights", "chimneys"):
            if name in kwargs:
                kwargs[name] = int(kwargs[name])
        for name in SLOPE_BAND_FIELDS:
            kwargs[name] = _optional_float(data.get(name))
        if data.get("predominant_pitch"):
            kwargs["predominant_pitch"] = str(data["predominant_pitch"])
        if data.get("complexity"):
            kwargs["complexity"] = str(data["complexity"])
        return cls(**kwargs)


@dataclass
class Building:
    """One physically separate structure on a job."""

    id: str
    name: str
    roof_system: str = ""  # empty = unselected
    measurements: Measurements | None = None
    selected_items: list[str] = field(default_factory=list)
    item_quantities: dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "Building":
        m = data.get("measurements")
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            roof_system=str(data.get("roof_system") or ""),
            measurements=Measurements.from_dict(m) if m else None,
            selected_items=[str(i) for i in data.get("selected_items", [])],
            item_quantities={
                str(k): float(v) for k, v in (data.get("item_quantities") or {}).items()
            },
        )


@dataclass
class CustomerInfo:
    name: str = ""
    address: str = ""
    phone: str = ""


@dataclass
class EquipmentRule:
    """Job-level equipment quantity rule, matched by exact catalog name."""

    item_name: str
    rule_type: str  # "per-job" | "per-n-squares"
    default_qty: float = 1
    squares_per_unit: float = 60


@dataclass
class Estimate:
    """The reconciled estimate. Rebuild it through financials, never edit totals."""

    line_items: list[LineItem]
    optional_items: list[LineItem]
    by_category: dict[str, list[LineItem]]
    totals: dict[str, float]
    base_cost: float
    office_cost_percent: float
    office_allocation: float
    total_cost: float
    margin_percent: float
    waste_percent: float
    waste_allowance: float
    sundries_percent: float
    sundries_amount: float
    sell_price: float
    sales_tax_percent: float
    sales_tax_amount: float
    final_price: float
    gross_profit: float
    profit_margin: float
    measurements: Measurements
    customer_info: CustomerInfo
    generated_at: str
    intro_letter_text: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Estimate":
        by_category = {
            cat: [LineItem.from_dict(i) for i in items]
            for cat, items in (data.get("by_category") or {}).items()
        }
        m = data.get("measurements")
        c = data.get("customer_info") or {}
        return cls(
            line_items=[LineItem.from_dict(i) for i in data.get("line_items", [])],
            optional_items=[LineItem.from_dict(i) for i in data.get("optional_items", [])],
            by_category=by_category,
            totals={k: float(v) for k, v in (data.get("totals") or {}).items()},
            base_cost=float(data.get("base_cost", 0.0)),
            office_cost_percent=float(data.get("office_cost_percent", 0.0)),
            office_allocation=float(data.get("office_allocation", 0.0)),
            total_cost=float(data.get("total_cost", 0.0)),
            margin_percent=float(data.get("margin_percent", 0.0)),
            waste_percent=float(data.get("waste_percent", 0.0)),
            waste_allowance=float(data.get("waste_allowance", 0.0)),
            sundries_percent=float(data.get("sundries_percent", 0.0)),
            sundries_amount=float(data.get("sundries_amount", 0.0)),
            sell_price=float(data.get("sell_price", 0.0)),
            sales_tax_percent=float(data.get("sales_tax_percent", 0.0)),
            sales_tax_amount=float(data.get("sales_tax_amount", 0.0)),
            final_price=float(data.get("final_price", 0.0)),
            gross_profit=float(data.get("gross_profit", 0.0)),
            profit_margin=float(data.get("profit_margin", 0.0)),
            measurements=Measurements.from_dict(m) if m else Measurements(),
            customer_info=CustomerInfo(
                name=str(c.get("name", "")),
                address=str(c.get("address", "")),
                phone=str(c.get("phone", "")),
            ),
            generated_at=str(data.get("generated_at", "")),
            intro_letter_text=data.get("intro_letter_text"),
        )


@dataclass
class ValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _optional_float(value) -> float | None:
    if value is None or value == "":
        return None
    return float(value)

"""
CSV import/export for estimates.

Import reads a header row plus data rows, normalizes headers, categories
and legacy item names, routes "intro" rows into the intro letter and
optional rows into optional_items, then rebuilds categories and the full
financial cascade from the parsed lines. The CSV carries no percentages;
defaults (waste 10, office 10, margin 40, tax 10, sundries 10) apply.

Export writes the inverse table. The Consumables & Hardware line is not
exported; importers recompute it from materials + vendor quote.

Malformed input raises CsvImportError with every problem found.
"""

import csv
import io
import logging
from dataclasses import dataclass, field

from estimate_engine.database import CATEGORY_KEYS, CONSUMABLES_NAME, LEGACY_CATEGORY_ALIASES
from estimate_engine.financials import FinancialSettings, build_estimate, is_consumables_line
from estimate_engine.models import CustomerInfo, Estimate, LineItem, Measurements

logger = logging.getLogger(__name__)

HEADER_ALIASES = {
    "building": "building",
    "name": "name",
    "address": "address",
    "item": "item",
    "description": "description",
    "desc": "description",
    "quantity": "quantity",
    "qty": "quantity",
    "unit": "unit",
    "unit price": "unitprice",
    "unitprice": "unitprice",
    "price": "unitprice",
    "total": "total",
    "category": "category",
    "cat": "category",
    "notes": "notes",
    "optional": "notes",
}

INTRO_CATEGORY = "intro"
OPTIONAL_MARKERS = ("optional", "not included", "excluded", "separate")

# Legacy display names and superseded items
ITEM_NAME_MAP = {
    "landfill charge": "Debris Haulaway & Landfill",
}
SKIPPED_ITEM_NAMES = ("rolloff", "roll-off", "roll off")

EXPORT_HEADER = ["Name", "Address", "Item", "Description", "Quantity", "Unit",
                 "Unit Price", "Total", "Category", "Notes"]

CSV_TEMPLATE = """Name,Address,Description,Quantity,Unit,Unit Price,Total,Category,Notes
Customer Name,123 Main St,Brava Field Tile,28,bundle,43.25,1211,materials,
,,Hugo (standard),25,sq,550,13750,labor,
,,Porto Potty,1,flat,600,600,equipment,
,,Fuel Charge,1,each,194,194,equipment,
,,Debris Haulaway & Landfill,1,each,750,750,equipment,
,,Overnight Charge,1,flat,387,387,equipment,Only when crew is Hugo
"""


class CsvImportError(ValueError):
    """Raised when a CSV cannot be turned into an estimate."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


@dataclass
class ParseResult:
    success: bool
    estimate: Estimate | None = None
    errors: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Cell helpers
# ---------------------------------------------------------------------------

def normalize_header(header: str) -> str:
    h = header.strip().lower()
    return HEADER_ALIASES.get(h, h)


def normalize_category(value: str) -> str:
    v = value.strip().lower()
    if v in LEGACY_CATEGORY_ALIASES:
        return LEGACY_CATEGORY_ALIASES[v]
    if v in CATEGORY_KEYS:
        return v
    return "materials"


def normalize_item_name(name: str) -> str:
    n = name.strip()
    return ITEM_NAME_MAP.get(n.lower(), n)


def should_skip_item(name: str) -> bool:
    return name.strip().lower() in SKIPPED_ITEM_NAMES


def is_optional_note(notes: str) -> bool:
    n = (notes or "").lower()
    return any(marker in n for marker in OPTIONAL_MARKERS)


def to_number(value: str) -> float:
    cleaned = (value or "").replace("$", "").replace(",", "").strip()
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


def _fmt(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------

def _read_rows(csv_text: str) -> list[list[str]]:
    reader = csv.reader(io.StringIO(csv_text.lstrip("\ufeff")))
    return [
        [cell.strip() for cell in row]
        for row in reader
        if any(cell.strip() for cell in row)
    ]


def parse_estimate_csv(csv_text: str, settings: FinancialSettings | None = None) -> Estimate:
    """
    Parse CSV text into a fully reconciled Estimate.

    Raises:
        CsvImportError: header-only input or missing required columns.
    """
    rows = _read_rows(csv_text)
    if len(rows) < 2:
        raise CsvImportError(["CSV must have a header row and at least one data row"])

    headers = [normalize_header(h) for h in rows[0]]
    errors = []
    if "description" not in headers and "item" not in headers:
        errors.append("CSV must have Description or Item column")
    if "category" not in headers:
        errors.append("CSV must have Category column")
    if errors:
        raise CsvImportError(errors)

    line_items: list[LineItem] = []
    optional_items: list[LineItem] = []
    intro_parts: list[str] = []
    customer = CustomerInfo()
    skipped = 0

    for i, cells in enumerate(rows[1:], start=1):
        def cell(name: str) -> str:
            if name not in headers:
                return ""
            idx = headers.index(name)
            return cells[idx] if idx < len(cells) else ""

        if i == 1:
            customer.name = cell("name")
            customer.address = cell("address")

        category_raw = cell("category")
        if category_raw.strip().lower() == INTRO_CATEGORY:
            text = cell("description") or cell("item")
            if text:
                intro_parts.append(text)
            continue

        item_col = cell("item")
        desc_col = cell("description")
        name = normalize_item_name(item_col or desc_col or "Unnamed Item")
        category = normalize_category(category_raw)
        if should_skip_item(name):
            skipped += 1
            continue
        # The sundries line is always re-synthesized
        if category == "consumables" and name == CONSUMABLES_NAME:
            skipped += 1
            continue

        quantity = to_number(cell("quantity"))
        price = to_number(cell("unitprice"))
        total = to_number(cell("total"))
        if not price and quantity and total:
            price = total / quantity
        if not total:
            total = quantity * price
        is_optional = is_optional_note(cell("notes"))

        item = LineItem(
            id=f"csv_{i}",
            name=name,
            unit=cell("unit") or "each",
            price=price,
            category=category,
            base_quantity=quantity,
            quantity=quantity,
            total=total,
            is_optional=is_optional,
            proposal_description=desc_col if item_col and desc_col else None,
        )
        (optional_items if is_optional else line_items).append(item)

    logger.info(
        f"Parsed CSV: {len(line_items)} line item(s), {len(optional_items)} optional, "
        f"{len(intro_parts)} intro paragraph(s), {skipped} skipped"
    )
    return build_estimate(
        line_items,
        settings or FinancialSettings(),
        optional_items=optional_items,
        measurements=Measurements(),
        customer_info=customer,
        intro_letter_text="\n\n".join(intro_parts) if intro_parts else None,
    )


def try_parse_estimate_csv(csv_text: str, settings: FinancialSettings | None = None) -> ParseResult:
    """Non-raising wrapper around parse_estimate_csv."""
    try:
        return ParseResult(success=True, estimate=parse_estimate_csv(csv_text, settings))
    except CsvImportError as e:
        logger.warning(f"CSV import failed: {e}")
        return ParseResult(success=False, errors=e.errors)


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

def export_estimate_csv(estimate: Estimate) -> str:
    """Write the estimate as CSV: intro rows, line items, then optional items."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(EXPORT_HEADER)

    rows = []
    if estimate.intro_letter_text:
        for paragraph in estimate.intro_letter_text.split("\n\n"):
            rows.append(["", "", "", paragraph, "", "", "", "", INTRO_CATEGORY, ""])

    def item_row(item: LineItem, notes: str) -> list[str]:
        return [
            "", "", item.name, item.proposal_description or "",
            _fmt(item.quantity), item.unit, _fmt(item.price), _fmt(item.total),
            item.category, notes,
        ]

    for item in estimate.line_items:
        if not is_consumables_line(item):
            rows.append(item_row(item, ""))
    for item in estimate.optional_items:
        rows.append(item_row(item, "Optional"))

    if rows:
        rows[0][0] = estimate.customer_info.name
        rows[0][1] = estimate.customer_info.address
    writer.writerows(rows)
    return buf.getvalue()

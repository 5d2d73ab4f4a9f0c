"""
Central tables for the roofing catalog: categories, units, equipment rules,
proposal descriptions, kit keyword sets and the default price list.

Referenced by financials.py, multi_building.py, kit_grouping.py,
csv_codec.py and quantities.py.
"""

from estimate_engine.models import EquipmentRule, PriceItem

# ---------------------------------------------------------------------------
# Category taxonomy - display order
# ---------------------------------------------------------------------------

CATEGORIES = {
    "materials":    {"label": "Materials"},
    "consumables":  {"label": "Consumables & Hardware"},
    "accessories":  {"label": "Accessories"},
    "labor":        {"label": "Labor"},
    "equipment":    {"label": "Equipment & Fees"},
    "vendor-quote": {"label": "Vendor Quote"},
}

CATEGORY_KEYS = tuple(CATEGORIES)

# Categories whose totals form the materials base for waste and sundries
MATERIALS_BASE_CATEGORIES = ("materials", "vendor-quote")

# Older exports used the fabricator's name as a category
LEGACY_CATEGORY_ALIASES = {
    "schafer": "vendor-quote",
    "vendor": "vendor-quote",
    "material": "materials",
    "mats": "materials",
}


# ---------------------------------------------------------------------------
# Unit vocabulary
# Each entry: code -> {label, calc_type, needs_coverage}
# calc_type drives the measurement used for quantity derivation
# ---------------------------------------------------------------------------

UNIT_TYPES = {
    "sq":     {"label": "per square",    "calc_type": "area",   "needs_coverage": False},
    "sf":     {"label": "per sq ft",     "calc_type": "area",   "needs_coverage": False},
    "bundle": {"label": "per bundle",    "calc_type": "area",   "needs_coverage": True},
    "roll":   {"label": "per roll",      "calc_type": "area",   "needs_coverage": True},
    "lf":     {"label": "per linear ft", "calc_type": "linear", "needs_coverage": False},
    "each":   {"label": "each",          "calc_type": "count",  "needs_coverage": False},
    "pail":   {"label": "per pail",      "calc_type": "count",  "needs_coverage": False},
    "box":    {"label": "per box",       "calc_type": "count",  "needs_coverage": False},
    "tube":   {"label": "per tube",      "calc_type": "count",  "needs_coverage": False},
    "sheet":  {"label": "per sheet",     "calc_type": "count",  "needs_coverage": False},
    "flat":   {"label": "flat fee",      "calc_type": "flat",   "needs_coverage": False},
}


# ---------------------------------------------------------------------------
# Job-level equipment rules (names must match the catalog exactly)
# ---------------------------------------------------------------------------

RULE_PER_JOB = "per-job"
RULE_PER_SQUARES = "per-n-squares"

EQUIPMENT_RULES = [
    EquipmentRule("Porto Potty", RULE_PER_JOB, 1),
    EquipmentRule("Fuel Charge", RULE_PER_JOB, 1),
    EquipmentRule("Overnight Charge", RULE_PER_JOB, 1),
    EquipmentRule("Brava Delivery", RULE_PER_JOB, 1),
    EquipmentRule("Landfill Charge", RULE_PER_SQUARES, 1, squares_per_unit=60),
    EquipmentRule("Aspen Reprographic", RULE_PER_JOB, 1),
]


# ---------------------------------------------------------------------------
# Synthesized sundries line
# ---------------------------------------------------------------------------

CONSUMABLES_ID = "consumables"
CONSUMABLES_NAME = "Consumables & Hardware"
CONSUMABLES_DESCRIPTION = (
    "Nails, screws, caulk, sealant, caps, and miscellaneous fasteners "
    "required to complete the roofing installation."
)


# ---------------------------------------------------------------------------
# Proposal descriptions keyed by catalog name
# ---------------------------------------------------------------------------

DESCRIPTION_MAP = {
    # Brava
    "Brava Field Tile": "Brava composite slate field tiles - durable, lightweight synthetic roofing with Class A fire rating and 50-year limited warranty.",
    "Brava Starter": "Brava starter course tiles for proper alignment along eaves and rakes.",
    "Brava H&R": "Brava hip and ridge cap tiles for weather-tight roof peaks and hips.",
    "Brava H&R High Slope": "Brava hip and ridge caps engineered for steep slope applications (8/12 pitch and above).",
    "Brava Solids": "Brava solid tiles for valley cuts, edges, and detail work.",
    "Brava Delivery": "Freight and delivery of Brava roofing materials to project site.",
    # DaVinci
    "DaVinci Multi-Width Shake": "DaVinci Multi-Width Shake synthetic cedar roofing - realistic wood appearance with composite durability and Class A fire rating.",
    "DaVinci Starter": "DaVinci starter course for proper alignment along eaves and rakes.",
    # Flashing
    "D-Style Eave": "Painted aluminum D-style drip edge for eave protection, color-matched to roofing.",
    "D-Style Rake": "Painted aluminum D-style drip edge for rake edges, color-matched to roofing.",
    "Valley": "Painted aluminum valley flashing, 10' x 24\" sections.",
    "Step Flash": "Aluminum step flashing for sidewall-to-roof transitions.",
    "Hip & Ridge": "Painted metal hip and ridge cap trim.",
    "Copper Valley": "16oz copper valley flashing, 10' x 24\" - superior water channeling and lifetime durability.",
    # Underlayment
    "OC Titanium PSU 30": "Owens Corning Titanium PSU 30 synthetic underlayment - superior tear resistance and traction.",
    "SolarHide Radiant Barrier": "SolarHide reflective radiant barrier underlayment for enhanced energy efficiency.",
    "GAF VersaShield": "GAF VersaShield Class A fire-rated roof underlayment.",
    # Fasteners
    "1 3/4\" Ringshank Coil Nail HDG": "1 3/4\" hot-dip galvanized ring shank coil nails for synthetic roofing systems.",
    "3\" Coil Screws (H&R)": "3\" coil screws for secure hip and ridge cap attachment.",
    "1.25\" Plasticap Pail": "1.25\" plastic cap nails for underlayment installation.",
    # Equipment & fees
    "Porto Potty": "Portable restroom facility for the duration of the project.",
    "Fuel Charge": "Fuel surcharge for crew and equipment travel to the project site.",
    "Debris Haulaway & Landfill": "Trailer haul-away of roofing debris with landfill disposal fees.",
    "Overnight Charge": "Crew lodging for out-of-area projects.",
}


# ---------------------------------------------------------------------------
# Kit grouping tables
# ---------------------------------------------------------------------------

# Display grouping: items above this base cost are never folded into a kit
DISPLAY_STANDALONE_THRESHOLD = 1500.0

# Proposal kit grouping uses its own, lower threshold
PROPOSAL_STANDALONE_THRESHOLD = 1000.0

# Primary roofing materials and underlayments always shown on their own line
STANDALONE_NAME_KEYWORDS = (
    "brava field", "brava starter", "brava h&r", "brava solids",
    "davinci", "field tile", "shake",
    "oc titanium", "psu 30", "solarhide", "versashield",
)

# Categories never grouped
STANDALONE_CATEGORIES = ("labor", "equipment")

FLASHING_SHAPE_KEYWORDS = (
    "d-style", "valley", "step flash", "headwall", "pitch change", "flat sheet",
)

CUSTOM_FLASHING_KEYWORDS = (
    "eave", "rake", "valley", "step", "hip", "ridge",
    "d-style", "headwall", "pitch change", "flat sheet",
)

FASTENER_KEYWORDS = ("coil nail", "screw", "plasticap", "fastener")

# Proposal kits, evaluated in order; first match wins.
# Patterns are compared against the upper-cased item name.
PROPOSAL_KITS = [
    {
        "name": "Panel System",
        "description": "Standing seam metal panels including coil, fabrication, clips, and fasteners",
        "category": "materials",
        "patterns": ("SCCL", "COIL 20", "COIL 48", "STANDING SEAM", "METAL PANEL",
                     "PANEL FABRICATION", "FAB-PANEL", "PANEL CLIP",
                     "PCMECH", "PANCAKESCREW", "PCSCGA"),
    },
    {
        "name": "Flashing Kit",
        "description": "Custom fabricated metal flashing including eave, rake, ridge, valley, sidewall, headwall, starter, and trim pieces",
        "category": "materials",
        "patterns": ("FAB EAVE", "FAB-EAVE", "FAB RAKE", "FAB-RAKE", "FAB RIDGE",
                     "FAB-HIPRDGE", "HALF RIDGE", "FAB CZ", "FAB-CZFLSHNG",
                     "FAB HEAD WALL", "FAB-HEADWALL", "FAB SIDE WALL", "FAB-SIDEWALL",
                     "FAB STARTER", "FAB-STRTR", "FAB VALLEY", "FAB-WVALLEY",
                     "FAB TRANSITION", "FAB-TRANSITION", "FAB DRIP EDGE", "FAB-DRIPEDGE",
                     "FAB Z", "FAB-ZFLASH", "FAB PARAPET", "FAB-PARAPET",
                     "SHEET 4X10", "SHEET 3X10", "SCSH", "LINE FABRICATION",
                     "FABTRIMSCHA", "D-STYLE", "VALLEY", "STEP FLASH", "HEADWALL",
                     "PITCH CHANGE", "HIP & RIDGE", "FLAT SHEET", "DRIP EDGE"),
    },
    {
        "name": "Fasteners & Hardware",
        "description": "Nails, screws, clips, and fastening hardware",
        "category": "materials",
        "patterns": ("NAIL", "SCREW", "PLASTICAP", "FASTENER", "CLIP", "RIVET"),
    },
    {
        "name": "Sealants & Accessories",
        "description": "Sealants, rivets, and finishing materials",
        "category": "accessories",
        "patterns": ("SEALANT", "NOVA SEAL", "POP RIVET", "POPRIVET", "WOODGRIP",
                     "CAULK", "SPRAY PAINT"),
    },
]

PROPOSAL_CATCH_ALL_KIT = {
    "name": "Additional Materials",
    "description": "Additional materials and supplies",
    "category": "materials",
}


# ---------------------------------------------------------------------------
# Default price list
# Each entry: id -> {name, unit, price, category, coverage, coverage_unit}
# ---------------------------------------------------------------------------

PRICE_LIST = {
    "brava-field-tile":    {"name": "Brava Field Tile", "unit": "bundle", "price": 43.25, "category": "materials", "coverage": 0.5, "coverage_unit": "sq"},
    "brava-starter":       {"name": "Brava Starter", "unit": "bundle", "price": 52.00, "category": "materials", "coverage": 30, "coverage_unit": "lf"},
    "brava-hr":            {"name": "Brava H&R", "unit": "bundle", "price": 61.00, "category": "materials", "coverage": 20, "coverage_unit": "lf"},
    "davinci-shake":       {"name": "DaVinci Multi-Width Shake", "unit": "bundle", "price": 98.00, "category": "materials", "coverage": 0.2, "coverage_unit": "sq"},
    "psu-30":              {"name": "OC Titanium PSU 30", "unit": "roll", "price": 165.00, "category": "materials", "coverage": 2, "coverage_unit": "sq"},
    "solarhide":           {"name": "SolarHide Radiant Barrier", "unit": "roll", "price": 140.00, "category": "materials", "coverage": 10, "coverage_unit": "sq"},
    "versashield":         {"name": "GAF VersaShield", "unit": "roll", "price": 120.00, "category": "materials", "coverage": 4, "coverage_unit": "sq"},
    "nails-175-rs":        {"name": "1 3/4\" Ringshank Coil Nail HDG", "unit": "box", "price": 95.00, "category": "materials", "coverage": 15, "coverage_unit": "sq"},
    "nails-175":           {"name": "1 3/4\" Coil Nail", "unit": "box", "price": 72.00, "category": "materials", "coverage": 15, "coverage_unit": "sq"},
    "nails-15":            {"name": "1 1/2\" Coil Nail", "unit": "box", "price": 65.00, "category": "materials", "coverage": 15, "coverage_unit": "sq"},
    "d-style-eave":        {"name": "D-Style Eave", "unit": "each", "price": 14.50, "category": "materials", "coverage": 10, "coverage_unit": "lf"},
    "d-style-rake":        {"name": "D-Style Rake", "unit": "each", "price": 14.50, "category": "materials", "coverage": 10, "coverage_unit": "lf"},
    "valley":              {"name": "Valley", "unit": "each", "price": 32.00, "category": "materials", "coverage": 10, "coverage_unit": "lf"},
    "step-flash":          {"name": "Step Flash", "unit": "box", "price": 48.00, "category": "materials", "coverage": None, "coverage_unit": None},
    "copper-valley":       {"name": "Copper Valley", "unit": "each", "price": 210.00, "category": "materials", "coverage": 10, "coverage_unit": "lf"},
    "coil-screws":         {"name": "3\" Coil Screws (H&R)", "unit": "box", "price": 85.00, "category": "materials", "coverage": None, "coverage_unit": None},
    "plasticap":           {"name": "1.25\" Plasticap Pail", "unit": "pail", "price": 45.00, "category": "materials", "coverage": None, "coverage_unit": None},
    "pipe-jack":           {"name": "4in1 Pipe Jack", "unit": "each", "price": 18.00, "category": "accessories", "coverage": None, "coverage_unit": None},
    "skylight":            {"name": "Velux Skylight", "unit": "each", "price": 2400.00, "category": "accessories", "coverage": None, "coverage_unit": None},
    "heat-tape":           {"name": "Heat Tape", "unit": "lf", "price": 5.00, "category": "accessories", "coverage": None, "coverage_unit": None},
    "snowguard":           {"name": "RMSG Yeti Snowguard", "unit": "each", "price": 7.00, "category": "materials", "coverage": None, "coverage_unit": None},
    "labor-hugo":          {"name": "Hugo (standard)", "unit": "sq", "price": 550.00, "category": "labor", "coverage": None, "coverage_unit": None},
    "labor-sergio":        {"name": "Sergio (standard)", "unit": "sq", "price": 575.00, "category": "labor", "coverage": None, "coverage_unit": None},
    "labor-heat-tape":     {"name": "Heat Tape Install", "unit": "lf", "price": 7.50, "category": "labor", "coverage": None, "coverage_unit": None},
    "porto-potty":         {"name": "Porto Potty", "unit": "flat", "price": 600.00, "category": "equipment", "coverage": None, "coverage_unit": None},
    "fuel-charge":         {"name": "Fuel Charge", "unit": "each", "price": 194.00, "category": "equipment", "coverage": None, "coverage_unit": None},
    "overnight-charge":    {"name": "Overnight Charge", "unit": "flat", "price": 387.00, "category": "equipment", "coverage": None, "coverage_unit": None},
    "brava-delivery":      {"name": "Brava Delivery", "unit": "flat", "price": 5000.00, "category": "equipment", "coverage": None, "coverage_unit": None},
    "landfill":            {"name": "Landfill Charge", "unit": "each", "price": 750.00, "category": "equipment", "coverage": None, "coverage_unit": None},
    "debris-haulaway":     {"name": "Debris Haulaway & Landfill", "unit": "each", "price": 750.00, "category": "equipment", "coverage": None, "coverage_unit": None},
}


def default_price_items() -> list[PriceItem]:
    """Build PriceItem objects from PRICE_LIST, filling proposal descriptions."""
    items = []
    for item_id, entry in PRICE_LIST.items():
        items.append(PriceItem(
            id=item_id,
            name=entry["name"],
            unit=entry["unit"],
            price=entry["price"],
            category=entry["category"],
            coverage=entry["coverage"],
            coverage_unit=entry["coverage_unit"],
            proposal_description=DESCRIPTION_MAP.get(entry["name"]),
        ))
    return items

"""
Fabricator quote helpers: vendor name normalization, vendor-specific kit
tables for grouping quote lines, and Schafer quote-line description matching.
"""

import logging
from dataclasses import dataclass, field

from estimate_engine.models import VendorQuote, VendorQuoteItem

logger = logging.getLogger(__name__)

DEFAULT_VENDOR = "schafer"

VENDOR_DISPLAY_NAMES = {
    "schafer": "Schafer",
    "tra": "TRA",
    "rocky-mountain": "Rocky Mountain",
}


def normalize_vendor(value: str | None) -> str:
    """Map free-text vendor names onto schafer / tra / rocky-mountain."""
    v = (value or "").strip().lower()
    if "rocky" in v:
        return "rocky-mountain"
    if v == "tra" or v.startswith("tra ") or "tra snow" in v:
        return "tra"
    if "schafer" in v:
        return "schafer"
    return DEFAULT_VENDOR


def format_vendor_name(vendor: str) -> str:
    return VENDOR_DISPLAY_NAMES.get(vendor, vendor.title())


# ---------------------------------------------------------------------------
# Vendor kits
# Patterns are compared against the upper-cased item name, kits in order.
# ---------------------------------------------------------------------------

VENDOR_KITS = {
    "schafer": [
        {
            "name": "Schafer Panel System",
            "description": "Standing seam metal panels including coil, fabrication, clips, and fasteners",
            "category": "materials",
            "patterns": ("COIL", "PANEL FABRICATION", "FAB-PANEL", "PANEL CLIP",
                         "PCMECH", "PANCAKESCREW", "PCSCGA"),
        },
        {
            "name": "Schafer Flashing Kit",
            "description": "Custom fabricated metal flashing including eave, rake, ridge, valley, sidewall, headwall, starter, and trim pieces",
            "category": "materials",
            "patterns": ("FAB EAVE", "FAB-EAVE", "FAB RAKE", "FAB-RAKE", "FAB RIDGE",
                         "FAB-HIPRDGE", "HALF RIDGE", "FAB CZ", "FAB-CZFLSHNG",
                         "FAB HEAD WALL", "FAB-HEADWALL", "FAB SIDE WALL", "FAB-SIDEWALL",
                         "FAB STARTER", "FAB-STRTR", "FAB VALLEY", "FAB-WVALLEY",
                         "FAB TRANSITION", "FAB-TRANSITION", "FAB DRIP EDGE", "FAB-DRIPEDGE",
                         "FAB Z", "FAB-ZFLASH", "FAB PARAPET", "FAB-PARAPET",
                         "FAB RAKE CLIP", "FAB-RAKECLP", "SHEET 4X10", "SHEET 3X10",
                         "SCSH", "LINE FABRICATION", "FABTRIMSCHA"),
        },
        {
            "name": "Schafer Delivery",
            "description": "Delivery and travel charges",
            "category": "equipment",
            "patterns": ("FABCHOPDROP", "JOB SITE PANEL", "TRAVEL", "DELFEE",
                         "DELIVERY FEE", "OVERNIGHT STAY"),
        },
        {
            "name": "Schafer Accessories",
            "description": "Sealants, rivets, and finishing materials",
            "category": "accessories",
            "patterns": ("SEALANT", "NOVA SEAL", "POPRIVET", "POP RIVET", "WOODGRIP"),
        },
    ],
    "tra": [
        {
            "name": "TRA Snow Retention System",
            "description": "Engineered snow retention including clamps, tubes, collars, and end caps",
            "category": "accessories",
            "patterns": ("C22Z", "CLAMP", "SNOW FENCE TUBE", "SNOW FENCE COLLAR",
                         "SNOW FENCE END CAP"),
        },
        {
            "name": "TRA Freight",
            "description": "Shipping and freight charges",
            "category": "equipment",
            "patterns": ("FREIGHT",),
        },
    ],
    "rocky-mountain": [
        {
            "name": "Rocky Mountain Snow Guards",
            "description": "Everest Guard snow retention system for reliable snow management",
            "category": "accessories",
            "patterns": ("EVEREST GUARD", "EG10", "SNOW GUARD"),
        },
    ],
}


@dataclass
class VendorGroup:
    id: str
    name: str
    category: str
    description: str
    total: float = 0.0
    item_ids: list[str] = field(default_factory=list)
    item_names: list[str] = field(default_factory=list)


def _matches(name: str, patterns) -> bool:
    upper = name.upper()
    return any(p in upper for p in patterns)


def group_vendor_items(quotes: list[VendorQuote],
                       items: list[VendorQuoteItem],
                       quantities: dict[str, float] | None = None,
                       adjusted_prices: dict[str, float] | None = None) -> list[VendorGroup]:
    """
    Fold selected vendor quote lines into each vendor's kits.

    Lines that match no kit land in "<Vendor> Additional Items". Groups
    whose total is not positive are dropped.
    """
    quantities = quantities or {}
    adjusted = adjusted_prices or {}
    vendor_by_quote = {q.id: q.vendor for q in quotes}

    by_vendor: dict[str, list[VendorQuoteItem]] = {}
    for item in items:
        vendor = vendor_by_quote.get(item.vendor_quote_id)
        if vendor is None:
            logger.warning(f"Vendor item {item.id} references unknown quote {item.vendor_quote_id}")
            continue
        by_vendor.setdefault(vendor, []).append(item)

    groups: dict[str, VendorGroup] = {}

    def add(group_id, name, description, category, item):
        group = groups.get(group_id)
        if group is None:
            group = groups[group_id] = VendorGroup(
                id=group_id, name=name, category=category,
                description=f"{name} - {description}" if description else "",
            )
        qty = quantities.get(item.id, item.quantity)
        group.total += adjusted.get(item.id, item.price) * qty
        group.item_ids.append(item.id)
        group.item_names.append(item.name)

    for vendor, vendor_items in by_vendor.items():
        remaining = list(vendor_items)
        for kit in VENDOR_KITS.get(vendor, []):
            matched = [i for i in remaining if _matches(i.name, kit["patterns"])]
            for item in matched:
                add(f"{vendor}:{kit['name']}", kit["name"], kit["description"], kit["category"], item)
            remaining = [i for i in remaining if i not in matched]

        catch_all = f"{format_vendor_name(vendor)} Additional Items"
        for item in remaining:
            category = item.category if item.category and item.category != "schafer" else "materials"
            add(f"{vendor}:{catch_all}", catch_all, "Additional materials and supplies", category, item)

    return [g for g in groups.values() if g.total > 0]


# ---------------------------------------------------------------------------
# Schafer quote-line descriptions
# ---------------------------------------------------------------------------

SCHAFER_DESCRIPTIONS = {
    "coil 20": "Standing Seam Metal Panels - 24ga Kynar Finish",
    "coil 48": "Standing Seam Metal Panels - 24ga Galvanized",
    "panel fabrication": "Panel Fabrication & Forming",
    "panel clip": "Concealed Clip Fastening System",
    "pancake screw": "Pancake Screw Fasteners - Galvanized/Zinc",
    "sheet 4x10": "Standing Seam Metal Sheet - 4x10 24ga",
    "sheet 4x10 galv": "Standing Seam Metal Sheet - 4x10 Galvanized 24ga",
    "sheet 3x10 copper": "Standing Seam Metal Sheet - 3x10 Copper 24oz",
    "eave": "Eave Flashing - Standing Seam Profile",
    "rake": "Rake Edge Flashing - Standing Seam Profile",
    "rake clip": "Rake Edge Clip Fastening",
    "ridge": "Ridge Cap - Standing Seam Profile",
    "half ridge": "Half Ridge Cap - Standing Seam Profile",
    "cz flashing": "CZ Flashing - Standing Seam Profile",
    "head wall": "Head Wall Flashing - Standing Seam Profile",
    "side wall": "Side Wall Flashing - Standing Seam Profile",
    "starter": "Starter Flashing - Standing Seam Profile",
    "w valley": "Valley Flashing - Standing Seam Profile",
    "transition": "Transition Flashing - Standing Seam Profile",
    "drip edge": "Drip Edge Flashing - Standing Seam Profile",
    "z flash": "Z-Flash Flashing - Standing Seam Profile",
    "parapet cap": "Parapet Cap Flashing - Standing Seam Profile",
    "parapet cleat": "Parapet Cleat Fastening",
    "line fabrication": "Line Fabrication & Custom Trim",
    "panel run mile": "Job Site Panel Run - Per Mile",
    "panel run base": "Job Site Panel Run - Base Charge",
    "delivery fee": "Material Delivery Fee",
    "overnight": "Overnight Stay Charge",
    "sealant": "Nova Seal Sealant",
    "pop rivet": "Pop Rivet Fasteners - 1/8\"",
    "pop rivet stainless": "Pop Rivet Fasteners - 1/8\" Stainless Steel",
    "woodgrip": "Woodgrip Fasteners - 1-1/2\" Galvanized",
}

# Fallback patterns for abbreviated quote codes, evaluated in order:
# (any-of tokens, all-of tokens, none-of tokens, description key)
SCHAFER_FUZZY_PATTERNS = [
    (("coil",), ("20",), (), "coil 20"),
    (("coil",), ("48",), (), "coil 48"),
    (("panel",), ("fab",), (), "panel fabrication"),
    (("panel",), ("clip",), (), "panel clip"),
    (("pancake", "pcscga"), (), (), "pancake screw"),
    (("sheet",), ("4x10", "galv"), (), "sheet 4x10 galv"),
    (("sheet",), ("4x10",), (), "sheet 4x10"),
    (("sheet",), ("3x10", "copper"), (), "sheet 3x10 copper"),
    (("fab-eave", "fab eave"), (), ("clip",), "eave"),
    (("fab-rake",), ("clip",), (), "rake clip"),
    (("fab-rake", "fab rake"), (), (), "rake"),
    (("fab-hiprdge", "fab ridge", "ridge"), ("half",), (), "half ridge"),
    (("fab-hiprdge", "fab ridge", "ridge"), (), (), "ridge"),
    (("fab-cz", "cz flashing"), (), (), "cz flashing"),
    (("fab-headwall", "head wall"), (), (), "head wall"),
    (("fab-sidewall", "side wall"), (), (), "side wall"),
    (("fab-strtr", "starter"), (), (), "starter"),
    (("fab-wvalley", "valley"), (), (), "w valley"),
    (("fab-transition", "transition"), (), (), "transition"),
    (("fab-dripedge", "drip edge"), (), (), "drip edge"),
    (("fab-zflash", "z flash"), (), (), "z flash"),
    (("parapet",), ("cleat",), (), "parapet cleat"),
    (("parapet",), (), (), "parapet cap"),
    (("line fabrication", "fabtrimscha"), (), (), "line fabrication"),
    (("panel run",), ("mile",), (), "panel run mile"),
    (("panel run",), (), (), "panel run base"),
    (("delivery fee", "delfee"), (), (), "delivery fee"),
    (("overnight",), (), (), "overnight"),
    (("nova seal", "sealant"), (), (), "sealant"),
    (("pop rivet",), ("stainless",), (), "pop rivet stainless"),
    (("pop rivet",), (), (), "pop rivet"),
    (("woodgrip",), (), (), "woodgrip"),
]


def match_schafer_description(quote_item_name: str) -> str:
    """Client-facing description for a Schafer quote line; the name itself when nothing matches."""
    normalized = quote_item_name.lower()

    for key, description in SCHAFER_DESCRIPTIONS.items():
        if key in normalized:
            return description

    for any_of, all_of, none_of, key in SCHAFER_FUZZY_PATTERNS:
        if (any(t in normalized for t in any_of)
                and all(t in normalized for t in all_of)
                and not any(t in normalized for t in none_of)):
            return SCHAFER_DESCRIPTIONS[key]

    return quote_item_name

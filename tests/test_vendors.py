import pytest

from estimate_engine.models import VendorQuote, VendorQuoteItem
from estimate_engine.vendors import (
    format_vendor_name,
    group_vendor_items,
    match_schafer_description,
    normalize_vendor,
)


def _v(item_id, name, quantity, price, quote="q1", category="vendor-quote"):
    return VendorQuoteItem(id=item_id, vendor_quote_id=quote, name=name,
                           quantity=quantity, price=price, category=category)


@pytest.mark.parametrize("raw, expected", [
    ("Rocky Mountain Snow Guards", "rocky-mountain"),
    ("TRA Snow & Sun", "tra"),
    ("tra", "tra"),
    ("Schafer Metal", "schafer"),
    ("tractor supply", "schafer"),
    (None, "schafer"),
])
def test_normalize_vendor(raw, expected):
    assert normalize_vendor(raw) == expected


def test_format_vendor_name():
    assert format_vendor_name("tra") == "TRA"
    assert format_vendor_name("rocky-mountain") == "Rocky Mountain"
    assert format_vendor_name("acme") == "Acme"


def test_schafer_lines_fold_into_kits():
    quotes = [VendorQuote(id="q1", vendor="schafer")]
    items = [
        _v("coil", "COIL 20 24GA KYNAR", 10, 100),
        _v("eave", "FAB-EAVE 24GA", 5, 20),
        _v("widget", "WIDGET", 1, 50, category="schafer"),
    ]
    groups = {g.name: g for g in group_vendor_items(quotes, items)}

    assert groups["Schafer Panel System"].total == pytest.approx(1000)
    assert groups["Schafer Flashing Kit"].item_ids == ["eave"]
    extra = groups["Schafer Additional Items"]
    assert extra.item_names == ["WIDGET"]
    assert extra.category == "materials"
    assert extra.description == "Schafer Additional Items - Additional materials and supplies"


def test_quantity_and_price_overrides():
    quotes = [VendorQuote(id="q1", vendor="schafer")]
    items = [_v("coil", "COIL 20 24GA KYNAR", 10, 100)]
    (group,) = group_vendor_items(quotes, items, quantities={"coil": 2}, adjusted_prices={"coil": 90})
    assert group.total == pytest.approx(180)


def test_zero_total_groups_are_dropped():
    quotes = [VendorQuote(id="q1", vendor="schafer"), VendorQuote(id="q2", vendor="tra")]
    items = [
        _v("coil", "COIL 20 24GA KYNAR", 1, 100),
        _v("freight", "FREIGHT", 1, 0, quote="q2"),
        _v("clamp", "C22Z CLAMP", 40, 6.5, quote="q2", category="accessories"),
    ]
    names = [g.name for g in group_vendor_items(quotes, items)]
    assert "TRA Freight" not in names
    assert "TRA Snow Retention System" in names


def test_items_for_unknown_quotes_are_ignored():
    groups = group_vendor_items([VendorQuote(id="q1", vendor="schafer")],
                                [_v("x", "COIL 20", 1, 10, quote="missing")])
    assert groups == []


@pytest.mark.parametrize("name, expected", [
    ("FAB-EAVE 24GA", "Eave Flashing - Standing Seam Profile"),
    ("PCSCGA 1IN", "Pancake Screw Fasteners - Galvanized/Zinc"),
    ("Panel Fab 24ga", "Panel Fabrication & Forming"),
    ("Nova Seal Clear", "Nova Seal Sealant"),
    ("XYZ-123", "XYZ-123"),
])
def test_match_schafer_description(name, expected):
    assert match_schafer_description(name) == expected

import pytest

from estimate_engine.kit_grouping import group_items_into_kits, group_proposal_kits, is_standalone_item

from conftest import make_item


@pytest.fixture
def roof_items():
    return [
        make_item("tile", "Brava Field Tile", 1211.0),
        make_item("eave", "D-Style Eave", 145.0),
        make_item("valley", "Valley", 320.0),
        make_item("step", "Step Flash", 96.0),
        make_item("copper", "Copper Valley", 420.0),
        make_item("nails", "1 3/4\" Coil Nail", 144.0),
        make_item("jack", "4in1 Pipe Jack", 36.0, category="accessories"),
        make_item("labor", "Hugo (standard)", 13750.0, category="labor"),
    ]


def test_standalone_rules():
    assert is_standalone_item(make_item("a", "Valley", 1600.0))
    assert not is_standalone_item(make_item("a", "Valley", 1400.0))
    assert is_standalone_item(make_item("a", "Valley", 1200.0), threshold=1000)
    assert is_standalone_item(make_item("a", "DaVinci Multi-Width Shake", 10.0))
    assert is_standalone_item(make_item("a", "Porto Potty", 10.0, category="equipment"))
    assert is_standalone_item(make_item("a", "Velux Skylight", 10.0, is_optional=True))


def test_display_kits(roof_items):
    grouped = group_items_into_kits(roof_items)
    by_id = {g.id: g for g in grouped}

    aluminum = by_id["kit-aluminum-flashing-kit"]
    assert aluminum.is_kit
    assert aluminum.item_ids == ["eave", "valley", "step"]
    assert aluminum.total == pytest.approx(561.0)

    assert by_id["kit-copper-flashing-kit"].item_ids == ["copper"]
    assert by_id["kit-fastener-kit"].item_ids == ["nails"]
    assert "kit-custom-flashing-kit" not in by_id

    assert not by_id["jack"].is_kit
    assert not by_id["tile"].is_kit
    assert by_id["labor"].total == 13750.0


def test_display_kits_sorted_and_conserve_total(roof_items):
    grouped = group_items_into_kits(roof_items)
    totals = [g.total for g in grouped]
    assert totals == sorted(totals, reverse=True)
    assert sum(totals) == pytest.approx(sum(i.total for i in roof_items))


def test_each_item_lands_in_exactly_one_line(roof_items):
    grouped = group_items_into_kits(roof_items)
    ids = [i for g in grouped for i in g.item_ids]
    assert sorted(ids) == sorted(i.id for i in roof_items)


def test_expensive_flashing_stays_out_of_kit():
    items = [make_item("valley", "Valley", 2000.0), make_item("eave", "D-Style Eave", 145.0)]
    by_id = {g.id: g for g in group_items_into_kits(items)}
    assert not by_id["valley"].is_kit
    assert by_id["kit-aluminum-flashing-kit"].item_ids == ["eave"]


def test_proposal_kits_first_match_and_catch_all():
    items = [
        make_item("eave", "FAB-EAVE 24GA", 300.0),
        make_item("screw", "PANCAKESCREW 1IN", 80.0),
        make_item("nails", "1 3/4\" Coil Nail", 144.0),
        make_item("seal", "Nova Seal Sealant", 60.0, category="accessories"),
        make_item("widget", "Mystery Widget", 25.0),
        make_item("coil", "COIL 20 24GA KYNAR", 1200.0),
    ]
    by_id = {g.id: g for g in group_proposal_kits(items)}

    assert by_id["kit-flashing-kit"].item_ids == ["eave"]
    assert by_id["kit-panel-system"].item_ids == ["screw"]
    assert by_id["kit-fasteners-hardware"].item_ids == ["nails"]
    sealants = by_id["kit-sealants-accessories"]
    assert sealants.item_ids == ["seal"]
    assert sealants.category == "accessories"
    assert by_id["kit-additional-materials"].item_ids == ["widget"]
    # Above the proposal threshold
    assert not by_id["coil"].is_kit


def test_proposal_kit_line_shape():
    items = [make_item("a", "FAB RAKE", 100.0, quantity=4), make_item("b", "FAB RIDGE", 50.0)]
    (kit,) = group_proposal_kits(items)
    assert kit.name == "Flashing Kit"
    assert kit.quantity == 1
    assert kit.unit == "kit"
    assert kit.price == kit.total == pytest.approx(150.0)
    assert kit.item_names == ["FAB RAKE", "FAB RIDGE"]

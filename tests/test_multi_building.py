import pytest

from estimate_engine.financials import FinancialSettings
from estimate_engine.models import Building, Measurements, VendorQuoteItem
from estimate_engine.multi_building import (
    UNSELECTED_ROOF_SYSTEM,
    assemble_multi_building,
    calculate_multi_building_estimate,
    combine_measurements,
)


@pytest.fixture
def buildings():
    return [
        Building(
            id="b1", name="Main House", roof_system="brava",
            measurements=Measurements(total_squares=20, predominant_pitch="10/12",
                                      eave_length=100, ridge_length=40, penetrations=3,
                                      complexity="complex"),
            selected_items=["brava-field-tile", "labor-hugo", "porto-potty", "v1"],
            item_quantities={"brava-field-tile": 40, "labor-hugo": 20, "porto-potty": 1, "v1": 5},
        ),
        Building(
            id="b2", name="Garage",
            measurements=Measurements(total_squares=25, predominant_pitch="4/12",
                                      eave_length=60, ridge_length=20, penetrations=1,
                                      steep_squares=10),
            selected_items=["brava-field-tile", "psu-30", "versashield"],
            item_quantities={"brava-field-tile": 50, "psu-30": 13, "versashield": 0},
        ),
        Building(id="b3", name="Shed, not yet measured"),
    ]


@pytest.fixture
def vendor_items():
    return [VendorQuoteItem(id="v1", vendor_quote_id="q1", name="FAB-EAVE 24GA", quantity=10, price=20)]


def test_materials_are_summed_across_buildings(buildings, catalog):
    result = assemble_multi_building(buildings, catalog)
    assert result.combined_item_quantities["brava-field-tile"] == 90
    assert result.combined_item_quantities["psu-30"] == 13
    assert "versashield" not in result.combined_selected_items
    assert result.combined_selected_items.count("brava-field-tile") == 1


def test_labor_is_charged_once_at_total_squares(buildings, catalog):
    result = assemble_multi_building(buildings, catalog)
    assert result.total_squares == 45
    assert result.combined_item_quantities["labor-hugo"] == 45
    assert result.labor_total == pytest.approx(45 * 550)


def test_explicit_labor_item(buildings, catalog):
    result = assemble_multi_building(buildings, catalog, labor_item_id="labor-sergio")
    assert "labor-hugo" not in result.combined_selected_items
    assert result.labor_total == pytest.approx(45 * 575)


def test_labor_follows_the_crew_a_building_selected(catalog):
    buildings = [
        Building(id="b1", name="Barn", measurements=Measurements(total_squares=10),
                 selected_items=["labor-heat-tape", "labor-sergio"]),
        Building(id="b2", name="Studio", measurements=Measurements(total_squares=5),
                 selected_items=["labor-hugo"]),
    ]
    result = assemble_multi_building(buildings, catalog)
    assert result.combined_item_quantities["labor-sergio"] == 15
    assert "labor-hugo" not in result.combined_selected_items
    assert result.labor_total == pytest.approx(15 * 575)


def test_equipment_rules_apply_once_per_job(buildings, catalog):
    result = assemble_multi_building(buildings, catalog)
    names = [e.name for e in result.equipment_items]
    assert names == ["Porto Potty", "Fuel Charge", "Overnight Charge", "Brava Delivery", "Landfill Charge"]
    assert result.combined_item_quantities["porto-potty"] == 1
    landfill = result.equipment_items[-1]
    assert landfill.quantity == 1
    assert result.equipment_total == pytest.approx(600 + 194 + 387 + 5000 + 750)


def test_landfill_scales_with_squares(catalog):
    big = [Building(id="b", name="Lodge", measurements=Measurements(total_squares=130))]
    result = assemble_multi_building(big, catalog)
    landfill = next(e for e in result.equipment_items if e.name == "Landfill Charge")
    assert landfill.quantity == 3


def test_no_squares_means_no_labor_or_landfill(catalog):
    result = assemble_multi_building([Building(id="b", name="Empty")], catalog)
    assert result.labor_total == 0
    assert all(e.name != "Landfill Charge" for e in result.equipment_items)


def test_vendor_items_added_once_at_job_level(buildings, catalog, vendor_items):
    result = assemble_multi_building(buildings, catalog, vendor_quote_items=vendor_items)
    assert result.combined_selected_items.count("v1") == 1
    assert result.combined_item_quantities["v1"] == 10

    result = assemble_multi_building(buildings, catalog, vendor_quote_items=vendor_items,
                                     vendor_quantities={"v1": 12})
    assert result.combined_item_quantities["v1"] == 12


def test_building_subtotals(buildings, catalog):
    result = assemble_multi_building(buildings, catalog)
    main = result.building_subtotals["b1"]
    garage = result.building_subtotals["b2"]
    assert main.materials_total == pytest.approx(40 * 43.25)
    assert main.item_count == 1
    assert garage.materials_total == pytest.approx(50 * 43.25 + 13 * 165)
    assert garage.item_count == 2
    assert garage.roof_system == UNSELECTED_ROOF_SYSTEM
    assert result.building_subtotals["b3"].item_count == 0


def test_combined_measurements(buildings):
    m = combine_measurements(buildings)
    assert m.total_squares == 45
    assert m.eave_length == 160
    assert m.penetrations == 4
    assert m.predominant_pitch == "10/12"
    assert m.complexity == "complex"
    assert m.steep_squares == 10
    assert m.flat_squares is None


def test_combined_measurements_without_any_measured_building():
    assert combine_measurements([Building(id="b", name="Shed")]).total_squares == 0


def test_combined_estimate_runs_one_cascade(buildings, catalog, vendor_items):
    estimate, result = calculate_multi_building_estimate(
        buildings, catalog, FinancialSettings(), vendor_quote_items=vendor_items,
    )
    materials = 90 * 43.25 + 13 * 165
    assert estimate.totals["materials"] == pytest.approx(materials)
    assert estimate.totals["labor"] == pytest.approx(result.labor_total)
    assert estimate.totals["equipment"] == pytest.approx(result.equipment_total)
    assert estimate.totals["vendor-quote"] == pytest.approx(200)
    assert estimate.waste_allowance == pytest.approx((materials + 200) * 0.10)
    assert estimate.measurements.total_squares == 45

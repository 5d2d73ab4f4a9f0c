import json

import pytest

from estimate_engine.auto_selection import AutoSelectionContext
from estimate_engine.models import Measurements, VendorQuote, VendorQuoteItem
from estimate_engine.smart_selection import apply_explicit_quantities, drop_rule_conflicts, smart_select

RULE_IDS = ["psu-30", "solarhide", "nails-175-rs", "porto-potty", "debris-haulaway", "overnight-charge"]


@pytest.fixture
def context(catalog):
    return AutoSelectionContext(
        job_description="Brava shake, 3 porto potties please",
        available_price_items=catalog,
        vendor_quotes=[VendorQuote(id="q1", vendor="acme")],
        vendor_quote_items=[VendorQuoteItem(id="v1", vendor_quote_id="q1", name="Custom Trim",
                                            quantity=4, price=30)],
        selected_labor_items=["labor-hugo"],
    )


@pytest.fixture
def measurements():
    return Measurements(total_squares=25, predominant_pitch="9/12", ridge_length=40, eave_length=120,
                        rake_length=80)


def _reply(payload):
    return lambda prompt, image, max_tokens: json.dumps(payload)


def test_model_suggestions_layer_on_rules(context, measurements):
    extractor = _reply({
        "selectedItemIds": ["brava-field-tile", "made-up-id", "copper-valley"],
        "explicitQuantities": {"porto": 3},
        "reasoning": "Brava system with Hugo's crew",
        "warnings": ["Confirm ridge length"],
    })
    result = smart_select(context, measurements, extractor)

    assert not result.used_fallback
    assert result.selected_item_ids == RULE_IDS + ["brava-field-tile", "v1"]
    assert "made-up-id" not in result.selected_item_ids
    # No valley on this roof, so the copper valley computes to zero
    assert "copper-valley" not in result.selected_item_ids
    assert result.item_quantities["porto-potty"] == 3
    assert result.item_quantities["brava-field-tile"] == 50
    assert result.item_quantities["v1"] == 4
    assert result.reasoning == "Brava system with Hugo's crew"
    assert result.warnings == ["Confirm ridge length"]
    assert result.detected_roof_type == "synthetic"


def test_tear_off_adds_debris_warning(context, measurements):
    result = smart_select(context, measurements, _reply({"selectedItemIds": []}), is_tear_off=True)
    assert result.warnings == ["Debris haulaway quantity calculated as 2 based on 25 squares tear-off"]


def test_no_collaborator_returns_rules_and_vendor_items(context, measurements):
    result = smart_select(context, measurements, None)
    assert result.used_fallback
    assert result.selected_item_ids == RULE_IDS + ["v1"]
    assert result.applied_rules[0] == "Detected roof type: synthetic"


@pytest.mark.parametrize("extractor", [
    lambda prompt, image, max_tokens: "not json",
    lambda prompt, image, max_tokens: json.dumps({"selectedItemIds": "brava-field-tile"}),
])
def test_bad_responses_fall_back(context, measurements, extractor):
    result = smart_select(context, measurements, extractor)
    assert result.used_fallback
    assert result.selected_item_ids == RULE_IDS + ["v1"]


def test_collaborator_error_falls_back(context, measurements):
    def failing(prompt, image, max_tokens):
        raise RuntimeError("quota exceeded")

    assert smart_select(context, measurements, failing).used_fallback


def test_explicit_quantity_synonyms():
    names = {"d": "Debris Haulaway & Landfill", "l": "Landfill Charge", "p": "Porto Potty"}
    quantities = {"d": 1, "l": 1, "p": 1}
    apply_explicit_quantities({"landfill": 2, "Portable": 0}, names, quantities)
    assert quantities == {"d": 2, "l": 2, "p": 1}


def test_suggestions_cannot_override_metal_underlayment(catalog, measurements):
    context = AutoSelectionContext(available_price_items=catalog,
                                   vendor_quotes=[VendorQuote(id="q1", vendor="schafer")])
    extractor = _reply({"selectedItemIds": ["solarhide", "brava-field-tile", "davinci-shake"]})
    result = smart_select(context, measurements, extractor)

    assert not result.used_fallback
    assert "versashield" in result.selected_item_ids
    assert "solarhide" not in result.selected_item_ids
    assert "brava-field-tile" in result.selected_item_ids
    assert "davinci-shake" not in result.selected_item_ids


def test_first_synthetic_system_wins():
    names = {"b": "Brava Field Tile", "bd": "Brava Delivery", "d": "DaVinci Multi-Width Shake",
             "s": "SolarHide Radiant Barrier", "p": "PSU 30"}
    assert drop_rule_conflicts(["d", "b", "bd"], ["p"], [], names) == ["d"]
    assert drop_rule_conflicts(["b", "s", "bd", "d"], ["p"], ["s"], names) == ["b", "bd"]

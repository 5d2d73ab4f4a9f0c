import pytest

from estimate_engine.client_view import (
    build_client_sections,
    effective_multiplier,
    format_currency,
    render_client_text,
)
from estimate_engine.financials import FinancialSettings, build_estimate


def test_multiplier_spreads_final_price(sample_estimate):
    # 15000 + 10000 + 2500 + 500 + 1500 sundries
    assert effective_multiplier(sample_estimate) == pytest.approx(sample_estimate.final_price / 29500)


def test_multiplier_for_empty_estimate():
    assert effective_multiplier(build_estimate([], FinancialSettings())) == 1.0


def test_sections(sample_estimate):
    materials, labor, equipment = build_client_sections(sample_estimate)

    assert [line.name for line in materials.lines] == [
        "Brava Field Tile", "OC Titanium PSU 30", "Consumables & Hardware", "4in1 Pipe Jack",
    ]
    assert [line.name for line in labor.lines] == ["Hugo (standard)"]
    assert equipment.label == "Equipment & Fees"
    assert len(equipment.lines) == 2


def test_lines_carry_proposal_descriptions(sample_estimate):
    materials, labor, _ = build_client_sections(sample_estimate)
    field_tile = next(line for line in materials.lines if line.name == "Brava Field Tile")
    assert field_tile.description.startswith("Brava composite slate field tiles")
    # No mapped description, so the name stands in
    assert labor.lines[0].description == "Hugo (standard)"


def test_client_prices_add_up_to_final_price(sample_estimate):
    sections = build_client_sections(sample_estimate)
    lines_total = sum(line.client_price for s in sections for line in s.lines)
    assert lines_total == pytest.approx(sample_estimate.final_price, abs=0.05)
    assert sum(s.subtotal for s in sections) == pytest.approx(sample_estimate.final_price, abs=0.02)


def test_extra_equipment_lines(sample_estimate):
    *_, equipment = build_client_sections(sample_estimate, extra_equipment=[("Schafer Delivery", 0.0)])
    assert equipment.lines[-1].name == "Schafer Delivery"
    assert equipment.lines[-1].client_price == 0


def test_text_rendering(sample_estimate):
    text = render_client_text(sample_estimate)
    assert text.startswith("ROOFING ESTIMATE\n412 Aspen Way\n")
    assert "MATERIALS\n" in text
    assert "Labor Subtotal\t" in text
    assert text.endswith(f"TOTAL\t{format_currency(sample_estimate.final_price)}\n")
    assert format_currency(62516.666) == "$62,516.67"

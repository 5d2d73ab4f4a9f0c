import pytest

from estimate_engine.csv_codec import (
    CSV_TEMPLATE,
    EXPORT_HEADER,
    CsvImportError,
    export_estimate_csv,
    parse_estimate_csv,
    try_parse_estimate_csv,
)
from estimate_engine.financials import FinancialSettings
from estimate_engine.validator import validate_estimate

HEADER = "Name,Address,Item,Description,Quantity,Unit,Unit Price,Total,Category,Notes\n"


def test_template_parses_into_reconciled_estimate():
    e = parse_estimate_csv(CSV_TEMPLATE)

    assert e.customer_info.name == "Customer Name"
    assert e.customer_info.address == "123 Main St"
    assert e.totals["materials"] == pytest.approx(1211)
    assert e.totals["labor"] == pytest.approx(13750)
    assert e.totals["equipment"] == pytest.approx(600 + 194 + 750 + 387)
    assert e.totals["consumables"] == pytest.approx(121.1)
    assert e.waste_allowance == pytest.approx(121.1)
    assert e.margin_percent == 40
    assert validate_estimate(e).is_valid


def test_settings_are_applied():
    e = parse_estimate_csv(CSV_TEMPLATE, FinancialSettings(margin_percent=50))
    assert e.sell_price == pytest.approx(e.total_cost * 2)


def test_header_only_is_rejected():
    with pytest.raises(CsvImportError) as exc:
        parse_estimate_csv(HEADER)
    assert exc.value.errors == ["CSV must have a header row and at least one data row"]


def test_missing_required_columns_lists_every_problem():
    with pytest.raises(CsvImportError) as exc:
        parse_estimate_csv("Name,Quantity\nSmith,3\n")
    assert exc.value.errors == [
        "CSV must have Description or Item column",
        "CSV must have Category column",
    ]


def test_try_parse_reports_errors_without_raising():
    result = try_parse_estimate_csv("Item\nValley\n")
    assert not result.success
    assert result.estimate is None
    assert result.errors == ["CSV must have Category column"]
    assert try_parse_estimate_csv(CSV_TEMPLATE).success


def test_header_aliases_bom_and_currency_cells():
    text = "\ufeffItem,Qty,Price,Total,Cat\nValley,10,\"$1,032.50\",,materials\n"
    (item,) = parse_estimate_csv(text).line_items
    assert item.name == "Valley"
    assert item.price == pytest.approx(1032.5)
    assert item.total == pytest.approx(10325)


def test_price_derived_from_total_when_missing():
    (item,) = parse_estimate_csv(HEADER + ",,Pipe Boot,,4,each,,100,accessories,\n").line_items
    assert item.price == pytest.approx(25)


def test_categories_and_legacy_names_are_normalized():
    text = HEADER + (
        ",,Landfill Charge,,1,each,750,750,equipment,\n"
        ",,Rolloff,,1,each,500,500,equipment,\n"
        ",,FAB-EAVE,,10,each,20,200,Schafer,\n"
        ",,Gutter Apron,,5,each,10,50,widgets,\n"
    )
    e = parse_estimate_csv(text)
    names = [i.name for i in e.line_items]
    assert names == ["Debris Haulaway & Landfill", "FAB-EAVE", "Gutter Apron"]
    assert e.by_category["vendor-quote"][0].name == "FAB-EAVE"
    assert e.line_items[2].category == "materials"


def test_intro_optional_and_description_columns():
    text = HEADER + (
        "Smith,9 Elm St,,Thank you for the opportunity.,,,,,intro,\n"
        ",,,We propose a full replacement.,,,,,intro,\n"
        ",,Brava Field Tile,Composite slate tiles,28,bundle,43.25,1211,materials,\n"
        ",,Velux Skylight,,1,each,2400,2400,accessories,Optional\n"
    )
    e = parse_estimate_csv(text)
    assert e.customer_info.name == "Smith"
    assert e.intro_letter_text == "Thank you for the opportunity.\n\nWe propose a full replacement."
    assert [i.name for i in e.line_items] == ["Brava Field Tile"]
    assert e.line_items[0].proposal_description == "Composite slate tiles"
    assert [i.name for i in e.optional_items] == ["Velux Skylight"]
    assert e.totals["accessories"] == 0


def test_consumables_row_is_resynthesized():
    text = HEADER + (
        ",,Brava Field Tile,,28,bundle,43.25,1211,materials,\n"
        ",,Consumables & Hardware,,1,each,999,999,consumables,\n"
    )
    e = parse_estimate_csv(text)
    assert e.totals["consumables"] == pytest.approx(121.1)


def test_export_then_import_keeps_figures(sample_estimate):
    sample_estimate.intro_letter_text = "Dear customer,\n\nThanks."
    text = export_estimate_csv(sample_estimate)
    lines = text.splitlines()

    assert lines[0] == ",".join(EXPORT_HEADER)
    assert lines[1].startswith("412 Aspen Way,")
    assert "Consumables & Hardware" not in text

    again = parse_estimate_csv(text)
    assert again.intro_letter_text == "Dear customer,\n\nThanks."
    assert again.customer_info.name == sample_estimate.customer_info.name
    assert again.final_price == pytest.approx(sample_estimate.final_price)
    assert again.totals == pytest.approx(sample_estimate.totals)


def test_export_marks_optional_items():
    e = parse_estimate_csv(HEADER + (
        "Smith,,Brava Field Tile,,28,bundle,43.25,1211,materials,\n"
        ",,Velux Skylight,,1,each,2400,2400,accessories,Optional\n"
    ))
    last = export_estimate_csv(e).splitlines()[-1]
    assert last == ",,Velux Skylight,,1,each,2400,2400,accessories,Optional"

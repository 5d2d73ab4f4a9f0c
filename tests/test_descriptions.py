from estimate_engine.descriptions import (
    DESCRIPTION_MAX_TOKENS,
    apply_description_map,
    generate_descriptions,
    proposal_description_for,
)
from estimate_engine.models import PriceItem

from conftest import make_item


def _p(item_id, name, description=None):
    return PriceItem(id=item_id, name=name, unit="each", price=1.0, category="materials",
                     proposal_description=description)


def test_description_lookup_order():
    assert proposal_description_for(_p("a", "Valley", "Own text")) == "Own text"
    assert proposal_description_for(_p("b", "Brava Starter")).startswith("Brava starter course")
    assert proposal_description_for(_p("c", "Gutter Apron")) == "Gutter Apron"


def test_apply_description_map_fills_only_missing():
    items = [
        make_item("a", "Brava Starter", 100.0),
        make_item("b", "Brava H&R", 100.0, proposal_description="Custom"),
        make_item("c", "Gutter Apron", 100.0),
    ]
    filled = apply_description_map(items)
    assert filled[0].proposal_description.startswith("Brava starter course")
    assert filled[1].proposal_description == "Custom"
    assert filled[2].proposal_description is None
    assert items[0].proposal_description is None


def test_generates_for_items_without_descriptions():
    calls = []

    def extractor(prompt, image, max_tokens):
        calls.append((prompt, image, max_tokens))
        return '"Valley - painted aluminum valley flashing for water channeling"\n'

    progress = []
    result = generate_descriptions(
        [_p("a", "Valley"), _p("b", "Brava Starter", "Already written")],
        extractor,
        on_progress=lambda current, total: progress.append((current, total)),
    )
    assert result == {"a": "Valley - painted aluminum valley flashing for water channeling"}
    assert len(calls) == 1
    assert "Item name: Valley" in calls[0][0]
    assert calls[0][1] is None
    assert calls[0][2] == DESCRIPTION_MAX_TOKENS
    assert progress == [(1, 1)]


def test_failures_are_skipped_and_progress_continues():
    def extractor(prompt, image, max_tokens):
        if "Item name: Broken" in prompt:
            raise TimeoutError("slow")
        return "Step Flash - pre-bent step flashing for wall intersections"

    progress = []
    result = generate_descriptions([_p("x", "Broken"), _p("y", "Step Flash")], extractor,
                                   on_progress=lambda c, t: progress.append((c, t)))
    assert list(result) == ["y"]
    assert progress == [(1, 2), (2, 2)]


def test_cancel_between_items():
    checks = iter([False, True])
    result = generate_descriptions(
        [_p("a", "Valley"), _p("b", "Step Flash")],
        lambda prompt, image, max_tokens: "Some item - some description",
        should_cancel=lambda: next(checks),
    )
    assert list(result) == ["a"]


def test_nothing_to_generate():
    def never(prompt, image, max_tokens):
        raise AssertionError("should not be called")

    assert generate_descriptions([_p("a", "Valley", "Done")], never) == {}

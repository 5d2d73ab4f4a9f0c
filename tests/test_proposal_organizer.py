import json
import threading

import pytest

from estimate_engine.financials import FinancialSettings, build_estimate
from estimate_engine.proposal_organizer import (
    OrganizerResponse,
    build_item_map,
    build_organize_prompt,
    organize_proposal,
    reconcile_groups,
)

from conftest import make_item


@pytest.fixture
def estimate():
    items = [
        make_item("m1", "Brava Field Tile", 1211.0),
        make_item("m2", "Valley", 320.0),
        make_item("m3", "Step Flash", 96.0),
        make_item("a1", "Heat Tape", 500.0, category="accessories"),
        make_item("l1", "Hugo (standard)", 13750.0, category="labor"),
        make_item("e1", "Porto Potty", 600.0, category="equipment"),
    ]
    return build_estimate(items, FinancialSettings())


def _reply(groups):
    return lambda prompt, image, max_tokens: json.dumps({"groups": groups})


def _all_ids(proposal):
    return sorted(i for section in (proposal.materials, proposal.labor, proposal.equipment)
                  for g in section for i in g.item_ids)


def test_item_map_numbering(estimate):
    item_map = build_item_map(estimate, locked_ids={"m2"}, extra_equipment=[("Schafer Delivery", 450.0)])
    assert [i.name for i in item_map.values()] == [
        "Brava Field Tile", "Valley", "Step Flash", "Heat Tape", "Hugo (standard)", "Porto Potty",
        "Schafer Delivery",
    ]
    assert item_map[4].category == "materials"
    assert item_map[2].locked
    assert item_map[7].category == "equipment"


def test_prompt_references_ids_and_locks(estimate):
    item_map = build_item_map(estimate, locked_ids={"m2"})
    prompt = build_organize_prompt(list(item_map.values()), customer_address="412 Aspen Way")
    assert "2: Valley ($320.00) [materials] LOCKED" in prompt
    assert "CUSTOMER ADDRESS: 412 Aspen Way" in prompt


def test_groups_follow_the_response(estimate):
    extractor = _reply([
        {"displayName": "Flashing Kit", "itemIds": [2, 3]},
        {"displayName": "Brava Field Tile", "itemIds": [1]},
        {"displayName": "Roof Labor", "itemIds": [5]},
        {"displayName": "Porto Potty", "itemIds": [6]},
        {"displayName": "Heat Tape", "itemIds": [4]},
    ])
    proposal = organize_proposal(estimate, extractor)

    assert not proposal.used_fallback
    flashing = next(g for g in proposal.materials if g.display_name == "Flashing Kit")
    assert flashing.total == pytest.approx(416.0)
    assert [g.display_name for g in proposal.labor] == ["Roof Labor"]
    assert _all_ids(proposal) == [1, 2, 3, 4, 5, 6]


def test_omitted_unknown_and_duplicate_ids_are_reconciled(estimate):
    extractor = _reply([
        {"displayName": "Flashing Kit", "itemIds": [2, 3, 99]},
        {"displayName": "More Flashing", "itemIds": [2]},
        {"displayName": "Brava Field Tile", "itemIds": [1]},
        {"displayName": "Roof Labor", "itemIds": [5]},
    ])
    proposal = organize_proposal(estimate, extractor)

    assert _all_ids(proposal) == [1, 2, 3, 4, 5, 6]
    assert all(g.display_name != "More Flashing" for g in proposal.materials)
    assert any(g.display_name == "Heat Tape" and g.item_ids == [4] for g in proposal.materials)
    assert [g.display_name for g in proposal.equipment] == ["Porto Potty"]


def test_locked_items_are_split_out_under_their_name(estimate):
    item_map = build_item_map(estimate, locked_ids={"m2"})
    response = OrganizerResponse.model_validate(
        {"groups": [{"displayName": "Flashing Kit", "itemIds": [2, 3]}]}
    )
    proposal = reconcile_groups(response, item_map)

    valley = next(g for g in proposal.materials if g.item_ids == [2])
    assert valley.display_name == "Valley"
    assert valley.locked
    kit = next(g for g in proposal.materials if g.display_name == "Flashing Kit")
    assert kit.item_ids == [3]


def test_sections_sorted_by_total(estimate):
    proposal = organize_proposal(estimate, _reply([]))
    totals = [g.total for g in proposal.materials]
    assert totals == sorted(totals, reverse=True)


@pytest.mark.parametrize("raw", [
    "I could not organize these items.",
    '{"groups": [{"displayName": "", "itemIds": [1]}]}',
    '{"items": []}',
])
def test_invalid_responses_fall_back_to_identity(estimate, raw):
    proposal = organize_proposal(estimate, lambda prompt, image, max_tokens: raw)
    assert proposal.used_fallback
    assert len(proposal.materials) == 4
    assert _all_ids(proposal) == [1, 2, 3, 4, 5, 6]


def test_collaborator_error_falls_back(estimate):
    def failing(prompt, image, max_tokens):
        raise ConnectionError("service down")

    proposal = organize_proposal(estimate, failing)
    assert proposal.used_fallback
    assert [g.display_name for g in proposal.labor] == ["Hugo (standard)"]


def test_timeout_falls_back(estimate):
    release = threading.Event()

    def slow(prompt, image, max_tokens):
        release.wait(5)
        return json.dumps({"groups": []})

    try:
        proposal = organize_proposal(estimate, slow, timeout=0.05)
    finally:
        release.set()
    assert proposal.used_fallback
    assert _all_ids(proposal) == [1, 2, 3, 4, 5, 6]


def test_no_collaborator_means_identity(estimate):
    assert organize_proposal(estimate, None).used_fallback


def test_empty_estimate_needs_no_call():
    def never(prompt, image, max_tokens):
        raise AssertionError("should not be called")

    proposal = organize_proposal(build_estimate([], FinancialSettings()), never)
    assert proposal.materials == [] and not proposal.used_fallback

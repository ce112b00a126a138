"""Tests for the checklist completion gate."""

import pytest

from stagegate.domain.checklist import (
    can_advance,
    completion_percentage,
    is_complete,
    missing_required_count,
    validate_stage_advancement,
)
from stagegate.domain.stages import ChecklistItem

pytestmark = pytest.mark.unit


def test_required_item_incomplete_blocks():
    items = [
        ChecklistItem(id="c1", stage_id="s", title="Call", required=True),
        ChecklistItem(id="c2", stage_id="s", title="Email", required=False),
    ]
    check = can_advance(items, {"c1": False, "c2": True})
    assert check.can_advance is False
    assert [item.id for item in check.missing_required] == ["c1"]


def test_missing_key_is_incomplete(checklist_items):
    check = can_advance(checklist_items, {"c1": True})
    assert check.can_advance is False
    assert [item.id for item in check.missing_required] == ["c2"]


def test_only_true_counts_as_complete():
    item = ChecklistItem(id="c1", stage_id="s", title="Call", required=True)
    assert is_complete(item, {"c1": True}) is True
    assert is_complete(item, {"c1": False}) is False
    assert is_complete(item, {"c1": None}) is False
    assert is_complete(item, {}) is False


def test_optional_items_never_block(checklist_items):
    check = can_advance(checklist_items, {"c1": True, "c2": True})
    assert check.can_advance is True
    assert check.missing_required == []


def test_no_items_can_advance():
    assert can_advance([], {}).can_advance is True


def test_completion_percentage_empty_is_100():
    assert completion_percentage([], {"anything": False}) == 100


def test_completion_percentage_rounds(checklist_items):
    assert completion_percentage(checklist_items, {}) == 0
    assert completion_percentage(checklist_items, {"c1": True}) == 33
    assert completion_percentage(checklist_items, {"c1": True, "c3": True}) == 67
    assert completion_percentage(checklist_items, {"c1": True, "c2": True, "c3": True}) == 100


def test_completion_percentage_is_monotonic(checklist_items):
    completion: dict[str, bool] = {}
    previous = completion_percentage(checklist_items, completion)
    for item in checklist_items:
        completion[item.id] = True
        current = completion_percentage(checklist_items, completion)
        assert current >= previous
        previous = current


def test_missing_required_count(checklist_items):
    assert missing_required_count(checklist_items, {}) == 2
    assert missing_required_count(checklist_items, {"c2": True, "c3": True}) == 1


def test_validate_stage_advancement_lists_summary_then_items_in_order(checklist_items):
    result = validate_stage_advancement(checklist_items, {"c3": True})
    assert result.valid is False
    assert result.errors == [
        "2 required item(s) pending",
        "• Budget confirmed",
        "• Decision maker identified",
    ]


def test_validate_stage_advancement_valid_has_no_errors(checklist_items):
    result = validate_stage_advancement(checklist_items, {"c1": True, "c2": True})
    assert result.valid is True
    assert result.errors == []


def test_completion_percentage_rounds_half_up():
    items = [ChecklistItem(id=f"c{i}", stage_id="s", title=str(i)) for i in range(8)]
    assert completion_percentage(items, {"c0": True}) == 13

"""Tests for the appointment binding precondition."""

from datetime import datetime, timezone

import pytest

from stagegate.core.exceptions import AppointmentSelectionError, AppointmentSelectionRequiredError
from stagegate.domain.appointments import (
    AppointmentCheck,
    find_appointment,
    select_appointment,
    validate_appointment_requirement,
)
from stagegate.domain.stages import Appointment, Stage

pytestmark = pytest.mark.unit

MEETING = Stage(id="meeting", name="Meeting", order=3, requires_appointment=True)
FREE = Stage(id="lead", name="Lead", order=1)


def test_stage_without_requirement_is_valid(make_appointment):
    check = validate_appointment_requirement("rec-1", FREE, [make_appointment("a1")])
    assert check.valid is True
    assert check.requires_selection is False
    assert check.appointments == []
    assert check.message is None


def test_no_candidates_is_invalid():
    check = validate_appointment_requirement("rec-1", MEETING, [])
    assert check.valid is False
    assert check.requires_selection is False
    assert "appointment must be scheduled" in check.message.lower()


def test_single_candidate_is_auto_bound(make_appointment):
    appointment = make_appointment("a1")
    check = validate_appointment_requirement("rec-1", MEETING, [appointment])
    assert check.valid is True
    assert check.requires_selection is False
    assert check.message is None
    assert check.bound_appointment == appointment


def test_multiple_candidates_require_selection_sorted_by_time(make_appointment):
    later = make_appointment("a-later", hours_from_now=48)
    sooner = make_appointment("a-sooner", hours_from_now=-2)
    check = validate_appointment_requirement("rec-1", MEETING, [later, sooner])
    assert check.valid is True
    assert check.requires_selection is True
    assert "select" in check.message.lower()
    assert [a.id for a in check.appointments] == ["a-sooner", "a-later"]
    assert check.bound_appointment is None


def test_mixed_naive_and_aware_times_sort_as_utc():
    aware = Appointment(id="aware", record_id="rec-1", scheduled_at=datetime(2026, 1, 2, tzinfo=timezone.utc))
    naive = Appointment(id="naive", record_id="rec-1", scheduled_at=datetime(2026, 1, 1))
    check = validate_appointment_requirement("rec-1", MEETING, [aware, naive])
    assert check.valid is True
    assert check.requires_selection is True
    assert [a.id for a in check.appointments] == ["naive", "aware"]


def test_candidates_of_other_records_are_ignored(make_appointment):
    check = validate_appointment_requirement(
        "rec-1", MEETING, [make_appointment("a1"), make_appointment("x1", record_id="rec-2")]
    )
    assert check.requires_selection is False
    assert [a.id for a in check.appointments] == ["a1"]


def test_find_appointment(make_appointment):
    candidates = [make_appointment("a1"), make_appointment("a2")]
    assert find_appointment(candidates, "a2").id == "a2"
    assert find_appointment(candidates, "zz") is None


def test_select_appointment_resolves_choice(make_appointment):
    check = validate_appointment_requirement("rec-1", MEETING, [make_appointment("a1"), make_appointment("a2")])
    assert select_appointment(check, "a2").id == "a2"


def test_select_appointment_defaults_to_bound(make_appointment):
    check = validate_appointment_requirement("rec-1", MEETING, [make_appointment("a1")])
    assert select_appointment(check).id == "a1"


def test_select_appointment_rejects_unknown_id(make_appointment):
    check = validate_appointment_requirement("rec-1", MEETING, [make_appointment("a1"), make_appointment("a2")])
    with pytest.raises(AppointmentSelectionError) as exc_info:
        select_appointment(check, "a9")
    assert exc_info.value.appointment_id == "a9"
    assert exc_info.value.record_id == "rec-1"


def test_select_appointment_without_choice_when_selection_required(make_appointment):
    check = validate_appointment_requirement("rec-1", MEETING, [make_appointment("a1"), make_appointment("a2")])
    with pytest.raises(AppointmentSelectionRequiredError) as exc_info:
        select_appointment(check)
    assert exc_info.value.candidate_count == 2
    assert "selection among 2 candidate" in str(exc_info.value)
    assert "<none>" not in str(exc_info.value)


def test_select_appointment_on_invalid_check():
    check = AppointmentCheck(valid=False, record_id="rec-1")
    with pytest.raises(AppointmentSelectionRequiredError):
        select_appointment(check)

"""Shared test fixtures for all test groups."""

from datetime import datetime, timedelta, timezone

import pytest

from stagegate.core.config import get_settings
from stagegate.domain.stages import Appointment, ChecklistItem, PipelineEntry, Stage


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Settings are lru_cached; clear around each test so env overrides apply."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def now():
    return datetime(2026, 3, 2, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def stages():
    """Five-stage sales pipeline."""
    return [
        Stage(id="lead", name="Lead", order=1, pipeline_id="sales"),
        Stage(id="qualified", name="Qualified", order=2, pipeline_id="sales"),
        Stage(id="meeting", name="Meeting", order=3, pipeline_id="sales", requires_appointment=True),
        Stage(id="proposal", name="Proposal", order=4, pipeline_id="sales", wip_limit=5),
        Stage(id="closed", name="Closed", order=5, pipeline_id="sales"),
    ]


@pytest.fixture
def stage_by_id(stages):
    return {s.id: s for s in stages}


@pytest.fixture
def checklist_items():
    return [
        ChecklistItem(id="c1", stage_id="qualified", title="Budget confirmed", required=True, order=1),
        ChecklistItem(id="c2", stage_id="qualified", title="Decision maker identified", required=True, order=2),
        ChecklistItem(id="c3", stage_id="qualified", title="Competitors listed", required=False, order=3),
    ]


@pytest.fixture
def make_entry():
    def _make(checklist_state=None, current_stage_id="qualified", record_id="rec-1"):
        return PipelineEntry(
            id="entry-1",
            record_id=record_id,
            pipeline_id="sales",
            current_stage_id=current_stage_id,
            checklist_state=checklist_state or {},
        )

    return _make


@pytest.fixture
def make_appointment(now):
    def _make(appointment_id, record_id="rec-1", hours_from_now=24):
        return Appointment(
            id=appointment_id,
            record_id=record_id,
            scheduled_at=now + timedelta(hours=hours_from_now),
            title=f"Call {appointment_id}",
        )

    return _make

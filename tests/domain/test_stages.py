"""Tests for stage snapshots and ordering helpers."""

import dataclasses
from datetime import datetime, timedelta, timezone

import pytest

from stagegate.domain.stages import Stage, as_utc, is_backward_move, next_stage

pytestmark = pytest.mark.unit


def test_stage_is_immutable():
    stage = Stage(id="s", name="Lead", order=1)
    with pytest.raises(dataclasses.FrozenInstanceError):
        stage.order = 2


def test_stage_defaults():
    stage = Stage(id="s", name="Lead", order=1)
    assert stage.wip_limit is None
    assert stage.requires_appointment is False


def test_is_backward_move(stage_by_id):
    assert is_backward_move(stage_by_id["proposal"], stage_by_id["qualified"]) is True
    assert is_backward_move(stage_by_id["qualified"], stage_by_id["proposal"]) is False
    assert is_backward_move(stage_by_id["lead"], stage_by_id["lead"]) is False


def test_next_stage_picks_smallest_greater_order(stages, stage_by_id):
    shuffled = list(reversed(stages))
    assert next_stage(shuffled, stage_by_id["qualified"]) == stage_by_id["meeting"]


def test_next_stage_of_last_stage_is_none(stages, stage_by_id):
    assert next_stage(stages, stage_by_id["closed"]) is None


def test_next_stage_ignores_other_pipelines(stage_by_id):
    other = Stage(id="onboard", name="Onboarding", order=2, pipeline_id="onboarding")
    assert next_stage([stage_by_id["lead"], other], stage_by_id["lead"]) is None


def test_as_utc_reads_naive_as_utc_and_keeps_aware():
    assert as_utc(datetime(2026, 1, 1)) == datetime(2026, 1, 1, tzinfo=timezone.utc)

    plus_two = datetime(2026, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
    assert as_utc(plus_two) is plus_two

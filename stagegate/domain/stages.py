"""Pipeline snapshots and stage ordering.

Pure domain types with no external dependencies. Every value here is an
immutable snapshot handed in by the caller for a single evaluation.
"""
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(frozen=True)
class Stage:
    """One ordered step in a pipeline. `order` is a total order within the pipeline."""

    id: str
    name: str
    order: int
    pipeline_id: str | None = None
    wip_limit: int | None = None  # None = unlimited
    requires_appointment: bool = False


@dataclass(frozen=True)
class ChecklistItem:
    """A named precondition attached to a stage."""

    id: str
    stage_id: str
    title: str
    required: bool = False
    order: int = 0


@dataclass(frozen=True)
class Appointment:
    """A scheduled appointment owned by a pipeline record."""

    id: str
    record_id: str
    scheduled_at: datetime
    status: str = "scheduled"
    title: str = ""


@dataclass(frozen=True)
class PipelineEntry:
    """A record's membership in a pipeline, positioned at one stage."""

    id: str
    record_id: str
    current_stage_id: str
    pipeline_id: str | None = None
    checklist_state: Mapping[str, bool] = field(default_factory=dict)
    entered_stage_at: datetime | None = None


def is_backward_move(from_stage: Stage, to_stage: Stage) -> bool:
    """True when the target stage sits earlier in the pipeline than the source."""
    return to_stage.order < from_stage.order


def next_stage(stages: Iterable[Stage], current_stage: Stage) -> Stage | None:
    """Return the stage that follows `current_stage` in its pipeline.

    Args:
        stages: All known stages (may span pipelines)
        current_stage: Stage the record currently sits in

    Returns:
        Stage with the smallest order greater than the current one, or None
        when the current stage is the last one
    """
    candidates = [
        s for s in stages
        if s.pipeline_id == current_stage.pipeline_id and s.order > current_stage.order
    ]
    if not candidates:
        return None
    return min(candidates, key=lambda s: s.order)


def as_utc(value: datetime) -> datetime:
    """Read a naive datetime as UTC so it orders against aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value

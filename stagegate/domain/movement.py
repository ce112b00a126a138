"""Stage movement validation.

Pure domain functions that run every gate over one transition request and
aggregate the results. No DB access, fully deterministic, stateless between
calls. The verdict is advisory: committing the move (and guarding capacity
atomically) belongs to the persistence layer.
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog

from stagegate.domain.appointments import AppointmentCheck, validate_appointment_requirement
from stagegate.domain.checklist import can_advance
from stagegate.domain.rules import CriteriaResult, Criterion, RecordContext, validate_stage_criteria
from stagegate.domain.stages import Appointment, ChecklistItem, PipelineEntry, Stage, is_backward_move, next_stage
from stagegate.domain.wip import validate_wip_limit

logger = structlog.get_logger(__name__)

BACKWARD_MOVE_WARNING = "This move moves the record backward in the pipeline"
NO_NEXT_STAGE_MESSAGE = "There is no next stage configured in this pipeline"


@dataclass
class TransitionVerdict:
    """Aggregated decision for one transition request."""

    can_move: bool
    blockers: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    appointment_check: AppointmentCheck | None = None
    criteria_results: list[CriteriaResult] = field(default_factory=list)

    @property
    def requires_appointment_selection(self) -> bool:
        return self.appointment_check is not None and self.appointment_check.requires_selection


def validate_movement(
    entry: PipelineEntry,
    from_stage: Stage,
    to_stage: Stage,
    checklist_items: Sequence[ChecklistItem],
    current_occupancy: int,
    active_criteria: Iterable[Criterion] | None = None,
    appointment_candidates: Iterable[Appointment] | None = None,
    context: RecordContext | Mapping[str, Any] | None = None,
) -> TransitionVerdict:
    """Decide whether an entry may move from one stage to another.

    Pure function -- no side effects, no DB access.

    Every gate runs, whatever the others return, so the caller sees all
    blocking reasons at once. Blockers are appended in gate order:
    checklist, WIP, appointments, criteria.

    Args:
        entry: Entry being moved; its checklist_state is the completion map
        from_stage: Stage the entry is in
        to_stage: Stage the entry would move into
        checklist_items: Checklist items gating the move
        current_occupancy: Entries currently in to_stage
        active_criteria: Criteria attached to to_stage
        appointment_candidates: All appointments of the entry's record
        context: Record context read by the criteria rules

    Returns:
        TransitionVerdict; can_move is True iff there are no blockers.
        Moving backward adds a warning but never a blocker.
    """
    blockers: list[str] = []
    warnings: list[str] = []

    checklist = can_advance(checklist_items, entry.checklist_state)
    if not checklist.can_advance:
        titles = ", ".join(item.title for item in checklist.missing_required)
        blockers.append(f"Complete the required items: {titles}")

    wip = validate_wip_limit(to_stage, current_occupancy)
    if not wip.valid and wip.message:
        blockers.append(wip.message)

    appointment_check = validate_appointment_requirement(
        entry.record_id, to_stage, appointment_candidates or []
    )
    if not appointment_check.valid and appointment_check.message:
        blockers.append(appointment_check.message)

    stage_criteria = [c for c in (active_criteria or []) if c.stage_id == to_stage.id]
    criteria = validate_stage_criteria(stage_criteria, context)
    blockers.extend(result.message for result in criteria.blockers)

    if is_backward_move(from_stage, to_stage):
        warnings.append(BACKWARD_MOVE_WARNING)

    verdict = TransitionVerdict(
        can_move=not blockers,
        blockers=blockers,
        warnings=warnings,
        appointment_check=appointment_check,
        criteria_results=criteria.blockers + criteria.pending + criteria.passed + criteria.not_applicable,
    )

    logger.debug(
        "movement_validated",
        entry_id=entry.id,
        from_stage_id=from_stage.id,
        to_stage_id=to_stage.id,
        can_move=verdict.can_move,
        blocker_count=len(blockers),
        warning_count=len(warnings),
    )
    return verdict


def validate_advancement(
    entry: PipelineEntry,
    stages: Iterable[Stage],
    current_stage: Stage,
    checklist_items: Sequence[ChecklistItem],
    current_occupancy: int,
    active_criteria: Iterable[Criterion] | None = None,
    appointment_candidates: Iterable[Appointment] | None = None,
    context: RecordContext | Mapping[str, Any] | None = None,
) -> tuple[Stage | None, TransitionVerdict]:
    """Validate moving an entry to the next stage of its pipeline.

    Returns:
        (next stage or None, verdict). Without a next stage the verdict is
        blocked with a single message.
    """
    target = next_stage(stages, current_stage)
    if target is None:
        return None, TransitionVerdict(can_move=False, blockers=[NO_NEXT_STAGE_MESSAGE])

    verdict = validate_movement(
        entry,
        current_stage,
        target,
        checklist_items,
        current_occupancy,
        active_criteria=active_criteria,
        appointment_candidates=appointment_candidates,
        context=context,
    )
    return target, verdict

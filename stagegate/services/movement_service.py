"""MovementService: fetches movement inputs and runs the movement gates.

Keeps the three outcome classes apart:
- business-rule blocks come back as status="blocked"
- rule configuration faults are blockers produced by the domain layer
- data source failures come back as status="unavailable", never as "blocked"
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import structlog

from stagegate.core.exceptions import DataSourceError
from stagegate.core.logging import movement_log_context
from stagegate.domain.movement import validate_movement
from stagegate.domain.rules import Criterion, RecordContext
from stagegate.domain.stages import Appointment, ChecklistItem, PipelineEntry, Stage
from stagegate.schemas.movement import UNAVAILABLE_MESSAGE, MovementCheckResponse

logger = structlog.get_logger(__name__)


@runtime_checkable
class MovementDataSource(Protocol):
    """Supplies the snapshots a movement check needs.

    Implementations live in the persistence layer. Any exception raised here
    is treated as an operational failure.
    """

    def get_checklist_items(self, stage_id: str) -> list[ChecklistItem]:
        """Checklist items gating moves out of the given stage."""
        ...

    def count_entries_in_stage(self, stage_id: str) -> int:
        """Number of entries currently in the given stage."""
        ...

    def list_appointments(self, record_id: str) -> list[Appointment]:
        """All appointments of a record, any status, any time."""
        ...

    def list_active_criteria(self, stage_id: str) -> list[Criterion]:
        """Active advancement criteria attached to the given stage."""
        ...


@dataclass(frozen=True)
class MovementSnapshot:
    """Inputs for one movement check, fetched before evaluation."""

    checklist_items: list[ChecklistItem]
    current_occupancy: int
    active_criteria: list[Criterion]
    appointment_candidates: list[Appointment]


def _fetch(operation: str, call, *args):
    try:
        return call(*args)
    except Exception as e:
        raise DataSourceError(operation, e) from e


def load_snapshot(
    data_source: MovementDataSource,
    entry: PipelineEntry,
    from_stage: Stage,
    to_stage: Stage,
) -> MovementSnapshot:
    """Fetch every input of a movement check.

    Appointments are only fetched when the target stage requires one.

    Raises:
        DataSourceError: any data source call failed
    """
    checklist_items = _fetch("get_checklist_items", data_source.get_checklist_items, from_stage.id)
    occupancy = _fetch("count_entries_in_stage", data_source.count_entries_in_stage, to_stage.id)
    criteria = _fetch("list_active_criteria", data_source.list_active_criteria, to_stage.id)
    appointments: list[Appointment] = []
    if to_stage.requires_appointment:
        appointments = _fetch("list_appointments", data_source.list_appointments, entry.record_id)

    return MovementSnapshot(
        checklist_items=list(checklist_items),
        current_occupancy=occupancy,
        active_criteria=list(criteria),
        appointment_candidates=list(appointments),
    )


class MovementService:
    """Service layer for stage movement checks.

    Fetches snapshots through the injected data source, then delegates the
    decision to the pure domain functions.
    """

    def __init__(self, data_source: MovementDataSource):
        """Initialize with dependency injection.

        Args:
            data_source: Persistence-side provider of movement snapshots
        """
        self.data_source = data_source

    def check_movement(
        self,
        entry: PipelineEntry,
        from_stage: Stage,
        to_stage: Stage,
        context: RecordContext | Mapping[str, Any] | None = None,
    ) -> MovementCheckResponse:
        """Check whether an entry may move from one stage to another.

        Args:
            entry: Entry being moved
            from_stage: Stage the entry is in
            to_stage: Stage the entry would move into
            context: Record context read by the stage criteria

        Returns:
            MovementCheckResponse with status allowed, blocked or unavailable
        """
        with movement_log_context(entry.id, from_stage.id, to_stage.id):
            return self._check(entry, from_stage, to_stage, context)

    def _check(
        self,
        entry: PipelineEntry,
        from_stage: Stage,
        to_stage: Stage,
        context: RecordContext | Mapping[str, Any] | None,
    ) -> MovementCheckResponse:
        try:
            snapshot = load_snapshot(self.data_source, entry, from_stage, to_stage)
        except DataSourceError as e:
            logger.warning(
                "movement_snapshot_failed",
                operation=e.operation,
                error=str(e.cause),
                error_type=type(e.cause).__name__,
            )
            return MovementCheckResponse(
                status="unavailable",
                entry_id=entry.id,
                to_stage_id=to_stage.id,
                message=UNAVAILABLE_MESSAGE,
            )

        verdict = validate_movement(
            entry,
            from_stage,
            to_stage,
            snapshot.checklist_items,
            snapshot.current_occupancy,
            active_criteria=snapshot.active_criteria,
            appointment_candidates=snapshot.appointment_candidates,
            context=context,
        )

        appointment_ids = []
        if verdict.appointment_check is not None:
            appointment_ids = [a.id for a in verdict.appointment_check.appointments]

        logger.info("movement_checked", can_move=verdict.can_move, blocker_count=len(verdict.blockers))
        return MovementCheckResponse(
            status="allowed" if verdict.can_move else "blocked",
            entry_id=entry.id,
            to_stage_id=to_stage.id,
            blockers=verdict.blockers,
            warnings=verdict.warnings,
            requires_appointment_selection=verdict.requires_appointment_selection,
            appointment_ids=appointment_ids,
        )

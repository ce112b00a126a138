"""Appointment binding precondition.

Pure domain functions. The candidate list is fetched by the caller; a failed
fetch is an operational error and must never reach this module as an empty list.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field

import structlog

from stagegate.core.exceptions import AppointmentSelectionError, AppointmentSelectionRequiredError
from stagegate.domain.stages import Appointment, Stage, as_utc

logger = structlog.get_logger(__name__)

APPOINTMENT_REQUIRED_MESSAGE = "An appointment must be scheduled to move into this stage"
APPOINTMENT_SELECTION_MESSAGE = "Select which appointment to use"


@dataclass
class AppointmentCheck:
    """Result of resolving a stage's appointment requirement."""

    valid: bool
    record_id: str
    appointments: list[Appointment] = field(default_factory=list)
    requires_selection: bool = False
    message: str | None = None

    @property
    def bound_appointment(self) -> Appointment | None:
        """The auto-bound appointment when exactly one candidate exists."""
        if self.valid and not self.requires_selection and len(self.appointments) == 1:
            return self.appointments[0]
        return None


def validate_appointment_requirement(
    record_id: str,
    target_stage: Stage,
    candidates: Iterable[Appointment],
) -> AppointmentCheck:
    """Resolve whether the target stage's appointment requirement is satisfiable.

    Pure function -- no side effects, no I/O.

    Args:
        record_id: Record being moved
        target_stage: Stage the record would move into
        candidates: All appointments of the record (any status, any time)

    Returns:
        AppointmentCheck with candidates sorted by scheduled time

    Rules:
        - Stage does not require an appointment: valid, nothing to select
        - No candidates: invalid
        - Exactly one candidate: valid, auto-bound
        - Two or more: valid, caller must select one
    """
    if not target_stage.requires_appointment:
        return AppointmentCheck(valid=True, record_id=record_id)

    owned: list[Appointment] = []
    for appointment in candidates:
        if appointment.record_id != record_id:
            logger.warning(
                "appointment_candidate_ignored",
                appointment_id=appointment.id,
                record_id=record_id,
                owner_record_id=appointment.record_id,
            )
            continue
        owned.append(appointment)
    owned.sort(key=lambda a: as_utc(a.scheduled_at))

    if not owned:
        return AppointmentCheck(valid=False, record_id=record_id, message=APPOINTMENT_REQUIRED_MESSAGE)

    if len(owned) == 1:
        return AppointmentCheck(valid=True, record_id=record_id, appointments=owned)

    return AppointmentCheck(
        valid=True,
        record_id=record_id,
        appointments=owned,
        requires_selection=True,
        message=APPOINTMENT_SELECTION_MESSAGE,
    )


def find_appointment(candidates: Iterable[Appointment], appointment_id: str) -> Appointment | None:
    return next((a for a in candidates if a.id == appointment_id), None)


def select_appointment(check: AppointmentCheck, appointment_id: str | None = None) -> Appointment:
    """Resolve which appointment to bind for a valid check.

    Args:
        check: Result of validate_appointment_requirement
        appointment_id: Caller's choice; may be omitted when one candidate was auto-bound

    Returns:
        The appointment to bind

    Raises:
        AppointmentSelectionRequiredError: no id given and nothing was auto-bound
        AppointmentSelectionError: the id is not among the candidates
    """
    if appointment_id is None:
        if check.bound_appointment is None:
            raise AppointmentSelectionRequiredError(check.record_id, len(check.appointments))
        return check.bound_appointment

    appointment = find_appointment(check.appointments, appointment_id)
    if appointment is None:
        raise AppointmentSelectionError(appointment_id, check.record_id)
    return appointment

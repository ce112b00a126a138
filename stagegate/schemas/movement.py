"""Movement check Pydantic schemas: response contract of the movement service."""

from typing import Literal

from pydantic import BaseModel, Field

UNAVAILABLE_MESSAGE = "Could not validate this move. Try again."


class MovementCheckResponse(BaseModel):
    """Outcome of checking a stage movement.

    allowed: every gate passed (warnings may still be present)
    blocked: at least one business rule blocks the move
    unavailable: an input could not be fetched; the move was not evaluated
    """

    status: Literal["allowed", "blocked", "unavailable"]
    entry_id: str
    to_stage_id: str
    blockers: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    requires_appointment_selection: bool = False
    appointment_ids: list[str] = Field(default_factory=list, description="Candidate appointments, earliest first")
    message: str | None = None

    @property
    def can_move(self) -> bool:
        return self.status == "allowed"

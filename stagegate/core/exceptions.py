class StageGateError(Exception):
    """Base exception for the stage gate."""

    pass


class RuleConfigError(StageGateError):
    """Raised when a rule configuration is malformed at definition time."""

    pass


class AppointmentSelectionError(StageGateError):
    """Raised when a selected appointment is not one of the candidates."""

    def __init__(self, appointment_id: str, record_id: str):
        self.appointment_id = appointment_id
        self.record_id = record_id
        super().__init__(f"Appointment '{appointment_id}' is not a candidate for record '{record_id}'")


class AppointmentSelectionRequiredError(StageGateError):
    """Raised when no appointment was chosen and none could be auto-bound."""

    def __init__(self, record_id: str, candidate_count: int):
        self.record_id = record_id
        self.candidate_count = candidate_count
        super().__init__(
            f"Record '{record_id}' needs an appointment selection among {candidate_count} candidate(s)"
        )


class DataSourceError(StageGateError):
    """Raised when an external collaborator fails to supply a snapshot."""

    def __init__(self, operation: str, cause: Exception):
        self.operation = operation
        self.cause = cause
        super().__init__(f"Data source call '{operation}' failed: {type(cause).__name__}: {cause}")

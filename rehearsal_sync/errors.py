"""
Error taxonomy for availability editing and calendar sync.

Every error carries a message, an optional machine-readable error code and a
recoverable flag so the scheduler and routes can decide how to surface it.
"""


class RehearsalSyncError(Exception):
    """Base exception for the rehearsal sync core."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.recoverable = recoverable


class ParseError(RehearsalSyncError):
    """Malformed HH:mm time or ISO date input."""

    def __init__(self, message: str, value: object = None):
        super().__init__(message, error_code="parse_error", recoverable=False)
        self.value = value


class AvailabilityValidationError(RehearsalSyncError):
    """A day's slots are self-invalid or overlapping. The whole batch is rejected."""

    def __init__(
        self,
        message: str,
        date: str | None = None,
        slot_indices: tuple[int, ...] = (),
        reason: str | None = None,
        error_code: str = "validation_error",
    ):
        super().__init__(message, error_code=error_code, recoverable=True)
        self.date = date
        self.slot_indices = slot_indices
        self.reason = reason

    @property
    def user_message(self) -> str:
        if self.date:
            return f"{self.date}: {self.message}"
        return self.message


class PastDateEditError(AvailabilityValidationError):
    """An edit touched a date before today."""

    def __init__(self, dates: list[str]):
        super().__init__(
            "Past dates cannot be edited",
            date=dates[0] if dates else None,
            reason="past_date",
            error_code="past_date",
        )
        self.dates = dates


class InvalidTimezoneError(RehearsalSyncError):
    """Unrecognized IANA timezone identifier."""

    def __init__(self, timezone: str):
        super().__init__(
            f"Unknown timezone: {timezone}", error_code="invalid_timezone", recoverable=True
        )
        self.timezone = timezone


class NetworkError(RehearsalSyncError):
    """A remote collaborator is unreachable or failing."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        response_data: dict | None = None,
        recoverable: bool = True,
    ):
        super().__init__(message, error_code=error_code, recoverable=recoverable)
        self.status_code = status_code
        self.response_data = response_data or {}


class AvailabilityStoreError(NetworkError):
    """The availability REST store rejected a request or could not be reached."""


class CalendarProviderError(NetworkError):
    """The calendar provider rejected a request or could not be reached."""


class CalendarPermissionError(RehearsalSyncError):
    """Calendar access was revoked or never granted."""

    def __init__(self, message: str = "Calendar access denied"):
        super().__init__(message, error_code="calendar_permission_denied", recoverable=True)


class ConflictError(RehearsalSyncError):
    """The store detected overlapping availability or a scheduling conflict."""

    def __init__(self, message: str, detail: dict | None = None):
        super().__init__(message, error_code="conflict", recoverable=True)
        self.detail = detail or {}


class SyncStateError(RehearsalSyncError):
    """Persisted sync state could not be written."""

    def __init__(self, message: str, key: str | None = None):
        super().__init__(message, error_code="sync_state_error", recoverable=True)
        self.key = key

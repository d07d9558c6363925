"""Tagged error types raised by the scheduling engine.

Callers branch on ``SchedulingError.kind`` rather than on message text.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    VALIDATION = "validation"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    SYNC_FAILURE = "sync_failure"


class SchedulingError(Exception):
    """Base class for every error the engine raises on purpose."""

    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInputError(SchedulingError):
    """A date, time or payload field could not be used."""

    kind = ErrorKind.VALIDATION


class InvalidRangeError(InvalidInputError):
    def __init__(self, message: str = "End time must be after start time") -> None:
        super().__init__(message)


class EmptyRecurrenceError(InvalidInputError):
    def __init__(
        self, message: str = "Recurrence does not produce any appointment dates"
    ) -> None:
        super().__init__(message)


class InvalidStatusTransitionError(InvalidInputError):
    pass


class SchedulingConflictError(SchedulingError):
    kind = ErrorKind.CONFLICT

    def __init__(
        self,
        conflicting_ids: list[int] | None = None,
        message: str = "Appointment conflicts with an existing session",
    ) -> None:
        super().__init__(message)
        self.conflicting_ids = list(conflicting_ids or [])


class NotFoundError(SchedulingError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, appointment_id: int) -> None:
        super().__init__("Appointment not found")
        self.appointment_id = appointment_id


class CalendarSyncError(SchedulingError):
    """Raised by calendar clients; never escapes the sync coordinator."""

    kind = ErrorKind.SYNC_FAILURE

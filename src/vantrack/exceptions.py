"""Custom exception hierarchy for vantrack."""

from __future__ import annotations


class VantrackError(Exception):
    """Base exception for all vantrack errors."""


class VantrackConfigError(VantrackError):
    """Invalid or missing configuration."""


class NotFoundError(VantrackError):
    """A referenced student or vehicle does not exist."""

    def __init__(self, message: str, *, entity_id: str = "") -> None:
        self.entity_id = entity_id
        super().__init__(message)


class StudentNotFoundError(NotFoundError):
    """No student with the given id."""


class VehicleNotFoundError(NotFoundError):
    """No vehicle with the given id."""


class InvalidCredentialError(VantrackError):
    """Submitted guardian code or handover token does not match.

    Safe to retry with a fresh value.
    """

    def __init__(self, message: str, *, student_id: str = "", method: str = "") -> None:
        self.student_id = student_id
        self.method = method
        super().__init__(message)


class TransientStoreError(VantrackError):
    """Backing store unavailable during a read or write.

    Raised after any partial mutation has been rolled back.
    """


class SchedulerBatchError(VantrackError):
    """The daily reset batch failed partway."""

    def __init__(self, message: str, *, affected_rows: int = 0) -> None:
        self.affected_rows = affected_rows
        super().__init__(message)


class GeocodingError(VantrackError):
    """Reverse-geocoding lookup failed (network, non-200, invalid JSON)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)

"""Exceptions raised by the scheduling service.

Each error carries the HTTP status the API layer answers with, so the
translation at the boundary stays a single exception handler.
"""

from __future__ import annotations

from typing import Any, Sequence


class SchedulingError(Exception):
    """Base exception for scheduling errors."""

    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def payload(self) -> dict[str, Any]:
        """Extra JSON fields returned alongside the message."""
        return {}


class ValidationError(SchedulingError):
    """Missing or malformed input, e.g. a window whose start is not before its end."""

    status_code = 400

    def __init__(self, message: str, errors: Sequence[dict[str, str]] | None = None):
        super().__init__(message)
        self.errors = list(errors or [])

    def payload(self) -> dict[str, Any]:
        return {"errors": self.errors}


class NotFoundError(SchedulingError):
    """A referenced technician, support request or schedule does not exist."""

    status_code = 404


class ConflictError(SchedulingError):
    """The requested window overlaps existing bookings of the technician."""

    status_code = 400

    def __init__(self, conflicts: Sequence[Any], message: str = "Scheduling conflict detected"):
        super().__init__(message)
        self.conflicts = list(conflicts)

    def payload(self) -> dict[str, Any]:
        return {"conflicts": self.conflicts}


class AuthorizationError(SchedulingError):
    """The actor's role does not allow the operation."""

    status_code = 403


class NoAvailabilityError(SchedulingError):
    """No technician is free for the requested window."""

    status_code = 409

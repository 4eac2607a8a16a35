"""
Domain-specific exception hierarchy for the booking engine.

Every error carries a stable ``kind`` so callers can map it to a transport
status without parsing the human-readable message.
"""

from __future__ import annotations

from typing import Any, Dict, List, Sequence


class BookingEngineError(Exception):
    """Base class for all application-level errors."""

    kind = "booking_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class ValidationError(BookingEngineError):
    """Raised when input is malformed or out of range."""

    kind = "validation_error"


class InvalidDateError(ValidationError):
    """Raised when a booking date is not allowed (past, or today where forbidden)."""

    kind = "invalid_date"


class InvalidRangeError(ValidationError):
    """Raised when an end time does not come after its start time."""

    kind = "invalid_range"


class NotFoundError(BookingEngineError):
    """Raised when a resource or booking does not exist."""

    kind = "not_found"


class ConflictError(BookingEngineError):
    """Raised when a proposed interval overlaps an active booking."""

    kind = "conflict"

    def __init__(self, message: str, conflicts: Sequence[Any] = ()) -> None:
        super().__init__(message)
        self.conflicts: List[Any] = list(conflicts)

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["conflicts"] = [conflict.to_dict() for conflict in self.conflicts]
        return payload


class ForbiddenError(BookingEngineError):
    """Raised when the requester may not act on a booking."""

    kind = "forbidden"


class StateError(BookingEngineError):
    """Raised on an illegal status transition."""

    kind = "state_error"


class InternalError(BookingEngineError):
    """Raised when storage or transport fails."""

    kind = "internal_error"

"""Typed error outcomes shared by services and the HTTP layer."""
from typing import Any, Dict, List, Optional


class AttendanceCoreError(Exception):
    """Base class for errors surfaced to callers."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.__class__.__name__,
            'message': self.message,
            'details': self.details
        }


class AuthorizationError(AttendanceCoreError):
    """Caller lacks the capability or does not own the resource."""

    status_code = 403


class NotFoundError(AttendanceCoreError):
    """A referenced schedule, lecturer, classroom or entry does not exist."""

    status_code = 404


class ValidationError(AttendanceCoreError):
    """Malformed input, rejected before any persistence."""

    status_code = 400

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = errors or [message]
        super().__init__(message, details={'errors': self.errors})


class ConflictError(AttendanceCoreError):
    """Scheduling overlap on a lecturer, class group or classroom."""

    status_code = 409

    def __init__(self, conflict):
        self.conflict = conflict
        super().__init__(
            f"Scheduling conflict: the {conflict.label} is already booked for this time slot",
            details=conflict.to_dict()
        )


class TransientError(AttendanceCoreError):
    """Storage or lock unavailable; the caller may retry."""

    status_code = 503

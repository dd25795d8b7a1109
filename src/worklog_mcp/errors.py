"""Error taxonomy for work log operations and the uniform error envelope."""

from __future__ import annotations

from typing import Any, Optional

from .models import format_timestamp, utc_now


class WorklogError(Exception):
    """Base exception for work log operations."""

    def details(self) -> dict[str, Any]:
        return {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": type(self).__name__,
            "message": str(self),
            **self.details(),
        }


class ValidationError(WorklogError):
    """Raised when caller input violates a field contract. Never retried."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        provided_value: Any = None,
    ):
        super().__init__(message)
        self.field = field
        self.provided_value = provided_value

    def details(self) -> dict[str, Any]:
        return {"field": self.field, "provided_value": self.provided_value}


class StorageError(WorklogError):
    """Raised when the persistence layer fails.

    ``is_retryable`` is True only for transient failures (lock contention,
    busy timeout). Callers may retry those with backoff; the manager never
    retries on its own.
    """

    def __init__(self, message: str, operation: str, is_retryable: bool = False):
        super().__init__(message)
        self.operation = operation
        self.is_retryable = is_retryable

    def details(self) -> dict[str, Any]:
        return {"operation": self.operation, "is_retryable": self.is_retryable}


class SessionError(WorklogError):
    """Raised for session-id problems; carries the offending session id."""

    def __init__(self, message: str, session_id: Any):
        super().__init__(message)
        self.session_id = session_id

    def details(self) -> dict[str, Any]:
        return {"session_id": self.session_id}


class InvalidSessionIdError(SessionError):
    """Raised when a session id fails the session identity rules."""
    pass


def format_error_response(error: BaseException) -> dict[str, Any]:
    """Build the error envelope returned to tool callers.

    Shape: ``{"success": False, "error": {"type", "message", "details"}, "timestamp"}``.
    Exceptions outside the work log taxonomy are reported as ``UnexpectedError``.
    """
    if isinstance(error, InvalidSessionIdError):
        error_type = "SessionError"
        details = error.details()
    elif isinstance(error, WorklogError):
        error_type = type(error).__name__
        details = error.details()
    else:
        error_type = "UnexpectedError"
        details = {"exception_type": type(error).__name__}

    return {
        "success": False,
        "error": {
            "type": error_type,
            "message": str(error),
            "details": details,
        },
        "timestamp": format_timestamp(utc_now()),
    }

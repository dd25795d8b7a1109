"""Tests for the error taxonomy and error envelope."""

from worklog_mcp.errors import (
    InvalidSessionIdError,
    SessionError,
    StorageError,
    ValidationError,
    WorklogError,
    format_error_response,
)
from worklog_mcp.validation import is_canonical_timestamp


class TestErrorTypes:
    """Tests for exception attributes."""

    def test_validation_error(self):
        error = ValidationError("bad", "project_name", "x y")
        assert isinstance(error, WorklogError)
        assert error.field == "project_name"
        assert error.provided_value == "x y"
        assert error.to_dict() == {
            "name": "ValidationError",
            "message": "bad",
            "field": "project_name",
            "provided_value": "x y",
        }

    def test_storage_error_defaults_to_not_retryable(self):
        error = StorageError("disk", "create")
        assert error.operation == "create"
        assert error.is_retryable is False

    def test_invalid_session_is_session_error(self):
        error = InvalidSessionIdError("nope", "bad id")
        assert isinstance(error, SessionError)
        assert error.details() == {"session_id": "bad id"}


class TestFormatErrorResponse:
    """Tests for format_error_response."""

    def test_validation_envelope(self):
        response = format_error_response(ValidationError("too long", "query", "q" * 3))
        assert response["success"] is False
        assert response["error"] == {
            "type": "ValidationError",
            "message": "too long",
            "details": {"field": "query", "provided_value": "qqq"},
        }
        assert is_canonical_timestamp(response["timestamp"])

    def test_storage_envelope(self):
        response = format_error_response(StorageError("locked", "create", is_retryable=True))
        assert response["error"]["type"] == "StorageError"
        assert response["error"]["details"] == {"operation": "create", "is_retryable": True}

    def test_invalid_session_reported_as_session_error(self):
        response = format_error_response(InvalidSessionIdError("bad", "x y"))
        assert response["error"]["type"] == "SessionError"
        assert response["error"]["details"] == {"session_id": "x y"}

    def test_unexpected_exception(self):
        response = format_error_response(RuntimeError("boom"))
        assert response["error"]["type"] == "UnexpectedError"
        assert response["error"]["message"] == "boom"
        assert response["error"]["details"] == {"exception_type": "RuntimeError"}

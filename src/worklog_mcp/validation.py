"""Field-level input validation and content sanitization.

Every check raises ``ValidationError`` naming the field and the offending
value. Checks are pure: no I/O, no state.
"""

from __future__ import annotations

import re
from typing import Any, Optional

from .errors import ValidationError
from .models import (
    NARRATIVE_FIELDS,
    OPTIONAL_NARRATIVE_FIELDS,
    CreateLogInput,
    LogFilters,
    format_timestamp,
    parse_timestamp,
    utc_now,
)

PROJECT_NAME_MAX = 100
SESSION_ID_INPUT_MAX = 255
WORK_CONTENT_MAX = 10_000
OPTIONAL_FIELD_MAX = 10_000
SEARCH_QUERY_MAX = 500
SEARCH_QUERY_PARAM_MAX = 1000
MAX_LIMIT_VALUE = 1000
MIN_YEAR = 2020
MAX_FUTURE_YEARS = 5

_PROJECT_NAME_FORMAT = re.compile(r"[A-Za-z0-9][A-Za-z0-9_-]*")
_SESSION_ID_FORMAT = re.compile(r"[A-Za-z0-9][A-Za-z0-9_.-]*")
_TAG = re.compile(r"<[^>]*>")
_ENTITIES = (
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&amp;", "&"),
    ("&quot;", '"'),
    ("&#x27;", "'"),
)


def sanitize_input(value: Any) -> Any:
    """Trim whitespace from strings; return anything else unchanged."""
    if isinstance(value, str):
        return value.strip()
    return value


def validate_string_length(value: str, field: str, min_length: int, max_length: int) -> None:
    if len(value) < min_length:
        raise ValidationError(
            f"{field} must be at least {min_length} characters long", field, value
        )
    if len(value) > max_length:
        raise ValidationError(
            f"{field} must be no more than {max_length} characters long", field, value
        )


def _require_string(value: Any, field: str, label: str) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{label} is required and must be a string", field, value)
    return value


def validate_project_name(project_name: Any, field: str = "project_name") -> str:
    """Validate a project name and return it trimmed.

    Rules: 1-100 characters after trimming, starts alphanumeric, then only
    letters, digits, hyphens and underscores.
    """
    name = sanitize_input(_require_string(project_name, field, "Project name"))
    if not name:
        raise ValidationError("Project name cannot be empty", field, project_name)
    validate_string_length(name, field, 1, PROJECT_NAME_MAX)
    if not _PROJECT_NAME_FORMAT.fullmatch(name):
        raise ValidationError(
            "Project name must start with alphanumeric character and contain only "
            "letters, numbers, hyphens, and underscores",
            field,
            project_name,
        )
    return name


def validate_session_id(session_id: Any, field: str = "session_id") -> str:
    """Validate a client-supplied session id and return it trimmed.

    This input check allows up to 255 characters. Session identity itself
    only accepts ids of at most 128 characters, so a 129-255 character id
    passes here but is refused when the session is resolved.
    """
    sid = sanitize_input(_require_string(session_id, field, "Session ID"))
    if not sid:
        raise ValidationError("Session ID cannot be empty", field, session_id)
    validate_string_length(sid, field, 1, SESSION_ID_INPUT_MAX)
    if not _SESSION_ID_FORMAT.fullmatch(sid):
        raise ValidationError(
            "Session ID must start with alphanumeric character and contain only "
            "letters, numbers, hyphens, underscores, and dots",
            field,
            session_id,
        )
    return sid


def validate_work_content(work_content: Any, field: str = "work_content") -> str:
    content = _require_string(work_content, field, "Work content")
    if not content.strip():
        raise ValidationError("Work content cannot be empty", field, work_content)
    validate_string_length(content, field, 1, WORK_CONTENT_MAX)
    return content


def validate_optional_fields(fields: dict[str, Any]) -> None:
    """Validate successes/failures/blockers/thoughts when present."""
    for name in OPTIONAL_NARRATIVE_FIELDS:
        value = fields.get(name)
        if value is None:
            continue
        if not isinstance(value, str):
            raise ValidationError(f"{name} must be a string if provided", name, value)
        validate_string_length(value, name, 0, OPTIONAL_FIELD_MAX)


def _validate_query(query: Any, field: str, max_length: int) -> str:
    if not isinstance(query, str) or not query:
        raise ValidationError("Search query is required and must be a string", field, query)
    trimmed = query.strip()
    if not trimmed:
        raise ValidationError("Search query cannot be empty", field, query)
    if len(trimmed) > max_length:
        raise ValidationError(
            f"Search query cannot exceed {max_length} characters", field, query
        )
    return trimmed


def validate_search_query(query: Any, field: str = "query") -> str:
    """Validate a search query for the log manager (at most 500 characters)."""
    return _validate_query(query, field, SEARCH_QUERY_MAX)


def validate_search_query_param(query: Any, field: str = "query") -> str:
    """Validate a search query arriving as a tool parameter (at most 1000 characters).

    Note: the manager applies the 500 character bound afterwards, so tool
    queries of 501-1000 characters are still refused there.
    """
    return _validate_query(query, field, SEARCH_QUERY_PARAM_MAX)


def validate_search_fields(fields: Any) -> list[str]:
    if not isinstance(fields, (list, tuple)):
        raise ValidationError("fields must be an array", "fields", fields)
    for name in fields:
        if not isinstance(name, str) or name not in NARRATIVE_FIELDS:
            raise ValidationError(
                f"fields must contain only valid field names: {', '.join(NARRATIVE_FIELDS)}",
                "fields",
                name,
            )
    return list(fields)


def validate_limit(limit: Any, field: str = "limit") -> int:
    """Limit must be an integer in [0, 1000]. Zero is valid and returns no rows."""
    if isinstance(limit, bool) or not isinstance(limit, int) or not 0 <= limit <= MAX_LIMIT_VALUE:
        raise ValidationError(
            f"{field} must be a number between 0 and {MAX_LIMIT_VALUE}", field, limit
        )
    return limit


def validate_offset(offset: Any, field: str = "offset") -> int:
    if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
        raise ValidationError(f"{field} must be a non-negative number", field, offset)
    return offset


def is_canonical_timestamp(value: Any) -> bool:
    """True if value re-serializes to exactly itself (``2026-01-17T09:30:00.000Z``)."""
    if not isinstance(value, str):
        return False
    try:
        return format_timestamp(parse_timestamp(value)) == value
    except (ValueError, OverflowError):
        return False


def is_valid_timestamp(value: Any) -> bool:
    """Canonical ISO 8601 form and a year between 2020 and five years from now."""
    if not is_canonical_timestamp(value):
        return False
    year = parse_timestamp(value).year
    return MIN_YEAR <= year <= utc_now().year + MAX_FUTURE_YEARS


def validate_timestamp(value: Any, field: str) -> str:
    if not is_valid_timestamp(value):
        raise ValidationError(f"{field} must be a valid ISO timestamp", field, value)
    return value


def sanitize_content(text: str) -> str:
    """Strip tag-like substrings and decode a few named entities.

    Best-effort cleanup, not an HTML parser: simple tags are removed and any
    leftover ``<`` is re-encoded as ``&lt;``.
    """
    cleaned = _TAG.sub("", text)
    for entity, char in _ENTITIES:
        cleaned = cleaned.replace(entity, char)
    return cleaned.replace("<", "&lt;")


def validate_create_log_input(data: CreateLogInput) -> None:
    """Validate a create request before any storage I/O."""
    validate_project_name(data.project_name)
    validate_work_content(data.work_content)
    validate_optional_fields({name: getattr(data, name) for name in OPTIONAL_NARRATIVE_FIELDS})
    if data.session_id is not None:
        validate_session_id(data.session_id)


def validate_log_filters(filters: LogFilters) -> None:
    if filters.limit is not None:
        validate_limit(filters.limit)
    if filters.offset is not None:
        validate_offset(filters.offset)
    if filters.project_name is not None:
        validate_project_name(filters.project_name)
    if filters.session_id is not None:
        validate_session_id(filters.session_id)
    if filters.start_date is not None:
        validate_timestamp(filters.start_date, "start_date")
    if filters.end_date is not None:
        validate_timestamp(filters.end_date, "end_date")


def coerce_int(value: Any, field: str) -> Optional[int]:
    """Accept an int or a string of digits from loosely typed tool input."""
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValidationError(f"{field} must be a number", field, value)

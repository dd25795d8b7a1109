"""Log manager: validation, session resolution, defaults and caps over a LogStore."""

from __future__ import annotations

import uuid
from dataclasses import replace
from typing import Any, Optional, Sequence

from .errors import InvalidSessionIdError, ValidationError
from .models import (
    NARRATIVE_FIELDS,
    OPTIONAL_NARRATIVE_FIELDS,
    CreateLogInput,
    CreateLogResult,
    LogEntry,
    LogFilters,
    LogPage,
    ProjectSummary,
    SearchResult,
    SessionLogs,
    SessionSummary,
    format_timestamp,
    utc_now,
)
from .session import get_or_create_session, is_valid_session_id
from .storage import LogStore
from .validation import (
    MAX_LIMIT_VALUE,
    sanitize_content,
    validate_create_log_input,
    validate_limit,
    validate_log_filters,
    validate_project_name,
    validate_search_fields,
    validate_search_query,
    validate_timestamp,
    validate_work_content,
)

DEFAULT_LIMIT = 50
# Session and project views only look at this many of the newest entries.
SCAN_WINDOW = 1000


def _clamp_limit(limit: Optional[int]) -> int:
    return min(DEFAULT_LIMIT if limit is None else limit, MAX_LIMIT_VALUE)


def _trim_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


class LogManager:
    """Operations the outside world calls, composed over an injected LogStore."""

    def __init__(self, store: LogStore):
        self.store = store

    def create_log(self, data: CreateLogInput) -> CreateLogResult:
        """Validate, sanitize and persist one new entry.

        The log id and timestamp are always assigned here.

        Raises:
            ValidationError: Before any storage I/O, if a field is invalid.
            InvalidSessionIdError: If the supplied session id is malformed.
            StorageError: If the insert fails.
        """
        validate_create_log_input(data)

        cleaned = replace(
            data,
            work_content=sanitize_content(data.work_content),
            **{
                name: sanitize_content(getattr(data, name))
                for name in OPTIONAL_NARRATIVE_FIELDS
                if getattr(data, name) is not None
            },
        )
        # Markup-only content is empty once tags are stripped.
        validate_work_content(cleaned.work_content)

        session_id = get_or_create_session(
            cleaned.session_id.strip() if cleaned.session_id else None
        )

        entry = LogEntry(
            log_id=str(uuid.uuid4()),
            timestamp=format_timestamp(utc_now()),
            session_id=session_id,
            project_name=cleaned.project_name.strip(),
            work_content=cleaned.work_content.strip(),
            successes=_trim_optional(cleaned.successes),
            failures=_trim_optional(cleaned.failures),
            blockers=_trim_optional(cleaned.blockers),
            thoughts=_trim_optional(cleaned.thoughts),
        )
        return self.store.create(entry)

    def get_logs(self, filters: Optional[LogFilters] = None) -> LogPage:
        filters = filters or LogFilters()
        validate_log_filters(filters)

        normalized = LogFilters(
            limit=_clamp_limit(filters.limit),
            offset=filters.offset or 0,
            project_name=filters.project_name.strip() if filters.project_name else None,
            session_id=filters.session_id.strip() if filters.session_id else None,
            start_date=filters.start_date,
            end_date=filters.end_date,
        )
        return self.store.get_logs(normalized)

    def get_session_logs(self, session_id: str) -> SessionLogs:
        """All entries of a session, oldest first.

        Raises:
            InvalidSessionIdError: If the id is malformed (never an empty result).
        """
        if not is_valid_session_id(session_id):
            raise InvalidSessionIdError(f"Invalid session ID format: {session_id}", session_id)
        return self.store.get_session_logs(session_id)

    def search_logs(
        self,
        query: str,
        fields: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
    ) -> SearchResult:
        normalized_query = validate_search_query(query)
        if limit is not None:
            validate_limit(limit)
        search_fields = list(NARRATIVE_FIELDS) if fields is None else validate_search_fields(fields)
        if not search_fields:
            raise ValidationError("fields cannot be empty", "fields", fields)
        return self.store.search_logs(normalized_query, search_fields, _clamp_limit(limit))

    def get_project_summary(
        self,
        project_name: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> ProjectSummary:
        name = validate_project_name(project_name)
        if start_date is not None:
            validate_timestamp(start_date, "start_date")
        if end_date is not None:
            validate_timestamp(end_date, "end_date")
        # Canonical timestamps compare correctly as strings.
        if start_date and end_date and start_date > end_date:
            raise ValidationError(
                "Start date must be before or equal to end date", "start_date", start_date
            )
        return self.store.get_project_summary(name, start_date, end_date)

    def get_all_projects(self) -> list[dict[str, Any]]:
        """Per-project entry count and last activity over the newest entries."""
        page = self.store.get_logs(LogFilters(limit=SCAN_WINDOW, offset=0))
        projects: dict[str, dict[str, Any]] = {}
        for log in page.logs:
            stats = projects.setdefault(
                log.project_name,
                {"project_name": log.project_name, "total_logs": 0, "last_activity": log.timestamp},
            )
            stats["total_logs"] += 1
            if log.timestamp > stats["last_activity"]:
                stats["last_activity"] = log.timestamp
        return sorted(projects.values(), key=lambda p: p["last_activity"], reverse=True)

    def get_recent_activity(self, limit: int = 20) -> list[LogEntry]:
        validate_limit(limit)
        return self.store.get_logs(LogFilters(limit=limit, offset=0)).logs

    def get_recent_sessions(
        self,
        limit: int = 10,
        project_name: Optional[str] = None,
    ) -> list[SessionSummary]:
        """Sessions ordered by last activity, newest first.

        Built from the newest 1000 matching entries only; a session whose
        latest entry is older than that window does not appear.
        """
        validate_limit(limit)
        name = validate_project_name(project_name) if project_name is not None else None
        page = self.store.get_logs(LogFilters(limit=SCAN_WINDOW, offset=0, project_name=name))

        sessions: dict[str, SessionSummary] = {}
        for log in page.logs:
            summary = sessions.get(log.session_id)
            if summary is None:
                sessions[log.session_id] = SessionSummary(
                    session_id=log.session_id,
                    project_name=log.project_name,
                    last_activity=log.timestamp,
                    log_count=1,
                )
                continue
            summary.log_count += 1
            if log.timestamp > summary.last_activity:
                summary.last_activity = log.timestamp
                summary.project_name = log.project_name

        ordered = sorted(sessions.values(), key=lambda s: s.last_activity, reverse=True)
        return ordered[:limit]

    def get_latest_session(self, project_name: str) -> Optional[SessionSummary]:
        sessions = self.get_recent_sessions(limit=1, project_name=project_name)
        return sessions[0] if sessions else None

    def close(self) -> None:
        self.store.close()

"""Data models for work log entries, filters, and query results."""

from __future__ import annotations

import sqlite3
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

# Free-text fields, in the order they are searched and rendered.
NARRATIVE_FIELDS = ("work_content", "successes", "failures", "blockers", "thoughts")
OPTIONAL_NARRATIVE_FIELDS = NARRATIVE_FIELDS[1:]


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """Format datetime as canonical ISO 8601 UTC with milliseconds.

    Example: ``2026-01-17T09:30:00.000Z``. Naive datetimes are taken as UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    text = dt.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def parse_timestamp(s: str) -> datetime:
    """Parse ISO 8601 timestamp string."""
    return datetime.fromisoformat(s)


@dataclass
class LogEntry:
    """A single immutable work log entry."""
    log_id: str
    timestamp: str
    session_id: str
    project_name: str
    work_content: str
    successes: Optional[str] = None
    failures: Optional[str] = None
    blockers: Optional[str] = None
    thoughts: Optional[str] = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "LogEntry":
        return cls(
            log_id=row["log_id"],
            timestamp=row["timestamp"],
            session_id=row["session_id"],
            project_name=row["project_name"],
            work_content=row["work_content"],
            successes=row["successes"],
            failures=row["failures"],
            blockers=row["blockers"],
            thoughts=row["thoughts"],
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert entry to dictionary for JSON serialization."""
        return asdict(self)


@dataclass
class CreateLogInput:
    """Caller-supplied fields for a new entry (id and timestamp are server-side)."""
    project_name: str
    work_content: str
    session_id: Optional[str] = None
    successes: Optional[str] = None
    failures: Optional[str] = None
    blockers: Optional[str] = None
    thoughts: Optional[str] = None


@dataclass
class LogFilters:
    """Filters for get_logs. Present filters are ANDed together."""
    limit: Optional[int] = None
    offset: Optional[int] = None
    project_name: Optional[str] = None
    session_id: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None


@dataclass
class DateRange:
    start: str = ""
    end: str = ""


@dataclass
class CreateLogResult:
    log_id: str
    session_id: str
    timestamp: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class LogPage:
    """One page of get_logs results plus pagination info."""
    logs: list[LogEntry]
    total_count: int
    has_more: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "logs": [log.to_dict() for log in self.logs],
            "total_count": self.total_count,
            "has_more": self.has_more,
        }


@dataclass
class SessionLogSummary:
    session_id: str
    total_logs: int
    date_range: DateRange = field(default_factory=DateRange)


@dataclass
class SessionLogs:
    """All entries of one session, oldest first."""
    logs: list[LogEntry]
    session_summary: SessionLogSummary

    def to_dict(self) -> dict[str, Any]:
        return {
            "logs": [log.to_dict() for log in self.logs],
            "session_summary": asdict(self.session_summary),
        }


@dataclass
class SearchResult:
    logs: list[LogEntry]
    total_matches: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "logs": [log.to_dict() for log in self.logs],
            "total_matches": self.total_matches,
        }


@dataclass
class SessionSummary:
    """Derived view of one session, computed on demand."""
    session_id: str
    project_name: str
    last_activity: str
    log_count: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ProjectSummary:
    """Aggregate statistics for one project."""
    project_name: str
    total_logs: int
    session_count: int
    date_range: DateRange
    recent_activity: list[LogEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "project_name": self.project_name,
            "total_logs": self.total_logs,
            "session_count": self.session_count,
            "date_range": asdict(self.date_range),
            "recent_activity": [log.to_dict() for log in self.recent_activity],
        }

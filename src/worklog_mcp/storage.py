"""SQLite persistence for work log entries.

One table, ``work_logs``, append-only. Schema changes are applied as
numbered migrations recorded in ``schema_migrations``; each migration runs
in its own transaction together with the row recording its version, so a
failed migration leaves neither schema changes nor a version bump behind.

Default location: ~/.worklog/work_logs.db
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Generator, Optional, Sequence

from .errors import StorageError
from .models import (
    NARRATIVE_FIELDS,
    CreateLogResult,
    DateRange,
    LogEntry,
    LogFilters,
    LogPage,
    ProjectSummary,
    SearchResult,
    SessionLogs,
    SessionLogSummary,
)

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path.home() / ".worklog" / "work_logs.db"
DEFAULT_BUSY_TIMEOUT_MS = 5000
RECENT_ACTIVITY_LIMIT = 5


@dataclass(frozen=True)
class Migration:
    """A numbered schema change; statements run in one transaction."""
    version: int
    description: str
    statements: tuple[str, ...]


MIGRATIONS: tuple[Migration, ...] = (
    Migration(
        version=1,
        description="Initial schema",
        statements=(
            """
            CREATE TABLE work_logs (
                log_id TEXT PRIMARY KEY,
                timestamp TEXT NOT NULL,        -- 2026-01-17T09:30:00.000Z
                session_id TEXT NOT NULL,
                project_name TEXT NOT NULL,
                work_content TEXT NOT NULL,
                successes TEXT,
                failures TEXT,
                blockers TEXT,
                thoughts TEXT,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
            """,
            "CREATE INDEX idx_session_id ON work_logs(session_id)",
            "CREATE INDEX idx_project_name ON work_logs(project_name)",
            "CREATE INDEX idx_timestamp ON work_logs(timestamp DESC)",
            "CREATE INDEX idx_created_at ON work_logs(created_at)",
        ),
    ),
)


def _is_transient(exc: sqlite3.Error) -> bool:
    message = str(exc).lower()
    return "locked" in message or "busy" in message


class LogStore:
    """SQLite-backed store for work log entries."""

    def __init__(
        self,
        db_path: Path | str = DEFAULT_DB_PATH,
        busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
        migrations: Sequence[Migration] = MIGRATIONS,
    ):
        """Open (creating if needed) the database and apply pending migrations.

        Args:
            db_path: Database file, or ":memory:"
            busy_timeout_ms: How long a blocked writer waits for the lock
            migrations: Schema migrations, applied in ascending version order
        """
        self.db_path = db_path if str(db_path) == ":memory:" else Path(db_path).expanduser()
        self.busy_timeout_ms = busy_timeout_ms
        self.migrations = sorted(migrations, key=lambda m: m.version)
        self._connection: Optional[sqlite3.Connection] = None
        self._closed = False
        try:
            self.run_migrations()
        except StorageError:
            self.close()
            raise

    # ========== Connection management ==========

    def _get_connection(self, operation: str) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._closed:
            raise StorageError("Storage has been closed", operation, is_retryable=False)
        if self._connection is None:
            if isinstance(self.db_path, Path):
                try:
                    self.db_path.parent.mkdir(parents=True, exist_ok=True)
                except OSError as exc:
                    raise StorageError(
                        f"Failed to create database directory: {exc}", "connect"
                    ) from exc
            with self._storage_errors("connect"):
                # Autocommit mode: transactions are opened explicitly.
                conn = sqlite3.connect(
                    str(self.db_path),
                    timeout=self.busy_timeout_ms / 1000,
                    isolation_level=None,
                )
                conn.row_factory = sqlite3.Row
                conn.execute(f"PRAGMA busy_timeout = {int(self.busy_timeout_ms)}")
                try:
                    conn.execute("PRAGMA journal_mode = WAL")
                except sqlite3.OperationalError:
                    conn.execute("PRAGMA journal_mode = DELETE")
                conn.execute("PRAGMA synchronous = NORMAL")
                conn.execute("PRAGMA temp_store = MEMORY")
                self._connection = conn
        return self._connection

    @contextmanager
    def _storage_errors(self, operation: str) -> Generator[None, None, None]:
        """Translate sqlite3 errors into StorageError for ``operation``."""
        try:
            yield
        except sqlite3.IntegrityError as exc:
            logger.error("Constraint violation during %s: %s", operation, exc)
            raise StorageError(
                f"Failed to {operation}: {exc}", operation, is_retryable=False
            ) from exc
        except sqlite3.Error as exc:
            retryable = _is_transient(exc)
            if retryable:
                logger.warning("Transient storage failure during %s: %s", operation, exc)
            else:
                logger.error("Storage failure during %s: %s", operation, exc)
            raise StorageError(
                f"Failed to {operation}: {exc}", operation, is_retryable=retryable
            ) from exc

    def close(self) -> None:
        """Close the database connection. Safe to call more than once.

        SQLite checkpoints the WAL itself when the last connection closes.
        """
        if self._connection is not None:
            try:
                self._connection.execute("PRAGMA wal_checkpoint(PASSIVE)")
            except sqlite3.Error as exc:
                logger.debug("Ignoring error while closing %s: %s", self.db_path, exc)
            self._connection.close()
            self._connection = None
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    # ========== Schema migrations ==========

    def get_current_version(self) -> int:
        """Highest applied migration version (0 for a fresh database)."""
        conn = self._get_connection("get_current_version")
        with self._storage_errors("get_current_version"):
            row = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_migrations'"
            ).fetchone()
            if row is None:
                return 0
            row = conn.execute("SELECT MAX(version) FROM schema_migrations").fetchone()
            return row[0] or 0

    def run_migrations(self) -> int:
        """Apply every migration newer than the recorded version.

        Returns:
            Number of migrations applied
        """
        conn = self._get_connection("migrate")
        with self._storage_errors("migrate"):
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
                """
            )

        current = self.get_current_version()
        applied = 0
        for migration in self.migrations:
            if migration.version <= current:
                continue
            if self._apply_migration(conn, migration):
                applied += 1

        if applied:
            logger.info("Applied %d migrations to %s", applied, self.db_path)
        return applied

    def _apply_migration(self, conn: sqlite3.Connection, migration: Migration) -> bool:
        """Apply one migration unless another connection already has.

        The version is re-read under the write lock, so stores opening the
        same new file at once apply each migration exactly once.
        """
        with self._storage_errors(f"apply migration {migration.version}"):
            conn.execute("BEGIN IMMEDIATE")
            try:
                row = conn.execute("SELECT MAX(version) FROM schema_migrations").fetchone()
                if (row[0] or 0) >= migration.version:
                    conn.execute("ROLLBACK")
                    logger.debug("Migration %d already applied", migration.version)
                    return False
                logger.info("Applying migration %d: %s", migration.version, migration.description)
                for statement in migration.statements:
                    conn.execute(statement)
                conn.execute(
                    "INSERT INTO schema_migrations (version) VALUES (?)",
                    (migration.version,),
                )
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        return True

    # ========== Writes ==========

    def create(self, entry: LogEntry) -> CreateLogResult:
        """Insert exactly one entry.

        Raises:
            StorageError: Not retryable on constraint violation (duplicate
                log_id), retryable on lock contention.
        """
        conn = self._get_connection("create")
        with self._storage_errors("create"):
            conn.execute(
                """
                INSERT INTO work_logs (
                    log_id, timestamp, session_id, project_name, work_content,
                    successes, failures, blockers, thoughts
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.log_id,
                    entry.timestamp,
                    entry.session_id,
                    entry.project_name,
                    entry.work_content,
                    entry.successes,
                    entry.failures,
                    entry.blockers,
                    entry.thoughts,
                ),
            )
        return CreateLogResult(
            log_id=entry.log_id,
            session_id=entry.session_id,
            timestamp=entry.timestamp,
        )

    # ========== Queries ==========

    @staticmethod
    def _build_where(
        project_name: Optional[str] = None,
        session_id: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> tuple[str, list[Any]]:
        conditions = []
        params: list[Any] = []

        if project_name:
            conditions.append("project_name = ?")
            params.append(project_name)
        if session_id:
            conditions.append("session_id = ?")
            params.append(session_id)
        if start_date:
            conditions.append("timestamp >= ?")
            params.append(start_date)
        if end_date:
            conditions.append("timestamp <= ?")
            params.append(end_date)

        where_clause = ""
        if conditions:
            where_clause = "WHERE " + " AND ".join(conditions)
        return where_clause, params

    def get_logs(self, filters: LogFilters) -> LogPage:
        """Filtered, paginated entries, newest first.

        Ties on timestamp fall back to insertion order (newest first) so
        pages stay disjoint.
        """
        limit = 50 if filters.limit is None else filters.limit
        offset = filters.offset or 0
        where_clause, params = self._build_where(
            filters.project_name, filters.session_id, filters.start_date, filters.end_date
        )

        conn = self._get_connection("get_logs")
        with self._storage_errors("get_logs"):
            total_count = conn.execute(
                f"SELECT COUNT(*) FROM work_logs {where_clause}", params
            ).fetchone()[0]
            rows = conn.execute(
                f"""
                SELECT * FROM work_logs
                {where_clause}
                ORDER BY timestamp DESC, rowid DESC
                LIMIT ? OFFSET ?
                """,
                [*params, limit, offset],
            ).fetchall()

        logs = [LogEntry.from_row(row) for row in rows]
        return LogPage(
            logs=logs,
            total_count=total_count,
            has_more=offset + len(logs) < total_count,
        )

    def get_session_logs(self, session_id: str) -> SessionLogs:
        """All entries of a session, oldest first, with a summary."""
        conn = self._get_connection("get_session_logs")
        with self._storage_errors("get_session_logs"):
            rows = conn.execute(
                """
                SELECT * FROM work_logs
                WHERE session_id = ?
                ORDER BY timestamp ASC, rowid ASC
                """,
                (session_id,),
            ).fetchall()
            summary = conn.execute(
                """
                SELECT COUNT(*), MIN(timestamp), MAX(timestamp)
                FROM work_logs
                WHERE session_id = ?
                """,
                (session_id,),
            ).fetchone()

        return SessionLogs(
            logs=[LogEntry.from_row(row) for row in rows],
            session_summary=SessionLogSummary(
                session_id=session_id,
                total_logs=summary[0],
                date_range=DateRange(start=summary[1] or "", end=summary[2] or ""),
            ),
        )

    def search_logs(
        self,
        query: str,
        fields: Sequence[str] = NARRATIVE_FIELDS,
        limit: int = 50,
    ) -> SearchResult:
        """Substring search over narrative fields, newest first.

        Uses SQLite ``LIKE``: case-insensitive for ASCII letters, case-sensitive
        otherwise. ``%`` and ``_`` in the query match literally.
        """
        # Column names come from a fixed whitelist, never from the caller.
        columns = [f for f in fields if f in NARRATIVE_FIELDS]
        if not columns:
            raise StorageError(
                f"No searchable fields in {list(fields)}", "search_logs", is_retryable=False
            )

        escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        pattern = f"%{escaped}%"
        where_clause = " OR ".join(f"{column} LIKE ? ESCAPE '\\'" for column in columns)
        params = [pattern] * len(columns)

        conn = self._get_connection("search_logs")
        with self._storage_errors("search_logs"):
            total_matches = conn.execute(
                f"SELECT COUNT(*) FROM work_logs WHERE {where_clause}", params
            ).fetchone()[0]
            rows = conn.execute(
                f"""
                SELECT * FROM work_logs
                WHERE {where_clause}
                ORDER BY timestamp DESC, rowid DESC
                LIMIT ?
                """,
                [*params, limit],
            ).fetchall()

        return SearchResult(
            logs=[LogEntry.from_row(row) for row in rows],
            total_matches=total_matches,
        )

    def get_project_summary(
        self,
        project_name: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> ProjectSummary:
        """Entry count, distinct sessions, date range, and latest entries of a project."""
        where_clause, params = self._build_where(
            project_name=project_name, start_date=start_date, end_date=end_date
        )

        conn = self._get_connection("get_project_summary")
        with self._storage_errors("get_project_summary"):
            summary = conn.execute(
                f"""
                SELECT COUNT(*), COUNT(DISTINCT session_id), MIN(timestamp), MAX(timestamp)
                FROM work_logs
                {where_clause}
                """,
                params,
            ).fetchone()
            recent = conn.execute(
                f"""
                SELECT * FROM work_logs
                {where_clause}
                ORDER BY timestamp DESC, rowid DESC
                LIMIT ?
                """,
                [*params, RECENT_ACTIVITY_LIMIT],
            ).fetchall()

        return ProjectSummary(
            project_name=project_name,
            total_logs=summary[0],
            session_count=summary[1],
            date_range=DateRange(start=summary[2] or "", end=summary[3] or ""),
            recent_activity=[LogEntry.from_row(row) for row in recent],
        )

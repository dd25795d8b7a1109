"""Shared pytest fixtures for worklog-mcp tests."""

import sqlite3
from pathlib import Path

import pytest

from worklog_mcp.manager import LogManager
from worklog_mcp.models import LogEntry
from worklog_mcp.storage import LogStore


@pytest.fixture
def db_path(tmp_path):
    """Path of a not-yet-created database inside a temp directory."""
    return tmp_path / "data" / "work_logs.db"


@pytest.fixture
def store(db_path):
    """A migrated LogStore, closed after the test."""
    log_store = LogStore(db_path)
    yield log_store
    log_store.close()


@pytest.fixture
def manager(store):
    """LogManager over the test store."""
    return LogManager(store)


@pytest.fixture
def user_dir(tmp_path, monkeypatch):
    """Isolated user config directory; the real ~/.worklog is never touched."""
    directory = tmp_path / "user-config"
    monkeypatch.setattr("worklog_mcp.config.USER_CONFIG_DIR", directory)
    return directory


@pytest.fixture
def clean_env(monkeypatch, tmp_path, user_dir):
    """Run with no WORKLOG_* variables, an empty cwd, and an isolated user dir."""
    for name in ("WORKLOG_DB_PATH", "WORKLOG_DEFAULT_FORMAT", "WORKLOG_DEFAULT_LIMIT",
                 "WORKLOG_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    workdir = tmp_path / "cwd"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    return workdir


def make_entry(
    log_id: str,
    timestamp: str,
    session_id: str = "session-1",
    project_name: str = "demo",
    work_content: str = "Did some work",
    **optional,
) -> LogEntry:
    """Build a LogEntry with fixed id and timestamp for direct store inserts."""
    return LogEntry(
        log_id=log_id,
        timestamp=timestamp,
        session_id=session_id,
        project_name=project_name,
        work_content=work_content,
        **optional,
    )


def read_rows(path: Path, sql: str, params=()) -> list:
    """Query the database file directly, bypassing the store."""
    conn = sqlite3.connect(str(path))
    try:
        return conn.execute(sql, params).fetchall()
    finally:
        conn.close()

"""Tests for output formatters."""

import json

import pytest

from worklog_mcp.formatters import (
    JsonFormatter,
    MarkdownFormatter,
    TableFormatter,
    get_formatter,
    summarize_logs,
)

ROWS = [
    {
        "log_id": "id-2",
        "timestamp": "2026-01-18T10:00:00.000Z",
        "session_id": "s2",
        "project_name": "beta",
        "work_content": "Second entry",
        "successes": None,
        "failures": "flaky test",
        "blockers": None,
        "thoughts": None,
    },
    {
        "log_id": "id-1",
        "timestamp": "2026-01-17T09:30:00.000Z",
        "session_id": "s1",
        "project_name": "alpha",
        "work_content": "First entry",
        "successes": "it works",
        "failures": None,
        "blockers": None,
        "thoughts": "try caching",
    },
]

SESSIONS = [
    {"session_id": "s1", "project_name": "alpha", "last_activity": "2026-01-17T09:30:00.000Z",
     "log_count": 3},
]


class TestSummarizeLogs:
    """Tests for summarize_logs."""

    def test_summary(self):
        summary = summarize_logs(ROWS)
        assert summary["total_logs"] == 2
        assert summary["date_range"] == {
            "start": "2026-01-17T09:30:00.000Z",
            "end": "2026-01-18T10:00:00.000Z",
        }
        assert summary["projects"] == ["beta", "alpha"]
        assert summary["sessions"] == ["s2", "s1"]

    def test_empty(self):
        assert summarize_logs([])["total_logs"] == 0


class TestTableFormatter:
    """Tests for TableFormatter."""

    def test_log_table(self):
        output = TableFormatter().format(ROWS)
        assert "Work Logs Summary: 2 logs" in output
        assert "First entry" in output
        assert "2026-01-17" in output
        assert "\x1b[" not in output

    def test_long_content_truncated(self):
        row = dict(ROWS[0], work_content="x" * 200)
        output = TableFormatter().format([row])
        assert "x" * 200 not in output
        assert "..." in output

    @pytest.mark.parametrize("content", ["fixed items[/index] parsing", "use [bold] flag"])
    def test_brackets_shown_literally(self, content):
        row = dict(ROWS[0], work_content=content)
        output = TableFormatter().format([row])
        assert content in output

    def test_session_table(self):
        output = TableFormatter().format(SESSIONS)
        assert "Sessions: 1" in output
        assert "alpha" in output

    def test_empty(self):
        assert TableFormatter().format([]) == "No logs to display.\n"


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def test_structure(self):
        data = json.loads(JsonFormatter().format(ROWS))
        assert data["logs"] == ROWS
        assert data["summary"]["total_logs"] == 2
        assert data["generated_at"].endswith("Z")

    def test_empty(self):
        data = json.loads(JsonFormatter().format([]))
        assert data["logs"] == []


class TestMarkdownFormatter:
    """Tests for MarkdownFormatter."""

    def test_document(self):
        output = MarkdownFormatter().format(ROWS)
        assert output.startswith("# Work Logs")
        assert "**Total Logs:** 2" in output
        assert "## Log 1" in output
        assert "**Failures:**\nflaky test" in output
        assert "**Thoughts:**\ntry caching" in output
        assert "**Blockers:**" not in output

    def test_sessions(self):
        output = MarkdownFormatter().format(SESSIONS)
        assert "**Logs:** 3" in output

    def test_empty(self):
        assert MarkdownFormatter().format([]) == "# Work Logs\n\nNo logs to display.\n"


class TestGetFormatter:
    """Tests for get_formatter."""

    @pytest.mark.parametrize(
        "name,cls",
        [
            ("table", TableFormatter),
            ("json", JsonFormatter),
            ("markdown", MarkdownFormatter),
            ("md", MarkdownFormatter),
            ("JSON", JsonFormatter),
        ],
    )
    def test_known(self, name, cls):
        assert isinstance(get_formatter(name), cls)

    def test_unknown(self):
        with pytest.raises(ValueError, match="Supported formats: table, json, markdown"):
            get_formatter("xml")

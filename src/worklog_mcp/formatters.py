"""Renderers for log listings: table, JSON, and markdown."""

from __future__ import annotations

import json
from io import StringIO
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .models import format_timestamp, utc_now

SUPPORTED_FORMATS = ("table", "json", "markdown")


def summarize_logs(rows: list[dict[str, Any]]) -> dict[str, Any]:
    """Entry count, time span, and distinct projects/sessions of a listing."""
    if not rows:
        return {
            "total_logs": 0,
            "date_range": {"start": "", "end": ""},
            "projects": [],
            "sessions": [],
        }

    timestamps = sorted(row.get("timestamp", "") for row in rows)
    projects = list(dict.fromkeys(row.get("project_name", "") for row in rows))
    sessions = list(dict.fromkeys(row.get("session_id", "") for row in rows))
    return {
        "total_logs": len(rows),
        "date_range": {"start": timestamps[0], "end": timestamps[-1]},
        "projects": projects,
        "sessions": sessions,
    }


def _truncate(text: str, width: int) -> str:
    return text if len(text) <= width else text[: width - 3] + "..."


def render_text(renderable: Any, width: int = 120) -> str:
    """Render a rich renderable to plain text without colour codes.

    Cell text taken from stored entries must be passed through
    ``rich.markup.escape`` first; brackets are otherwise read as markup.
    """
    buffer = StringIO()
    console = Console(file=buffer, width=width, color_system=None, force_terminal=False)
    console.print(renderable)
    return buffer.getvalue()


class TableFormatter:
    """Fixed-width table for terminals."""

    def format(self, rows: list[dict[str, Any]]) -> str:
        if not rows:
            return "No logs to display.\n"

        if "work_content" not in rows[0]:
            return self._format_sessions(rows)

        summary = summarize_logs(rows)
        table = Table(title=f"Work Logs Summary: {summary['total_logs']} logs")
        table.add_column("#", justify="right")
        table.add_column("Timestamp", no_wrap=True)
        table.add_column("Project")
        table.add_column("Session")
        table.add_column("Work Content")

        for index, row in enumerate(rows, start=1):
            table.add_row(
                str(index),
                row.get("timestamp", "")[:10],
                escape(_truncate(row.get("project_name", ""), 15)),
                escape(_truncate(row.get("session_id", ""), 16)),
                escape(_truncate(row.get("work_content", ""), 44)),
            )
        return render_text(table)

    def _format_sessions(self, rows: list[dict[str, Any]]) -> str:
        table = Table(title=f"Sessions: {len(rows)}")
        table.add_column("Session")
        table.add_column("Project")
        table.add_column("Last Activity", no_wrap=True)
        table.add_column("Logs", justify="right")
        for row in rows:
            table.add_row(
                escape(row.get("session_id", "")),
                escape(row.get("project_name", "")),
                row.get("last_activity", ""),
                str(row.get("log_count", "")),
            )
        return render_text(table)


class JsonFormatter:
    """Rows plus a summary, as indented JSON."""

    def format(self, rows: list[dict[str, Any]]) -> str:
        output = {
            "logs": rows,
            "summary": summarize_logs(rows),
            "generated_at": format_timestamp(utc_now()),
        }
        return json.dumps(output, indent=2)


class MarkdownFormatter:
    """Markdown document with a summary and one section per entry."""

    def format(self, rows: list[dict[str, Any]]) -> str:
        if not rows:
            return "# Work Logs\n\nNo logs to display.\n"

        summary = summarize_logs(rows)
        lines = [
            "# Work Logs",
            "",
            "## Summary",
            "",
            f"**Total Logs:** {summary['total_logs']}",
            f"**Projects:** {', '.join(summary['projects'])}",
            f"**Sessions:** {len(summary['sessions'])}",
        ]
        if summary["date_range"]["start"]:
            lines.append(
                f"**Date Range:** {summary['date_range']['start'][:10]} - {summary['date_range']['end'][:10]}"
            )
        lines.extend(["", "---", ""])

        for index, row in enumerate(rows, start=1):
            lines.extend([
                f"## Log {index}",
                "",
                f"**Project:** {row.get('project_name', '')}",
                f"**Session:** {row.get('session_id', '')}",
                f"**Timestamp:** {row.get('timestamp', row.get('last_activity', ''))}",
                "",
            ])
            if "work_content" in row:
                lines.extend(["**Work Content:**", row["work_content"], ""])
            for name in ("successes", "failures", "blockers", "thoughts"):
                if row.get(name):
                    lines.extend([f"**{name.capitalize()}:**", row[name], ""])
            if "log_count" in row:
                lines.extend([f"**Logs:** {row['log_count']}", ""])
            lines.extend(["---", ""])

        return "\n".join(lines)


def get_formatter(name: str) -> TableFormatter | JsonFormatter | MarkdownFormatter:
    """Return the formatter for ``name`` (table, json, markdown or md).

    Raises:
        ValueError: For any other name
    """
    key = name.lower()
    if key == "table":
        return TableFormatter()
    if key == "json":
        return JsonFormatter()
    if key in ("markdown", "md"):
        return MarkdownFormatter()
    raise ValueError(
        f"Unsupported format: {name}. Supported formats: {', '.join(SUPPORTED_FORMATS)}"
    )

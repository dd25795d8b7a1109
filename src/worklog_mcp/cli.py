"""Command-line interface for browsing the work log.

Usage:
    worklog list [-p PROJECT] [-s SESSION] [-l LIMIT] [-o OFFSET] [-f FORMAT]
    worklog show SESSION_ID
    worklog search QUERY [--fields work_content thoughts]
    worklog summary [--period week|month|year]
    worklog session list | session latest PROJECT
    worklog config show | get KEY | set KEY VALUE | reset
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Optional

from rich.markup import escape
from rich.table import Table

from .config import WorklogConfig, coerce_value, load_config, reset_user_config, set_user_value
from .errors import WorklogError
from .formatters import get_formatter, render_text
from .manager import SCAN_WINDOW, LogManager
from .models import (
    NARRATIVE_FIELDS,
    OPTIONAL_NARRATIVE_FIELDS,
    LogEntry,
    LogFilters,
    format_timestamp,
    utc_now,
)
from .server import configure_logging, open_manager

FORMAT_CHOICES = ("default", "table", "json", "markdown", "md")
PERIODS = ("week", "month", "year")
CONTENT_PREVIEW = 100


class CliError(Exception):
    """Raised for command-line usage problems; printed as ``Error: ...``."""
    pass


# ========== Helpers ==========

def normalize_date(value: Optional[str], end_of_day: bool = False) -> Optional[str]:
    """Accept ``YYYY-MM-DD`` as shorthand for the start (or end) of that UTC day."""
    if value is None or "T" in value:
        return value
    try:
        day = datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        return value
    if end_of_day:
        day = day + timedelta(days=1) - timedelta(milliseconds=1)
    return format_timestamp(day)


def _months_ago(now: datetime, months: int) -> datetime:
    month_index = now.year * 12 + (now.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    for day in (now.day, 30, 29, 28):
        try:
            return now.replace(year=year, month=month, day=day)
        except ValueError:
            continue
    raise ValueError(f"Cannot step back {months} months from {now}")


def calculate_date_range(period: str, now: Optional[datetime] = None) -> tuple[str, str]:
    """Canonical (start, end) timestamps covering the last week, month or year."""
    now = now or utc_now()
    if period == "month":
        start = _months_ago(now, 1)
    elif period == "year":
        start = _months_ago(now, 12)
    else:
        start = now - timedelta(days=7)
    return format_timestamp(start), format_timestamp(now)


def generate_log_summary(logs: list[LogEntry]) -> dict[str, Any]:
    """Totals, per-project counts, and the share of entries with each outcome."""
    projects: dict[str, int] = {}
    sessions = set()
    successes = failures = blockers = 0

    for log in logs:
        projects[log.project_name] = projects.get(log.project_name, 0) + 1
        sessions.add(log.session_id)
        successes += 1 if log.successes else 0
        failures += 1 if log.failures else 0
        blockers += 1 if log.blockers else 0

    def rate(count: int) -> int:
        return round(count / len(logs) * 100) if logs else 0

    return {
        "overview": {
            "total_logs": len(logs),
            "total_projects": len(projects),
            "total_sessions": len(sessions),
        },
        "projects": projects,
        "analysis": {
            "with_successes": successes,
            "with_failures": failures,
            "with_blockers": blockers,
            "success_rate": rate(successes),
            "failure_rate": rate(failures),
            "blocker_rate": rate(blockers),
        },
    }


def format_log_entry(log: LogEntry, index: int) -> str:
    content = log.work_content
    if len(content) > CONTENT_PREVIEW:
        content = content[:CONTENT_PREVIEW] + "..."

    lines = [
        f"{index}. [{log.timestamp}] {log.project_name}",
        f"   work_content: {content}",
    ]
    for name in OPTIONAL_NARRATIVE_FIELDS:
        value = getattr(log, name)
        if value:
            lines.append(f"   {name}: {value}")
    lines.append(f"   session_id: {log.session_id}")
    return "\n".join(lines) + "\n"


def _resolve_format(args: argparse.Namespace, config: WorklogConfig) -> str:
    return args.format or config.display.default_format


def _formatted(fmt: str, rows: list[dict[str, Any]]) -> Optional[str]:
    """Render rows with a named formatter, or None for the plain default listing."""
    if fmt == "default":
        return None
    return get_formatter(fmt).format(rows)


# ========== Commands ==========

def cmd_list(manager: LogManager, args: argparse.Namespace, config: WorklogConfig) -> None:
    limit = config.display.default_limit if args.limit is None else args.limit
    filters = LogFilters(
        limit=limit,
        offset=args.offset,
        project_name=args.project,
        session_id=args.session,
        start_date=normalize_date(args.start_date),
        end_date=normalize_date(args.end_date, end_of_day=True),
    )
    page = manager.get_logs(filters)

    rendered = _formatted(_resolve_format(args, config), [log.to_dict() for log in page.logs])
    if rendered is not None:
        print(rendered)
        return

    print(f"Work Logs ({page.total_count} total)")
    print()
    if not page.logs:
        print("No logs found.")
        return
    for index, log in enumerate(page.logs, start=1):
        print(format_log_entry(log, index))
    if page.has_more:
        print(f"... and {page.total_count - args.offset - len(page.logs)} more logs")
        print(f"Use --offset {args.offset + limit} to see more")


def cmd_show(manager: LogManager, args: argparse.Namespace, config: WorklogConfig) -> None:
    result = manager.get_session_logs(args.session_id.strip())

    rendered = _formatted(_resolve_format(args, config), [log.to_dict() for log in result.logs])
    if rendered is not None:
        print(rendered)
        return

    summary = result.session_summary
    print(f"Session: {summary.session_id}")
    print(f"Total logs: {summary.total_logs}")
    if summary.total_logs:
        print(f"Date range: {summary.date_range.start} - {summary.date_range.end}")
    print()
    if not result.logs:
        print("No logs found for this session.")
        return
    for index, log in enumerate(result.logs, start=1):
        print(format_log_entry(log, index))


def cmd_search(manager: LogManager, args: argparse.Namespace, config: WorklogConfig) -> None:
    limit = config.display.default_limit if args.limit is None else args.limit
    result = manager.search_logs(args.query, args.fields, limit)

    rendered = _formatted(_resolve_format(args, config), [log.to_dict() for log in result.logs])
    if rendered is not None:
        print(rendered)
        return

    print(f'Search Results for "{args.query}" ({result.total_matches} matches)')
    print()
    if not result.logs:
        print("No matching logs found.")
        return
    for index, log in enumerate(result.logs, start=1):
        print(format_log_entry(log, index))
    if result.total_matches > len(result.logs):
        print(f"... and {result.total_matches - len(result.logs)} more matches")
        print("Use --limit to see more results")


def cmd_summary(manager: LogManager, args: argparse.Namespace, config: WorklogConfig) -> None:
    start, end = calculate_date_range(args.period)
    page = manager.get_logs(
        LogFilters(limit=SCAN_WINDOW, project_name=args.project, start_date=start, end_date=end)
    )
    if not page.logs:
        print("No logs found for summary")
        return

    summary = generate_log_summary(page.logs)
    if args.format == "json":
        print(json.dumps(summary, indent=2))
        return

    overview = summary["overview"]
    analysis = summary["analysis"]
    if args.format == "table":
        table = Table(title="Work Log Summary")
        table.add_column("Metric")
        table.add_column("Value", justify="right")
        table.add_row("Total Logs", str(overview["total_logs"]))
        table.add_row("Projects", str(overview["total_projects"]))
        table.add_row("Sessions", str(overview["total_sessions"]))
        for project, count in summary["projects"].items():
            table.add_row(f"  {escape(project)}", str(count))
        table.add_row("Success Rate", f"{analysis['success_rate']}%")
        table.add_row("Failure Rate", f"{analysis['failure_rate']}%")
        table.add_row("Blocker Rate", f"{analysis['blocker_rate']}%")
        print(render_text(table))
        return

    print("Work Log Summary")
    print("================")
    print(f"Total Logs: {overview['total_logs']}")
    print(f"Projects: {overview['total_projects']}")
    print(f"Sessions: {overview['total_sessions']}")
    print()
    print("Project Breakdown:")
    for project, count in summary["projects"].items():
        print(f"  {project}: {count} logs")
    print()
    print("Activity Analysis:")
    print(f"  Logs with successes: {analysis['with_successes']} ({analysis['success_rate']}%)")
    print(f"  Logs with failures: {analysis['with_failures']} ({analysis['failure_rate']}%)")
    print(f"  Logs with blockers: {analysis['with_blockers']} ({analysis['blocker_rate']}%)")


def cmd_session_list(manager: LogManager, args: argparse.Namespace, config: WorklogConfig) -> None:
    sessions = manager.get_recent_sessions(limit=args.limit, project_name=args.project)

    rendered = _formatted(_resolve_format(args, config), [s.to_dict() for s in sessions])
    if rendered is not None:
        print(rendered)
        return

    print("Recent Sessions:")
    print()
    if not sessions:
        print("No recent sessions found.")
        return
    for index, session in enumerate(sessions, start=1):
        print(f"{index}. Session: {session.session_id}")
        print(f"   project_name: {session.project_name}")
        print(f"   last_activity: {session.last_activity}")
        print(f"   log_count: {session.log_count}")
        print()


def cmd_session_latest(manager: LogManager, args: argparse.Namespace, config: WorklogConfig) -> None:
    session = manager.get_latest_session(args.project)
    if session is None:
        print(f"No sessions found for project: {args.project}")
        return

    rendered = _formatted(_resolve_format(args, config), [session.to_dict()])
    if rendered is not None:
        print(rendered)
        return

    print(f"Latest session for {args.project}:")
    print()
    print(f"Session: {session.session_id}")
    print(f"project_name: {session.project_name}")
    print(f"last_activity: {session.last_activity}")
    print(f"log_count: {session.log_count}")


def _flatten(data: dict[str, Any], prefix: str = "") -> list[tuple[str, Any]]:
    items = []
    for key, value in data.items():
        name = f"{prefix}{key}"
        if isinstance(value, dict):
            items.extend(_flatten(value, f"{name}."))
        else:
            items.append((name, value))
    return items


def cmd_config(args: argparse.Namespace, config: WorklogConfig) -> None:
    """Config subcommands work on files only and never open the database."""
    action = args.config_command

    if action == "show":
        if args.format == "table":
            table = Table(title="Configuration")
            table.add_column("Key")
            table.add_column("Value")
            for key, value in _flatten(config.to_dict()):
                table.add_row(key, escape(str(value)))
            print(render_text(table))
        else:
            print(json.dumps(config.to_dict(), indent=2))

    elif action == "get":
        try:
            value = config.get_value(args.key)
        except KeyError:
            raise CliError(f"Unknown configuration key: {args.key}")
        print(json.dumps(value, indent=2) if isinstance(value, dict) else value)

    elif action == "set":
        try:
            path = set_user_value(args.key, coerce_value(args.value))
        except ValueError as e:
            raise CliError(str(e))
        print(f"Set {args.key} = {args.value} in {path}")

    elif action == "reset":
        if reset_user_config():
            print("Configuration reset to defaults")
        else:
            print("No user configuration to reset")

    else:
        raise CliError("Missing config command (show, get, set, reset)")


# ========== Argument parsing ==========

def _add_format(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--format",
        "-f",
        help=f"Output format: {', '.join(FORMAT_CHOICES)} (default: display.default_format)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="worklog",
        description="Browse and search the work log",
    )
    parser.add_argument("--db-path", type=Path, help="SQLite database file")
    parser.add_argument("--config", "-c", type=Path, help="Extra config file (.toml or .json)")
    parser.add_argument("--log-level", help="Logging level for stderr output")

    subparsers = parser.add_subparsers(dest="command")

    list_parser = subparsers.add_parser("list", help="List work logs, newest first")
    list_parser.add_argument("--project", "-p", help="Filter by project name")
    list_parser.add_argument("--session", "-s", help="Filter by session ID")
    list_parser.add_argument("--limit", "-l", type=int, help="Number of logs to show")
    list_parser.add_argument("--offset", "-o", type=int, default=0, help="Number of logs to skip")
    list_parser.add_argument("--start-date", help="Start date (YYYY-MM-DD or ISO timestamp)")
    list_parser.add_argument("--end-date", help="End date (YYYY-MM-DD or ISO timestamp)")
    _add_format(list_parser)

    show_parser = subparsers.add_parser("show", help="Show all logs of one session")
    show_parser.add_argument("session_id", help="Session ID")
    _add_format(show_parser)

    search_parser = subparsers.add_parser("search", help="Search log content")
    search_parser.add_argument("query", help="Text to find")
    search_parser.add_argument(
        "--fields", nargs="+", choices=NARRATIVE_FIELDS, help="Fields to search (default: all)"
    )
    search_parser.add_argument("--limit", "-l", type=int, help="Number of results to show")
    _add_format(search_parser)

    summary_parser = subparsers.add_parser("summary", help="Summary statistics")
    summary_parser.add_argument("--project", "-p", help="Filter by project name")
    summary_parser.add_argument("--period", choices=PERIODS, default="week", help="Time period")
    summary_parser.add_argument(
        "--format", "-f", choices=("text", "table", "json"), default="text", help="Output format"
    )

    session_parser = subparsers.add_parser("session", help="Session views")
    session_sub = session_parser.add_subparsers(dest="session_command")
    session_list = session_sub.add_parser("list", help="Recent sessions")
    session_list.add_argument("--project", "-p", help="Filter by project name")
    session_list.add_argument("--limit", "-l", type=int, default=10, help="Number of sessions")
    _add_format(session_list)
    session_latest = session_sub.add_parser("latest", help="Latest session of a project")
    session_latest.add_argument("project", help="Project name")
    _add_format(session_latest)

    config_parser = subparsers.add_parser("config", help="Show or change configuration")
    config_sub = config_parser.add_subparsers(dest="config_command")
    config_show = config_sub.add_parser("show", help="Show resolved configuration")
    config_show.add_argument("--format", "-f", choices=("json", "table"), default="json")
    config_get = config_sub.add_parser("get", help="Show one setting")
    config_get.add_argument("key", help="Dotted key, e.g. display.default_limit")
    config_set = config_sub.add_parser("set", help="Store one setting in the user config")
    config_set.add_argument("key", help="Dotted key, e.g. display.default_limit")
    config_set.add_argument("value", help="New value")
    config_sub.add_parser("reset", help="Remove the user config file")

    return parser


def _dispatch(manager: LogManager, args: argparse.Namespace, config: WorklogConfig) -> None:
    if args.command == "list":
        cmd_list(manager, args, config)
    elif args.command == "show":
        cmd_show(manager, args, config)
    elif args.command == "search":
        cmd_search(manager, args, config)
    elif args.command == "summary":
        cmd_summary(manager, args, config)
    elif args.command == "session" and args.session_command == "list":
        cmd_session_list(manager, args, config)
    elif args.command == "session" and args.session_command == "latest":
        cmd_session_latest(manager, args, config)
    else:
        raise CliError("Missing session command (list, latest)")


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    try:
        config = load_config(config_path=args.config)
    except Exception as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    if args.db_path is not None:
        config.database.path = str(args.db_path)
    configure_logging(args.log_level or config.output.effective_log_level())

    try:
        if args.command == "config":
            cmd_config(args, config)
            return

        fmt = getattr(args, "format", None)
        if args.command != "summary" and fmt not in (None, "default"):
            get_formatter(fmt)

        manager = open_manager(config)
        try:
            _dispatch(manager, args, config)
        finally:
            manager.close()

    except (WorklogError, CliError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":  # pragma: no cover
    main()

"""MCP tool definitions wrapping the log manager."""

from __future__ import annotations

import logging
from typing import Any, Optional

from .errors import WorklogError, format_error_response
from .manager import LogManager
from .models import NARRATIVE_FIELDS
from .session import generate_readable_session_id
from .tool_requests import (
    CreateLogRequest,
    GetLogsRequest,
    GetSessionLogsRequest,
    SearchLogsRequest,
    parse_request,
)

logger = logging.getLogger(__name__)


def make_tools() -> dict[str, dict]:
    """Create MCP tool definitions for the work log.

    Returns:
        Dict mapping tool names to their definitions.
    """

    tools = {}

    # ========== create_log ==========
    tools["create_log"] = {
        "name": "create_log",
        "description": (
            "Create a new work log entry. Provide session_id to continue a session, "
            "or new_session=true to start one (exactly one of the two)."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "project_name": {
                    "type": "string",
                    "description": "Name of the project being worked on",
                },
                "work_content": {
                    "type": "string",
                    "description": "Description of work performed",
                },
                "session_id": {
                    "type": "string",
                    "description": "Existing session to continue (cannot be used with new_session)",
                },
                "new_session": {
                    "type": "boolean",
                    "description": "Start a new session (cannot be used with session_id)",
                },
                "successes": {
                    "type": "string",
                    "description": "Successful outcomes of the work",
                },
                "failures": {
                    "type": "string",
                    "description": "Failed attempts or issues encountered",
                },
                "blockers": {
                    "type": "string",
                    "description": "Blockers or obstacles faced",
                },
                "thoughts": {
                    "type": "string",
                    "description": "Thoughts, insights, or reflections",
                },
            },
            "required": ["project_name", "work_content"],
        },
    }

    # ========== get_logs ==========
    tools["get_logs"] = {
        "name": "get_logs",
        "description": "Get logs with optional filtering and pagination, newest first.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "project_name": {
                    "type": "string",
                    "description": "Filter by project name",
                },
                "session_id": {
                    "type": "string",
                    "description": "Filter by session ID",
                },
                "start_date": {
                    "type": "string",
                    "description": "Logs at or after this instant (e.g. 2026-01-17T00:00:00.000Z)",
                },
                "end_date": {
                    "type": "string",
                    "description": "Logs at or before this instant (e.g. 2026-01-17T23:59:59.999Z)",
                },
                "limit": {
                    "type": "integer",
                    "description": "Maximum number of logs to return (default: 50, max: 1000)",
                },
                "offset": {
                    "type": "integer",
                    "description": "Number of logs to skip (default: 0)",
                },
            },
        },
    }

    # ========== get_session_logs ==========
    tools["get_session_logs"] = {
        "name": "get_session_logs",
        "description": "Get all logs for a specific session, oldest first.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "session_id": {
                    "type": "string",
                    "description": "Session ID to get logs for",
                },
            },
            "required": ["session_id"],
        },
    }

    # ========== search_logs ==========
    tools["search_logs"] = {
        "name": "search_logs",
        "description": "Search logs by substring across narrative fields, newest first.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Text to find",
                },
                "fields": {
                    "type": "array",
                    "items": {
                        "type": "string",
                        "enum": list(NARRATIVE_FIELDS),
                    },
                    "description": "Fields to search in (default: all narrative fields)",
                },
                "limit": {
                    "type": "integer",
                    "description": "Maximum number of results to return (default: 50, max: 1000)",
                },
            },
            "required": ["query"],
        },
    }

    return tools


def _check_session_history(manager: LogManager, session_id: str, project_name: str) -> None:
    """Warn (never fail) when a continued session looks unfamiliar."""
    try:
        history = manager.get_session_logs(session_id)
    except WorklogError as e:
        logger.warning("Could not validate session %s: %s", session_id, e)
        return

    if not history.logs:
        logger.warning("Session %s has no existing logs", session_id)
    elif not any(log.project_name == project_name.strip() for log in history.logs):
        logger.warning("Session %s has no logs for project %s", session_id, project_name)


def _create_log(manager: LogManager, request: CreateLogRequest) -> dict[str, Any]:
    if request.new_session:
        session_id = generate_readable_session_id(request.project_name.strip())
        message = "New session created"
        logger.info("New session created: %s", session_id)
    else:
        session_id = request.session_id
        message = "Session continued"
        _check_session_history(manager, session_id, request.project_name)
        logger.info("Continuing session: %s", session_id)

    result = manager.create_log(request.to_input(session_id))
    return {
        "success": True,
        **result.to_dict(),
        "message": message,
    }


async def execute_tool(
    manager: LogManager,
    name: str,
    arguments: Optional[dict[str, Any]],
) -> dict[str, Any]:
    """Execute a tool and return a JSON-serializable result.

    Failures never raise: they come back as the error envelope from
    ``format_error_response``.
    """
    try:
        request = parse_request(name, arguments)

        if isinstance(request, CreateLogRequest):
            return _create_log(manager, request)

        elif isinstance(request, GetLogsRequest):
            page = manager.get_logs(request.to_filters())
            return {"success": True, **page.to_dict()}

        elif isinstance(request, GetSessionLogsRequest):
            session = manager.get_session_logs(request.session_id)
            return {"success": True, **session.to_dict()}

        elif isinstance(request, SearchLogsRequest):
            results = manager.search_logs(request.query, request.fields, request.limit)
            return {"success": True, **results.to_dict()}

        raise TypeError(f"Unhandled request type: {type(request).__name__}")

    except WorklogError as e:
        logger.info("Tool %s rejected: %s", name, e)
        return format_error_response(e)

    except Exception as e:
        logger.exception("Unexpected error in tool %s", name)
        return format_error_response(e)

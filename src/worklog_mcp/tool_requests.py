"""Typed tool requests.

Tool arguments arrive as untyped JSON objects. ``parse_request`` checks them
once, per tool, and returns one of the request dataclasses below; nothing
past this point handles raw argument dicts.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Union

from .errors import ValidationError
from .models import CreateLogInput, LogFilters, OPTIONAL_NARRATIVE_FIELDS
from .validation import (
    coerce_int,
    validate_limit,
    validate_offset,
    validate_optional_fields,
    validate_project_name,
    validate_search_fields,
    validate_search_query_param,
    validate_session_id,
    validate_string_length,
    validate_timestamp,
    WORK_CONTENT_MAX,
)


@dataclass(frozen=True)
class CreateLogRequest:
    project_name: str
    work_content: str
    session_id: Optional[str] = None
    new_session: bool = False
    successes: Optional[str] = None
    failures: Optional[str] = None
    blockers: Optional[str] = None
    thoughts: Optional[str] = None

    def to_input(self, session_id: str) -> CreateLogInput:
        return CreateLogInput(
            project_name=self.project_name,
            work_content=self.work_content,
            session_id=session_id,
            successes=self.successes,
            failures=self.failures,
            blockers=self.blockers,
            thoughts=self.thoughts,
        )


@dataclass(frozen=True)
class GetLogsRequest:
    project_name: Optional[str] = None
    session_id: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    limit: Optional[int] = None
    offset: Optional[int] = None

    def to_filters(self) -> LogFilters:
        return LogFilters(
            limit=self.limit,
            offset=self.offset,
            project_name=self.project_name,
            session_id=self.session_id,
            start_date=self.start_date,
            end_date=self.end_date,
        )


@dataclass(frozen=True)
class GetSessionLogsRequest:
    session_id: str


@dataclass(frozen=True)
class SearchLogsRequest:
    query: str
    fields: Optional[tuple[str, ...]] = None
    limit: Optional[int] = None


ToolRequest = Union[CreateLogRequest, GetLogsRequest, GetSessionLogsRequest, SearchLogsRequest]


def _parse_create_log(args: dict[str, Any]) -> CreateLogRequest:
    project_name = args.get("project_name")
    if not project_name or not isinstance(project_name, str):
        raise ValidationError(
            "project_name is required and must be a string", "project_name", project_name
        )
    work_content = args.get("work_content")
    if not work_content or not isinstance(work_content, str):
        raise ValidationError(
            "work_content is required and must be a string", "work_content", work_content
        )

    session_id = args.get("session_id")
    has_session_id = isinstance(session_id, str) and bool(session_id)
    new_session = args.get("new_session") is True

    if not has_session_id and not new_session:
        raise ValidationError(
            "REQUIRED: Either provide session_id for continuing existing session, "
            "or set new_session=true to create a new session",
            "session_id",
            session_id,
        )
    if has_session_id and new_session:
        raise ValidationError(
            "CONFLICT: Cannot specify both session_id and new_session=true",
            "session_id",
            session_id,
        )

    validate_project_name(project_name)
    validate_string_length(work_content, "work_content", 1, WORK_CONTENT_MAX)
    if has_session_id:
        session_id = validate_session_id(session_id)
    validate_optional_fields(args)

    return CreateLogRequest(
        project_name=project_name,
        work_content=work_content,
        session_id=session_id if has_session_id else None,
        new_session=new_session,
        **{name: args.get(name) for name in OPTIONAL_NARRATIVE_FIELDS},
    )


def _parse_get_logs(args: dict[str, Any]) -> GetLogsRequest:
    limit = coerce_int(args.get("limit"), "limit")
    offset = coerce_int(args.get("offset"), "offset")
    if limit is not None:
        validate_limit(limit)
    if offset is not None:
        validate_offset(offset)

    project_name = args.get("project_name")
    if project_name is not None:
        project_name = validate_project_name(project_name)
    session_id = args.get("session_id")
    if session_id is not None:
        session_id = validate_session_id(session_id)
    start_date = args.get("start_date")
    if start_date is not None:
        validate_timestamp(start_date, "start_date")
    end_date = args.get("end_date")
    if end_date is not None:
        validate_timestamp(end_date, "end_date")

    return GetLogsRequest(
        project_name=project_name,
        session_id=session_id,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )


def _parse_get_session_logs(args: dict[str, Any]) -> GetSessionLogsRequest:
    session_id = args.get("session_id")
    if not session_id or not isinstance(session_id, str):
        raise ValidationError(
            "session_id is required and must be a string", "session_id", session_id
        )
    return GetSessionLogsRequest(session_id=validate_session_id(session_id))


def _parse_search_logs(args: dict[str, Any]) -> SearchLogsRequest:
    query = validate_search_query_param(args.get("query"))

    fields = args.get("fields")
    if isinstance(fields, str):
        fields = [fields]
    if fields is not None:
        fields = tuple(validate_search_fields(fields))

    limit = coerce_int(args.get("limit"), "limit")
    if limit is not None:
        validate_limit(limit)

    return SearchLogsRequest(query=query, fields=fields, limit=limit)


_PARSERS = {
    "create_log": _parse_create_log,
    "get_logs": _parse_get_logs,
    "get_session_logs": _parse_get_session_logs,
    "search_logs": _parse_search_logs,
}


def parse_request(tool_name: str, arguments: Optional[dict[str, Any]]) -> ToolRequest:
    """Validate raw tool arguments and convert them to a typed request.

    Raises:
        ValidationError: Unknown tool, or arguments that do not fit its request type.
    """
    parser = _PARSERS.get(tool_name)
    if parser is None:
        raise ValidationError(f"Unknown tool: {tool_name}", "tool_name", tool_name)
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        raise ValidationError("Tool arguments must be an object", "arguments", arguments)
    return parser(arguments)

"""MCP server for the issuefinder issue tracker.

Exposes the query engine and the issue store as MCP tools so that agents
can list, inspect, create and update issues natively.

Usage:
    issuefinder-mcp                        # Auto-discover .issuefinder/
    issuefinder-mcp --project /path/to/dir # Explicit project root
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from datetime import date
from pathlib import Path
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from issuefinder.core import (
    DB_FILENAME,
    ISSUEFINDER_DIR_NAME,
    SUMMARY_FILENAME,
    IssueDB,
    find_issuefinder_root,
    get_default_sort,
    get_first_day_of_week,
    read_config,
)
from issuefinder.query import VALID_DUE_DATE_BUCKETS, VALID_SORT_KEYS, InvalidQueryError, SortKey
from issuefinder.summary import write_summary
from issuefinder.types.api import ErrorResponse, IssueListResponse, IssueWithChangedFields, SlimIssue
from issuefinder.types.core import ProjectConfig
from issuefinder.validation import parse_date, parse_filter_params, parse_sort_key, sanitize_actor

# Hard cap on list_issues results to keep MCP responses within token limits.
_MAX_LIST_RESULTS = 50

server = Server("issuefinder")
db: IssueDB | None = None
_issuefinder_dir: Path | None = None
_config: ProjectConfig = {}
_logger: logging.Logger | None = None


def _get_db() -> IssueDB:
    if db is None:
        msg = "Database not initialized"
        raise RuntimeError(msg)
    return db


def _first_day_of_week() -> int:
    return get_first_day_of_week(_config)


def _refresh_summary() -> None:
    """Regenerate context.md after mutations (best-effort, never fatal)."""
    if _issuefinder_dir is None:
        return
    try:
        write_summary(_get_db(), _issuefinder_dir / SUMMARY_FILENAME, first_day_of_week=_first_day_of_week())
    except OSError:
        (_logger or logging.getLogger(__name__)).warning("Failed to write context.md", exc_info=True)


def _text(content: Any) -> list[TextContent]:
    if isinstance(content, str):
        return [TextContent(type="text", text=content)]
    return [TextContent(type="text", text=json.dumps(content, indent=2, default=str))]


def _error(message: str, code: str) -> list[TextContent]:
    data: ErrorResponse = {"error": message, "code": code}
    return _text(data)


def _invalid_query(exc: InvalidQueryError) -> list[TextContent]:
    data: ErrorResponse = {"error": str(exc), "code": "invalid_query", "param": exc.param, "value": str(exc.value)}
    return _text(data)


def _validate_actor(value: Any) -> tuple[str, list[TextContent] | None]:
    """Sanitize actor, returning (cleaned, None) or ("", error_response)."""
    cleaned, err = sanitize_actor(value)
    if err:
        return ("", _error(err, "validation_error"))
    return (cleaned, None)


def _validate_int_range(value: Any, name: str, min_val: int) -> list[TextContent] | None:
    """Return a validation error if *value* is given and is not an int >= *min_val*."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        return _error(f"{name} must be an integer", "validation_error")
    if value < min_val:
        return _error(f"{name} must be >= {min_val}", "validation_error")
    return None


def _slim(issue_dict: Any) -> SlimIssue:
    return SlimIssue(id=issue_dict["id"], title=issue_dict["title"], due_date=issue_dict["due_date"])


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------

_FILTER_PROPERTIES: dict[str, Any] = {
    "assignee_id": {
        "type": "string",
        "description": "Username, 'none' (no assignee) or 'any' (no constraint)",
    },
    "label_name": {
        "type": "array",
        "items": {"type": "string"},
        "description": "Labels the issue must carry (all of them)",
    },
    "due_date": {
        "type": "string",
        "enum": sorted(VALID_DUE_DATE_BUCKETS),
        "description": "Due-date bucket relative to 'today'",
    },
    "author_username": {"type": "string", "description": "Only issues opened by this user"},
    "milestone_title": {"type": "string", "description": "Milestone title, or 'none' for issues without one"},
    "confidential": {"type": "boolean", "description": "Only confidential (true) or public (false) issues"},
}


@server.list_tools()  # type: ignore[untyped-decorator,no-untyped-call]
async def list_tools() -> list[Tool]:
    return [
        Tool(
            name="list_issues",
            description=(
                "Filter then sort issues. Filters combine with AND. "
                "Due-date buckets are evaluated against 'today' (defaults to the server's local date)."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    **_FILTER_PROPERTIES,
                    "sort": {
                        "type": "string",
                        "enum": sorted(VALID_SORT_KEYS),
                        "description": "Sort key (default from project config, normally created_date)",
                    },
                    "today": {"type": "string", "description": "Reference date YYYY-MM-DD for due-date buckets"},
                    "ids_only": {
                        "type": "boolean",
                        "default": False,
                        "description": "Return only id, title and due_date per issue",
                    },
                    "limit": {
                        "type": "integer",
                        "default": _MAX_LIST_RESULTS,
                        "minimum": 1,
                        "description": f"Max results (capped at {_MAX_LIST_RESULTS})",
                    },
                    "offset": {"type": "integer", "default": 0, "minimum": 0, "description": "Skip first N results"},
                },
            },
        ),
        Tool(
            name="get_issue",
            description="Get full details of an issue. Set include_events=true for its change history.",
            inputSchema={
                "type": "object",
                "properties": {
                    "id": {"type": "string", "description": "Issue ID"},
                    "include_events": {"type": "boolean", "default": False, "description": "Include recent events"},
                },
                "required": ["id"],
            },
        ),
        Tool(
            name="create_issue",
            description="Create a new issue.",
            inputSchema={
                "type": "object",
                "properties": {
                    "title": {"type": "string", "description": "Issue title"},
                    "description": {"type": "string", "default": "", "description": "Issue description"},
                    "assignees": {"type": "array", "items": {"type": "string"}, "description": "Usernames to assign"},
                    "labels": {"type": "array", "items": {"type": "string"}, "description": "Label names"},
                    "milestone": {"type": "string", "description": "Milestone id or title"},
                    "due_date": {"type": "string", "description": "Due date YYYY-MM-DD"},
                    "confidential": {"type": "boolean", "default": False},
                    "actor": {"type": "string", "default": "mcp", "description": "Agent/user identity for audit trail"},
                },
                "required": ["title"],
            },
        ),
        Tool(
            name="update_issue",
            description=(
                "Update an issue. Pass assignees=[] to unassign everyone, "
                'milestone="" to clear the milestone and due_date="" to clear the due date.'
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "id": {"type": "string", "description": "Issue ID"},
                    "title": {"type": "string"},
                    "description": {"type": "string"},
                    "assignees": {"type": "array", "items": {"type": "string"}, "description": "Replacement assignees"},
                    "milestone": {"type": "string", "description": "Milestone id or title ('' clears)"},
                    "due_date": {"type": "string", "description": "Due date YYYY-MM-DD ('' clears)"},
                    "confidential": {"type": "boolean"},
                    "actor": {"type": "string", "default": "mcp", "description": "Agent/user identity for audit trail"},
                },
                "required": ["id"],
            },
        ),
        Tool(
            name="create_milestone",
            description="Create a milestone that issues can be attached to.",
            inputSchema={
                "type": "object",
                "properties": {
                    "title": {"type": "string", "description": "Unique milestone title"},
                    "due_date": {"type": "string", "description": "Due date YYYY-MM-DD"},
                },
                "required": ["title"],
            },
        ),
    ]


@server.call_tool()  # type: ignore[untyped-decorator]
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    tracker = _get_db()
    t0 = time.monotonic()

    try:
        result = await _dispatch(name, arguments, tracker)
    except Exception:
        if _logger:
            _logger.error("tool_error", extra={"tool": name, "args_data": arguments}, exc_info=True)
        raise
    else:
        duration_ms = round((time.monotonic() - t0) * 1000, 1)
        if _logger:
            _logger.info("tool_call", extra={"tool": name, "args_data": arguments, "duration_ms": duration_ms})
        return result
    finally:
        # Successful mutations commit explicitly; roll back whatever a failed one left behind.
        if tracker.conn.in_transaction:
            tracker.conn.rollback()


async def _dispatch(name: str, arguments: dict[str, Any], tracker: IssueDB) -> list[TextContent]:
    match name:
        case "list_issues":
            return _list_issues(arguments, tracker)

        case "get_issue":
            try:
                issue = tracker.get_issue(arguments["id"])
            except KeyError:
                return _error(f"Issue not found: {arguments['id']}", "not_found")
            data: dict[str, Any] = dict(issue.to_dict())
            if arguments.get("include_events"):
                data["events"] = tracker.get_issue_events(issue.id, limit=20)
            return _text(data)

        case "create_issue":
            actor, actor_err = _validate_actor(arguments.get("actor", "mcp"))
            if actor_err:
                return actor_err
            try:
                issue = tracker.create_issue(
                    arguments["title"],
                    author=actor,
                    assignees=arguments.get("assignees"),
                    labels=arguments.get("labels"),
                    milestone_id=arguments.get("milestone"),
                    due_date=arguments.get("due_date"),
                    description=arguments.get("description", ""),
                    confidential=arguments.get("confidential", False),
                    actor=actor,
                )
            except (ValueError, TypeError) as e:
                return _error(str(e), "validation_error")
            _refresh_summary()
            return _text(issue.to_dict())

        case "update_issue":
            actor, actor_err = _validate_actor(arguments.get("actor", "mcp"))
            if actor_err:
                return actor_err
            try:
                before = tracker.get_issue(arguments["id"]).to_dict()
                issue = tracker.update_issue(
                    arguments["id"],
                    title=arguments.get("title"),
                    description=arguments.get("description"),
                    assignees=arguments.get("assignees"),
                    milestone_id=arguments.get("milestone"),
                    due_date=arguments.get("due_date"),
                    confidential=arguments.get("confidential"),
                    actor=actor,
                )
            except KeyError:
                return _error(f"Issue not found: {arguments['id']}", "not_found")
            except (ValueError, TypeError) as e:
                return _error(str(e), "validation_error")
            after = issue.to_dict()
            changed = [k for k, v in after.items() if k != "updated_at" and before.get(k) != v]
            result = IssueWithChangedFields(**after, changed_fields=changed)
            _refresh_summary()
            return _text(result)

        case "create_milestone":
            try:
                milestone = tracker.create_milestone(arguments["title"], due_date=arguments.get("due_date"))
            except ValueError as e:
                return _error(str(e), "validation_error")
            _refresh_summary()
            return _text(milestone.to_dict())

        case _:
            return _error(f"Unknown tool: {name}", "unknown_tool")


def _list_issues(arguments: dict[str, Any], tracker: IssueDB) -> list[TextContent]:
    for param in ("limit", "offset"):
        err = _validate_int_range(arguments.get(param), param, 1 if param == "limit" else 0)
        if err:
            return err
    try:
        filters = parse_filter_params(arguments)
        sort: SortKey = parse_sort_key(arguments["sort"]) if arguments.get("sort") else get_default_sort(_config)
    except InvalidQueryError as e:
        return _invalid_query(e)
    try:
        today = parse_date(arguments["today"], "today") if arguments.get("today") else date.today()
    except ValueError as e:
        return _error(str(e), "validation_error")

    effective_limit = min(arguments.get("limit") or _MAX_LIST_RESULTS, _MAX_LIST_RESULTS)
    offset = arguments.get("offset") or 0

    # Overfetch by 1 to detect whether more results exist
    issues = tracker.list_issues(
        filters,
        sort,
        today=today,
        first_day_of_week=_first_day_of_week(),
        limit=effective_limit + 1,
        offset=offset,
    )
    has_more = len(issues) > effective_limit
    if has_more:
        issues = issues[:effective_limit]
    if _logger:
        _logger.debug("list_issues", extra={"tool": "list_issues", "result_count": len(issues)})

    dicts = [i.to_dict() for i in issues]
    response: IssueListResponse = {
        "issues": [_slim(d) for d in dicts] if arguments.get("ids_only") else dicts,  # type: ignore[typeddict-item]
        "sort": sort,
        "today": today.isoformat(),
        "limit": effective_limit,
        "offset": offset,
        "has_more": has_more,
    }
    return _text(response)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def _run(project_path: Path | None) -> None:
    global db, _issuefinder_dir, _config, _logger

    if project_path:
        issuefinder_dir = project_path / ISSUEFINDER_DIR_NAME
        if not issuefinder_dir.is_dir():
            print(f"Error: {issuefinder_dir} not found. Run 'issuefinder init' first.", file=sys.stderr)
            sys.exit(1)
    else:
        try:
            issuefinder_dir = find_issuefinder_root()
        except FileNotFoundError:
            print(f"Error: No {ISSUEFINDER_DIR_NAME}/ found. Run 'issuefinder init' first.", file=sys.stderr)
            sys.exit(1)

    _issuefinder_dir = issuefinder_dir
    _config = read_config(issuefinder_dir)
    db = IssueDB(issuefinder_dir / DB_FILENAME, prefix=_config.get("prefix", "issuefinder"))
    db.initialize()

    from issuefinder.logging import setup_logging

    _logger = setup_logging(issuefinder_dir)
    _logger.info("mcp_server_start", extra={"tool": "server", "args_data": {"project": str(issuefinder_dir.parent)}})

    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def main() -> None:
    import asyncio

    parser = argparse.ArgumentParser(description="issuefinder MCP server")
    parser.add_argument("--project", type=Path, default=None, help="Project root (auto-discovers .issuefinder/ if omitted)")
    args = parser.parse_args()

    asyncio.run(_run(args.project))


if __name__ == "__main__":
    main()

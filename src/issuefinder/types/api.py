"""TypedDicts for MCP tool handler responses."""

from __future__ import annotations

from typing import NotRequired, TypedDict

from issuefinder.types.core import IssueDict


class SlimIssue(TypedDict):
    """Reduced issue shape for ``ids_only`` style listings."""

    id: str
    title: str
    due_date: str | None


class ErrorResponse(TypedDict):
    """Standard error envelope returned by MCP error paths."""

    error: str
    code: str
    param: NotRequired[str]
    value: NotRequired[str]


class IssueListResponse(TypedDict):
    issues: list[IssueDict]
    sort: str
    today: str
    limit: int
    offset: int
    has_more: bool


class IssueWithChangedFields(IssueDict):
    """IssueDict plus the names of the attributes an update actually changed."""

    changed_fields: list[str]

"""Foundational TypedDicts for dataclass to_dict() returns."""

from __future__ import annotations

from typing import NewType, TypedDict

ISOTimestamp = NewType("ISOTimestamp", str)
ISODate = NewType("ISODate", str)


class ProjectConfig(TypedDict, total=False):
    """Shape of .issuefinder/config.json."""

    prefix: str
    version: int
    first_day_of_week: int
    default_sort: str


class MilestoneDict(TypedDict):
    id: str
    title: str
    due_date: ISODate | None


class IssueDict(TypedDict):
    id: str
    title: str
    author: str
    assignees: list[str]
    milestone: MilestoneDict | None
    due_date: ISODate | None
    labels: list[str]
    created_at: ISOTimestamp
    updated_at: ISOTimestamp
    confidential: bool
    description: str
    comment_count: int

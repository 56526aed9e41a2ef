"""TypedDicts for db_events.py and db_meta.py return types."""

from __future__ import annotations

from typing import TypedDict

from issuefinder.types.core import ISOTimestamp


class EventRecord(TypedDict):
    """Row from the events table (SELECT * FROM events).

    Returned by ``get_issue_events()``.  ``get_recent_events()`` joins on
    ``issues`` and adds ``issue_title``, so it returns ``EventRecordWithTitle``.
    """

    id: int
    issue_id: str
    event_type: str
    actor: str
    old_value: str | None
    new_value: str | None
    created_at: ISOTimestamp


class EventRecordWithTitle(EventRecord):
    issue_title: str


class CommentRecord(TypedDict):
    """Row from the comments table returned by ``get_comments()``."""

    id: int
    author: str
    text: str
    created_at: str


class AwardEmojiRecord(TypedDict):
    """Row from the award_emoji table returned by ``get_award_emoji()``."""

    id: int
    name: str
    awarded_by: str
    created_at: str

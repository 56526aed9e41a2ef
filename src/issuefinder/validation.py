"""Shared validation functions for all entry points.

Pure functions with no MCP or Click dependencies. Loosely-typed query
parameters (strings, as they arrive from a URL, the CLI or an MCP call)
are turned into a typed ``FilterSpec``/``SortKey`` here; anything the
query engine would not understand is rejected with ``InvalidQueryError``.
"""

from __future__ import annotations

import unicodedata
from collections.abc import Mapping
from datetime import date
from typing import Any

from issuefinder.query import (
    ASSIGNEE_ANY,
    ASSIGNEE_NONE,
    MILESTONE_ANY,
    MILESTONE_NONE,
    RESERVED_NAMES,
    VALID_DUE_DATE_BUCKETS,
    DueDateBucket,
    FilterSpec,
    InvalidQueryError,
    SortKey,
    validate_sort_key,
)

_MAX_ACTOR_LENGTH = 128
_BOOL_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_BOOL_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


def sanitize_actor(value: Any) -> tuple[str, str | None]:
    """Validate and clean an actor name.

    Returns (cleaned_actor, None) on success or ("", error_message) on failure.
    Strips whitespace, then checks: non-empty, max length, no control/format chars.
    """
    if not isinstance(value, str):
        return ("", "actor must be a string")
    # Check for control/format chars before stripping: reject "\nbad" rather
    # than silently absorbing the newline via strip().
    for ch in value:
        cat = unicodedata.category(ch)
        if cat.startswith("C"):  # Cc (control) and Cf (format)
            return ("", f"actor must not contain control characters (found U+{ord(ch):04X})")
    cleaned = value.strip()
    if not cleaned:
        return ("", "actor must not be empty")
    if len(cleaned) > _MAX_ACTOR_LENGTH:
        return ("", f"actor must be at most {_MAX_ACTOR_LENGTH} characters")
    return (cleaned, None)


def validate_username(value: Any, name: str = "username") -> str:
    """Return a cleaned username or raise ValueError.

    Same rules as actors, plus the filter keywords ``none``/``any`` are reserved.
    """
    cleaned, err = sanitize_actor(value)
    if err:
        raise ValueError(err.replace("actor", name, 1))
    if cleaned.casefold() in RESERVED_NAMES:
        msg = f"{name} '{cleaned}' is reserved"
        raise ValueError(msg)
    return cleaned


def parse_date(value: str, name: str = "due_date") -> date:
    """Parse an ISO ``YYYY-MM-DD`` string, raising ValueError with the field name."""
    try:
        return date.fromisoformat(value.strip())
    except (ValueError, AttributeError):
        msg = f"Invalid {name} '{value}': expected YYYY-MM-DD"
        raise ValueError(msg) from None


def coerce_optional_date(value: str | date | None, name: str = "due_date") -> date | None:
    """``None``/``""`` -> None, a date passes through, a string is parsed."""
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    return parse_date(value, name)


# ---------------------------------------------------------------------------
# Query parameter parsing
# ---------------------------------------------------------------------------


def _keyword(raw: str) -> str:
    return raw.strip().casefold().replace("-", "_")


def _as_str(params: Mapping[str, Any], name: str) -> str | None:
    raw = params.get(name)
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise InvalidQueryError(name, raw, "expected a string")
    return raw


def parse_sort_key(value: Any) -> SortKey:
    """Validate a sort parameter. ``recently-updated`` and ``Due_Date`` are accepted spellings."""
    if not isinstance(value, str):
        raise InvalidQueryError("sort", value, "expected a string")
    return validate_sort_key(_keyword(value))


def parse_due_date_bucket(value: Any) -> DueDateBucket:
    if not isinstance(value, str) or _keyword(value) not in VALID_DUE_DATE_BUCKETS:
        raise InvalidQueryError("due_date", value, f"expected one of {sorted(VALID_DUE_DATE_BUCKETS)}")
    return _keyword(value)  # type: ignore[return-value]


def parse_bool_value(raw: Any, name: str) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        value = raw.strip().lower()
        if value in _BOOL_TRUE_VALUES:
            return True
        if value in _BOOL_FALSE_VALUES:
            return False
    raise InvalidQueryError(name, raw, "must be one of true/false, 1/0, yes/no, on/off")


def _parse_assignee(raw: str) -> str:
    keyword = _keyword(raw)
    if keyword == ASSIGNEE_NONE:
        return ASSIGNEE_NONE
    if keyword == ASSIGNEE_ANY:
        return ASSIGNEE_ANY
    cleaned, err = sanitize_actor(raw)
    if err:
        raise InvalidQueryError("assignee", raw, err.replace("actor", "assignee", 1))
    return cleaned


def _parse_labels(params: Mapping[str, Any]) -> frozenset[str]:
    labels: set[str] = set()
    for name in ("label_name", "label_names", "labels"):
        raw = params.get(name)
        if raw is None:
            continue
        values = raw.split(",") if isinstance(raw, str) else raw
        if not isinstance(values, list | tuple | set | frozenset):
            raise InvalidQueryError(name, raw, "expected a label name or a list of label names")
        for value in values:
            if not isinstance(value, str):
                raise InvalidQueryError(name, raw, "label names must be strings")
            labels.update(part.strip() for part in value.split(",") if part.strip())
    return frozenset(labels)


def parse_filter_params(params: Mapping[str, Any]) -> FilterSpec:
    """Build a FilterSpec from query-string style parameters.

    Recognized keys: ``assignee_id``/``assignee``, ``label_name``/``label_names``/``labels``,
    ``due_date``, ``author``/``author_username``, ``milestone``/``milestone_title``,
    ``confidential``. Other keys (pagination, sort) are ignored here.
    Empty strings mean "not set", the way an empty form field would.
    """
    assignee_raw = _as_str(params, "assignee_id") or _as_str(params, "assignee")
    due_raw = _as_str(params, "due_date")
    author_raw = _as_str(params, "author") or _as_str(params, "author_username")
    milestone_raw = _as_str(params, "milestone") or _as_str(params, "milestone_title")
    confidential_raw = params.get("confidential")

    milestone: str | None = None
    if milestone_raw and milestone_raw.strip():
        milestone = MILESTONE_NONE if _keyword(milestone_raw) == MILESTONE_NONE else milestone_raw.strip()
        if _keyword(milestone_raw) == MILESTONE_ANY:
            raise InvalidQueryError("milestone", milestone_raw, "use a milestone title or 'none'")

    author: str | None = None
    if author_raw and author_raw.strip():
        cleaned, err = sanitize_actor(author_raw)
        if err:
            raise InvalidQueryError("author", author_raw, err.replace("actor", "author", 1))
        author = cleaned

    return FilterSpec(
        assignee=_parse_assignee(assignee_raw) if assignee_raw and assignee_raw.strip() else None,
        labels=_parse_labels(params),
        due_date=parse_due_date_bucket(due_raw) if due_raw and due_raw.strip() else None,
        author=author,
        milestone=milestone,
        confidential=None if confidential_raw in (None, "") else parse_bool_value(confidential_raw, "confidential"),
    )

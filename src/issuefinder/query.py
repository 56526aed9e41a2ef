"""Issue query engine: filter then sort over an in-memory issue snapshot.

Pure functions only: no SQLite, no click, no MCP, and never the system clock.
Callers pass ``today`` explicitly so due-date buckets are deterministic.

    query(issues, spec, key, today=...) == sort_issues(filter_issues(issues, spec, today=...), key)
"""

from __future__ import annotations

import calendar
import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import TYPE_CHECKING, Any, Literal, get_args

if TYPE_CHECKING:
    from issuefinder.core import Issue

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constrained-string Literal types
# ---------------------------------------------------------------------------

SortKey = Literal["created_date", "recently_updated", "due_date", "due_date_later", "milestone"]
DueDateBucket = Literal["none", "any", "this_week", "this_month", "overdue"]

VALID_SORT_KEYS: frozenset[str] = frozenset(get_args(SortKey))
VALID_DUE_DATE_BUCKETS: frozenset[str] = frozenset(get_args(DueDateBucket))

# Reserved filter keywords. Usernames and milestone titles may not use them.
ASSIGNEE_NONE = "none"
ASSIGNEE_ANY = "any"
MILESTONE_NONE = "none"
MILESTONE_ANY = "any"
RESERVED_NAMES: frozenset[str] = frozenset({"none", "any"})

MONDAY = 0
SUNDAY = 6


class InvalidQueryError(ValueError):
    """Raised for an unknown sort key, filter bucket, or malformed filter value."""

    def __init__(self, param: str, value: object, reason: str = "") -> None:
        self.param = param
        self.value = value
        detail = f": {reason}" if reason else ""
        super().__init__(f"Invalid value for {param}: {value!r}{detail}")


# ---------------------------------------------------------------------------
# FilterSpec
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FilterSpec:
    """Predicate constraints applied before sorting. All fields optional.

    ``assignee`` is a username, ``ASSIGNEE_NONE`` (unassigned only) or
    ``ASSIGNEE_ANY``/``None`` (no constraint). ``milestone`` is a milestone
    title or ``MILESTONE_NONE``. ``labels`` must all be present on an issue.
    """

    assignee: str | None = None
    labels: frozenset[str] = field(default_factory=frozenset)
    due_date: DueDateBucket | None = None
    author: str | None = None
    milestone: str | None = None
    confidential: bool | None = None

    def __post_init__(self) -> None:
        if isinstance(self.labels, str):
            raise InvalidQueryError("labels", self.labels, "expected a collection of label names")
        if not isinstance(self.labels, frozenset):
            object.__setattr__(self, "labels", frozenset(self.labels))
        if self.due_date is not None and self.due_date not in VALID_DUE_DATE_BUCKETS:
            raise InvalidQueryError("due_date", self.due_date, f"expected one of {sorted(VALID_DUE_DATE_BUCKETS)}")
        if self.milestone is not None and self.milestone.strip().casefold() == MILESTONE_ANY:
            raise InvalidQueryError("milestone", self.milestone, "use a milestone title or 'none'")
        if self.confidential is not None and not isinstance(self.confidential, bool):
            raise InvalidQueryError("confidential", self.confidential, "expected a boolean")

    @property
    def is_empty(self) -> bool:
        return (
            self.assignee in (None, ASSIGNEE_ANY)
            and not self.labels
            and self.due_date is None
            and self.author is None
            and self.milestone is None
            and self.confidential is None
        )


# ---------------------------------------------------------------------------
# Calendar helpers
# ---------------------------------------------------------------------------


def week_bounds(today: date, first_day_of_week: int = MONDAY) -> tuple[date, date]:
    """Return the inclusive (start, end) of the week containing *today*."""
    if not (0 <= first_day_of_week <= 6):
        raise InvalidQueryError("first_day_of_week", first_day_of_week, "expected 0 (Monday) to 6 (Sunday)")
    start = today - timedelta(days=(today.weekday() - first_day_of_week) % 7)
    return start, start + timedelta(days=6)


def month_bounds(today: date) -> tuple[date, date]:
    """Return the inclusive (first, last) day of *today*'s month."""
    last_day = calendar.monthrange(today.year, today.month)[1]
    return today.replace(day=1), today.replace(day=last_day)


# ---------------------------------------------------------------------------
# Filter stage
# ---------------------------------------------------------------------------


def _due_date_predicate(bucket: DueDateBucket, today: date, first_day_of_week: int) -> Callable[[Issue], bool]:
    if bucket == "none":
        return lambda issue: issue.due_date is None
    if bucket == "any":
        return lambda issue: issue.due_date is not None
    if bucket == "overdue":
        return lambda issue: issue.due_date is not None and issue.due_date < today
    if bucket == "this_week":
        start, end = week_bounds(today, first_day_of_week)
    else:
        start, end = month_bounds(today)
    return lambda issue: issue.due_date is not None and start <= issue.due_date <= end


def _build_predicates(spec: FilterSpec, today: date, first_day_of_week: int) -> list[Callable[[Issue], bool]]:
    predicates: list[Callable[[Issue], bool]] = []

    assignee = spec.assignee
    if assignee == ASSIGNEE_NONE:
        predicates.append(lambda issue: not issue.assignees)
    elif assignee is not None and assignee != ASSIGNEE_ANY:
        predicates.append(lambda issue: assignee in issue.assignees)

    if spec.labels:
        wanted = spec.labels
        predicates.append(lambda issue: wanted <= issue.labels)

    if spec.due_date is not None:
        predicates.append(_due_date_predicate(spec.due_date, today, first_day_of_week))

    if spec.author is not None:
        author = spec.author
        predicates.append(lambda issue: issue.author == author)

    if spec.milestone == MILESTONE_NONE:
        predicates.append(lambda issue: issue.milestone is None)
    elif spec.milestone is not None:
        title = spec.milestone
        predicates.append(lambda issue: issue.milestone is not None and issue.milestone.title == title)

    if spec.confidential is not None:
        confidential = spec.confidential
        predicates.append(lambda issue: issue.confidential == confidential)

    return predicates


def filter_issues(
    issues: Iterable[Issue],
    spec: FilterSpec | None = None,
    *,
    today: date,
    first_day_of_week: int = MONDAY,
) -> list[Issue]:
    """Return the issues matching every constraint in *spec*, in input order."""
    if spec is None:
        spec = FilterSpec()
    if not isinstance(spec, FilterSpec):
        raise InvalidQueryError("filter", spec, "expected a FilterSpec")
    if not (0 <= first_day_of_week <= 6):
        raise InvalidQueryError("first_day_of_week", first_day_of_week, "expected 0 (Monday) to 6 (Sunday)")
    if spec.is_empty:
        return list(issues)
    predicates = _build_predicates(spec, today, first_day_of_week)
    return [issue for issue in issues if all(p(issue) for p in predicates)]


# ---------------------------------------------------------------------------
# Sort stage
# ---------------------------------------------------------------------------


def _milestone_due(issue: Issue) -> date | None:
    return issue.milestone.due_date if issue.milestone is not None else None


# sort key -> (attribute getter, descending)
_SORTS: dict[str, tuple[Callable[[Issue], Any], bool]] = {
    "created_date": (lambda issue: issue.created_at, True),
    "recently_updated": (lambda issue: issue.updated_at, True),
    "due_date": (lambda issue: issue.due_date, False),
    # TODO: switch to descending order if product confirms "later" means latest-due-first.
    "due_date_later": (lambda issue: issue.due_date, False),
    "milestone": (_milestone_due, False),
}


def validate_sort_key(key: object) -> SortKey:
    """Return *key* unchanged if it names a known ordering, else raise InvalidQueryError."""
    if not isinstance(key, str) or key not in VALID_SORT_KEYS:
        raise InvalidQueryError("sort", key, f"expected one of {sorted(VALID_SORT_KEYS)}")
    return key  # type: ignore[return-value]


def sort_issues(issues: Iterable[Issue], key: SortKey) -> list[Issue]:
    """Return a new, stably sorted list. Missing values always sort last."""
    getter, descending = _SORTS[validate_sort_key(key)]
    present: list[Issue] = []
    missing: list[Issue] = []
    for issue in issues:
        (missing if getter(issue) is None else present).append(issue)
    # list.sort stays stable with reverse=True, so ties keep their input order
    present.sort(key=getter, reverse=descending)
    return present + missing


# ---------------------------------------------------------------------------
# Combined query
# ---------------------------------------------------------------------------


def query(
    issues: Sequence[Issue],
    spec: FilterSpec | None,
    key: SortKey,
    *,
    today: date,
    first_day_of_week: int = MONDAY,
) -> list[Issue]:
    """Filter *issues* by *spec*, then order the survivors by *key*."""
    validate_sort_key(key)
    matched = filter_issues(issues, spec, today=today, first_day_of_week=first_day_of_week)
    logger.debug("query matched %d of %d issues (sort=%s)", len(matched), len(issues), key)
    return sort_issues(matched, key)


def query_ids(
    issues: Sequence[Issue],
    spec: FilterSpec | None,
    key: SortKey,
    *,
    today: date,
    first_day_of_week: int = MONDAY,
) -> list[str]:
    """Same as :func:`query` but returns issue ids only."""
    return [issue.id for issue in query(issues, spec, key, today=today, first_day_of_week=first_day_of_week)]

"""Tests for the query engine: filter stage, sort stage, and their composition."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, date, datetime, timedelta

import pytest

from issuefinder.core import Issue, Milestone
from issuefinder.query import (
    ASSIGNEE_ANY,
    ASSIGNEE_NONE,
    MILESTONE_NONE,
    SUNDAY,
    VALID_SORT_KEYS,
    FilterSpec,
    InvalidQueryError,
    filter_issues,
    month_bounds,
    query,
    query_ids,
    sort_issues,
    week_bounds,
)

TODAY = date(2013, 12, 9)  # a Monday

MakeIssue = Callable[..., Issue]


def _ids(issues: list[Issue]) -> list[str]:
    return [i.id for i in issues]


class TestFilterSpec:
    def test_defaults_are_empty(self) -> None:
        spec = FilterSpec()
        assert spec.is_empty
        assert spec.labels == frozenset()

    def test_assignee_any_counts_as_empty(self) -> None:
        assert FilterSpec(assignee=ASSIGNEE_ANY).is_empty

    def test_labels_coerced_to_frozenset(self) -> None:
        spec = FilterSpec(labels=["bug", "ui"])  # type: ignore[arg-type]
        assert spec.labels == frozenset({"bug", "ui"})
        assert not spec.is_empty

    def test_bare_string_labels_rejected(self) -> None:
        with pytest.raises(InvalidQueryError) as exc_info:
            FilterSpec(labels="bug")  # type: ignore[arg-type]
        assert exc_info.value.param == "labels"

    def test_unknown_bucket_rejected(self) -> None:
        with pytest.raises(InvalidQueryError, match="due_date"):
            FilterSpec(due_date="next_week")  # type: ignore[arg-type]

    def test_milestone_any_rejected(self) -> None:
        with pytest.raises(InvalidQueryError):
            FilterSpec(milestone="any")

    @pytest.mark.parametrize("title", ["ANY", " Any "])
    def test_milestone_any_rejected_any_case(self, title: str) -> None:
        with pytest.raises(InvalidQueryError) as exc_info:
            FilterSpec(milestone=title)
        assert exc_info.value.param == "milestone"

    def test_non_bool_confidential_rejected(self) -> None:
        with pytest.raises(InvalidQueryError):
            FilterSpec(confidential="yes")  # type: ignore[arg-type]

    def test_invalid_query_error_is_value_error(self) -> None:
        err = InvalidQueryError("sort", "bogus", "unknown")
        assert isinstance(err, ValueError)
        assert err.param == "sort"
        assert err.value == "bogus"
        assert "bogus" in str(err)


class TestCalendarBounds:
    def test_week_starting_monday(self) -> None:
        assert week_bounds(TODAY) == (date(2013, 12, 9), date(2013, 12, 15))

    def test_week_midweek(self) -> None:
        assert week_bounds(date(2013, 12, 12)) == (date(2013, 12, 9), date(2013, 12, 15))

    def test_week_starting_sunday(self) -> None:
        assert week_bounds(TODAY, SUNDAY) == (date(2013, 12, 8), date(2013, 12, 14))

    def test_week_invalid_first_day(self) -> None:
        with pytest.raises(InvalidQueryError):
            week_bounds(TODAY, 7)

    def test_month(self) -> None:
        assert month_bounds(TODAY) == (date(2013, 12, 1), date(2013, 12, 31))

    def test_month_february_leap_year(self) -> None:
        assert month_bounds(date(2024, 2, 10)) == (date(2024, 2, 1), date(2024, 2, 29))


class TestFilterStage:
    def test_unset_spec_returns_input_unchanged(self, make_issue: MakeIssue) -> None:
        issues = [make_issue("c"), make_issue("a"), make_issue("b")]
        assert filter_issues(issues, FilterSpec(), today=TODAY) == issues
        assert filter_issues(issues, None, today=TODAY) == issues

    def test_empty_input(self) -> None:
        assert filter_issues([], FilterSpec(due_date="overdue"), today=TODAY) == []

    def test_assignee_none_is_exactly_unassigned(self, make_issue: MakeIssue) -> None:
        issues = [
            make_issue("solo", assignees={"alice"}),
            make_issue("nobody"),
            make_issue("pair", assignees={"alice", "bob"}),
            make_issue("nobody2", assignees=set()),
        ]
        result = filter_issues(issues, FilterSpec(assignee=ASSIGNEE_NONE), today=TODAY)
        assert _ids(result) == ["nobody", "nobody2"]

    def test_assignee_specific_user(self, make_issue: MakeIssue) -> None:
        issues = [
            make_issue("solo", assignees={"alice"}),
            make_issue("nobody"),
            make_issue("pair", assignees={"alice", "bob"}),
            make_issue("other", assignees={"bob"}),
        ]
        result = filter_issues(issues, FilterSpec(assignee="alice"), today=TODAY)
        assert _ids(result) == ["solo", "pair"]

    def test_assignee_any_is_no_constraint(self, make_issue: MakeIssue) -> None:
        issues = [make_issue("a", assignees={"alice"}), make_issue("b")]
        assert filter_issues(issues, FilterSpec(assignee=ASSIGNEE_ANY), today=TODAY) == issues

    def test_labels_must_all_match(self, make_issue: MakeIssue) -> None:
        issues = [
            make_issue("both", labels={"bug", "ui"}),
            make_issue("bug_only", labels={"bug"}),
            make_issue("none"),
            make_issue("superset", labels={"bug", "ui", "p1"}),
        ]
        result = filter_issues(issues, FilterSpec(labels=frozenset({"bug", "ui"})), today=TODAY)
        assert _ids(result) == ["both", "superset"]

    def test_due_none_and_any(self, make_issue: MakeIssue) -> None:
        issues = [make_issue("dated", due_date=TODAY), make_issue("undated")]
        assert _ids(filter_issues(issues, FilterSpec(due_date="none"), today=TODAY)) == ["undated"]
        assert _ids(filter_issues(issues, FilterSpec(due_date="any"), today=TODAY)) == ["dated"]

    def test_overdue_is_strictly_before_today(self, make_issue: MakeIssue) -> None:
        issues = [
            make_issue("yesterday", due_date=TODAY - timedelta(days=1)),
            make_issue("today", due_date=TODAY),
            make_issue("tomorrow", due_date=TODAY + timedelta(days=1)),
            make_issue("undated"),
            make_issue("long_ago", due_date=date(2012, 1, 1)),
        ]
        result = filter_issues(issues, FilterSpec(due_date="overdue"), today=TODAY)
        assert _ids(result) == ["yesterday", "long_ago"]
        assert all(i.due_date is not None and i.due_date < TODAY for i in result)

    def test_this_week_scenario(self, make_issue: MakeIssue) -> None:
        foo = make_issue("foo", due_date=date(2013, 12, 11))
        bar = make_issue("bar", due_date=date(2013, 12, 15))  # end of week
        baz = make_issue("baz", due_date=TODAY - timedelta(days=8))
        result = filter_issues([foo, bar, baz], FilterSpec(due_date="this_week"), today=TODAY)
        assert set(_ids(result)) == {"foo", "bar"}

    def test_this_week_bounds_inclusive(self, make_issue: MakeIssue) -> None:
        issues = [
            make_issue("before", due_date=date(2013, 12, 8)),
            make_issue("start", due_date=date(2013, 12, 9)),
            make_issue("end", due_date=date(2013, 12, 15)),
            make_issue("after", due_date=date(2013, 12, 16)),
        ]
        result = filter_issues(issues, FilterSpec(due_date="this_week"), today=date(2013, 12, 12))
        assert _ids(result) == ["start", "end"]

    def test_this_week_respects_first_day_of_week(self, make_issue: MakeIssue) -> None:
        sunday = make_issue("sunday", due_date=date(2013, 12, 8))
        next_sunday = make_issue("next_sunday", due_date=date(2013, 12, 15))
        result = filter_issues([sunday, next_sunday], FilterSpec(due_date="this_week"), today=TODAY, first_day_of_week=SUNDAY)
        assert _ids(result) == ["sunday"]

    def test_this_month(self, make_issue: MakeIssue) -> None:
        issues = [
            make_issue("first", due_date=date(2013, 12, 1)),
            make_issue("last", due_date=date(2013, 12, 31)),
            make_issue("next_month", due_date=date(2014, 1, 1)),
            make_issue("prev_month", due_date=date(2013, 11, 30)),
            make_issue("undated"),
        ]
        result = filter_issues(issues, FilterSpec(due_date="this_month"), today=TODAY)
        assert _ids(result) == ["first", "last"]

    def test_author(self, make_issue: MakeIssue) -> None:
        issues = [make_issue("a", author="alice"), make_issue("b", author="bob")]
        assert _ids(filter_issues(issues, FilterSpec(author="bob"), today=TODAY)) == ["b"]

    def test_milestone_title_and_none(self, make_issue: MakeIssue, milestones: dict[str, Milestone]) -> None:
        issues = [
            make_issue("v1", milestone=milestones["early"]),
            make_issue("loose"),
            make_issue("v2", milestone=milestones["late"]),
        ]
        assert _ids(filter_issues(issues, FilterSpec(milestone="v1.0"), today=TODAY)) == ["v1"]
        assert _ids(filter_issues(issues, FilterSpec(milestone=MILESTONE_NONE), today=TODAY)) == ["loose"]

    def test_confidential(self, make_issue: MakeIssue) -> None:
        issues = [make_issue("secret", confidential=True), make_issue("public")]
        assert _ids(filter_issues(issues, FilterSpec(confidential=True), today=TODAY)) == ["secret"]
        assert _ids(filter_issues(issues, FilterSpec(confidential=False), today=TODAY)) == ["public"]

    def test_constraints_combine_with_and(self, make_issue: MakeIssue) -> None:
        issues = [
            make_issue("match", assignees={"alice"}, labels={"bug"}, due_date=TODAY - timedelta(days=2)),
            make_issue("wrong_user", assignees={"bob"}, labels={"bug"}, due_date=TODAY - timedelta(days=2)),
            make_issue("not_overdue", assignees={"alice"}, labels={"bug"}, due_date=TODAY),
            make_issue("no_label", assignees={"alice"}, due_date=TODAY - timedelta(days=2)),
        ]
        spec = FilterSpec(assignee="alice", labels=frozenset({"bug"}), due_date="overdue")
        assert _ids(filter_issues(issues, spec, today=TODAY)) == ["match"]

    def test_rejects_non_filterspec(self, make_issue: MakeIssue) -> None:
        with pytest.raises(InvalidQueryError):
            filter_issues([make_issue("a")], {"assignee": "none"}, today=TODAY)  # type: ignore[arg-type]

    def test_does_not_mutate_input(self, make_issue: MakeIssue) -> None:
        issues = [make_issue("a", assignees={"alice"}), make_issue("b")]
        before = list(issues)
        filter_issues(issues, FilterSpec(assignee=ASSIGNEE_NONE), today=TODAY)
        assert issues == before


class TestSortStage:
    def test_due_date_scenario(self, make_issue: MakeIssue) -> None:
        foo = make_issue("foo", due_date=TODAY + timedelta(days=1))
        bar = make_issue("bar", due_date=TODAY + timedelta(days=6))
        baz = make_issue("baz")
        assert _ids(sort_issues([baz, bar, foo], "due_date")) == ["foo", "bar", "baz"]

    def test_due_date_null_ties_keep_input_order(self, make_issue: MakeIssue) -> None:
        foo = make_issue("foo", due_date=TODAY + timedelta(days=1))
        bar = make_issue("bar")
        baz = make_issue("baz")
        assert _ids(sort_issues([foo, bar, baz], "due_date")) == ["foo", "bar", "baz"]
        assert _ids(sort_issues([baz, foo, bar], "due_date")) == ["foo", "baz", "bar"]

    def test_nulls_last_regardless_of_created_at(self, make_issue: MakeIssue) -> None:
        old_undated = make_issue("old_undated", created_at=datetime(2000, 1, 1, tzinfo=UTC))
        new_dated = make_issue("new_dated", due_date=date(2099, 1, 1), created_at=datetime(2030, 1, 1, tzinfo=UTC))
        assert _ids(sort_issues([old_undated, new_dated], "due_date")) == ["new_dated", "old_undated"]

    def test_due_date_equal_keys_are_stable(self, make_issue: MakeIssue) -> None:
        issues = [make_issue(n, due_date=TODAY) for n in ("x", "y", "z")]
        assert _ids(sort_issues(issues, "due_date")) == ["x", "y", "z"]

    def test_due_date_later_is_ascending_nulls_last(self, make_issue: MakeIssue) -> None:
        late = make_issue("late", due_date=TODAY + timedelta(days=9))
        none = make_issue("none")
        soon = make_issue("soon", due_date=TODAY + timedelta(days=1))
        assert _ids(sort_issues([late, none, soon], "due_date_later")) == ["soon", "late", "none"]

    def test_created_date_newest_first(self, make_issue: MakeIssue) -> None:
        first, second, third = make_issue("first"), make_issue("second"), make_issue("third")
        assert _ids(sort_issues([first, second, third], "created_date")) == ["third", "second", "first"]

    def test_created_date_ties_stable(self, make_issue: MakeIssue) -> None:
        same = datetime(2013, 12, 1, tzinfo=UTC)
        issues = [make_issue(n, created_at=same) for n in ("a", "b", "c")]
        assert _ids(sort_issues(issues, "created_date")) == ["a", "b", "c"]

    def test_recently_updated_newest_first(self, make_issue: MakeIssue) -> None:
        touched = make_issue("touched", updated_at=datetime(2013, 12, 8, tzinfo=UTC))
        stale = make_issue("stale")
        assert _ids(sort_issues([stale, touched], "recently_updated")) == ["touched", "stale"]

    def test_milestone_by_milestone_due_nulls_last(self, make_issue: MakeIssue, milestones: dict[str, Milestone]) -> None:
        issues = [
            make_issue("no_milestone"),
            make_issue("late", milestone=milestones["late"]),
            make_issue("undated_milestone", milestone=milestones["open"]),
            make_issue("early", milestone=milestones["early"]),
        ]
        assert _ids(sort_issues(issues, "milestone")) == ["early", "late", "no_milestone", "undated_milestone"]

    def test_returns_new_list(self, make_issue: MakeIssue) -> None:
        issues = [make_issue("b", due_date=TODAY), make_issue("a")]
        result = sort_issues(issues, "due_date")
        assert result is not issues
        assert result == issues

    def test_unknown_key_rejected(self, make_issue: MakeIssue) -> None:
        with pytest.raises(InvalidQueryError) as exc_info:
            sort_issues([make_issue("a")], "priority")  # type: ignore[arg-type]
        assert exc_info.value.param == "sort"

    def test_unknown_key_rejected_on_empty_input(self) -> None:
        with pytest.raises(InvalidQueryError):
            sort_issues([], "bogus")  # type: ignore[arg-type]

    @pytest.mark.parametrize("key", sorted(VALID_SORT_KEYS))
    def test_every_key_handles_empty_input(self, key: str) -> None:
        assert sort_issues([], key) == []  # type: ignore[arg-type]


class TestQuery:
    def test_label_filter_then_due_date_later(self, make_issue: MakeIssue) -> None:
        foo = make_issue("foo", labels={"backend"}, due_date=TODAY + timedelta(days=1))
        bar = make_issue("bar")
        baz = make_issue("baz", due_date=TODAY + timedelta(days=6))
        spec = FilterSpec(labels=frozenset({"backend"}))
        assert _ids(query([foo, bar, baz], spec, "due_date_later", today=TODAY)) == ["foo"]

    def test_equals_sort_of_filter(self, make_issue: MakeIssue) -> None:
        issues = [
            make_issue("a", due_date=TODAY + timedelta(days=3)),
            make_issue("b", assignees={"alice"}, due_date=TODAY + timedelta(days=1)),
            make_issue("c"),
            make_issue("d", due_date=TODAY + timedelta(days=2)),
        ]
        spec = FilterSpec(assignee=ASSIGNEE_NONE)
        expected = sort_issues(filter_issues(issues, spec, today=TODAY), "due_date")
        assert query(issues, spec, "due_date", today=TODAY) == expected
        assert _ids(expected) == ["d", "a", "c"]

    def test_idempotent(self, make_issue: MakeIssue) -> None:
        issues = tuple(make_issue(n, due_date=TODAY + timedelta(days=i % 3)) for i, n in enumerate("abcdef"))
        spec = FilterSpec(due_date="this_week")
        assert query(issues, spec, "due_date", today=TODAY) == query(issues, spec, "due_date", today=TODAY)

    def test_unknown_sort_rejected_before_filtering(self) -> None:
        with pytest.raises(InvalidQueryError):
            query([], FilterSpec(), "sideways", today=TODAY)  # type: ignore[arg-type]

    def test_query_ids(self, make_issue: MakeIssue) -> None:
        issues = [make_issue("a"), make_issue("b")]
        assert query_ids(issues, None, "created_date", today=TODAY) == ["b", "a"]

    def test_result_depends_only_on_explicit_today(self, make_issue: MakeIssue) -> None:
        issue = make_issue("a", due_date=date(2013, 12, 10))
        spec = FilterSpec(due_date="overdue")
        assert query([issue], spec, "due_date", today=date(2013, 12, 9)) == []
        assert query([issue], spec, "due_date", today=date(2013, 12, 11)) == [issue]

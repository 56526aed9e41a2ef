"""IssuesMixin: issue CRUD, assignment, snapshots, and listing.

All methods access ``self.conn``, ``self.get_issue()``, etc. via
Python's MRO when composed into ``IssueDB``. Listing loads a snapshot and
hands it to the pure query engine in ``issuefinder.query``.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING, Any

from issuefinder.db_base import DBMixinProtocol, _now_iso
from issuefinder.query import MONDAY, FilterSpec, SortKey, query, validate_sort_key
from issuefinder.validation import coerce_optional_date, validate_username

if TYPE_CHECKING:
    from issuefinder.core import Issue, Milestone

logger = logging.getLogger(__name__)


def _validate_string_list(value: object, name: str) -> None:
    """Raise TypeError if *value* is not a list of strings."""
    if not isinstance(value, list | tuple | set | frozenset) or not all(isinstance(i, str) for i in value):
        msg = f"{name} must be a list of strings"
        raise TypeError(msg)


def _validate_confidential(value: object) -> None:
    if not isinstance(value, bool):
        msg = f"confidential must be a boolean, got {value!r}"
        raise ValueError(msg)


def _parse_timestamp(ts: str) -> datetime:
    """Parse a stored ISO timestamp; naive values are taken as UTC."""
    dt = datetime.fromisoformat(ts)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def _fmt_date(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None


class IssuesMixin(DBMixinProtocol):
    """Issue CRUD, assignment, snapshots, and query-engine backed listing.

    Inherits ``DBMixinProtocol`` for type-safe access to shared attributes.
    Actual implementations provided by ``IssueDB`` at composition time via MRO.
    """

    if TYPE_CHECKING:
        # From IssueDB
        def _generate_unique_id(self, table: str, infix: str = "") -> str: ...

        # From MilestonesMixin
        def find_milestone(self, ref: str) -> Milestone: ...

        # From MetaMixin
        def _validate_label_name(self, label: str) -> str: ...

    # -- Validation helpers --------------------------------------------------

    def _resolve_milestone_id(self, ref: str) -> str:
        try:
            return self.find_milestone(ref).id
        except KeyError:
            msg = f"Unknown milestone: {ref}"
            raise ValueError(msg) from None

    def _validate_assignees(self, assignees: Any) -> set[str]:
        _validate_string_list(assignees, "assignees")
        return {validate_username(a, "assignee") for a in assignees}

    # -- Issue CRUD ----------------------------------------------------------

    def create_issue(
        self,
        title: str,
        *,
        author: str = "",
        assignees: list[str] | None = None,
        labels: list[str] | None = None,
        milestone_id: str | None = None,
        due_date: str | date | None = None,
        description: str = "",
        confidential: bool = False,
        created_at: datetime | None = None,
        actor: str = "",
    ) -> Issue:
        if not title or not title.strip():
            msg = "Title cannot be empty"
            raise ValueError(msg)
        # Validate everything BEFORE any writes to prevent partial commits
        clean_author = validate_username(author, "author") if author else ""
        clean_assignees = self._validate_assignees(assignees) if assignees else set()
        if labels:
            _validate_string_list(labels, "labels")
            labels = [self._validate_label_name(label) for label in labels]
        _validate_confidential(confidential)
        due = coerce_optional_date(due_date)
        resolved_milestone = self._resolve_milestone_id(milestone_id) if milestone_id else None
        if created_at is not None and created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=UTC)

        issue_id = self._generate_unique_id("issues")
        created = created_at.isoformat() if created_at is not None else _now_iso()

        try:
            self.conn.execute(
                "INSERT INTO issues (id, title, description, author, milestone_id, due_date, confidential, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    issue_id,
                    title.strip(),
                    description,
                    clean_author,
                    resolved_milestone,
                    _fmt_date(due),
                    int(confidential),
                    created,
                    created,
                ),
            )
            self._record_event(issue_id, "created", actor=actor or clean_author, new_value=title.strip())
            for username in sorted(clean_assignees):
                self.conn.execute(
                    "INSERT OR IGNORE INTO issue_assignees (issue_id, username) VALUES (?, ?)",
                    (issue_id, username),
                )
            for label in labels or []:
                self.conn.execute(
                    "INSERT OR IGNORE INTO labels (issue_id, label) VALUES (?, ?)",
                    (issue_id, label),
                )
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise
        logger.info("Created issue %s", issue_id)
        return self.get_issue(issue_id)

    def get_issue(self, issue_id: str) -> Issue:
        issues = self._build_issues_batch([issue_id])
        if not issues:
            msg = f"Issue not found: {issue_id}"
            raise KeyError(msg)
        return issues[0]

    def snapshot(self) -> tuple[Issue, ...]:
        """Every issue in creation-insert order, as immutable records."""
        return tuple(self._build_issues_batch(None))

    def _build_issues_batch(self, issue_ids: list[str] | None) -> list[Issue]:
        """Build Issues with batched queries (eliminates N+1). ``None`` loads all."""
        from issuefinder.core import Issue, Milestone

        if issue_ids is not None and not issue_ids:
            return []

        if issue_ids is None:
            where, sub_where, params = "", "", []
        else:
            placeholders = ",".join("?" * len(issue_ids))
            where = f" WHERE i.id IN ({placeholders})"
            sub_where = f" WHERE issue_id IN ({placeholders})"
            params = list(issue_ids)

        # 1. Issue rows with their milestone
        rows: list[sqlite3.Row] = self.conn.execute(
            "SELECT i.*, m.title AS milestone_title, m.due_date AS milestone_due_date "
            f"FROM issues i LEFT JOIN milestones m ON m.id = i.milestone_id{where} ORDER BY i.rowid",
            params,
        ).fetchall()

        # 2. Assignees and labels
        assignees_by_id: dict[str, set[str]] = {}
        for r in self.conn.execute(f"SELECT issue_id, username FROM issue_assignees{sub_where}", params).fetchall():
            assignees_by_id.setdefault(r["issue_id"], set()).add(r["username"])
        labels_by_id: dict[str, set[str]] = {}
        for r in self.conn.execute(f"SELECT issue_id, label FROM labels{sub_where}", params).fetchall():
            labels_by_id.setdefault(r["issue_id"], set()).add(r["label"])

        # 3. Comment counts (award emoji live in their own table and are never counted)
        comment_counts: dict[str, int] = {}
        for r in self.conn.execute(
            f"SELECT issue_id, COUNT(*) AS cnt FROM comments{sub_where} GROUP BY issue_id", params
        ).fetchall():
            comment_counts[r["issue_id"]] = r["cnt"]

        result: list[Issue] = []
        for row in rows:
            iid = row["id"]
            milestone = None
            if row["milestone_id"] is not None:
                milestone = Milestone(
                    id=row["milestone_id"],
                    title=row["milestone_title"],
                    due_date=date.fromisoformat(row["milestone_due_date"]) if row["milestone_due_date"] else None,
                )
            result.append(
                Issue(
                    id=iid,
                    title=row["title"],
                    author=row["author"],
                    assignees=frozenset(assignees_by_id.get(iid, ())),
                    milestone=milestone,
                    due_date=date.fromisoformat(row["due_date"]) if row["due_date"] else None,
                    labels=frozenset(labels_by_id.get(iid, ())),
                    created_at=_parse_timestamp(row["created_at"]),
                    updated_at=_parse_timestamp(row["updated_at"]),
                    confidential=bool(row["confidential"]),
                    description=row["description"],
                    comment_count=comment_counts.get(iid, 0),
                )
            )
        return result

    def update_issue(
        self,
        issue_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
        assignees: list[str] | None = None,
        milestone_id: str | None = None,
        due_date: str | date | None = None,
        confidential: bool | None = None,
        actor: str = "",
    ) -> Issue:
        """Apply the given changes. ``milestone_id=""`` and ``due_date=""`` clear the value."""
        current = self.get_issue(issue_id)

        # --- Validate all inputs BEFORE any writes to prevent partial commits ---
        if title is not None and not title.strip():
            msg = "Title cannot be empty"
            raise ValueError(msg)
        new_assignees = self._validate_assignees(assignees) if assignees is not None else None
        new_milestone: str | None = None
        if milestone_id:
            new_milestone = self._resolve_milestone_id(milestone_id)
        new_due = coerce_optional_date(due_date) if due_date is not None else None
        if confidential is not None:
            _validate_confidential(confidential)

        updates: list[str] = []
        params: list[Any] = []

        try:
            if title is not None and title.strip() != current.title:
                self._record_event(issue_id, "title_changed", actor=actor, old_value=current.title, new_value=title.strip())
                updates.append("title = ?")
                params.append(title.strip())

            if description is not None and description != current.description:
                self._record_event(issue_id, "description_changed", actor=actor, old_value=current.description, new_value=description)
                updates.append("description = ?")
                params.append(description)

            if milestone_id is not None:
                old_milestone = current.milestone.id if current.milestone else None
                if new_milestone != old_milestone:
                    self._record_event(
                        issue_id,
                        "milestone_changed",
                        actor=actor,
                        old_value=current.milestone.title if current.milestone else None,
                        new_value=self.find_milestone(new_milestone).title if new_milestone else None,
                    )
                    updates.append("milestone_id = ?")
                    params.append(new_milestone)

            if due_date is not None and new_due != current.due_date:
                self._record_event(
                    issue_id, "due_date_changed", actor=actor, old_value=_fmt_date(current.due_date), new_value=_fmt_date(new_due)
                )
                updates.append("due_date = ?")
                params.append(_fmt_date(new_due))

            if confidential is not None and confidential != current.confidential:
                self._record_event(
                    issue_id,
                    "confidential_changed",
                    actor=actor,
                    old_value=str(current.confidential).lower(),
                    new_value=str(confidential).lower(),
                )
                updates.append("confidential = ?")
                params.append(int(confidential))

            assignees_changed = new_assignees is not None and new_assignees != set(current.assignees)
            if assignees_changed and new_assignees is not None:
                self._record_event(
                    issue_id,
                    "assignees_changed",
                    actor=actor,
                    old_value=",".join(sorted(current.assignees)),
                    new_value=",".join(sorted(new_assignees)),
                )
                self.conn.execute("DELETE FROM issue_assignees WHERE issue_id = ?", (issue_id,))
                for username in sorted(new_assignees):
                    self.conn.execute(
                        "INSERT INTO issue_assignees (issue_id, username) VALUES (?, ?)",
                        (issue_id, username),
                    )

            if updates or assignees_changed:
                updates.append("updated_at = ?")
                params.append(_now_iso())
                params.append(issue_id)
                self.conn.execute(f"UPDATE issues SET {', '.join(updates)} WHERE id = ?", params)
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise

        return self.get_issue(issue_id)

    # -- Assignment ----------------------------------------------------------

    def assign(self, issue_id: str, username: str, *, actor: str = "") -> Issue:
        current = self.get_issue(issue_id)
        user = validate_username(username, "assignee")
        return self.update_issue(issue_id, assignees=[*current.assignees, user], actor=actor)

    def unassign(self, issue_id: str, username: str | None = None, *, actor: str = "") -> Issue:
        """Remove *username*, or every assignee when *username* is None."""
        current = self.get_issue(issue_id)
        if username is None:
            remaining: list[str] = []
        else:
            user = validate_username(username, "assignee")
            remaining = [a for a in current.assignees if a != user]
        return self.update_issue(issue_id, assignees=remaining, actor=actor)

    def toggle_assignee(self, issue_id: str, username: str, *, actor: str = "") -> Issue:
        """Select a user in the assignee picker: adds them, or removes them if already assigned."""
        user = validate_username(username, "assignee")
        current = self.get_issue(issue_id)
        if user in current.assignees:
            return self.unassign(issue_id, user, actor=actor)
        return self.assign(issue_id, user, actor=actor)

    # -- Listing -------------------------------------------------------------

    def list_issues(
        self,
        filters: FilterSpec | None = None,
        sort: SortKey = "created_date",
        *,
        today: date | None = None,
        first_day_of_week: int = MONDAY,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Issue]:
        """Filter and sort the current snapshot, then paginate.

        *today* defaults to the local calendar date; pass it explicitly for
        reproducible due-date buckets.
        """
        validate_sort_key(sort)
        if limit < 0:
            limit = 100
        if offset < 0:
            offset = 0
        issues = query(
            self.snapshot(),
            filters,
            sort,
            today=today if today is not None else date.today(),
            first_day_of_week=first_day_of_week,
        )
        return issues[offset : offset + limit]

"""MilestonesMixin: milestone CRUD.

Issues reference at most one milestone; the milestone's due date drives the
``milestone`` sort order.
"""

from __future__ import annotations

import sqlite3
from datetime import date
from typing import TYPE_CHECKING

from issuefinder.db_base import DBMixinProtocol, _now_iso
from issuefinder.query import RESERVED_NAMES
from issuefinder.validation import coerce_optional_date, parse_date

if TYPE_CHECKING:
    from issuefinder.core import Milestone


def _row_to_milestone(row: sqlite3.Row) -> Milestone:
    from issuefinder.core import Milestone

    return Milestone(
        id=row["id"],
        title=row["title"],
        due_date=date.fromisoformat(row["due_date"]) if row["due_date"] else None,
    )


class MilestonesMixin(DBMixinProtocol):
    """Milestone create/read/update.

    Inherits ``DBMixinProtocol`` for type-safe access to shared attributes.
    """

    if TYPE_CHECKING:

        def _generate_unique_id(self, table: str, infix: str = "") -> str: ...

    def _validate_milestone_title(self, title: str) -> str:
        if not isinstance(title, str) or not title.strip():
            msg = "Milestone title cannot be empty"
            raise ValueError(msg)
        cleaned = title.strip()
        if cleaned.casefold() in RESERVED_NAMES:
            msg = f"Milestone title '{cleaned}' is reserved"
            raise ValueError(msg)
        return cleaned

    def create_milestone(self, title: str, *, due_date: str | date | None = None) -> Milestone:
        cleaned = self._validate_milestone_title(title)
        due = coerce_optional_date(due_date)
        if self.conn.execute("SELECT 1 FROM milestones WHERE title = ?", (cleaned,)).fetchone() is not None:
            msg = f"Milestone '{cleaned}' already exists"
            raise ValueError(msg)
        milestone_id = self._generate_unique_id("milestones", "m")
        self.conn.execute(
            "INSERT INTO milestones (id, title, due_date, created_at) VALUES (?, ?, ?, ?)",
            (milestone_id, cleaned, due.isoformat() if due else None, _now_iso()),
        )
        self.conn.commit()
        return self.get_milestone(milestone_id)

    def get_milestone(self, milestone_id: str) -> Milestone:
        row = self.conn.execute("SELECT * FROM milestones WHERE id = ?", (milestone_id,)).fetchone()
        if row is None:
            msg = f"Milestone not found: {milestone_id}"
            raise KeyError(msg)
        return _row_to_milestone(row)

    def find_milestone(self, ref: str) -> Milestone:
        """Resolve a milestone by id or, failing that, by exact title."""
        row = self.conn.execute("SELECT * FROM milestones WHERE id = ?", (ref,)).fetchone()
        if row is None:
            row = self.conn.execute("SELECT * FROM milestones WHERE title = ?", (ref,)).fetchone()
        if row is None:
            msg = f"Milestone not found: {ref}"
            raise KeyError(msg)
        return _row_to_milestone(row)

    def list_milestones(self) -> list[Milestone]:
        """All milestones, soonest due first; undated milestones last."""
        rows = self.conn.execute(
            "SELECT * FROM milestones ORDER BY due_date IS NULL, due_date, title",
        ).fetchall()
        return [_row_to_milestone(r) for r in rows]

    def update_milestone(
        self,
        milestone_id: str,
        *,
        title: str | None = None,
        due_date: str | None = None,
    ) -> Milestone:
        """Rename a milestone or change its due date (``due_date=""`` clears it)."""
        current = self.get_milestone(milestone_id)
        updates: list[str] = []
        params: list[str | None] = []
        if title is not None:
            cleaned = self._validate_milestone_title(title)
            if cleaned != current.title:
                clash = self.conn.execute(
                    "SELECT 1 FROM milestones WHERE title = ? AND id != ?", (cleaned, milestone_id)
                ).fetchone()
                if clash is not None:
                    msg = f"Milestone '{cleaned}' already exists"
                    raise ValueError(msg)
                updates.append("title = ?")
                params.append(cleaned)
        if due_date is not None:
            updates.append("due_date = ?")
            params.append(parse_date(due_date).isoformat() if due_date else None)
        if updates:
            self.conn.execute(f"UPDATE milestones SET {', '.join(updates)} WHERE id = ?", [*params, milestone_id])
            self.conn.commit()
        return self.get_milestone(milestone_id)

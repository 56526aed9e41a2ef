"""EventsMixin: audit trail of issue mutations.

Every change made through ``update_issue()`` and the assignee/label helpers
records one row here, so callers that re-query after a mutation can also
show what changed and who changed it.
"""

from __future__ import annotations

from typing import cast

from issuefinder.db_base import DBMixinProtocol, _now_iso
from issuefinder.types.events import EventRecord, EventRecordWithTitle


class EventsMixin(DBMixinProtocol):
    """Event recording and retrieval.

    Inherits ``DBMixinProtocol`` for type-safe access to ``self.conn``.
    """

    def _record_event(
        self,
        issue_id: str,
        event_type: str,
        *,
        actor: str = "",
        old_value: str | None = None,
        new_value: str | None = None,
    ) -> None:
        self.conn.execute(
            "INSERT INTO events (issue_id, event_type, actor, old_value, new_value, created_at) VALUES (?, ?, ?, ?, ?, ?)",
            (issue_id, event_type, actor, old_value, new_value, _now_iso()),
        )

    def get_issue_events(self, issue_id: str, limit: int = 50) -> list[EventRecord]:
        self.get_issue(issue_id)
        rows = self.conn.execute(
            "SELECT * FROM events WHERE issue_id = ? ORDER BY created_at DESC, id DESC LIMIT ?",
            (issue_id, limit),
        ).fetchall()
        return cast(list[EventRecord], [dict(r) for r in rows])

    def get_recent_events(self, limit: int = 20) -> list[EventRecordWithTitle]:
        rows = self.conn.execute(
            "SELECT e.*, i.title as issue_title FROM events e JOIN issues i ON e.issue_id = i.id "
            "ORDER BY e.created_at DESC, e.id DESC LIMIT ?",
            (limit,),
        ).fetchall()
        return cast(list[EventRecordWithTitle], [dict(r) for r in rows])

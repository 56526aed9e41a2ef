"""MetaMixin: labels, comments, and award emoji.

All methods access ``self.conn``, ``self.get_issue()``, etc. via
Python's MRO when composed into ``IssueDB``.
"""

from __future__ import annotations

from typing import cast

from issuefinder.db_base import DBMixinProtocol, _now_iso
from issuefinder.types.events import AwardEmojiRecord, CommentRecord
from issuefinder.validation import validate_username

_MAX_LABEL_LENGTH = 255
_MAX_EMOJI_NAME_LENGTH = 64


class MetaMixin(DBMixinProtocol):
    """Labels, comments, and award emoji.

    Inherits ``DBMixinProtocol`` for type-safe access to shared attributes.
    Actual implementations provided by ``IssueDB`` at composition time via MRO.
    """

    # -- Labels --------------------------------------------------------------

    def _validate_label_name(self, label: str) -> str:
        """Normalize and validate a label before writing it."""
        if not isinstance(label, str):
            msg = "Label must be a string"
            raise ValueError(msg)
        normalized = label.strip()
        if not normalized:
            msg = "Label cannot be empty"
            raise ValueError(msg)
        if "," in normalized:
            msg = f"Label '{normalized}' must not contain commas"
            raise ValueError(msg)
        if len(normalized) > _MAX_LABEL_LENGTH:
            msg = f"Label must be at most {_MAX_LABEL_LENGTH} characters"
            raise ValueError(msg)
        return normalized

    def add_label(self, issue_id: str, label: str, *, actor: str = "") -> bool:
        normalized = self._validate_label_name(label)
        self.get_issue(issue_id)
        cursor = self.conn.execute(
            "INSERT OR IGNORE INTO labels (issue_id, label) VALUES (?, ?)",
            (issue_id, normalized),
        )
        if cursor.rowcount > 0:
            self._record_event(issue_id, "label_added", actor=actor, new_value=normalized)
            self.conn.execute("UPDATE issues SET updated_at = ? WHERE id = ?", (_now_iso(), issue_id))
        self.conn.commit()
        return cursor.rowcount > 0

    def remove_label(self, issue_id: str, label: str, *, actor: str = "") -> bool:
        normalized = self._validate_label_name(label)
        self.get_issue(issue_id)
        cursor = self.conn.execute(
            "DELETE FROM labels WHERE issue_id = ? AND label = ?",
            (issue_id, normalized),
        )
        if cursor.rowcount > 0:
            self._record_event(issue_id, "label_removed", actor=actor, old_value=normalized)
            self.conn.execute("UPDATE issues SET updated_at = ? WHERE id = ?", (_now_iso(), issue_id))
        self.conn.commit()
        return cursor.rowcount > 0

    def list_labels(self) -> list[dict[str, int | str]]:
        """Every label in use with the number of issues carrying it."""
        rows = self.conn.execute(
            "SELECT label, COUNT(*) AS count FROM labels GROUP BY label ORDER BY label",
        ).fetchall()
        return [{"label": r["label"], "count": r["count"]} for r in rows]

    # -- Comments ------------------------------------------------------------

    def add_comment(self, issue_id: str, text: str, *, author: str = "") -> int:
        if not text or not text.strip():
            msg = "Comment text cannot be empty"
            raise ValueError(msg)
        self.get_issue(issue_id)
        cursor = self.conn.execute(
            "INSERT INTO comments (issue_id, author, text, created_at) VALUES (?, ?, ?, ?)",
            (issue_id, author, text, _now_iso()),
        )
        self.conn.commit()
        rowid = cursor.lastrowid
        if rowid is None:  # pragma: no cover
            msg = "INSERT did not produce a lastrowid"
            raise RuntimeError(msg)
        return rowid

    def get_comments(self, issue_id: str) -> list[CommentRecord]:
        self.get_issue(issue_id)
        rows = self.conn.execute(
            "SELECT id, author, text, created_at FROM comments WHERE issue_id = ? ORDER BY created_at, id",
            (issue_id,),
        ).fetchall()
        return cast(list[CommentRecord], [dict(r) for r in rows])

    # -- Award emoji ---------------------------------------------------------

    def award_emoji(self, issue_id: str, name: str, *, awarded_by: str) -> bool:
        """Add a reaction. Returns False if *awarded_by* already gave *name* on this issue.

        Reactions are not comments and never change ``comment_count``.
        """
        emoji = name.strip().strip(":") if isinstance(name, str) else ""
        if not emoji:
            msg = "Emoji name cannot be empty"
            raise ValueError(msg)
        if len(emoji) > _MAX_EMOJI_NAME_LENGTH:
            msg = f"Emoji name must be at most {_MAX_EMOJI_NAME_LENGTH} characters"
            raise ValueError(msg)
        user = validate_username(awarded_by, "awarded_by")
        self.get_issue(issue_id)
        cursor = self.conn.execute(
            "INSERT OR IGNORE INTO award_emoji (issue_id, name, awarded_by, created_at) VALUES (?, ?, ?, ?)",
            (issue_id, emoji, user, _now_iso()),
        )
        self.conn.commit()
        return cursor.rowcount > 0

    def get_award_emoji(self, issue_id: str) -> list[AwardEmojiRecord]:
        self.get_issue(issue_id)
        rows = self.conn.execute(
            "SELECT id, name, awarded_by, created_at FROM award_emoji WHERE issue_id = ? ORDER BY id",
            (issue_id,),
        ).fetchall()
        return cast(list[AwardEmojiRecord], [dict(r) for r in rows])

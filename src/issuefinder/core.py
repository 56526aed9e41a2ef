"""Core database operations for the issue tracker.

Single source of truth for all SQLite operations. Both CLI and MCP server
import from this module. Direct SQLite with WAL mode, no daemon.

Convention-based discovery: each project has a `.issuefinder/` directory containing
`issuefinder.db` (SQLite) and `config.json` (project prefix, week start, default sort).
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any

from issuefinder.db_events import EventsMixin
from issuefinder.db_issues import IssuesMixin
from issuefinder.db_meta import MetaMixin
from issuefinder.db_milestones import MilestonesMixin
from issuefinder.db_schema import CURRENT_SCHEMA_VERSION, SCHEMA_SQL
from issuefinder.query import MONDAY, VALID_SORT_KEYS, SortKey
from issuefinder.types.core import ISODate, ISOTimestamp, IssueDict, MilestoneDict, ProjectConfig

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Convention-based discovery
# ---------------------------------------------------------------------------

ISSUEFINDER_DIR_NAME = ".issuefinder"
DB_FILENAME = "issuefinder.db"
CONFIG_FILENAME = "config.json"
SUMMARY_FILENAME = "context.md"

DEFAULT_SORT: SortKey = "created_date"


def find_issuefinder_root(start: Path | None = None) -> Path:
    """Walk up from start (default cwd) looking for .issuefinder/ directory.

    Returns the .issuefinder/ directory path (not the project root).
    """
    current = (start or Path.cwd()).resolve()
    for parent in [current, *current.parents]:
        candidate = parent / ISSUEFINDER_DIR_NAME
        if candidate.is_dir():
            return candidate
    msg = f"No {ISSUEFINDER_DIR_NAME}/ directory found in {current} or any parent"
    raise FileNotFoundError(msg)


def read_config(issuefinder_dir: Path) -> ProjectConfig:
    """Read .issuefinder/config.json. Returns defaults if missing or corrupt."""
    defaults = ProjectConfig(prefix="issuefinder", version=1, first_day_of_week=MONDAY, default_sort=DEFAULT_SORT)
    config_path = issuefinder_dir / CONFIG_FILENAME
    if not config_path.exists():
        return defaults
    try:
        result: ProjectConfig = json.loads(config_path.read_text())
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Failed to read %s, using defaults: %s", config_path, exc)
        return defaults
    if not isinstance(result, dict):
        logger.warning("Ignoring %s: expected a JSON object", config_path)
        return defaults
    return result


def write_config(issuefinder_dir: Path, config: dict[str, Any] | ProjectConfig) -> None:
    """Write .issuefinder/config.json."""
    config_path = issuefinder_dir / CONFIG_FILENAME
    config_path.write_text(json.dumps(config, indent=2) + "\n")


def get_first_day_of_week(config: ProjectConfig) -> int:
    """Configured week start (0=Monday .. 6=Sunday). Defaults to Monday."""
    value = config.get("first_day_of_week", MONDAY)
    if isinstance(value, bool) or not isinstance(value, int) or not (0 <= value <= 6):
        logger.warning("Invalid first_day_of_week %r in config, falling back to Monday", value)
        return MONDAY
    return value


def get_default_sort(config: ProjectConfig) -> SortKey:
    """Configured default ordering for list commands."""
    value = config.get("default_sort", DEFAULT_SORT)
    if value not in VALID_SORT_KEYS:
        logger.warning("Unknown default_sort '%s' in config, falling back to '%s'", value, DEFAULT_SORT)
        return DEFAULT_SORT
    return value  # type: ignore[return-value]


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Milestone:
    id: str
    title: str
    due_date: date | None = None

    def to_dict(self) -> MilestoneDict:
        return {
            "id": self.id,
            "title": self.title,
            "due_date": ISODate(self.due_date.isoformat()) if self.due_date else None,
        }


# Issues are snapshots: frozen, with frozenset collections, so the query
# engine can never mutate what the store handed out.
@dataclass(frozen=True)
class Issue:
    id: str
    title: str
    created_at: datetime
    updated_at: datetime
    author: str = ""
    assignees: frozenset[str] = field(default_factory=frozenset)
    milestone: Milestone | None = None
    due_date: date | None = None
    labels: frozenset[str] = field(default_factory=frozenset)
    confidential: bool = False
    description: str = ""
    comment_count: int = 0

    def to_dict(self) -> IssueDict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "assignees": sorted(self.assignees),
            "milestone": self.milestone.to_dict() if self.milestone else None,
            "due_date": ISODate(self.due_date.isoformat()) if self.due_date else None,
            "labels": sorted(self.labels),
            "created_at": ISOTimestamp(self.created_at.isoformat()),
            "updated_at": ISOTimestamp(self.updated_at.isoformat()),
            "confidential": self.confidential,
            "description": self.description,
            "comment_count": self.comment_count,
        }


# ---------------------------------------------------------------------------
# IssueDB
# ---------------------------------------------------------------------------


class IssueDB(EventsMixin, MilestonesMixin, MetaMixin, IssuesMixin):
    """Direct SQLite operations. No daemon, no sync. Importable by CLI and MCP."""

    def __init__(
        self,
        db_path: str | Path,
        *,
        prefix: str = "issuefinder",
        check_same_thread: bool = True,
    ) -> None:
        self.db_path = Path(db_path)
        self.prefix = prefix
        self._conn: sqlite3.Connection | None = None
        self._check_same_thread = check_same_thread

    @classmethod
    def from_project(cls, project_path: Path | None = None) -> IssueDB:
        """Create an IssueDB by discovering .issuefinder/ from project_path (or cwd)."""
        issuefinder_dir = find_issuefinder_root(project_path)
        config = read_config(issuefinder_dir)
        db = cls(issuefinder_dir / DB_FILENAME, prefix=config.get("prefix", "issuefinder"))
        db.initialize()
        return db

    def __enter__(self) -> IssueDB:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(
                str(self.db_path),
                isolation_level="DEFERRED",
                check_same_thread=self._check_same_thread,
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA foreign_keys=ON")
            self._conn.execute("PRAGMA busy_timeout=5000")
        return self._conn

    def initialize(self) -> None:
        """Create tables for a fresh database and stamp the schema version."""
        current_version = self.get_schema_version()
        if current_version == 0:
            self.conn.executescript(SCHEMA_SQL)
            self.conn.execute(f"PRAGMA user_version = {CURRENT_SCHEMA_VERSION}")
        elif current_version > CURRENT_SCHEMA_VERSION:
            msg = f"Database schema v{current_version} is newer than this issuefinder (v{CURRENT_SCHEMA_VERSION})"
            raise RuntimeError(msg)
        self.conn.commit()

    def get_schema_version(self) -> int:
        """Return the current schema version from PRAGMA user_version."""
        result: int = self.conn.execute("PRAGMA user_version").fetchone()[0]
        return result

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _generate_unique_id(self, table: str, infix: str = "") -> str:
        """Generate a unique ID using O(1) EXISTS checks against the PK index.

        *table* is always a hardcoded literal at the call site (never user input).
        """
        sep = f"-{infix}-" if infix else "-"
        for _ in range(10):
            candidate = f"{self.prefix}{sep}{uuid.uuid4().hex[:10]}"
            if self.conn.execute(f"SELECT 1 FROM {table} WHERE id = ?", (candidate,)).fetchone() is None:
                return candidate
        return f"{self.prefix}{sep}{uuid.uuid4().hex[:16]}"

"""Shared pytest fixtures for issuefinder tests."""

from __future__ import annotations

from collections.abc import Callable, Generator
from datetime import UTC, date, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from issuefinder.core import (
    DB_FILENAME,
    ISSUEFINDER_DIR_NAME,
    SUMMARY_FILENAME,
    Issue,
    IssueDB,
    Milestone,
    write_config,
)

# Monday, the reference "today" used throughout the query tests
TODAY = date(2013, 12, 9)
_BASE_TIME = datetime(2013, 12, 1, 9, 0, tzinfo=UTC)


@pytest.fixture
def db(tmp_path: Path) -> Generator[IssueDB, None, None]:
    """Fresh IssueDB for each test."""
    d = IssueDB(tmp_path / "issuefinder.db", prefix="test")
    d.initialize()
    yield d
    d.close()


@pytest.fixture
def make_issue() -> Callable[..., Issue]:
    """Factory for in-memory Issue snapshots.

    Each call creates an issue one hour younger than the previous one, so
    ``created_date`` order is the reverse of creation order unless
    ``created_at`` is passed explicitly.
    """
    counter = {"n": 0}

    def _make(title: str, **kwargs: Any) -> Issue:
        counter["n"] += 1
        created = kwargs.pop("created_at", _BASE_TIME + timedelta(hours=counter["n"]))
        kwargs.setdefault("updated_at", created)
        for name in ("assignees", "labels"):
            if name in kwargs:
                kwargs[name] = frozenset(kwargs[name])
        return Issue(id=kwargs.pop("id", title), title=title, created_at=created, **kwargs)

    return _make


@pytest.fixture
def milestones() -> dict[str, Milestone]:
    return {
        "early": Milestone(id="m-1", title="v1.0", due_date=TODAY + timedelta(days=3)),
        "late": Milestone(id="m-2", title="v2.0", due_date=TODAY + timedelta(days=30)),
        "open": Milestone(id="m-3", title="Backlog"),
    }


@pytest.fixture
def issuefinder_project(tmp_path: Path) -> Path:
    """A tmp directory set up as an issuefinder project (.issuefinder/ with config + db).

    Returns the project root (parent of .issuefinder/).
    """
    issuefinder_dir = tmp_path / ISSUEFINDER_DIR_NAME
    issuefinder_dir.mkdir()
    write_config(issuefinder_dir, {"prefix": "proj", "version": 1})

    d = IssueDB(issuefinder_dir / DB_FILENAME, prefix="proj")
    d.initialize()
    d.close()

    (issuefinder_dir / SUMMARY_FILENAME).write_text("# summary\n")

    return tmp_path


@pytest.fixture
def cli_runner() -> CliRunner:
    """Click CLI test runner."""
    return CliRunner()

"""Fixtures for MCP server tests."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest

from issuefinder.core import DB_FILENAME, ISSUEFINDER_DIR_NAME, SUMMARY_FILENAME, IssueDB, read_config, write_config


@pytest.fixture
def mcp_db(tmp_path: Path) -> Generator[IssueDB, None, None]:
    """Set up an IssueDB and patch the MCP module globals."""
    issuefinder_dir = tmp_path / ISSUEFINDER_DIR_NAME
    issuefinder_dir.mkdir()
    write_config(issuefinder_dir, {"prefix": "mcp", "version": 1})
    (issuefinder_dir / SUMMARY_FILENAME).write_text("# test\n")

    d = IssueDB(issuefinder_dir / DB_FILENAME, prefix="mcp")
    d.initialize()

    import issuefinder.mcp_server as mcp_mod

    original_db = mcp_mod.db
    original_dir = mcp_mod._issuefinder_dir
    original_config = mcp_mod._config
    mcp_mod.db = d
    mcp_mod._issuefinder_dir = issuefinder_dir
    mcp_mod._config = read_config(issuefinder_dir)

    yield d

    mcp_mod.db = original_db
    mcp_mod._issuefinder_dir = original_dir
    mcp_mod._config = original_config
    d.close()

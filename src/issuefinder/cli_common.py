"""Shared CLI helpers.

Provides ``get_db()``, ``get_config()`` and ``refresh_summary()`` so that
both the main ``cli.py`` and the ``cli_commands/*.py`` modules can access
them without circular imports.
"""

from __future__ import annotations

import json as json_mod
import sys
from typing import NoReturn

import click

from issuefinder.core import (
    DB_FILENAME,
    ISSUEFINDER_DIR_NAME,
    SUMMARY_FILENAME,
    IssueDB,
    find_issuefinder_root,
    get_first_day_of_week,
    read_config,
)
from issuefinder.summary import write_summary
from issuefinder.types.core import ProjectConfig


def get_config() -> ProjectConfig:
    """Config of the discovered project, or defaults when there is none."""
    try:
        return read_config(find_issuefinder_root())
    except FileNotFoundError:
        return ProjectConfig()


def get_db() -> IssueDB:
    """Discover .issuefinder/ and return an initialized IssueDB."""
    try:
        issuefinder_dir = find_issuefinder_root()
    except FileNotFoundError:
        click.echo(f"No {ISSUEFINDER_DIR_NAME}/ found. Run 'issuefinder init' first.", err=True)
        sys.exit(1)
    config = read_config(issuefinder_dir)
    db = IssueDB(issuefinder_dir / DB_FILENAME, prefix=config.get("prefix", "issuefinder"))
    db.initialize()
    return db


def refresh_summary(db: IssueDB) -> None:
    """Regenerate context.md after mutations."""
    try:
        issuefinder_dir = find_issuefinder_root()
    except FileNotFoundError:
        return  # No .issuefinder/ dir, so no summary
    config = read_config(issuefinder_dir)
    write_summary(db, issuefinder_dir / SUMMARY_FILENAME, first_day_of_week=get_first_day_of_week(config))


def fail(message: str, as_json: bool, **extra: object) -> NoReturn:
    """Report an error the way every command does and exit 1."""
    if as_json:
        click.echo(json_mod.dumps({"error": message, **extra}))
    else:
        click.echo(f"Error: {message}", err=True)
    sys.exit(1)

"""CLI for the issuefinder issue tracker.

Convention-based: discovers .issuefinder/ by walking up from cwd.

Usage:
    issuefinder init                                    # Initialize .issuefinder/ in cwd
    issuefinder create "Fix the bug" -a alice --due 2024-05-01
    issuefinder show <id>                               # Show issue details
    issuefinder list --assignee=none --sort=due_date    # Filter, then sort
    issuefinder list --due-date=overdue --label=bug     # Labels must all match
    issuefinder update <id> --milestone=""              # Clear the milestone
    issuefinder assign <id> alice --toggle              # Assign / unassign alice
    issuefinder unassign <id>                           # Remove every assignee
    issuefinder add-label <id> <label>                  # Add label
    issuefinder milestone-create "v1.0" --due 2024-06-30
    issuefinder add-comment <id> "text"                 # Add comment
    issuefinder award <id> thumbsup                     # React (not a comment)
    issuefinder events <id>                             # Change history
    issuefinder summary                                 # Print the context summary
"""

from __future__ import annotations

from pathlib import Path

import click

from issuefinder import __version__
from issuefinder.cli_commands import issues as issue_commands
from issuefinder.cli_commands import meta as meta_commands
from issuefinder.cli_commands import milestones as milestone_commands
from issuefinder.cli_common import fail, get_config, get_db
from issuefinder.core import (
    DB_FILENAME,
    DEFAULT_SORT,
    ISSUEFINDER_DIR_NAME,
    SUMMARY_FILENAME,
    IssueDB,
    get_first_day_of_week,
    read_config,
    write_config,
)
from issuefinder.query import MONDAY, SUNDAY
from issuefinder.summary import generate_summary, write_summary
from issuefinder.validation import parse_date


@click.group()
@click.version_option(version=__version__, prog_name="issuefinder")
@click.option("--actor", default="cli", help="Actor identity for audit trail (default: cli)")
@click.pass_context
def cli(ctx: click.Context, actor: str) -> None:
    """issuefinder: issue tracker with deterministic filtering and sorting."""
    ctx.ensure_object(dict)
    ctx.obj["actor"] = actor


@cli.command()
@click.option("--prefix", default=None, help="ID prefix for issues (default: directory name)")
@click.option("--week-starts-sunday", is_flag=True, help="Weeks run Sunday..Saturday for 'this_week' filters")
def init(prefix: str | None, week_starts_sunday: bool) -> None:
    """Initialize .issuefinder/ in the current directory."""
    cwd = Path.cwd()
    issuefinder_dir = cwd / ISSUEFINDER_DIR_NAME

    if issuefinder_dir.exists():
        click.echo(f"{ISSUEFINDER_DIR_NAME}/ already exists in {cwd}")
        # Still ensure DB is initialized
        config = read_config(issuefinder_dir)
        db = IssueDB(issuefinder_dir / DB_FILENAME, prefix=config.get("prefix", "issuefinder"))
        db.initialize()
        db.close()
        return

    prefix = prefix or cwd.name
    issuefinder_dir.mkdir()

    first_day_of_week = SUNDAY if week_starts_sunday else MONDAY
    config = {
        "prefix": prefix,
        "version": 1,
        "first_day_of_week": first_day_of_week,
        "default_sort": DEFAULT_SORT,
    }
    write_config(issuefinder_dir, config)

    db = IssueDB(issuefinder_dir / DB_FILENAME, prefix=prefix)
    db.initialize()
    write_summary(db, issuefinder_dir / SUMMARY_FILENAME, first_day_of_week=first_day_of_week)
    db.close()

    click.echo(f"Initialized {ISSUEFINDER_DIR_NAME}/ in {cwd}")
    click.echo(f"  Prefix: {prefix}")
    click.echo(f"  Database: {issuefinder_dir / DB_FILENAME}")


@cli.command()
@click.option("--today", default=None, help="Reference date (YYYY-MM-DD, default: today)")
def summary(today: str | None) -> None:
    """Print the project summary (overdue, due this week, unassigned...)."""
    try:
        reference = parse_date(today, "today") if today else None
    except ValueError as e:
        fail(str(e), as_json=False)
    config = get_config()
    with get_db() as db:
        click.echo(generate_summary(db, today=reference, first_day_of_week=get_first_day_of_week(config)))


for _command in (
    issue_commands.create,
    issue_commands.show,
    issue_commands.list_issues,
    issue_commands.update,
    issue_commands.assign,
    issue_commands.unassign,
    meta_commands.add_label,
    meta_commands.remove_label,
    meta_commands.list_labels,
    meta_commands.add_comment,
    meta_commands.get_comments,
    meta_commands.award,
    meta_commands.events,
    milestone_commands.milestone_create,
    milestone_commands.milestones,
    milestone_commands.milestone_update,
):
    cli.add_command(_command)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()

"""CLI commands for milestones: create, list, update."""

from __future__ import annotations

import json as json_mod

import click

from issuefinder.cli_common import fail, get_db, refresh_summary


@click.command("milestone-create")
@click.argument("title")
@click.option("--due", default=None, help="Due date (YYYY-MM-DD)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def milestone_create(title: str, due: str | None, as_json: bool) -> None:
    """Create a milestone."""
    with get_db() as db:
        try:
            milestone = db.create_milestone(title, due_date=due)
        except ValueError as e:
            fail(str(e), as_json)
        if as_json:
            click.echo(json_mod.dumps(milestone.to_dict(), indent=2))
        else:
            click.echo(f"Created milestone {milestone.id}: {milestone.title}")
        refresh_summary(db)


@click.command("milestones")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def milestones(as_json: bool) -> None:
    """List milestones, soonest due first."""
    with get_db() as db:
        result = db.list_milestones()
    if as_json:
        click.echo(json_mod.dumps([m.to_dict() for m in result], indent=2))
        return
    if not result:
        click.echo("No milestones.")
        return
    for m in result:
        due = m.due_date.isoformat() if m.due_date else "no due date"
        click.echo(f"{m.id} {m.title} ({due})")


@click.command("milestone-update")
@click.argument("milestone_id")
@click.option("--title", default=None, help="New title")
@click.option("--due", default=None, help="Due date YYYY-MM-DD (empty string to clear)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def milestone_update(milestone_id: str, title: str | None, due: str | None, as_json: bool) -> None:
    """Rename a milestone or change its due date."""
    with get_db() as db:
        try:
            milestone = db.update_milestone(milestone_id, title=title, due_date=due)
        except KeyError:
            fail(f"Not found: {milestone_id}", as_json)
        except ValueError as e:
            fail(str(e), as_json)
        if as_json:
            click.echo(json_mod.dumps(milestone.to_dict(), indent=2))
        else:
            click.echo(f"Updated milestone {milestone.id}: {milestone.title}")
        refresh_summary(db)

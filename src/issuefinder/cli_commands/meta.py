"""CLI commands for metadata: labels, comments, award emoji, events."""

from __future__ import annotations

import json as json_mod
from typing import Any

import click

from issuefinder.cli_common import fail, get_db, refresh_summary


@click.command("add-label")
@click.argument("issue_id")
@click.argument("label_name")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def add_label(ctx: click.Context, issue_id: str, label_name: str, as_json: bool) -> None:
    """Add a label to an issue."""
    with get_db() as db:
        try:
            added = db.add_label(issue_id, label_name, actor=ctx.obj["actor"])
        except KeyError:
            fail(f"Not found: {issue_id}", as_json)
        except ValueError as e:
            fail(str(e), as_json)
        if as_json:
            click.echo(json_mod.dumps({"issue_id": issue_id, "label": label_name.strip(), "status": "added" if added else "unchanged"}))
        elif added:
            click.echo(f"Added label '{label_name.strip()}' to {issue_id}")
        else:
            click.echo(f"{issue_id} already has label '{label_name.strip()}'")
        refresh_summary(db)


@click.command("remove-label")
@click.argument("issue_id")
@click.argument("label_name")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def remove_label(ctx: click.Context, issue_id: str, label_name: str, as_json: bool) -> None:
    """Remove a label from an issue."""
    with get_db() as db:
        try:
            removed = db.remove_label(issue_id, label_name, actor=ctx.obj["actor"])
        except KeyError:
            fail(f"Not found: {issue_id}", as_json)
        except ValueError as e:
            fail(str(e), as_json)
        if as_json:
            click.echo(json_mod.dumps({"issue_id": issue_id, "label": label_name, "status": "removed" if removed else "not_found"}))
        elif removed:
            click.echo(f"Removed label '{label_name}' from {issue_id}")
        else:
            click.echo(f"Label '{label_name}' not found on {issue_id}")
        refresh_summary(db)


@click.command("labels")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def list_labels(as_json: bool) -> None:
    """List labels in use."""
    with get_db() as db:
        labels = db.list_labels()
    if as_json:
        click.echo(json_mod.dumps(labels, indent=2))
        return
    if not labels:
        click.echo("No labels.")
        return
    for entry in labels:
        click.echo(f"{entry['label']} ({entry['count']})")


@click.command("add-comment")
@click.argument("issue_id")
@click.argument("text")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def add_comment(ctx: click.Context, issue_id: str, text: str, as_json: bool) -> None:
    """Add a comment to an issue."""
    with get_db() as db:
        try:
            comment_id = db.add_comment(issue_id, text, author=ctx.obj["actor"])
        except KeyError:
            fail(f"Not found: {issue_id}", as_json)
        except ValueError as e:
            fail(str(e), as_json)
        if as_json:
            click.echo(json_mod.dumps({"comment_id": comment_id, "issue_id": issue_id}))
        else:
            click.echo(f"Added comment {comment_id} to {issue_id}")


@click.command("get-comments")
@click.argument("issue_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def get_comments(issue_id: str, as_json: bool) -> None:
    """List comments on an issue."""
    with get_db() as db:
        try:
            result = db.get_comments(issue_id)
        except KeyError:
            fail(f"Not found: {issue_id}", as_json)
    if as_json:
        click.echo(json_mod.dumps(result, indent=2, default=str))
        return
    if not result:
        click.echo("No comments.")
        return
    for c in result:
        click.echo(f"[{c['created_at']}] {c['author']}: {c['text']}")


@click.command("award")
@click.argument("issue_id")
@click.argument("emoji")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def award(ctx: click.Context, issue_id: str, emoji: str, as_json: bool) -> None:
    """React to an issue with EMOJI (e.g. thumbsup). Reactions are not comments."""
    with get_db() as db:
        try:
            added = db.award_emoji(issue_id, emoji, awarded_by=ctx.obj["actor"])
        except KeyError:
            fail(f"Not found: {issue_id}", as_json)
        except ValueError as e:
            fail(str(e), as_json)
    if as_json:
        click.echo(json_mod.dumps({"issue_id": issue_id, "emoji": emoji.strip(":"), "status": "added" if added else "unchanged"}))
    else:
        click.echo(f"Awarded :{emoji.strip(':')}: on {issue_id}" if added else f"Already awarded :{emoji.strip(':')}:")


@click.command()
@click.argument("issue_id", required=False)
@click.option("--limit", default=50, type=int, help="Max events (default 50)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def events(issue_id: str | None, limit: int, as_json: bool) -> None:
    """Show the change history of an issue (or of the whole project), newest first."""
    with get_db() as db:
        if issue_id is None:
            result: list[Any] = list(db.get_recent_events(limit=limit))
        else:
            try:
                result = list(db.get_issue_events(issue_id, limit=limit))
            except KeyError:
                fail(f"Not found: {issue_id}", as_json)
    if as_json:
        click.echo(json_mod.dumps(result, indent=2, default=str))
        return
    for evt in result:
        change = ""
        if evt["old_value"] or evt["new_value"]:
            change = f" {evt['old_value'] or '(none)'} -> {evt['new_value'] or '(none)'}"
        actor = f" by {evt['actor']}" if evt["actor"] else ""
        target = f" {evt['issue_id']}" if issue_id is None else ""
        click.echo(f"[{evt['created_at']}]{target} {evt['event_type']}{change}{actor}")

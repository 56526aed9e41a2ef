"""CLI commands for issues: create, show, list, update, assign, unassign."""

from __future__ import annotations

import json as json_mod
from datetime import date

import click

from issuefinder.cli_common import fail, get_config, get_db, refresh_summary
from issuefinder.core import Issue, get_default_sort, get_first_day_of_week
from issuefinder.query import InvalidQueryError
from issuefinder.validation import parse_date, parse_filter_params, parse_sort_key


def _format_due(value: date | None) -> str:
    if value is None:
        return "No due date"
    return f"{value:%b} {value.day}, {value.year}"


def _issue_row(issue: Issue) -> str:
    due = issue.due_date.isoformat() if issue.due_date else "-"
    assignees = ",".join(sorted(issue.assignees)) or "unassigned"
    marker = " [confidential]" if issue.confidential else ""
    return f"{issue.id} {due:<10} {assignees:<20} {issue.title}{marker}"


@click.command()
@click.argument("title")
@click.option("--author", default=None, help="Author username (default: --actor)")
@click.option("--assignee", "-a", multiple=True, help="Assignee username (repeatable)")
@click.option("--label", "-l", multiple=True, help="Labels (repeatable)")
@click.option("--milestone", "-m", default=None, help="Milestone id or title")
@click.option("--due", default=None, help="Due date (YYYY-MM-DD)")
@click.option("--description", "-d", default="", help="Description")
@click.option("--confidential", is_flag=True, help="Only visible to project members")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def create(
    ctx: click.Context,
    title: str,
    author: str | None,
    assignee: tuple[str, ...],
    label: tuple[str, ...],
    milestone: str | None,
    due: str | None,
    description: str,
    confidential: bool,
    as_json: bool,
) -> None:
    """Create a new issue."""
    with get_db() as db:
        try:
            issue = db.create_issue(
                title,
                author=author if author is not None else ctx.obj["actor"],
                assignees=list(assignee) or None,
                labels=list(label) or None,
                milestone_id=milestone,
                due_date=due,
                description=description,
                confidential=confidential,
                actor=ctx.obj["actor"],
            )
        except (ValueError, TypeError) as e:
            fail(str(e), as_json)
        if as_json:
            click.echo(json_mod.dumps(issue.to_dict(), indent=2, default=str))
        else:
            click.echo(f"Created {issue.id}: {issue.title}")
        refresh_summary(db)


@click.command()
@click.argument("issue_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def show(issue_id: str, as_json: bool) -> None:
    """Show issue details."""
    with get_db() as db:
        try:
            issue = db.get_issue(issue_id)
        except KeyError:
            fail(f"Not found: {issue_id}", as_json)

        if as_json:
            click.echo(json_mod.dumps(issue.to_dict(), indent=2, default=str))
            return

        click.echo(f"ID:        {issue.id}")
        click.echo(f"Title:     {issue.title}")
        if issue.author:
            click.echo(f"Author:    {issue.author}")
        click.echo(f"Assignees: {', '.join(sorted(issue.assignees)) or 'No assignee'}")
        if issue.milestone:
            ms_due = f" (due {issue.milestone.due_date.isoformat()})" if issue.milestone.due_date else ""
            click.echo(f"Milestone: {issue.milestone.title}{ms_due}")
        else:
            click.echo("Milestone: None")
        click.echo(f"Due date:  {_format_due(issue.due_date)}")
        if issue.labels:
            click.echo(f"Labels:    {', '.join(sorted(issue.labels))}")
        if issue.confidential:
            click.echo("This issue is confidential")
        click.echo(f"Comments:  {issue.comment_count}")
        click.echo(f"Created:   {issue.created_at.isoformat()}")
        click.echo(f"Updated:   {issue.updated_at.isoformat()}")
        if issue.description:
            click.echo(f"\n--- Description ---\n{issue.description}")


@click.command("list")
@click.option("--assignee", default=None, help="Assignee username, 'none' (unassigned) or 'any'")
@click.option("--label", "-l", multiple=True, help="Require label (repeatable; all must match)")
@click.option("--due-date", default=None, help="none, any, this_week, this_month or overdue")
@click.option("--author", default=None, help="Author username")
@click.option("--milestone", default=None, help="Milestone title or 'none'")
@click.option("--confidential/--not-confidential", default=None, help="Filter by confidentiality")
@click.option("--sort", "sort_key", default=None, help="created_date, recently_updated, due_date, due_date_later, milestone")
@click.option("--today", default=None, help="Reference date for due-date filters (YYYY-MM-DD, default: today)")
@click.option("--limit", default=100, type=int, help="Max results (default 100)")
@click.option("--offset", default=0, type=int, help="Skip first N results")
@click.option("--ids-only", is_flag=True, help="Print issue ids only")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def list_issues(
    assignee: str | None,
    label: tuple[str, ...],
    due_date: str | None,
    author: str | None,
    milestone: str | None,
    confidential: bool | None,
    sort_key: str | None,
    today: str | None,
    limit: int,
    offset: int,
    ids_only: bool,
    as_json: bool,
) -> None:
    """List issues, filtered then sorted."""
    config = get_config()
    try:
        filters = parse_filter_params(
            {
                "assignee_id": assignee,
                "label_names": list(label),
                "due_date": due_date,
                "author": author,
                "milestone": milestone,
                "confidential": confidential,
            }
        )
        sort = parse_sort_key(sort_key) if sort_key is not None else get_default_sort(config)
    except InvalidQueryError as e:
        fail(str(e), as_json, code="invalid_query")
    try:
        reference = parse_date(today, "today") if today else date.today()
    except ValueError as e:
        fail(str(e), as_json)

    with get_db() as db:
        issues = db.list_issues(
            filters,
            sort,
            today=reference,
            first_day_of_week=get_first_day_of_week(config),
            limit=limit,
            offset=offset,
        )

    if as_json:
        payload = [i.id for i in issues] if ids_only else [i.to_dict() for i in issues]
        click.echo(json_mod.dumps(payload, indent=2, default=str))
        return
    if ids_only:
        for issue in issues:
            click.echo(issue.id)
        return
    for issue in issues:
        click.echo(_issue_row(issue))
    click.echo(f"\n{len(issues)} issues")


@click.command()
@click.argument("issue_id")
@click.option("--title", default=None, help="New title")
@click.option("--description", "-d", default=None, help="New description")
@click.option("--assignee", "-a", multiple=True, help="Replace assignees (repeatable)")
@click.option("--unassign-all", is_flag=True, help="Remove every assignee")
@click.option("--milestone", "-m", default=None, help="Milestone id or title (empty string to clear)")
@click.option("--due", default=None, help="Due date YYYY-MM-DD (empty string to clear)")
@click.option("--confidential/--not-confidential", default=None, help="Turn confidentiality on or off")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def update(
    ctx: click.Context,
    issue_id: str,
    title: str | None,
    description: str | None,
    assignee: tuple[str, ...],
    unassign_all: bool,
    milestone: str | None,
    due: str | None,
    confidential: bool | None,
    as_json: bool,
) -> None:
    """Update an issue."""
    if assignee and unassign_all:
        fail("--assignee and --unassign-all are mutually exclusive", as_json)
    assignees: list[str] | None = None
    if unassign_all:
        assignees = []
    elif assignee:
        assignees = list(assignee)

    with get_db() as db:
        try:
            issue = db.update_issue(
                issue_id,
                title=title,
                description=description,
                assignees=assignees,
                milestone_id=milestone,
                due_date=due,
                confidential=confidential,
                actor=ctx.obj["actor"],
            )
        except KeyError:
            fail(f"Not found: {issue_id}", as_json)
        except ValueError as e:
            fail(str(e), as_json)
        if as_json:
            click.echo(json_mod.dumps(issue.to_dict(), indent=2, default=str))
        else:
            click.echo(f"Updated {issue.id}: {issue.title}")
        refresh_summary(db)


@click.command()
@click.argument("issue_id")
@click.argument("username")
@click.option("--toggle", is_flag=True, help="Unassign USERNAME instead if already assigned")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def assign(ctx: click.Context, issue_id: str, username: str, toggle: bool, as_json: bool) -> None:
    """Assign USERNAME to an issue."""
    with get_db() as db:
        try:
            if toggle:
                issue = db.toggle_assignee(issue_id, username, actor=ctx.obj["actor"])
            else:
                issue = db.assign(issue_id, username, actor=ctx.obj["actor"])
        except KeyError:
            fail(f"Not found: {issue_id}", as_json)
        except ValueError as e:
            fail(str(e), as_json)
        if as_json:
            click.echo(json_mod.dumps(issue.to_dict(), indent=2, default=str))
        else:
            click.echo(f"{issue.id}: {', '.join(sorted(issue.assignees)) or 'No assignee'}")
        refresh_summary(db)


@click.command()
@click.argument("issue_id")
@click.argument("username", required=False)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def unassign(ctx: click.Context, issue_id: str, username: str | None, as_json: bool) -> None:
    """Remove USERNAME (or everyone, if omitted) from an issue's assignees."""
    with get_db() as db:
        try:
            issue = db.unassign(issue_id, username, actor=ctx.obj["actor"])
        except KeyError:
            fail(f"Not found: {issue_id}", as_json)
        except ValueError as e:
            fail(str(e), as_json)
        if as_json:
            click.echo(json_mod.dumps(issue.to_dict(), indent=2, default=str))
        else:
            click.echo(f"{issue.id}: {', '.join(sorted(issue.assignees)) or 'No assignee'}")
        refresh_summary(db)


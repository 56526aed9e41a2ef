"""Pre-computed summary generator for agent context.

Reads the issuefinder DB and generates a compact markdown summary that
agents can read in a single file read at session start. Every section is
an ordinary query against the same engine the CLI and MCP server use.
"""

from __future__ import annotations

import contextlib
import os
import re
import tempfile
from datetime import UTC, date, datetime
from pathlib import Path

from issuefinder.core import Issue, IssueDB
from issuefinder.query import ASSIGNEE_NONE, MONDAY, FilterSpec, SortKey, query

SECTION_LIMIT = 10

# Matches C0/C1 control characters except tab/newline (which we handle separately)
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")


def _sanitize_title(text: str) -> str:
    """Sanitize untrusted text for safe markdown interpolation.

    Strips control characters, collapses newlines/carriage returns to spaces,
    and truncates to a reasonable length.
    """
    text = _CONTROL_CHARS_RE.sub("", text)
    text = text.replace("\r\n", " ").replace("\r", " ").replace("\n", " ")
    text = " ".join(text.split())
    if len(text) > 200:
        text = text[:197] + "..."
    return text


def _issue_line(issue: Issue) -> str:
    due = f" due {issue.due_date.isoformat()}" if issue.due_date else ""
    who = f" @{', @'.join(sorted(issue.assignees))}" if issue.assignees else ""
    lock = " [confidential]" if issue.confidential else ""
    return f'- {issue.id} "{_sanitize_title(issue.title)}"{due}{who}{lock}'


def _section(lines: list[str], heading: str, issues: list[Issue]) -> None:
    lines.append(f"## {heading}")
    if issues:
        lines.extend(_issue_line(i) for i in issues[:SECTION_LIMIT])
        if len(issues) > SECTION_LIMIT:
            lines.append(f"  ...and {len(issues) - SECTION_LIMIT} more")
    else:
        lines.append("- (none)")
    lines.append("")


def generate_summary(db: IssueDB, *, today: date | None = None, first_day_of_week: int = MONDAY) -> str:
    """Generate the context.md summary from current DB state."""
    now_iso = datetime.now(UTC).isoformat(timespec="seconds")
    today = today or date.today()
    snapshot = db.snapshot()

    def run(spec: FilterSpec, key: SortKey = "due_date") -> list[Issue]:
        return query(snapshot, spec, key, today=today, first_day_of_week=first_day_of_week)

    overdue = run(FilterSpec(due_date="overdue"))
    this_week = run(FilterSpec(due_date="this_week"))
    unassigned = run(FilterSpec(assignee=ASSIGNEE_NONE), "created_date")
    recently_updated = run(FilterSpec(), "recently_updated")

    lines: list[str] = [f"# Issue Pulse (auto-generated {now_iso}, today {today.isoformat()})", ""]
    lines.append("## Vitals")
    lines.append(
        f"Issues: {len(snapshot)} | Overdue: {len(overdue)} | Due this week: {len(this_week)} | Unassigned: {len(unassigned)}"
    )
    lines.append("")

    _section(lines, "Overdue", overdue)
    _section(lines, "Due This Week", this_week)
    _section(lines, "Unassigned", unassigned)

    milestones = db.list_milestones()
    if milestones:
        lines.append("## Milestones")
        for ms in milestones:
            count = sum(1 for i in snapshot if i.milestone is not None and i.milestone.id == ms.id)
            due = ms.due_date.isoformat() if ms.due_date else "no due date"
            lines.append(f"- {_sanitize_title(ms.title)} ({due}): {count} issues")
        lines.append("")

    _section(lines, "Recently Updated", recently_updated)
    return "\n".join(lines)


def write_summary(db: IssueDB, output_path: str | Path, *, first_day_of_week: int = MONDAY) -> None:
    """Generate and write the summary atomically (write-temp then rename)."""
    summary = generate_summary(db, first_day_of_week=first_day_of_week)
    output = Path(output_path)
    fd, tmp_name = tempfile.mkstemp(dir=output.parent, suffix=".tmp", prefix=".context_")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(summary)
        os.replace(tmp_name, str(output))
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_name)
        raise

"""Database schema definitions for the issuefinder store.

Contains the canonical SQL schema and the current schema version constant.
"""

from __future__ import annotations

SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS milestones (
    id          TEXT PRIMARY KEY,
    title       TEXT NOT NULL UNIQUE,
    due_date    TEXT,
    created_at  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS issues (
    id            TEXT PRIMARY KEY,
    title         TEXT NOT NULL,
    description   TEXT NOT NULL DEFAULT '',
    author        TEXT NOT NULL DEFAULT '',
    milestone_id  TEXT REFERENCES milestones(id) ON DELETE SET NULL,
    due_date      TEXT,
    confidential  INTEGER NOT NULL DEFAULT 0,
    created_at    TEXT NOT NULL,
    updated_at    TEXT NOT NULL,

    CHECK (confidential IN (0, 1))
);

CREATE INDEX IF NOT EXISTS idx_issues_milestone ON issues(milestone_id);
CREATE INDEX IF NOT EXISTS idx_issues_due_date ON issues(due_date);

CREATE TABLE IF NOT EXISTS issue_assignees (
    issue_id  TEXT NOT NULL REFERENCES issues(id) ON DELETE CASCADE,
    username  TEXT NOT NULL,
    PRIMARY KEY (issue_id, username)
);

CREATE INDEX IF NOT EXISTS idx_assignees_username ON issue_assignees(username);

CREATE TABLE IF NOT EXISTS labels (
    issue_id  TEXT NOT NULL REFERENCES issues(id) ON DELETE CASCADE,
    label     TEXT NOT NULL,
    PRIMARY KEY (issue_id, label)
);

CREATE TABLE IF NOT EXISTS comments (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    issue_id    TEXT NOT NULL REFERENCES issues(id) ON DELETE CASCADE,
    author      TEXT NOT NULL DEFAULT '',
    text        TEXT NOT NULL,
    created_at  TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_comments_issue ON comments(issue_id);

CREATE TABLE IF NOT EXISTS award_emoji (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    issue_id    TEXT NOT NULL REFERENCES issues(id) ON DELETE CASCADE,
    name        TEXT NOT NULL,
    awarded_by  TEXT NOT NULL DEFAULT '',
    created_at  TEXT NOT NULL,
    UNIQUE (issue_id, name, awarded_by)
);

CREATE TABLE IF NOT EXISTS events (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    issue_id    TEXT NOT NULL REFERENCES issues(id) ON DELETE CASCADE,
    event_type  TEXT NOT NULL,
    actor       TEXT NOT NULL DEFAULT '',
    old_value   TEXT,
    new_value   TEXT,
    created_at  TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_events_issue ON events(issue_id, created_at);
CREATE INDEX IF NOT EXISTS idx_events_created ON events(created_at);
"""

CURRENT_SCHEMA_VERSION = 1

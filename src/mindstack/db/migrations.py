"""Forward-only migration runner for the MindStack database schema."""

from __future__ import annotations

import sqlite3

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

_V1_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id              TEXT PRIMARY KEY,
    name            TEXT NOT NULL,
    token_hash      TEXT NOT NULL UNIQUE,
    created_at      DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS projects (
    id              TEXT PRIMARY KEY,
    user_id         TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    name            TEXT NOT NULL,
    description     TEXT,
    created_at      DATETIME NOT NULL DEFAULT (strftime('%Y-%m-%d %H:%M:%f', 'now'))
);

CREATE TABLE IF NOT EXISTS sessions (
    id                  TEXT PRIMARY KEY,
    project_id          TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    start_time          DATETIME NOT NULL,
    end_time            DATETIME,
    last_active_at      DATETIME,
    active_file_context TEXT,
    ai_debrief          TEXT
);

CREATE TABLE IF NOT EXISTS captures (
    id                  TEXT PRIMARY KEY,
    session_id          TEXT NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
    project_id          TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    capture_type        TEXT NOT NULL,
    text_content        TEXT,
    ai_markdown_summary TEXT,
    source_url          TEXT,
    page_title          TEXT,
    video_start_time    REAL,
    video_end_time      REAL,
    ide_error_log       TEXT,
    ide_code_diff       TEXT,
    ide_file_path       TEXT,
    priority            INTEGER NOT NULL DEFAULT 0,
    created_at          DATETIME NOT NULL DEFAULT (strftime('%Y-%m-%d %H:%M:%f', 'now'))
);

CREATE INDEX IF NOT EXISTS idx_captures_project ON captures(project_id, created_at);
CREATE INDEX IF NOT EXISTS idx_captures_session ON captures(session_id, created_at);

CREATE TABLE IF NOT EXISTS capture_attachments (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    capture_id      TEXT NOT NULL REFERENCES captures(id) ON DELETE CASCADE,
    url             TEXT NOT NULL,
    file_type       TEXT NOT NULL,
    file_name       TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS capture_chunks (
    capture_id      TEXT NOT NULL REFERENCES captures(id) ON DELETE CASCADE,
    project_id      TEXT,
    chunk_index     INTEGER NOT NULL,
    chunk_text      TEXT NOT NULL,
    origin          TEXT NOT NULL DEFAULT 'text',
    embedding       BLOB NOT NULL,
    created_at      DATETIME NOT NULL DEFAULT (datetime('now')),
    UNIQUE (capture_id, chunk_index)
);

CREATE INDEX IF NOT EXISTS idx_chunks_project ON capture_chunks(project_id);
"""

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
]


def run_migrations(conn: sqlite3.Connection) -> None:
    """Apply all pending migrations in ascending version order.

    Idempotent: safe to call on a database at any version.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()

    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    current = row[0] if row[0] is not None else 0

    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            conn.commit()

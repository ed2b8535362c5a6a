"""
SQLite schema for the specme state database.

Tables:
- kv: Single-row records, e.g. the active project descriptor
- attempts: Apply attempts with their ordered file entries (JSON)
- run_projects: Run id -> project snapshot, for reconnect-from-history
- save_destinations: Project key -> last used save-local destination
- schema_info: Version tracking for migrations

Attempt backup blobs are not stored here; they live on disk under the
sessions directory and are referenced by sequence number.
"""

import sqlite3

SCHEMA_VERSION = 1

ATTEMPT_STATUSES = ["active", "undone"]

SCHEMA_DDL = """
CREATE TABLE IF NOT EXISTS schema_info (
    version INTEGER PRIMARY KEY,
    applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    description TEXT
);

CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value JSON NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS attempts (
    id TEXT PRIMARY KEY,
    status TEXT NOT NULL CHECK(status IN ('active', 'undone')),
    project_root TEXT NOT NULL,
    created_at TEXT NOT NULL,
    completed_at TEXT,
    files JSON NOT NULL DEFAULT '[]'
);

CREATE TABLE IF NOT EXISTS run_projects (
    run_id TEXT PRIMARY KEY,
    data JSON NOT NULL,
    last_opened_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS save_destinations (
    project_key TEXT PRIMARY KEY,
    destination TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_attempts_root_status ON attempts(project_root, status);
CREATE INDEX IF NOT EXISTS idx_attempts_created_at ON attempts(created_at);
CREATE INDEX IF NOT EXISTS idx_run_projects_opened ON run_projects(last_opened_at);
"""


def create_schema(conn: sqlite3.Connection) -> None:
    """
    Create the database schema. Idempotent.

    Example:
        >>> conn = sqlite3.connect(":memory:")
        >>> create_schema(conn)
        >>> get_schema_version(conn) == SCHEMA_VERSION
        True
    """
    conn.executescript(SCHEMA_DDL)
    conn.execute(
        "INSERT OR REPLACE INTO schema_info (version, description) VALUES (?, ?)",
        (SCHEMA_VERSION, "Active project, attempts, run history, save destinations"),
    )
    conn.commit()


def get_schema_version(conn: sqlite3.Connection) -> int | None:
    """Current schema version, or None if the schema was never created."""
    try:
        row = conn.execute("SELECT MAX(version) AS version FROM schema_info").fetchone()
    except sqlite3.OperationalError:
        return None
    if row is None:
        return None
    value = row["version"] if isinstance(row, dict) else row[0]
    return value


def needs_migration(conn: sqlite3.Connection) -> bool:
    current_version = get_schema_version(conn)
    if current_version is None:
        return True
    return current_version < SCHEMA_VERSION

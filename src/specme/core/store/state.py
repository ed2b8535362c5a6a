"""
Durable state store.

One SQLite database holds everything specme remembers between calls: the
active project descriptor, apply attempts, run-to-project snapshots and
remembered save destinations. Values are stored as JSON; callers own the
shape of the records (pydantic models dump to and load from them).

Every read-modify-write goes through :meth:`StateStore.atomic`, which holds
the database write lock for the whole block.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from specme.core.store.connection import get_connection, transaction


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _load(value: str | None) -> Any:
    if value is None:
        return None
    return json.loads(value)


class StateStore:
    """
    Typed access to the state database.

    Methods take an optional ``conn`` so several of them can share one
    :meth:`atomic` block; without it each call uses its own connection.

    Example:
        >>> store = StateStore(config.paths.state_db_path)
        >>> store.put_value("active_project", {"mode": "none"})
        >>> store.get_value("active_project")
        {'mode': 'none'}
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)

    @contextmanager
    def connect(self, conn: sqlite3.Connection | None = None) -> Iterator[sqlite3.Connection]:
        if conn is not None:
            yield conn
            return
        with get_connection(self.db_path) as fresh:
            yield fresh

    @contextmanager
    def atomic(self) -> Iterator[sqlite3.Connection]:
        """Connection inside a ``BEGIN IMMEDIATE`` transaction."""
        with get_connection(self.db_path) as conn, transaction(conn):
            yield conn

    # Key/value records

    def get_value(self, key: str, conn: sqlite3.Connection | None = None) -> Any:
        with self.connect(conn) as c:
            row = c.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return _load(row["value"]) if row else None

    def put_value(self, key: str, value: Any, conn: sqlite3.Connection | None = None) -> None:
        with self.connect(conn) as c:
            c.execute(
                """
                INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, json.dumps(value), utc_now()),
            )

    # Attempts

    def get_attempt(
        self, attempt_id: str, conn: sqlite3.Connection | None = None
    ) -> dict[str, Any] | None:
        with self.connect(conn) as c:
            row = c.execute("SELECT * FROM attempts WHERE id = ?", (attempt_id,)).fetchone()
        return self._attempt_record(row) if row else None

    def save_attempt(self, record: dict[str, Any], conn: sqlite3.Connection | None = None) -> None:
        """Insert or replace an attempt record."""
        with self.connect(conn) as c:
            c.execute(
                """
                INSERT INTO attempts (id, status, project_root, created_at, completed_at, files)
                VALUES (:id, :status, :project_root, :created_at, :completed_at, :files)
                ON CONFLICT(id) DO UPDATE SET
                    status = excluded.status,
                    completed_at = excluded.completed_at,
                    files = excluded.files
                """,
                {
                    "id": record["id"],
                    "status": record["status"],
                    "project_root": record["project_root"],
                    "created_at": record["created_at"],
                    "completed_at": record.get("completed_at"),
                    "files": json.dumps(record.get("files", [])),
                },
            )

    def list_attempts(
        self,
        *,
        project_root: str | None = None,
        status: str | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> list[dict[str, Any]]:
        """Attempts matching the filters, newest first."""
        clauses = []
        params: list[Any] = []
        if project_root is not None:
            clauses.append("project_root = ?")
            params.append(project_root)
        if status is not None:
            clauses.append("status = ?")
            params.append(status)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self.connect(conn) as c:
            rows = c.execute(
                f"SELECT * FROM attempts {where} ORDER BY created_at DESC, rowid DESC",
                tuple(params),
            ).fetchall()
        return [self._attempt_record(row) for row in rows]

    @staticmethod
    def _attempt_record(row: dict[str, Any]) -> dict[str, Any]:
        record = dict(row)
        record["files"] = _load(record.get("files")) or []
        return record

    # Run history

    def get_run(self, run_id: str, conn: sqlite3.Connection | None = None) -> dict[str, Any] | None:
        with self.connect(conn) as c:
            row = c.execute("SELECT data FROM run_projects WHERE run_id = ?", (run_id,)).fetchone()
        return _load(row["data"]) if row else None

    def put_run(
        self,
        run_id: str,
        data: dict[str, Any],
        last_opened_at: str,
        conn: sqlite3.Connection | None = None,
    ) -> None:
        with self.connect(conn) as c:
            c.execute(
                """
                INSERT INTO run_projects (run_id, data, last_opened_at) VALUES (?, ?, ?)
                ON CONFLICT(run_id) DO UPDATE SET
                    data = excluded.data,
                    last_opened_at = excluded.last_opened_at
                """,
                (run_id, json.dumps(data), last_opened_at),
            )

    def delete_run(self, run_id: str, conn: sqlite3.Connection | None = None) -> bool:
        with self.connect(conn) as c:
            cursor = c.execute("DELETE FROM run_projects WHERE run_id = ?", (run_id,))
        return cursor.rowcount > 0

    def list_runs(self, conn: sqlite3.Connection | None = None) -> list[tuple[str, dict[str, Any]]]:
        """All (run_id, snapshot) pairs, most recently opened first."""
        with self.connect(conn) as c:
            rows = c.execute(
                "SELECT run_id, data FROM run_projects ORDER BY last_opened_at DESC, rowid DESC"
            ).fetchall()
        return [(row["run_id"], _load(row["data"])) for row in rows]

    # Save destinations

    def get_destination(
        self, project_key: str, conn: sqlite3.Connection | None = None
    ) -> str | None:
        with self.connect(conn) as c:
            row = c.execute(
                "SELECT destination FROM save_destinations WHERE project_key = ?", (project_key,)
            ).fetchone()
        return row["destination"] if row else None

    def put_destination(
        self, project_key: str, destination: str, conn: sqlite3.Connection | None = None
    ) -> None:
        with self.connect(conn) as c:
            c.execute(
                """
                INSERT INTO save_destinations (project_key, destination, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(project_key) DO UPDATE SET
                    destination = excluded.destination,
                    updated_at = excluded.updated_at
                """,
                (project_key, destination, utc_now()),
            )

"""
Connection management for the specme state database.

- WAL mode so readers do not block the single writer
- dict rows (``row["column"]``)
- autocommit connections; writes go through :func:`transaction`, which
  opens ``BEGIN IMMEDIATE`` so a read-modify-write holds the write lock from
  its first read

Usage:
    with get_connection(db_path) as conn:
        with transaction(conn):
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
            conn.execute("INSERT OR REPLACE INTO kv ...")
"""

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from specme.core.store.schema import create_schema, needs_migration

BUSY_TIMEOUT_SECONDS = 30.0


def dict_factory(cursor: sqlite3.Cursor, row: tuple[Any, ...]) -> dict[str, Any]:
    """Row factory returning rows as dictionaries."""
    fields = [column[0] for column in cursor.description]
    return dict(zip(fields, row))


def configure_connection(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.row_factory = dict_factory


def _connect(db_path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(
        str(db_path),
        timeout=BUSY_TIMEOUT_SECONDS,
        isolation_level=None,
        check_same_thread=False,
    )
    configure_connection(conn)
    return conn


def init_db(db_path: Path | str) -> None:
    """
    Create the database file and schema if needed.

    Example:
        >>> with tempfile.TemporaryDirectory() as tmpdir:
        ...     init_db(Path(tmpdir) / "state.db")
    """
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = _connect(db_path)
    try:
        if needs_migration(conn):
            create_schema(conn)
    finally:
        conn.close()


@contextmanager
def get_connection(db_path: Path | str) -> Iterator[sqlite3.Connection]:
    """
    Get a database connection as a context manager.

    The database is initialized on first use and the connection is closed
    when the context exits.
    """
    db_path = Path(db_path)
    if not db_path.exists():
        init_db(db_path)

    conn = _connect(db_path)
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    Run a block inside ``BEGIN IMMEDIATE`` ... ``COMMIT``.

    Rolls back and re-raises on any exception.
    """
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")

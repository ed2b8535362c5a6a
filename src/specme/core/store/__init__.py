"""
Embedded state database (SQLite).

Example:
    >>> from specme.core.store import StateStore
    >>> store = StateStore(config.paths.state_db_path)
    >>> with store.atomic() as conn:
    ...     record = store.get_attempt("attempt-1", conn)
"""

from specme.core.store.connection import get_connection, init_db, transaction
from specme.core.store.schema import SCHEMA_VERSION, create_schema
from specme.core.store.state import StateStore, utc_now

__all__ = [
    "SCHEMA_VERSION",
    "StateStore",
    "create_schema",
    "get_connection",
    "init_db",
    "transaction",
    "utc_now",
]

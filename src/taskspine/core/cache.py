"""
Key-value storage behind the dynamic-task last-execution store.

Dynamic tasks have no row in ``scheduler_tasks``; the only state they carry
between passes is when they last ran. A pass is usually a fresh process
(cron invoking the CLI), so that state lives in the ``scheduler_kv`` table
of the same database as the persisted tasks.

Architecture:
    ::

        CacheBackend (Protocol)
        └── SqliteCache  - scheduler_kv, shared by every process using the file

        API: get(key) → value | None
             set(key, value)
             delete(key)
             exists(key) → bool
             clear()

Examples:
    >>> cache = SqliteCache(conn)
    >>> cache.set("a1b2", "2024-01-01T00:00:00.000000+00:00")
    >>> cache.get("a1b2")
    '2024-01-01T00:00:00.000000+00:00'

Tags:
    cache, key-value, sqlite, taskspine, protocol
"""

from __future__ import annotations

import json
from typing import Any, Protocol

from taskspine.core.dialect import Dialect, SQLiteDialect
from taskspine.core.protocols import Connection


class CacheBackend(Protocol):
    """Protocol for key-value backends. Values must be JSON-serializable."""

    def get(self, key: str) -> Any | None:
        """Stored value, or ``None`` if the key is unknown."""
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def delete(self, key: str) -> None:
        """Remove a key. No-op if it does not exist."""
        ...

    def exists(self, key: str) -> bool:
        ...

    def clear(self) -> None:
        ...


class SqliteCache:
    """Persistent key-value store in the ``scheduler_kv`` table."""

    TABLE = "scheduler_kv"

    def __init__(self, conn: Connection, dialect: Dialect | None = None) -> None:
        self.conn = conn
        self.dialect: Dialect = dialect or SQLiteDialect()

    def get(self, key: str) -> Any | None:
        row = self.conn.execute(
            f"SELECT value FROM {self.TABLE} WHERE key = {self.dialect.placeholder(0)}",
            (key,),
        ).fetchone()
        return None if row is None else json.loads(row[0])

    def set(self, key: str, value: Any) -> None:
        self.conn.execute(
            self.dialect.upsert(self.TABLE, ["key", "value"], ["key"]),
            (key, json.dumps(value)),
        )
        self.conn.commit()

    def delete(self, key: str) -> None:
        self.conn.execute(
            f"DELETE FROM {self.TABLE} WHERE key = {self.dialect.placeholder(0)}",
            (key,),
        )
        self.conn.commit()

    def exists(self, key: str) -> bool:
        return self.get(key) is not None

    def clear(self) -> None:
        self.conn.execute(f"DELETE FROM {self.TABLE}")
        self.conn.commit()


__all__ = [
    "CacheBackend",
    "SqliteCache",
]

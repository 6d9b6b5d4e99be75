"""SQL fragments for the scheduler's storage classes.

``SqliteTaskRepository``, ``SqliteCache`` and ``DatabaseLockProvider`` never
spell backend syntax themselves: placeholders and conflict handling come
from a ``Dialect``, so a connection to another database only needs a
matching dialect object passed in.

Examples:
    >>> SQLiteDialect().placeholders(3)
    '?, ?, ?'
    >>> SQLiteDialect().insert_or_ignore("scheduler_locks", ["lock_name", "locked_by"])
    'INSERT OR IGNORE INTO scheduler_locks (lock_name, locked_by) VALUES (?, ?)'

Tags:
    dialect, sql, sqlite, taskspine
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Dialect(Protocol):
    """What the storage classes ask of a SQL backend."""

    def placeholder(self, index: int) -> str:
        """Positional parameter marker for the ``index``-th (0-based) value."""
        ...

    def placeholders(self, count: int) -> str:
        ...

    def insert_or_ignore(self, table: str, columns: list[str]) -> str:
        """INSERT that skips rows colliding with a unique key."""
        ...

    def upsert(self, table: str, columns: list[str], key_columns: list[str]) -> str:
        """INSERT that overwrites the non-key columns on a key collision."""
        ...


class SQLiteDialect:
    """``?`` markers, ``INSERT OR IGNORE`` and ``ON CONFLICT ... excluded``."""

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "?"

    def placeholders(self, count: int) -> str:
        return ", ".join(["?"] * count)

    def insert_or_ignore(self, table: str, columns: list[str]) -> str:
        return (
            f"INSERT OR IGNORE INTO {table} ({', '.join(columns)}) "
            f"VALUES ({self.placeholders(len(columns))})"
        )

    def upsert(self, table: str, columns: list[str], key_columns: list[str]) -> str:
        assignments = ", ".join(
            f"{column} = excluded.{column}" for column in columns if column not in key_columns
        )
        return (
            f"INSERT INTO {table} ({', '.join(columns)}) "
            f"VALUES ({self.placeholders(len(columns))}) "
            f"ON CONFLICT ({', '.join(key_columns)}) DO UPDATE SET {assignments}"
        )


__all__ = ["Dialect", "SQLiteDialect"]

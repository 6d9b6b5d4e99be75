"""
Canonical protocol definitions for taskspine storage.

Every module that talks to a database depends on ``Connection`` from here,
never on ``sqlite3`` directly, so repositories run unchanged against a raw
``sqlite3.Connection``, the :class:`~taskspine.core.sqlite_conn.SqliteConnection`
adapter, or any DB-API connection wrapped to the same shape.

Guardrails:
    ❌ DON'T: Duplicate Connection(Protocol) in other modules
    ✅ DO: Import from taskspine.core.protocols

Tags:
    protocol, connection, database, taskspine, contracts
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Connection(Protocol):
    """
    Minimal SYNCHRONOUS connection interface for database operations.

    ``execute`` returns a cursor-like object exposing ``fetchone()``,
    ``fetchall()`` and ``rowcount``; repositories read results from it.

    Examples:
        >>> cursor = conn.execute("SELECT * FROM scheduler_tasks WHERE id = ?", ("abc",))
        >>> row = cursor.fetchone()
    """

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute SQL statement with optional parameters."""
        ...

    def commit(self) -> None:
        """Commit current transaction."""
        ...

    def rollback(self) -> None:
        """Rollback current transaction."""
        ...

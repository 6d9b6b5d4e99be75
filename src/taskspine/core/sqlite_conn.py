"""SQLite adapter for the :class:`~taskspine.core.protocols.Connection` protocol.

The scheduler database is a single file, created (parent directories
included) the first time a pass or CLI command opens it.

Usage::

    from taskspine.core.sqlite_conn import SqliteConnection

    conn = SqliteConnection("~/.taskspine/scheduler.db")
    ensure_schema(conn)
    row = conn.execute("SELECT COUNT(*) FROM scheduler_tasks").fetchone()
    conn.close()
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any

MEMORY = ":memory:"


class SqliteConnection:
    """One ``sqlite3`` connection and the cursor every statement runs on.

    Rows come back as :class:`sqlite3.Row`, so repositories can read columns
    by name or position.
    """

    def __init__(self, path: str | Path = MEMORY) -> None:
        if str(path) != MEMORY:
            path = Path(path).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._cursor = self._conn.cursor()

    def execute(self, sql: str, params: tuple | list = ()) -> sqlite3.Cursor:
        return self._cursor.execute(sql, params)

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()

    def close(self) -> None:
        self._conn.close()

    def __repr__(self) -> str:
        return f"SqliteConnection({self._conn!r})"

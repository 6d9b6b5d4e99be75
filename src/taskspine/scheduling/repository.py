"""Persisted task storage.

Storage of persisted tasks is a pure data concern: it knows nothing about
dynamic tasks, cron evaluation, or execution. The registry
(:class:`~taskspine.scheduling.service.TaskService`) owns orchestration and
talks to storage only through the :class:`TaskStore` protocol.

┌──────────────────────────────────────────────────────────────────────────────┐
│  TASK STORE                                                                   │
│                                                                               │
│   ├── add(task) → Task                 (assigns task.id)                      │
│   ├── update(task) → Task                                                     │
│   ├── remove(task) → bool                                                     │
│   ├── find_all() → list[Task]                                                 │
│   ├── find_all_tasks(show_disabled=False) → list[Task]                        │
│   ├── find_due_tasks(now) → list[Task]                                        │
│   ├── find_by_identifier(id) → Task | None                                    │
│   ├── find_by_implementation_and_arguments(impl, args) → Task | None          │
│   └── count() → int                                                           │
│                                                                               │
│   Ordering: (status, next_execution) ascending.                               │
│   Identity: UNIQUE (implementation, arguments_hash).                          │
│                                                                               │
│   SqliteTaskRepository    ─ scheduler_tasks via Connection + Dialect          │
│   InMemoryTaskRepository  ─ dict-backed, same contract (tests, embedding)     │
└──────────────────────────────────────────────────────────────────────────────┘

Tags:
    taskspine, scheduling, repository, CRUD, sqlite
"""

from __future__ import annotations

import copy
import json
import sqlite3
from collections.abc import Sequence
from datetime import datetime
from typing import Any, Protocol
from uuid import uuid4

from taskspine.core.dialect import Dialect, SQLiteDialect
from taskspine.core.errors import DuplicateTaskError, TaskNotFoundError
from taskspine.core.hashing import compute_arguments_hash
from taskspine.core.logging import get_logger
from taskspine.core.protocols import Connection
from taskspine.core.timestamps import ensure_utc, from_iso8601, to_iso8601

from .models import Task, TaskStatus

logger = get_logger(__name__)


class TaskStore(Protocol):
    """Storage contract for persisted tasks."""

    def add(self, task: Task) -> Task: ...

    def update(self, task: Task) -> Task: ...

    def remove(self, task: Task) -> bool: ...

    def find_all(self) -> list[Task]: ...

    def find_all_tasks(self, show_disabled: bool = False) -> list[Task]: ...

    def find_due_tasks(self, now: datetime) -> list[Task]: ...

    def find_by_identifier(self, identifier: str) -> Task | None: ...

    def find_by_implementation_and_arguments(
        self, implementation: str, arguments: Sequence[Any]
    ) -> Task | None: ...

    def count(self) -> int: ...


def _sort_key(task: Task) -> tuple[int, datetime]:
    return (int(task.status), task.next_execution)


# ---------------------------------------------------------------------------
# SQLite
# ---------------------------------------------------------------------------


class SqliteTaskRepository:
    """Task store backed by the ``scheduler_tasks`` table.

    Example:
        >>> repo = SqliteTaskRepository(conn)
        >>> task = repo.add(Task.new("*/5 * * * *", "app.tasks.Cleanup", now=now))
        >>> repo.find_by_identifier(task.id) == task
        True
    """

    TABLE = "scheduler_tasks"
    COLUMNS = [
        "id",
        "status",
        "expression",
        "implementation",
        "arguments",
        "arguments_hash",
        "description",
        "created_at",
        "last_execution",
        "next_execution",
    ]

    def __init__(self, conn: Connection, dialect: Dialect | None = None) -> None:
        """Initialize repository with database connection.

        Args:
            conn: Database connection (any backend satisfying Connection protocol)
            dialect: SQL dialect for portable queries. Defaults to SQLiteDialect.
        """
        self.conn = conn
        self.dialect: Dialect = dialect or SQLiteDialect()

    def _ph(self, count: int) -> str:
        """Generate placeholder string for this dialect."""
        return self.dialect.placeholders(count)

    @property
    def _select(self) -> str:
        return f"SELECT {', '.join(self.COLUMNS)} FROM {self.TABLE}"

    # === Writes ===

    def add(self, task: Task) -> Task:
        """Insert ``task`` and assign its storage identifier.

        Raises:
            DuplicateTaskError: If a task with the same implementation and
                arguments is already stored.
        """
        task_id = task.id or str(uuid4())
        try:
            self.conn.execute(
                f"INSERT INTO {self.TABLE} ({', '.join(self.COLUMNS)}) "
                f"VALUES ({self._ph(len(self.COLUMNS))})",
                (
                    task_id,
                    int(task.status),
                    task.expression,
                    task.implementation,
                    json.dumps(task.arguments),
                    task.arguments_hash,
                    task.description,
                    to_iso8601(task.created_at),
                    to_iso8601(task.last_execution),
                    to_iso8601(task.next_execution),
                ),
            )
            self.conn.commit()
        except sqlite3.IntegrityError as e:
            self.conn.rollback()
            raise DuplicateTaskError(
                f'Task "{task.implementation}" with these arguments already exists',
                value=task.arguments,
                cause=e,
            ) from e

        task.id = task_id
        logger.debug("task_added", identifier=task_id, implementation=task.implementation)
        return task

    def update(self, task: Task) -> Task:
        """Write every mutable column of ``task`` back.

        Raises:
            TaskNotFoundError: If ``task`` is not stored.
        """
        cursor = self.conn.execute(
            f"""
            UPDATE {self.TABLE}
            SET status = {self._ph(1)}, expression = {self._ph(1)},
                arguments = {self._ph(1)}, arguments_hash = {self._ph(1)},
                description = {self._ph(1)}, last_execution = {self._ph(1)},
                next_execution = {self._ph(1)}
            WHERE id = {self._ph(1)}
            """,
            (
                int(task.status),
                task.expression,
                json.dumps(task.arguments),
                task.arguments_hash,
                task.description,
                to_iso8601(task.last_execution),
                to_iso8601(task.next_execution),
                task.id,
            ),
        )
        updated = cursor.rowcount
        self.conn.commit()
        if not updated:
            raise TaskNotFoundError(task.id)
        return task

    def remove(self, task: Task) -> bool:
        """Delete ``task``. Returns False if it was not stored."""
        cursor = self.conn.execute(
            f"DELETE FROM {self.TABLE} WHERE id = {self._ph(1)}",
            (task.id,),
        )
        removed = cursor.rowcount > 0
        self.conn.commit()
        if removed:
            logger.debug("task_removed", identifier=task.id, implementation=task.implementation)
        return removed

    # === Queries ===

    def find_all(self) -> list[Task]:
        return self.find_all_tasks(show_disabled=True)

    def find_all_tasks(self, show_disabled: bool = False) -> list[Task]:
        where = "" if show_disabled else f" WHERE status = {int(TaskStatus.ENABLED)}"
        cursor = self.conn.execute(
            f"{self._select}{where} ORDER BY status, next_execution"
        )
        return [self._row_to_task(row) for row in cursor.fetchall()]

    def find_due_tasks(self, now: datetime) -> list[Task]:
        """Enabled tasks whose next execution is at or before ``now``."""
        cursor = self.conn.execute(
            f"""
            {self._select}
            WHERE status = {self._ph(1)} AND next_execution <= {self._ph(1)}
            ORDER BY status, next_execution
            """,
            (int(TaskStatus.ENABLED), to_iso8601(now)),
        )
        return [self._row_to_task(row) for row in cursor.fetchall()]

    def find_by_identifier(self, identifier: str) -> Task | None:
        cursor = self.conn.execute(
            f"{self._select} WHERE id = {self._ph(1)}",
            (identifier,),
        )
        row = cursor.fetchone()
        if not row:
            return None
        return self._row_to_task(row)

    def find_by_implementation_and_arguments(
        self, implementation: str, arguments: Sequence[Any]
    ) -> Task | None:
        cursor = self.conn.execute(
            f"{self._select} WHERE implementation = {self._ph(1)} AND arguments_hash = {self._ph(1)}",
            (implementation, compute_arguments_hash(arguments)),
        )
        row = cursor.fetchone()
        if not row:
            return None
        return self._row_to_task(row)

    def count(self) -> int:
        cursor = self.conn.execute(f"SELECT COUNT(*) FROM {self.TABLE}")
        return cursor.fetchone()[0]

    # === Private Helpers ===

    def _row_to_task(self, row: Any) -> Task:
        """Convert database row to Task model."""
        data = dict(zip(self.COLUMNS, tuple(row), strict=False))
        return Task(
            id=data["id"],
            status=TaskStatus(data["status"]),
            expression=data["expression"],
            implementation=data["implementation"],
            arguments=json.loads(data["arguments"] or "[]"),
            arguments_hash=data["arguments_hash"],
            description=data["description"] or "",
            created_at=from_iso8601(data["created_at"]),
            last_execution=from_iso8601(data["last_execution"]),
            next_execution=from_iso8601(data["next_execution"]),
        )


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------


class InMemoryTaskRepository:
    """Dict-backed task store with the same contract as the SQLite one.

    Stored and returned tasks are copies, so mutating a returned task has no
    effect until it is passed to :meth:`update`.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, Task] = {}

    def add(self, task: Task) -> Task:
        for stored in self._tasks.values():
            if (stored.implementation, stored.arguments_hash) == (
                task.implementation,
                task.arguments_hash,
            ):
                raise DuplicateTaskError(
                    f'Task "{task.implementation}" with these arguments already exists',
                    value=task.arguments,
                )
        task.id = task.id or str(uuid4())
        self._tasks[task.id] = copy.deepcopy(task)
        return task

    def update(self, task: Task) -> Task:
        if task.id not in self._tasks:
            raise TaskNotFoundError(task.id)
        self._tasks[task.id] = copy.deepcopy(task)
        return task

    def remove(self, task: Task) -> bool:
        return self._tasks.pop(task.id, None) is not None

    def find_all(self) -> list[Task]:
        return self.find_all_tasks(show_disabled=True)

    def find_all_tasks(self, show_disabled: bool = False) -> list[Task]:
        tasks = [t for t in self._tasks.values() if show_disabled or t.is_enabled]
        return [copy.deepcopy(t) for t in sorted(tasks, key=_sort_key)]

    def find_due_tasks(self, now: datetime) -> list[Task]:
        now = ensure_utc(now)
        due = [t for t in self._tasks.values() if t.is_due(now)]
        return [copy.deepcopy(t) for t in sorted(due, key=_sort_key)]

    def find_by_identifier(self, identifier: str) -> Task | None:
        task = self._tasks.get(identifier)
        return copy.deepcopy(task) if task else None

    def find_by_implementation_and_arguments(
        self, implementation: str, arguments: Sequence[Any]
    ) -> Task | None:
        arguments_hash = compute_arguments_hash(arguments)
        for task in self._tasks.values():
            if task.implementation == implementation and task.arguments_hash == arguments_hash:
                return copy.deepcopy(task)
        return None

    def count(self) -> int:
        return len(self._tasks)

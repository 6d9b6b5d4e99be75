"""Scheduler data models.

``Task`` is the mutable record for one schedulable unit; it owns its due and
execution bookkeeping through the cron evaluator. ``TaskDescriptor`` is the
read-only view the registry hands out for listing and running, pairing a
task with its origin and stable identifier.

Persistence is never implicit: mutating a ``Task`` changes only the object.
The registry writes it back explicitly (``TaskService.update``).

Tags:
    taskspine, models, scheduling, dataclasses, cron
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any

from taskspine.core.hashing import compute_arguments_hash, implementation_key
from taskspine.core.timestamps import ensure_utc

from .cron import CronExpression


class TaskStatus(IntEnum):
    """Task status. Stored as an integer so storage orders disabled first."""

    DISABLED = 0
    ENABLED = 1


class TaskOrigin(str, Enum):
    """Where a task comes from."""

    PERSISTED = "persisted"
    DYNAMIC = "dynamic"


# ---------------------------------------------------------------------------
# Task
# ---------------------------------------------------------------------------


@dataclass
class Task:
    """Schedulable unit (``scheduler_tasks`` row or transient dynamic task).

    Use :meth:`Task.new` to create a task; the plain constructor is for
    rehydrating stored state and does not recompute anything.
    """

    expression: str
    implementation: str
    created_at: datetime
    next_execution: datetime
    arguments: list[Any] = field(default_factory=list)
    arguments_hash: str = ""
    status: TaskStatus = TaskStatus.DISABLED
    last_execution: datetime | None = None
    description: str = ""
    id: str = ""  # storage-assigned, empty until persisted

    _cron: CronExpression | None = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.status = TaskStatus(self.status)
        self.arguments = list(self.arguments)
        if not self.arguments_hash:
            self.arguments_hash = compute_arguments_hash(self.arguments)
        self.created_at = ensure_utc(self.created_at)
        self.next_execution = ensure_utc(self.next_execution)
        if self.last_execution is not None:
            self.last_execution = ensure_utc(self.last_execution)

    @classmethod
    def new(
        cls,
        expression: str,
        implementation: str,
        arguments: Sequence[Any] = (),
        description: str = "",
        *,
        now: datetime,
    ) -> Task:
        """Create a disabled task whose first run is computed from ``now``.

        Raises:
            InvalidExpressionError: If ``expression`` does not parse.
        """
        cron = CronExpression.parse(expression)
        task = cls(
            expression=cron.expression,
            implementation=implementation,
            created_at=now,
            next_execution=cron.next_run(now),
            arguments=list(arguments),
            description=description,
        )
        task._cron = cron
        return task

    # === Cron ===

    @property
    def cron(self) -> CronExpression:
        """Parsed expression, memoized until the expression changes."""
        if self._cron is None:
            self._cron = CronExpression.parse(self.expression)
        return self._cron

    def set_expression(self, expression: str, *, now: datetime) -> None:
        """Replace the expression and recompute the next execution from ``now``."""
        cron = CronExpression.parse(expression)
        self.expression = cron.expression
        self._cron = cron
        self.next_execution = cron.next_run(now)

    def set_arguments(self, arguments: Sequence[Any]) -> None:
        self.arguments = list(arguments)
        self.arguments_hash = compute_arguments_hash(self.arguments)

    # === Status ===

    @property
    def is_enabled(self) -> bool:
        return self.status == TaskStatus.ENABLED

    @property
    def is_disabled(self) -> bool:
        return self.status == TaskStatus.DISABLED

    def enable(self) -> None:
        self.status = TaskStatus.ENABLED

    def disable(self) -> None:
        self.status = TaskStatus.DISABLED

    # === Scheduling ===

    def is_due(self, now: datetime) -> bool:
        return self.is_enabled and self.next_execution <= ensure_utc(now)

    def mark_as_run(self, now: datetime) -> None:
        """Record an execution at ``now`` and advance the schedule from it."""
        self.last_execution = ensure_utc(now)
        self.next_execution = self.cron.next_run(self.last_execution)

    def get_next_execution(self, reference: datetime | None = None) -> datetime:
        """Stored next execution, or the next run after ``reference`` (no mutation)."""
        if reference is not None:
            return self.cron.next_run(reference)
        return self.next_execution

    def get_previous_run_date(self, reference: datetime) -> datetime:
        return self.cron.previous_run(reference)


# ---------------------------------------------------------------------------
# TaskDescriptor
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TaskDescriptor:
    """Read-only view of a task with its origin and identifier.

    ``last_execution`` is captured when the descriptor is built: for dynamic
    tasks it comes from the last-execution store, not from the transient
    task record.
    """

    origin: TaskOrigin
    identifier: str
    task: Task
    last_execution: datetime | None = None

    @classmethod
    def from_persisted_task(cls, task: Task) -> TaskDescriptor:
        if not task.id:
            raise ValueError(
                f"Persisted task {task.implementation!r} has no storage identifier"
            )
        return cls(
            origin=TaskOrigin.PERSISTED,
            identifier=task.id,
            task=task,
            last_execution=task.last_execution,
        )

    @classmethod
    def from_dynamic_task(cls, task: Task, last_execution: datetime | None) -> TaskDescriptor:
        return cls(
            origin=TaskOrigin.DYNAMIC,
            identifier=implementation_key(task.implementation),
            task=task,
            last_execution=last_execution,
        )

    @property
    def is_persisted(self) -> bool:
        return self.origin == TaskOrigin.PERSISTED

    @property
    def is_dynamic(self) -> bool:
        return self.origin == TaskOrigin.DYNAMIC

    @property
    def enabled_label(self) -> str:
        return "On" if self.task.is_enabled else "Off"

    @property
    def sort_key(self) -> tuple[datetime, str]:
        return (self.task.next_execution, self.identifier)

    def to_dict(self) -> dict[str, Any]:
        """Flat row for list output."""
        return {
            "type": self.origin.value,
            "status": self.enabled_label,
            "identifier": self.identifier,
            "expression": self.task.expression,
            "implementation": self.task.implementation,
            "next_execution": self.task.next_execution.isoformat(),
            "last_execution": self.last_execution.isoformat() if self.last_execution else None,
            "description": self.task.description,
        }

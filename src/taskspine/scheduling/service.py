"""Task registry - merges persisted and dynamic tasks.

The TaskService is the single place that knows both task sources. It
builds the ordered task list the runner and the CLI see, computes the due
set, and mediates every create/update/remove so callers never touch
storage or the last-execution store directly.

┌──────────────────────────────────────────────────────────────────────────────┐
│  TASK SERVICE                                                                 │
│                                                                               │
│   Sources:                                                                    │
│   ┌─────────────────────┐  ┌──────────────────────────┐                       │
│   │  TaskStore          │  │  TaskDeclarationRegistry │                       │
│   │  (persisted tasks)  │  │  + LastExecutionStore    │                       │
│   └──────────┬──────────┘  └────────────┬─────────────┘                       │
│              │                          │                                     │
│              ▼                          ▼                                     │
│   TaskDescriptor(PERSISTED, task.id)   TaskDescriptor(DYNAMIC, md5(impl))     │
│              └────────────┬─────────────┘                                     │
│                           ▼                                                   │
│            sorted by (next_execution, identifier)                             │
│                                                                               │
│   Due rules:                                                                  │
│   - persisted: enabled and next_execution <= now                              │
│   - dynamic:   no stored last execution L, or now >= next_run(expr, L)        │
│                                                                               │
│   Writes:                                                                     │
│   - update(task, PERSISTED) → TaskStore.update                                │
│   - update(task, DYNAMIC)   → LastExecutionStore.set (nothing else survives)  │
└──────────────────────────────────────────────────────────────────────────────┘

Tags:
    taskspine, scheduling, registry, service, orchestration
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any

from taskspine.core.errors import DuplicateTaskError, TaskNotFoundError
from taskspine.core.hashing import implementation_key
from taskspine.core.logging import get_logger
from taskspine.core.timestamps import Clock, ensure_utc, utc_now

from .cron import next_run
from .declarations import TaskDeclaration, TaskDeclarationRegistry
from .last_execution import LastExecutionStore
from .models import Task, TaskDescriptor, TaskOrigin
from .repository import TaskStore
from .resolver import ImplementationResolver

logger = get_logger(__name__)


def _sorted(descriptors: Iterable[TaskDescriptor]) -> list[TaskDescriptor]:
    return sorted(descriptors, key=lambda d: d.sort_key)


class TaskService:
    """Registry of every schedulable task.

    Example:
        >>> service = TaskService(repository, declarations, last_executions, resolver)
        >>> task = service.create("0 8 * * 1", "app.tasks.SendDigest", ["weekly"], enabled=True)
        >>> [d.identifier for d in service.get_due_tasks()]
    """

    def __init__(
        self,
        repository: TaskStore,
        declarations: TaskDeclarationRegistry,
        last_executions: LastExecutionStore,
        resolver: ImplementationResolver,
        clock: Clock = utc_now,
    ) -> None:
        self.repository = repository
        self.declarations = declarations
        self.last_executions = last_executions
        self.resolver = resolver
        self.clock = clock

    # === Queries ===

    def get_tasks(self) -> list[TaskDescriptor]:
        """All persisted tasks and all declared dynamic tasks, in run order."""
        now = self.clock()
        return _sorted([*self.get_persisted_tasks(), *self.get_dynamic_tasks(now)])

    def get_due_tasks(self) -> list[TaskDescriptor]:
        """Tasks due at the current clock time, in run order."""
        now = self.clock()
        return _sorted(
            [*self.get_due_persisted_tasks(now), *self.get_dynamic_tasks(now, due_only=True)]
        )

    def get_persisted_tasks(self) -> list[TaskDescriptor]:
        return [TaskDescriptor.from_persisted_task(t) for t in self.repository.find_all()]

    def get_due_persisted_tasks(self, now: datetime) -> list[TaskDescriptor]:
        now = ensure_utc(now)
        return [
            TaskDescriptor.from_persisted_task(t)
            for t in self.repository.find_due_tasks(now)
            if t.is_due(now)
        ]

    def get_dynamic_tasks(self, now: datetime, due_only: bool = False) -> list[TaskDescriptor]:
        """Rebuild declared tasks as enabled transient tasks created at ``now``.

        With ``due_only``, a task is left out when it has a stored last
        execution ``L`` and ``now`` is still before its next run after ``L``.
        """
        now = ensure_utc(now)
        descriptors = []
        for declaration in self.declarations.list_declared_tasks():
            last_execution = self.last_executions.get(declaration.implementation)
            if (
                due_only
                and last_execution is not None
                and now < next_run(declaration.expression, last_execution)
            ):
                continue
            descriptors.append(self._build_dynamic(declaration, last_execution, now))
        return descriptors

    def get_task(self, identifier: str) -> TaskDescriptor:
        """Find a task of either origin by identifier.

        Raises:
            TaskNotFoundError: If nothing matches ``identifier``.
        """
        task = self.repository.find_by_identifier(identifier)
        if task is not None:
            return TaskDescriptor.from_persisted_task(task)

        for declaration in self.declarations.list_declared_tasks():
            if implementation_key(declaration.implementation) == identifier:
                return self._build_dynamic(
                    declaration,
                    self.last_executions.get(declaration.implementation),
                    self.clock(),
                )

        raise TaskNotFoundError(identifier)

    def get_persisted_task(self, identifier: str) -> Task:
        task = self.repository.find_by_identifier(identifier)
        if task is None:
            raise TaskNotFoundError(identifier)
        return task

    def find_by_implementation_and_arguments(
        self, implementation: str, arguments: Sequence[Any]
    ) -> Task | None:
        return self.repository.find_by_implementation_and_arguments(implementation, arguments)

    # === Writes ===

    def create(
        self,
        expression: str,
        implementation: str,
        arguments: Sequence[Any] = (),
        description: str = "",
        *,
        enabled: bool = False,
    ) -> Task:
        """Register and persist a new task.

        Raises:
            InvalidExpressionError: ``expression`` does not parse.
            UnknownImplementationError: ``implementation`` does not resolve.
            InvalidImplementationError: It resolves to something that is not
                a ``TaskInterface``.
            DuplicateTaskError: A task with the same implementation and
                arguments is already persisted.
        """
        task = Task.new(expression, implementation, arguments, description, now=self.clock())
        self.resolver.validate(implementation)

        existing = self.repository.find_by_implementation_and_arguments(implementation, task.arguments)
        if existing is not None:
            raise DuplicateTaskError(
                f'Task "{implementation}" with these arguments already exists ({existing.id})',
                value=task.arguments,
            ).with_context(identifier=existing.id, implementation=implementation)

        if enabled:
            task.enable()
        self.repository.add(task)
        logger.info(
            "task_created",
            identifier=task.id,
            implementation=implementation,
            expression=task.expression,
            enabled=task.is_enabled,
        )
        return task

    def update(self, task: Task, origin: TaskOrigin) -> None:
        """Write ``task`` back to wherever its origin keeps state."""
        if origin == TaskOrigin.PERSISTED:
            self.repository.update(task)
        else:
            self.last_executions.set(task.implementation, task.last_execution)

    def remove(self, task: Task) -> bool:
        removed = self.repository.remove(task)
        if removed:
            logger.info("task_removed", identifier=task.id, implementation=task.implementation)
        return removed

    def enable(self, identifier: str) -> Task:
        task = self.get_persisted_task(identifier)
        task.enable()
        self.repository.update(task)
        logger.info("task_enabled", identifier=identifier, implementation=task.implementation)
        return task

    def disable(self, identifier: str) -> Task:
        task = self.get_persisted_task(identifier)
        task.disable()
        self.repository.update(task)
        logger.info("task_disabled", identifier=identifier, implementation=task.implementation)
        return task

    def remove_by_identifier(self, identifier: str) -> Task:
        task = self.get_persisted_task(identifier)
        self.remove(task)
        return task

    def mark_as_run(self, descriptor: TaskDescriptor, now: datetime) -> Task:
        """Record an execution at ``now`` and persist it."""
        task = descriptor.task
        task.mark_as_run(now)
        self.update(task, descriptor.origin)
        logger.debug(
            "task_marked_as_run",
            identifier=descriptor.identifier,
            implementation=task.implementation,
            next_execution=task.next_execution.isoformat(),
        )
        return task

    # === Private Helpers ===

    @staticmethod
    def _build_dynamic(
        declaration: TaskDeclaration, last_execution: datetime | None, now: datetime
    ) -> TaskDescriptor:
        task = Task.new(
            declaration.expression,
            declaration.implementation,
            description=declaration.description,
            now=now,
        )
        task.enable()
        task.last_execution = last_execution
        return TaskDescriptor.from_dynamic_task(task, last_execution)

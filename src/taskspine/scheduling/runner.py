"""Run coordinator - drives one scheduler pass.

A pass is one invocation of the scheduler (typically cron running
``taskspine task run`` every minute):

    1. If parallel execution is disabled, take the named lock without
       waiting. A pass that cannot get it ends successfully with no work.
    2. Ask the registry for due tasks, earliest first.
    3. For each task: mark it as run and persist that *before* executing,
       then execute it (unless this is a dry run). A task whose bookkeeping
       or execution fails is logged and recorded; the pass moves on to the
       next one.
    4. Release the lock.

Marking before dispatch means a task that crashes the process is not
retried on the next pass, and a dry run still advances the schedule.

Tags:
    taskspine, scheduling, runner, pass, locking, error-isolation
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from taskspine.core.errors import (
    ConfigError,
    LockUnavailableError,
    SchedulerError,
    TaskExecutionError,
    categorize_error,
)
from taskspine.core.logging import LogContext, get_logger
from taskspine.core.timestamps import Clock

from .locks import LockProvider
from .models import TaskDescriptor, TaskOrigin
from .resolver import ImplementationResolver
from .service import TaskService

logger = get_logger(__name__)

DEFAULT_LOCK_NAME = "taskspine.parallel-execution"


class RunStatus(str, Enum):
    """Outcome of one task within a pass."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class TaskRunResult:
    """Result of executing (or skipping) one task."""

    identifier: str
    implementation: str
    origin: TaskOrigin
    status: RunStatus
    started_at: datetime
    finished_at: datetime | None = None
    error: SchedulerError | None = None

    @property
    def duration_seconds(self) -> float | None:
        """Duration in seconds if finished."""
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "identifier": self.identifier,
            "implementation": self.implementation,
            "origin": self.origin.value,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "error": self.error.to_dict() if self.error else None,
        }


@dataclass
class PassReport:
    """Everything one pass did."""

    started_at: datetime
    dry_run: bool = False
    already_running: bool = False
    finished_at: datetime | None = None
    results: list[TaskRunResult] = field(default_factory=list)

    def _count(self, status: RunStatus) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def succeeded(self) -> int:
        return self._count(RunStatus.SUCCESS)

    @property
    def failed(self) -> int:
        return self._count(RunStatus.FAILED)

    @property
    def skipped(self) -> int:
        return self._count(RunStatus.SKIPPED)


class TaskRunner:
    """Executes due tasks sequentially with per-task error isolation.

    Example:
        >>> runner = TaskRunner(service, lock_provider=FileLockProvider(lock_dir),
        ...                     allow_parallel_execution=False)
        >>> report = runner.run()
        >>> report.already_running, report.succeeded, report.failed
        (False, 2, 0)
    """

    def __init__(
        self,
        service: TaskService,
        resolver: ImplementationResolver | None = None,
        lock_provider: LockProvider | None = None,
        *,
        allow_parallel_execution: bool = True,
        lock_name: str = DEFAULT_LOCK_NAME,
        clock: Clock | None = None,
    ) -> None:
        if not allow_parallel_execution and lock_provider is None:
            raise ConfigError("A lock provider is required when parallel execution is disabled")
        self.service = service
        self.resolver = resolver or service.resolver
        self.lock_provider = lock_provider
        self.allow_parallel_execution = allow_parallel_execution
        self.lock_name = lock_name
        self.clock = clock or service.clock

    def run(self, dry_run: bool = False) -> PassReport:
        """Run one pass over the due tasks."""
        report = PassReport(started_at=self.clock(), dry_run=dry_run)

        with LogContext(pass_id=uuid4().hex[:12]):
            lock = None
            if not self.allow_parallel_execution:
                try:
                    lock = self.lock_provider.acquire(self.lock_name)
                except LockUnavailableError:
                    logger.info("pass_skipped_already_running", lock_name=self.lock_name)
                    report.already_running = True
                    report.finished_at = self.clock()
                    return report

            try:
                due = self.service.get_due_tasks()
                logger.info("pass_started", due=len(due), dry_run=dry_run)
                for descriptor in due:
                    report.results.append(self._run_task(descriptor, dry_run=dry_run))
            finally:
                if lock is not None:
                    self.lock_provider.release(lock)

            report.finished_at = self.clock()
            logger.info(
                "pass_completed",
                succeeded=report.succeeded,
                failed=report.failed,
                skipped=report.skipped,
            )
        return report

    def run_single(self, identifier: str) -> TaskRunResult:
        """Run one task now, whether or not it is due or enabled.

        Raises:
            TaskNotFoundError: If ``identifier`` matches no task.
        """
        descriptor = self.service.get_task(identifier)
        with LogContext(pass_id=uuid4().hex[:12]):
            return self._run_task(descriptor, dry_run=False)

    def _run_task(self, descriptor: TaskDescriptor, *, dry_run: bool) -> TaskRunResult:
        task = descriptor.task
        started_at = self.clock()
        result = TaskRunResult(
            identifier=descriptor.identifier,
            implementation=task.implementation,
            origin=descriptor.origin,
            status=RunStatus.SUCCESS,
            started_at=started_at,
        )

        try:
            self.service.mark_as_run(descriptor, started_at)
        except SchedulerError as e:
            # e.g. removed by an earlier task or a concurrent `task remove`
            result.status = RunStatus.FAILED
            result.error = e.with_context(
                identifier=descriptor.identifier,
                implementation=task.implementation,
                origin=descriptor.origin.value,
            )
            logger.error(
                "task_bookkeeping_failed",
                identifier=descriptor.identifier,
                implementation=task.implementation,
                error=str(e),
                category=e.category.value,
            )
            result.finished_at = self.clock()
            return result

        if dry_run:
            result.status = RunStatus.SKIPPED
            result.finished_at = self.clock()
            return result

        try:
            self.resolver.resolve(task.implementation).execute(list(task.arguments))
        except Exception as e:
            result.status = RunStatus.FAILED
            result.error = TaskExecutionError(
                f'Task "{task.implementation}" ({descriptor.identifier}) failed: {e}',
                cause=e,
            ).with_context(
                identifier=descriptor.identifier,
                implementation=task.implementation,
                origin=descriptor.origin.value,
            )
            logger.error(
                "task_failed",
                identifier=descriptor.identifier,
                implementation=task.implementation,
                error=str(e),
                category=categorize_error(e).value,
                exc_info=True,
            )
        else:
            logger.info(
                "task_succeeded",
                identifier=descriptor.identifier,
                implementation=task.implementation,
            )

        result.finished_at = self.clock()
        return result

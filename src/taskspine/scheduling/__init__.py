"""Cron task scheduling for taskspine.

┌──────────────────────────────────────────────────────────────────────────────┐
│  TASKSPINE SCHEDULER                                                          │
│                                                                               │
│  Quick Start:                                                                 │
│  ┌──────────────────────────────────────────────────────────────────────┐    │
│  │   from taskspine.scheduling import TaskInterface, scheduled          │    │
│  │                                                                      │    │
│  │   @scheduled("*/15 * * * *", description="Refresh feeds")            │    │
│  │   class RefreshFeeds(TaskInterface):                                 │    │
│  │       def execute(self, arguments):                                  │    │
│  │           ...                                                        │    │
│  │                                                                      │    │
│  │   # crontab: * * * * * taskspine task run                            │    │
│  └──────────────────────────────────────────────────────────────────────┘    │
│                                                                               │
│  Leaves first:                                                                │
│   cron.py           CronExpression (croniter)                                 │
│   models.py         Task, TaskDescriptor                                      │
│   repository.py     TaskStore: SqliteTaskRepository, InMemoryTaskRepository   │
│   declarations.py   TaskDeclarationRegistry, @scheduled, @register_task       │
│   last_execution.py LastExecutionStore (dynamic task state)                   │
│   resolver.py       ImplementationResolver, TaskInterface                     │
│   locks.py          File / Database / InMemory lock providers                 │
│   service.py        TaskService (registry)                                    │
│   runner.py         TaskRunner (one pass)                                     │
│   bootstrap.py      build_scheduler(settings)                                 │
│                                                                               │
│  Tables: scheduler_tasks, scheduler_kv, scheduler_locks                       │
└──────────────────────────────────────────────────────────────────────────────┘

Tags:
    taskspine, scheduling, cron, croniter
"""

from .bootstrap import Scheduler, build_scheduler, import_task_modules
from .cron import CronExpression, is_valid, next_run, previous_run
from .declarations import (
    TaskDeclaration,
    TaskDeclarationRegistry,
    clear_registry,
    default_registry,
    register_task,
    scheduled,
)
from .last_execution import LastExecutionStore
from .locks import (
    DatabaseLockProvider,
    FileLockProvider,
    InMemoryLockProvider,
    Lock,
    LockProvider,
    create_lock_provider,
)
from .models import Task, TaskDescriptor, TaskOrigin, TaskStatus
from .repository import InMemoryTaskRepository, SqliteTaskRepository, TaskStore
from .resolver import ImplementationResolver, TaskInterface, default_resolver
from .runner import PassReport, RunStatus, TaskRunner, TaskRunResult
from .service import TaskService

__all__ = [
    # Bootstrap
    "Scheduler",
    "build_scheduler",
    "import_task_modules",
    # Cron
    "CronExpression",
    "is_valid",
    "next_run",
    "previous_run",
    # Models
    "Task",
    "TaskDescriptor",
    "TaskOrigin",
    "TaskStatus",
    # Storage
    "TaskStore",
    "SqliteTaskRepository",
    "InMemoryTaskRepository",
    "LastExecutionStore",
    # Declarations & resolution
    "TaskDeclaration",
    "TaskDeclarationRegistry",
    "default_registry",
    "scheduled",
    "register_task",
    "clear_registry",
    "ImplementationResolver",
    "TaskInterface",
    "default_resolver",
    # Locks
    "Lock",
    "LockProvider",
    "FileLockProvider",
    "DatabaseLockProvider",
    "InMemoryLockProvider",
    "create_lock_provider",
    # Service & runner
    "TaskService",
    "TaskRunner",
    "PassReport",
    "TaskRunResult",
    "RunStatus",
]

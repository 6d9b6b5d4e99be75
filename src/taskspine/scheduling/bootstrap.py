"""Wire a scheduler from settings.

``build_scheduler`` is what the CLI (and any embedding application) calls to
get a ready ``TaskService`` + ``TaskRunner`` pair: it opens the database,
creates the tables, imports ``task_modules`` so their decorators register,
loads the ``dynamic_tasks`` table, and picks the lock provider.
"""

from __future__ import annotations

import importlib
from dataclasses import dataclass

from taskspine.core.cache import SqliteCache
from taskspine.core.errors import ConfigError
from taskspine.core.logging import get_logger
from taskspine.core.protocols import Connection
from taskspine.core.schema import ensure_schema
from taskspine.core.settings import SchedulerSettings
from taskspine.core.sqlite_conn import SqliteConnection
from taskspine.core.timestamps import Clock, utc_now

from .declarations import TaskDeclarationRegistry, default_registry
from .last_execution import LastExecutionStore
from .locks import create_lock_provider
from .repository import SqliteTaskRepository
from .resolver import ImplementationResolver, default_resolver
from .runner import TaskRunner
from .service import TaskService

logger = get_logger(__name__)


@dataclass
class Scheduler:
    """A wired scheduler and the connection it owns."""

    conn: Connection
    service: TaskService
    runner: TaskRunner

    def close(self) -> None:
        close = getattr(self.conn, "close", None)
        if close is not None:
            close()


def import_task_modules(modules: list[str]) -> None:
    """Import each module so its ``@scheduled`` / ``@register_task`` decorators run."""
    for name in modules:
        try:
            importlib.import_module(name)
        except ImportError as e:
            raise ConfigError(f"Cannot import task module '{name}': {e}", cause=e) from e
        logger.debug("task_module_imported", module=name)


def build_scheduler(
    settings: SchedulerSettings,
    conn: Connection | None = None,
    *,
    declarations: TaskDeclarationRegistry | None = None,
    resolver: ImplementationResolver | None = None,
    clock: Clock = utc_now,
) -> Scheduler:
    """Build a scheduler from ``settings``.

    Without an explicit ``conn``, opens ``settings.database_path``.
    Declarations and resolver default to the module-level registries the
    decorators write to.
    """
    owns_conn = conn is None
    conn = conn or SqliteConnection(settings.database_path)
    declarations = declarations if declarations is not None else default_registry
    resolver = resolver if resolver is not None else default_resolver
    try:
        ensure_schema(conn)
        import_task_modules(settings.task_modules)
        if settings.dynamic_tasks:
            declarations.load_table(settings.dynamic_tasks)
        lock_provider = create_lock_provider(settings, conn)
    except Exception:
        if owns_conn:
            conn.close()
        raise

    service = TaskService(
        repository=SqliteTaskRepository(conn),
        declarations=declarations,
        last_executions=LastExecutionStore(SqliteCache(conn)),
        resolver=resolver,
        clock=clock,
    )
    runner = TaskRunner(
        service,
        lock_provider=lock_provider,
        allow_parallel_execution=settings.allow_parallel_execution,
        lock_name=settings.lock_name,
    )
    return Scheduler(conn=conn, service=service, runner=runner)

"""Pytest fixtures for scheduling tests."""

from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from taskspine.core.cache import SqliteCache
from taskspine.core.schema import ensure_schema
from taskspine.core.sqlite_conn import SqliteConnection
from taskspine.scheduling import (
    ImplementationResolver,
    InMemoryLockProvider,
    LastExecutionStore,
    SqliteTaskRepository,
    TaskDeclarationRegistry,
    TaskInterface,
    TaskRunner,
    TaskService,
)

NOW = datetime(2024, 1, 1, 0, 0, tzinfo=UTC)


class FakeClock:
    """Callable clock the test can move forward."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingTask(TaskInterface):
    """Appends every argument list it is executed with."""

    def __init__(self, calls: list) -> None:
        self.calls = calls

    def execute(self, arguments: list[Any]) -> None:
        self.calls.append(arguments)


class FailingTask(TaskInterface):
    def execute(self, arguments: list[Any]) -> None:
        raise RuntimeError("boom")


@pytest.fixture
def db_conn():
    """In-memory SQLite database with the scheduler schema."""
    conn = SqliteConnection(":memory:")
    ensure_schema(conn)
    yield conn
    conn.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def calls() -> list:
    return []


@pytest.fixture
def resolver(calls):
    """Resolver with recording, failing and digest implementations."""
    resolver = ImplementationResolver(allow_import=False)
    resolver.register("tests.Record", lambda: RecordingTask(calls))
    resolver.register("tests.Other", lambda: RecordingTask(calls))
    resolver.register("tests.Fail", FailingTask)
    resolver.register("SendDigest", lambda: RecordingTask(calls))
    return resolver


@pytest.fixture
def repository(db_conn):
    return SqliteTaskRepository(db_conn)


@pytest.fixture
def declarations():
    return TaskDeclarationRegistry()


@pytest.fixture
def last_executions(db_conn):
    return LastExecutionStore(SqliteCache(db_conn))


@pytest.fixture
def service(repository, declarations, last_executions, resolver, clock):
    return TaskService(repository, declarations, last_executions, resolver, clock)


@pytest.fixture
def task_runner(service):
    return TaskRunner(service)


@pytest.fixture
def lock_provider():
    return InMemoryLockProvider()


@pytest.fixture
def exclusive_runner(service, lock_provider):
    """Runner in single-pass-at-a-time mode."""
    return TaskRunner(service, lock_provider=lock_provider, allow_parallel_execution=False)

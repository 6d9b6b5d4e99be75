"""taskspine core -- infrastructure shared by the scheduler and the CLI.

Architecture::

    errors.py          Structured error hierarchy (SchedulerError + subclasses)
    logging.py         structlog configuration, LogContext
    settings.py        pydantic-settings SchedulerSettings (TASKSPINE_*)
    timestamps.py      UTC helpers, injectable Clock
    hashing.py         Arguments hash, implementation key
    protocols.py       Connection protocol
    dialect.py         SQL dialect fragments (SQLite)
    sqlite_conn.py     sqlite3 adapter satisfying Connection
    schema.py          scheduler_* DDL + ensure_schema()
    cache.py           CacheBackend protocol, SqliteCache key-value store
"""

from taskspine.core.errors import (
    ConfigError,
    DuplicateTaskError,
    ErrorCategory,
    ErrorContext,
    ImplementationError,
    InvalidExpressionError,
    InvalidImplementationError,
    LockUnavailableError,
    SchedulerError,
    StorageError,
    TaskExecutionError,
    TaskNotFoundError,
    UnknownImplementationError,
    ValidationError,
)
from taskspine.core.protocols import Connection
from taskspine.core.timestamps import Clock, fixed_clock, utc_now

__all__ = [
    "Clock",
    "ConfigError",
    "Connection",
    "DuplicateTaskError",
    "ErrorCategory",
    "ErrorContext",
    "ImplementationError",
    "InvalidExpressionError",
    "InvalidImplementationError",
    "LockUnavailableError",
    "SchedulerError",
    "StorageError",
    "TaskExecutionError",
    "TaskNotFoundError",
    "UnknownImplementationError",
    "ValidationError",
    "fixed_clock",
    "utc_now",
]

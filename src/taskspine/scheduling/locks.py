"""Advisory locks for single-pass-at-a-time mode.

When parallel execution is disabled, a scheduler pass must hold a named
lock for its whole duration; a pass that cannot get it ends immediately.
Locks are never waited on.

    Providers::

        LockProvider (Protocol)
        ├── FileLockProvider      fcntl.flock on <lock dir>/<name>.lock
        │                         released by the OS if the process dies
        ├── DatabaseLockProvider  row in scheduler_locks with TTL expiry
        │                         crashed holders stop blocking after ttl
        └── InMemoryLockProvider  process-local (tests, embedding)

Tags:
    taskspine, scheduling, locks, concurrency, fcntl, TTL
"""

from __future__ import annotations

import fcntl
import os
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Protocol
from uuid import uuid4

from taskspine.core.dialect import Dialect, SQLiteDialect
from taskspine.core.errors import ConfigError, LockUnavailableError
from taskspine.core.logging import get_logger
from taskspine.core.protocols import Connection
from taskspine.core.settings import LockStrategy, SchedulerSettings
from taskspine.core.timestamps import Clock, to_iso8601, utc_now

logger = get_logger(__name__)


@dataclass
class Lock:
    """A held lock. Pass it back to the provider that issued it."""

    name: str
    owner: str
    acquired_at: datetime
    handle: Any = field(default=None, repr=False, compare=False)


class LockProvider(Protocol):
    def acquire(self, name: str) -> Lock:
        """Take ``name`` without blocking.

        Raises:
            LockUnavailableError: If another holder has it.
        """
        ...

    def release(self, lock: Lock) -> None: ...


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------


class InMemoryLockProvider:
    def __init__(self, *, owner: str | None = None) -> None:
        self.owner = owner or str(uuid4())
        self._held: set[str] = set()

    def acquire(self, name: str) -> Lock:
        if name in self._held:
            raise LockUnavailableError(name)
        self._held.add(name)
        return Lock(name=name, owner=self.owner, acquired_at=utc_now())

    def release(self, lock: Lock) -> None:
        self._held.discard(lock.name)

    def is_locked(self, name: str) -> bool:
        return name in self._held


# ---------------------------------------------------------------------------
# File (fcntl)
# ---------------------------------------------------------------------------


class FileLockProvider:
    """``flock`` based locks, one file per lock name.

    The lock belongs to the open file description, so two providers in the
    same process exclude each other just like two processes do.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)
        self.owner = f"pid:{os.getpid()}"

    def path_for(self, name: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9._-]", "_", name)
        return self.directory / f"{safe}.lock"

    def acquire(self, name: str) -> Lock:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(name)
        fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as e:
            os.close(fd)
            raise LockUnavailableError(name, cause=e) from e

        os.ftruncate(fd, 0)
        os.write(fd, f"{os.getpid()}\n".encode())
        logger.debug("lock_acquired", lock_name=name, path=str(path))
        return Lock(name=name, owner=self.owner, acquired_at=utc_now(), handle=fd)

    def release(self, lock: Lock) -> None:
        if lock.handle is None:
            return
        try:
            fcntl.flock(lock.handle, fcntl.LOCK_UN)
        finally:
            os.close(lock.handle)
            lock.handle = None
        logger.debug("lock_released", lock_name=lock.name)


# ---------------------------------------------------------------------------
# Database (TTL rows)
# ---------------------------------------------------------------------------


class DatabaseLockProvider:
    """Locks as rows in ``scheduler_locks`` with TTL-based expiry.

    Uses INSERT-or-ignore for atomic acquisition. Expired rows are cleared
    before each attempt so a crashed holder blocks for at most ``ttl_seconds``.
    """

    TABLE = "scheduler_locks"

    def __init__(
        self,
        conn: Connection,
        dialect: Dialect | None = None,
        *,
        instance_id: str | None = None,
        ttl_seconds: int = 3600,
        clock: Clock = utc_now,
    ) -> None:
        self.conn = conn
        self.dialect: Dialect = dialect or SQLiteDialect()
        self.instance_id = instance_id or str(uuid4())
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    def _ph(self, index: int) -> str:
        """Generate dialect-specific placeholder at 1-based position."""
        return self.dialect.placeholder(index - 1)

    def acquire(self, name: str) -> Lock:
        now = self.clock()
        expires = now + timedelta(seconds=self.ttl_seconds)

        self.conn.execute(
            f"""
            DELETE FROM {self.TABLE}
            WHERE lock_name = {self._ph(1)} AND expires_at < {self._ph(2)}
            """,
            (name, to_iso8601(now)),
        )
        insert_sql = self.dialect.insert_or_ignore(
            self.TABLE,
            ["lock_name", "locked_by", "locked_at", "expires_at"],
        )
        cursor = self.conn.execute(
            insert_sql,
            (name, self.instance_id, to_iso8601(now), to_iso8601(expires)),
        )
        acquired = cursor.rowcount > 0
        self.conn.commit()

        if not acquired:
            logger.debug("lock_already_held", lock_name=name)
            raise LockUnavailableError(name)

        logger.debug("lock_acquired", lock_name=name, instance_id=self.instance_id)
        return Lock(name=name, owner=self.instance_id, acquired_at=now)

    def release(self, lock: Lock) -> None:
        """Release ``lock``. Only rows held by this instance are removed."""
        self.conn.execute(
            f"""
            DELETE FROM {self.TABLE}
            WHERE lock_name = {self._ph(1)} AND locked_by = {self._ph(2)}
            """,
            (lock.name, self.instance_id),
        )
        self.conn.commit()
        logger.debug("lock_released", lock_name=lock.name, instance_id=self.instance_id)

    def is_locked(self, name: str) -> bool:
        cursor = self.conn.execute(
            f"""
            SELECT 1 FROM {self.TABLE}
            WHERE lock_name = {self._ph(1)} AND expires_at >= {self._ph(2)}
            """,
            (name, to_iso8601(self.clock())),
        )
        return cursor.fetchone() is not None


def create_lock_provider(settings: SchedulerSettings, conn: Connection | None = None) -> LockProvider:
    """Build the provider selected by ``settings.lock_strategy``."""
    if settings.lock_strategy == LockStrategy.FILE:
        return FileLockProvider(settings.resolved_lock_directory)
    if settings.lock_strategy == LockStrategy.DATABASE:
        if conn is None:
            raise ConfigError("The database lock strategy needs a database connection")
        return DatabaseLockProvider(conn, ttl_seconds=settings.lock_ttl_seconds)
    return InMemoryLockProvider()

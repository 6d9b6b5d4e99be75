"""Last execution times of dynamic tasks.

Dynamic tasks are rebuilt on every query, so the only state that survives
between passes is when each one last ran. It lives in a key-value store
under ``implementation_key(implementation)``, as an ISO-8601 UTC string.
"""

from __future__ import annotations

from datetime import datetime

from taskspine.core.cache import CacheBackend
from taskspine.core.errors import StorageError
from taskspine.core.hashing import implementation_key
from taskspine.core.timestamps import from_iso8601, to_iso8601


class LastExecutionStore:
    def __init__(self, cache: CacheBackend) -> None:
        self.cache = cache

    def get(self, implementation: str) -> datetime | None:
        """Stored last execution of ``implementation``, if any."""
        key = implementation_key(implementation)
        value = self.cache.get(key)
        if value is None:
            return None
        try:
            return from_iso8601(value)
        except (TypeError, ValueError) as e:
            raise StorageError(
                f"Unreadable last execution for '{implementation}': {value!r}",
                cause=e,
            ).with_context(implementation=implementation) from e

    def set(self, implementation: str, when: datetime | None) -> None:
        """Remember ``when`` as the last execution (``None`` forgets it)."""
        key = implementation_key(implementation)
        if when is None:
            self.cache.delete(key)
            return
        self.cache.set(key, to_iso8601(when))

    def delete(self, implementation: str) -> None:
        self.cache.delete(implementation_key(implementation))

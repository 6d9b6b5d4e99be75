"""
Deterministic hashing utilities for task identity.

Two identities in the scheduler are content-derived rather than
storage-assigned:

- **Arguments hash:** persisted tasks are the same logical task iff their
  ``(implementation, arguments_hash)`` pairs match.
- **Implementation key:** dynamic tasks have no storage identity, so their
  identifier (and their key in the last-execution store) is a hash of the
  implementation identifier.

Both must be stable across processes and interpreter runs, which rules out
``hash()`` and anything depending on dict insertion order.

Architecture:
    ::

        Arguments Hash (dedup):
        ┌────────────────────────────────────────────────────────────┐
        │ canonical_json(["weekly", {"b": 1, "a": 2}])               │
        │   → '["weekly",{"a":2,"b":1}]'                             │
        │ compute_arguments_hash(...) → sha1 hex (40 chars)          │
        └────────────────────────────────────────────────────────────┘

        Implementation Key (dynamic identity):
        ┌────────────────────────────────────────────────────────────┐
        │ implementation_key("app.tasks.Cleanup") → md5 hex (32)     │
        └────────────────────────────────────────────────────────────┘

Examples:
    >>> compute_arguments_hash([{"b": 1, "a": 2}]) == compute_arguments_hash([{"a": 2, "b": 1}])
    True
    >>> len(implementation_key("app.tasks.Cleanup"))
    32

Tags:
    hashing, deduplication, identity, taskspine
"""

import hashlib
import json
from collections.abc import Sequence
from typing import Any


def canonical_json(value: Any) -> str:
    """Serialize ``value`` to JSON with sorted keys and no whitespace.

    Values that are not JSON-native (datetimes, decimals) fall back to
    ``str()`` so hashing never fails on a payload the caller accepted.
    """
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def compute_arguments_hash(arguments: Sequence[Any]) -> str:
    """Content hash of a task's argument list."""
    return hashlib.sha1(canonical_json(list(arguments)).encode()).hexdigest()


def implementation_key(implementation: str) -> str:
    """Stable key for an implementation identifier."""
    return hashlib.md5(implementation.encode()).hexdigest()

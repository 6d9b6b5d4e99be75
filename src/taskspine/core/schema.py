"""
Scheduler storage tables.

Defines table names and DDL statements for everything taskspine keeps in
its database file: persisted tasks, the key-value store that remembers
dynamic task executions, and database-backed advisory locks.

Architecture:
    ::

        Table Registry (SCHEDULER_TABLES):
        ┌────────────────────────────────────────────────────────────┐
        │ tasks  → scheduler_tasks   (persisted tasks)               │
        │ kv     → scheduler_kv      (dynamic last executions)       │
        │ locks  → scheduler_locks   (DatabaseLockProvider rows)     │
        └────────────────────────────────────────────────────────────┘

        Identity:
        ┌────────────────────────────────────────────────────────────┐
        │ UNIQUE (implementation, arguments_hash)                    │
        │ Two persisted tasks are the same logical task iff they     │
        │ share implementation and argument content.                 │
        └────────────────────────────────────────────────────────────┘

Timestamps are ISO-8601 UTC strings with fixed microsecond precision, so
``next_execution <= ?`` compares correctly as text.

Examples:
    >>> from taskspine.core.schema import ensure_schema
    >>> ensure_schema(conn)

Guardrails:
    ❌ DON'T: Write timestamps without ``to_iso8601`` (breaks text ordering)
    ✅ DO: Go through the repositories, which normalize every timestamp

Tags:
    schema, ddl, sqlite, taskspine, scheduling
"""

from taskspine.core.protocols import Connection

# =============================================================================
# TABLE NAMES
# =============================================================================

SCHEDULER_TABLES = {
    "tasks": "scheduler_tasks",
    "kv": "scheduler_kv",
    "locks": "scheduler_locks",
}


# =============================================================================
# DDL STATEMENTS
# =============================================================================

SCHEDULER_DDL = {
    "tasks": """
        CREATE TABLE IF NOT EXISTS scheduler_tasks (
            id TEXT PRIMARY KEY,
            status INTEGER NOT NULL DEFAULT 0,      -- 0 = disabled, 1 = enabled
            expression TEXT NOT NULL,
            implementation TEXT NOT NULL,
            arguments TEXT NOT NULL DEFAULT '[]',   -- JSON array
            arguments_hash TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            created_at TEXT NOT NULL,
            last_execution TEXT,
            next_execution TEXT NOT NULL,

            UNIQUE (implementation, arguments_hash)
        )
    """,
    "tasks_idx_due": """
        CREATE INDEX IF NOT EXISTS idx_scheduler_tasks_due
        ON scheduler_tasks(status, next_execution)
    """,
    "kv": """
        CREATE TABLE IF NOT EXISTS scheduler_kv (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL                     -- JSON
        )
    """,
    "locks": """
        CREATE TABLE IF NOT EXISTS scheduler_locks (
            lock_name TEXT PRIMARY KEY,
            locked_by TEXT NOT NULL,
            locked_at TEXT NOT NULL,
            expires_at TEXT NOT NULL
        )
    """,
}


def ensure_schema(conn: Connection) -> None:
    """
    Create all scheduler tables.

    Safe to call on every startup (CREATE IF NOT EXISTS).
    """
    for _name, ddl in SCHEDULER_DDL.items():
        conn.execute(ddl)
    conn.commit()

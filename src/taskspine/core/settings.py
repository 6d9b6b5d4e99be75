"""
Centralized settings for taskspine.

:class:`SchedulerSettings` is the single, validated, cached source of truth
for everything the CLI needs to wire a scheduler: where persisted tasks
live, whether passes may overlap, which lock strategy serializes them, how
to log, and which dynamic tasks to declare.

All fields can be set via ``TASKSPINE_*`` environment variables (e.g.
``TASKSPINE_ALLOW_PARALLEL_EXECUTION=false``) or a ``.env`` file. Complex
fields (``task_modules``, ``dynamic_tasks``) take JSON.

Examples:
    >>> settings = SchedulerSettings(allow_parallel_execution=False)
    >>> settings.lock_strategy
    <LockStrategy.FILE: 'file'>

Tags:
    taskspine, configuration, settings, pydantic, caching, validation
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LockStrategy(str, Enum):
    """How single-pass-at-a-time mode serializes scheduler passes."""

    FILE = "file"
    DATABASE = "database"
    MEMORY = "memory"


class LogFormat(str, Enum):
    JSON = "json"
    CONSOLE = "console"
    AUTO = "auto"


class DeclaredTaskSettings(BaseModel):
    """One row of the dynamic task declaration table."""

    expression: str
    description: str = ""


class SchedulerSettings(BaseSettings):
    """taskspine configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TASKSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Storage ──────────────────────────────────────────────────
    database_path: Path = Field(
        default_factory=lambda: Path.home() / ".taskspine" / "scheduler.db",
        description="SQLite file holding persisted tasks, dynamic last executions and DB locks",
    )

    # ── Run coordination ─────────────────────────────────────────
    allow_parallel_execution: bool = Field(default=True)
    lock_strategy: LockStrategy = Field(default=LockStrategy.FILE)
    lock_name: str = Field(default="taskspine.parallel-execution")
    lock_directory: Path | None = Field(
        default=None,
        description="Directory for file locks (defaults to <database dir>/locks)",
    )
    lock_ttl_seconds: int = Field(default=3600, gt=0)

    # ── Task discovery ───────────────────────────────────────────
    task_modules: list[str] = Field(
        default_factory=list,
        description="Modules imported at startup so @scheduled/@register_task decorators run",
    )
    dynamic_tasks: dict[str, DeclaredTaskSettings] = Field(
        default_factory=dict,
        description="Implementation identifier → declared expression/description",
    )

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="WARNING")
    log_format: LogFormat = Field(default=LogFormat.AUTO)

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    # ── Derived properties ───────────────────────────────────────

    @property
    def resolved_lock_directory(self) -> Path:
        return self.lock_directory or self.database_path.parent / "locks"

    @property
    def json_logs(self) -> bool | None:
        if self.log_format == LogFormat.AUTO:
            return None
        return self.log_format == LogFormat.JSON


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, SchedulerSettings] = {}


def get_settings(*, env_file: str | Path | None = None, _force_reload: bool = False) -> SchedulerSettings:
    """Load, validate, and cache a :class:`SchedulerSettings` instance."""
    cache_key = str(env_file or "")
    if not _force_reload and cache_key in _settings_cache:
        return _settings_cache[cache_key]

    if env_file is not None:
        settings = SchedulerSettings(_env_file=env_file)  # type: ignore[call-arg]
    else:
        settings = SchedulerSettings()

    _settings_cache[cache_key] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()

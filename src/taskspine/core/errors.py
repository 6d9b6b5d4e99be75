"""
Structured error types for the taskspine scheduler.

Every failure the scheduler can report is a ``SchedulerError`` subclass that
carries a category, a retry hint, structured context, and an optional chained
cause. Callers decide how far an error propagates from its type alone:
execution failures are isolated per task, everything else aborts only the
operation that raised it.

Manifesto:
    - **Typed Error Hierarchy:** One class per failure mode the scheduler reports
    - **Explicit Retry Semantics:** Each error knows if it's retryable
    - **Rich Context:** Errors carry task identifier and implementation
    - **Error Chaining:** Preserve original exceptions while adding context

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                      SchedulerError                              │
        │  (category, retryable, context, cause)                          │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  ValidationError        ImplementationError    ConfigError      │
        │  (VALIDATION)           (CONFIG)               (CONFIG)         │
        │       │                      │                                   │
        │  InvalidExpressionError UnknownImplementationError               │
        │  DuplicateTaskError     InvalidImplementationError               │
        │                                                                  │
        │  TaskExecutionError     LockUnavailableError   TaskNotFoundError│
        │  (EXECUTION)            (CONCURRENCY)          (NOT_FOUND)      │
        │                                                                  │
        │  StorageError                                                    │
        │  (STORAGE)                                                       │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = InvalidExpressionError("Invalid cron expression: '* *'", value="* *")
    >>> error.category
    <ErrorCategory.VALIDATION: 'VALIDATION'>
    >>> error.retryable
    False

    >>> try:
    ...     raise RuntimeError("smtp down")
    ... except RuntimeError as e:
    ...     raise TaskExecutionError("Task failed", cause=e).with_context(
    ...         implementation="SendDigest", identifier="abc"
    ...     )
    Traceback (most recent call last):
    ...
    TaskExecutionError: Task failed

Tags:
    error-handling, exception-hierarchy, scheduler, error-context, taskspine
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and reporting.

    Attributes:
        VALIDATION: Bad cron syntax, duplicate tasks, malformed arguments
        CONFIG: Unresolvable or invalid implementations, bad settings
        EXECUTION: A task implementation raised while executing
        CONCURRENCY: Advisory lock already held by another pass
        NOT_FOUND: No task with the requested identifier
        STORAGE: Persisted-task store or key-value store failures
        INTERNAL: Bugs, unexpected state
        UNKNOWN: Uncategorized errors
    """

    VALIDATION = "VALIDATION"
    CONFIG = "CONFIG"
    EXECUTION = "EXECUTION"
    CONCURRENCY = "CONCURRENCY"
    NOT_FOUND = "NOT_FOUND"
    STORAGE = "STORAGE"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to a scheduler error.

    Only fields that are set end up in ``to_dict()``, so the context can be
    splatted straight into a structured log event.

    Attributes:
        identifier: Task identifier (storage key or dynamic hash)
        implementation: Implementation identifier of the task
        expression: Cron expression involved
        origin: Task origin (``persisted`` / ``dynamic``)
        lock_name: Name of the advisory lock involved
        metadata: Additional key-value pairs
    """

    identifier: str | None = None
    implementation: str | None = None
    expression: str | None = None
    origin: str | None = None
    lock_name: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["identifier", "implementation", "expression", "origin", "lock_name"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class SchedulerError(Exception):
    """
    Base exception for all scheduler errors.

    Subclasses set ``default_category`` and ``default_retryable`` so that
    raising sites only pass what differs from the defaults.

    Example:
        >>> err = SchedulerError("boom")
        >>> err.to_dict()["category"]
        'INTERNAL'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> SchedulerError:
        """
        Add context to this error (fluent API).

        Usage:
            raise TaskNotFoundError("missing").with_context(identifier="abc")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serialize error for logging and JSON output."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context = self.context.to_dict()
        if context:
            result["context"] = context
        if self.cause is not None:
            result["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(SchedulerError):
    """
    Input validation error.

    Never retryable - the input must be fixed.
    """

    default_category = ErrorCategory.VALIDATION
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        return result


class InvalidExpressionError(ValidationError):
    """Cron expression does not parse."""

    def __init__(self, message: str, *, value: Any = None, **kwargs: Any):
        super().__init__(message, field="expression", value=value, **kwargs)


class DuplicateTaskError(ValidationError):
    """A persisted task with the same implementation and arguments exists."""

    pass


# =============================================================================
# IMPLEMENTATION / CONFIG ERRORS
# =============================================================================


class ConfigError(SchedulerError):
    """Configuration error (missing or invalid settings)."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class ImplementationError(ConfigError):
    """Base for implementation resolution failures."""

    pass


class UnknownImplementationError(ImplementationError):
    """Implementation identifier does not resolve to anything."""

    def __init__(self, implementation: str, message: str | None = None, **kwargs: Any):
        super().__init__(
            message or f'Task implementation "{implementation}" must exist',
            **kwargs,
        )
        self.implementation = implementation
        self.context.implementation = implementation


class InvalidImplementationError(ImplementationError):
    """Implementation resolves, but not to a TaskInterface."""

    def __init__(self, implementation: str, message: str | None = None, **kwargs: Any):
        super().__init__(
            message or f'Task implementation "{implementation}" must implement TaskInterface',
            **kwargs,
        )
        self.implementation = implementation
        self.context.implementation = implementation


# =============================================================================
# RUNTIME ERRORS
# =============================================================================


class TaskExecutionError(SchedulerError):
    """A task implementation raised during ``execute``."""

    default_category = ErrorCategory.EXECUTION


class LockUnavailableError(SchedulerError):
    """Advisory lock is already held by another scheduler pass."""

    default_category = ErrorCategory.CONCURRENCY
    default_retryable = True

    def __init__(self, lock_name: str, message: str | None = None, **kwargs: Any):
        super().__init__(message or f"Lock '{lock_name}' is already held", **kwargs)
        self.lock_name = lock_name
        self.context.lock_name = lock_name


class TaskNotFoundError(SchedulerError):
    """No task matches the requested identifier."""

    default_category = ErrorCategory.NOT_FOUND

    def __init__(self, identifier: str, message: str | None = None, **kwargs: Any):
        super().__init__(
            message or f"Task with identifier {identifier} does not exist.",
            **kwargs,
        )
        self.identifier = identifier
        self.context.identifier = identifier


class StorageError(SchedulerError):
    """Persisted-task or key-value store failure."""

    default_category = ErrorCategory.STORAGE


# =============================================================================
# HELPERS
# =============================================================================


def categorize_error(error: Exception) -> ErrorCategory:
    """Best-effort category for any exception."""
    if isinstance(error, SchedulerError):
        return error.category
    if isinstance(error, (ValueError, TypeError)):
        return ErrorCategory.VALIDATION
    if isinstance(error, (ImportError, AttributeError)):
        return ErrorCategory.CONFIG
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "SchedulerError",
    "ValidationError",
    "InvalidExpressionError",
    "DuplicateTaskError",
    "ConfigError",
    "ImplementationError",
    "UnknownImplementationError",
    "InvalidImplementationError",
    "TaskExecutionError",
    "LockUnavailableError",
    "TaskNotFoundError",
    "StorageError",
    "categorize_error",
]

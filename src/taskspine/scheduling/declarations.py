"""Dynamic task declarations.

Dynamic tasks are declared by code or configuration rather than stored:
an implementation identifier plus the cron expression and description it
should run with. They are rebuilt on every registry query; only their last
execution time is remembered (see ``last_execution``).

Declare them with the decorator::

    @scheduled("0 3 * * *", description="Purge expired sessions")
    class PurgeSessions(TaskInterface):
        def execute(self, arguments):
            ...

explicitly with ``default_registry.declare(...)``, or through the
``dynamic_tasks`` settings table.

Tags:
    taskspine, scheduling, registry, decorators, dynamic-tasks
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

from pydantic import BaseModel

from taskspine.core.logging import get_logger

from .cron import CronExpression
from .resolver import TaskInterface, default_resolver

logger = get_logger(__name__)

T = TypeVar("T", bound=type[TaskInterface])


@dataclass(frozen=True)
class TaskDeclaration:
    """An implementation declared to run on a schedule."""

    implementation: str
    expression: str
    description: str = ""


class TaskDeclarationRegistry:
    """Declared dynamic tasks, keyed by implementation identifier.

    Declaring an implementation again replaces its previous declaration,
    so a settings table loaded after module imports overrides decorators.
    """

    def __init__(self) -> None:
        self._declarations: dict[str, TaskDeclaration] = {}

    def declare(self, implementation: str, expression: str, description: str = "") -> TaskDeclaration:
        """Declare ``implementation`` to run on ``expression``.

        Raises:
            InvalidExpressionError: If ``expression`` does not parse.
        """
        cron = CronExpression.parse(expression)
        declaration = TaskDeclaration(
            implementation=implementation,
            expression=cron.expression,
            description=description,
        )
        if implementation in self._declarations:
            logger.debug("task_redeclared", implementation=implementation, expression=cron.expression)
        self._declarations[implementation] = declaration
        return declaration

    def list_declared_tasks(self) -> list[TaskDeclaration]:
        return sorted(self._declarations.values(), key=lambda d: d.implementation)

    def get(self, implementation: str) -> TaskDeclaration | None:
        return self._declarations.get(implementation)

    def load_table(self, table: Mapping[str, Any]) -> int:
        """Declare every row of ``{implementation: {expression, description}}``.

        Rows may be mappings or pydantic models (``DeclaredTaskSettings``).
        Returns the number of declarations loaded.
        """
        for implementation, row in table.items():
            if isinstance(row, BaseModel):
                row = row.model_dump()
            self.declare(implementation, row["expression"], row.get("description", ""))
        logger.debug("declaration_table_loaded", count=len(table))
        return len(table)

    def clear(self) -> None:
        self._declarations.clear()

    def __len__(self) -> int:
        return len(self._declarations)

    def __contains__(self, implementation: object) -> bool:
        return implementation in self._declarations


# Global registry used by the @scheduled decorator
default_registry = TaskDeclarationRegistry()


def implementation_name(cls: type) -> str:
    """Default implementation identifier for a class: its dotted import path."""
    return f"{cls.__module__}.{cls.__qualname__}"


def register_task(name: str | None = None) -> Callable[[T], T]:
    """Decorator to make a task class resolvable by name.

    Use it for implementations referenced by persisted tasks; they are not
    scheduled until a task is registered for them.
    """

    def decorator(cls: T) -> T:
        default_resolver.register(name or implementation_name(cls), cls, replace=True)
        return cls

    return decorator


def scheduled(expression: str, description: str = "", name: str | None = None) -> Callable[[T], T]:
    """Decorator to declare a task class as a dynamic task."""

    def decorator(cls: T) -> T:
        implementation = name or implementation_name(cls)
        default_resolver.register(implementation, cls, replace=True)
        default_registry.declare(implementation, expression, description or cls.description)
        logger.debug("task_declared", implementation=implementation, expression=expression)
        return cls

    return decorator


def clear_registry() -> None:
    """Clear the global declarations and resolver (for testing)."""
    default_registry.clear()
    default_resolver.clear()

"""Implementation resolution.

A task names its implementation with an opaque string. The resolver turns
that string into something executable: first through an explicit lookup
table of factories, then by importing it as a dotted path
(``package.module.Class`` or ``package.module:Class``).

Tags:
    taskspine, scheduling, resolver, registry, importlib
"""

from __future__ import annotations

import importlib
import inspect
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from typing import Any

from taskspine.core.errors import InvalidImplementationError, UnknownImplementationError
from taskspine.core.logging import get_logger

logger = get_logger(__name__)


class TaskInterface(ABC):
    """Base class for every executable task."""

    description: str = ""

    @abstractmethod
    def execute(self, arguments: list[Any]) -> Any:
        """Run the task with its stored arguments. Must be implemented by subclasses."""
        ...

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


TaskFactory = Callable[[], TaskInterface]


class ImplementationResolver:
    """Maps implementation identifiers to task factories.

    Example:
        >>> resolver = ImplementationResolver()
        >>> resolver.register("cleanup", CleanupTask)
        >>> resolver.resolve("cleanup").execute([])
    """

    def __init__(
        self,
        factories: Mapping[str, TaskFactory] | None = None,
        *,
        allow_import: bool = True,
    ) -> None:
        self._factories: dict[str, TaskFactory] = dict(factories or {})
        self.allow_import = allow_import

    def register(self, name: str, factory: TaskFactory, *, replace: bool = False) -> None:
        """Register ``factory`` under ``name``.

        Re-registering the same factory is a no-op. With ``replace``, a
        different factory takes over the name (a reloaded module's class).

        Raises:
            ValueError: If ``name`` is already bound to a different factory
                and ``replace`` is false.
        """
        existing = self._factories.get(name)
        if existing is not None and existing is not factory:
            if not replace:
                raise ValueError(f"Task implementation '{name}' is already registered")
            logger.debug("implementation_replaced", name=name)
        self._factories[name] = factory
        logger.debug("implementation_registered", name=name, factory=getattr(factory, "__name__", repr(factory)))

    def unregister(self, name: str) -> None:
        self._factories.pop(name, None)

    def names(self) -> list[str]:
        return sorted(self._factories)

    def clear(self) -> None:
        self._factories.clear()

    def validate(self, name: str) -> TaskFactory:
        """Check that ``name`` resolves to a ``TaskInterface`` factory.

        Classes are checked without instantiating them; other callables can
        only be checked by :meth:`resolve`.

        Raises:
            UnknownImplementationError: Nothing answers to ``name``.
            InvalidImplementationError: ``name`` resolves to a class that is
                not a ``TaskInterface``, or to something not callable.
        """
        factory = self._lookup(name)
        if inspect.isclass(factory):
            if not issubclass(factory, TaskInterface) or inspect.isabstract(factory):
                raise InvalidImplementationError(name)
        elif not callable(factory):
            raise InvalidImplementationError(name)
        return factory

    def resolve(self, name: str) -> TaskInterface:
        """Build an executable instance for ``name``."""
        factory = self.validate(name)
        instance = factory()
        if not isinstance(instance, TaskInterface):
            raise InvalidImplementationError(name)
        return instance

    def __contains__(self, name: object) -> bool:
        return name in self._factories

    # === Private Helpers ===

    def _lookup(self, name: str) -> Any:
        if name in self._factories:
            return self._factories[name]
        if not self.allow_import:
            raise UnknownImplementationError(name)
        return self._import(name)

    @staticmethod
    def _import(name: str) -> Any:
        if ":" in name:
            module_name, _, attr = name.partition(":")
        else:
            module_name, _, attr = name.rpartition(".")
        if not module_name or not attr:
            raise UnknownImplementationError(name)

        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            raise UnknownImplementationError(name, cause=e) from e

        target: Any = module
        for part in attr.split("."):
            try:
                target = getattr(target, part)
            except AttributeError as e:
                raise UnknownImplementationError(name, cause=e) from e
        return target


# Global resolver used by the @scheduled / @register_task decorators
default_resolver = ImplementationResolver()

"""Tests for dynamic task declarations and implementation resolution."""

from typing import Any

import pytest

from taskspine.core.errors import (
    InvalidExpressionError,
    InvalidImplementationError,
    UnknownImplementationError,
)
from taskspine.core.settings import DeclaredTaskSettings
from taskspine.scheduling import (
    ImplementationResolver,
    TaskDeclarationRegistry,
    TaskInterface,
    default_registry,
    default_resolver,
    register_task,
    scheduled,
)


class Echo(TaskInterface):
    def execute(self, arguments: list[Any]) -> list[Any]:
        return arguments


class NotATask:
    def execute(self, arguments):
        return None


class TestTaskDeclarationRegistry:
    def test_declare_and_list(self):
        registry = TaskDeclarationRegistry()
        registry.declare("app.B", "0 * * * *")
        registry.declare("app.A", "*/5 * * * *", "every five")

        declared = registry.list_declared_tasks()
        assert [d.implementation for d in declared] == ["app.A", "app.B"]
        assert declared[0].description == "every five"
        assert "app.A" in registry
        assert len(registry) == 2

    def test_declare_validates_expression(self):
        registry = TaskDeclarationRegistry()
        with pytest.raises(InvalidExpressionError):
            registry.declare("app.A", "whenever")
        assert len(registry) == 0

    def test_declare_rejects_date_that_never_occurs(self):
        registry = TaskDeclarationRegistry()
        with pytest.raises(InvalidExpressionError):
            registry.declare("app.A", "0 0 31 2 *")
        assert registry.list_declared_tasks() == []

    def test_redeclare_replaces(self):
        registry = TaskDeclarationRegistry()
        registry.declare("app.A", "0 * * * *")
        registry.declare("app.A", "0 0 * * *", "nightly")
        assert registry.get("app.A").expression == "0 0 * * *"
        assert len(registry) == 1

    def test_load_table_accepts_mappings_and_models(self):
        registry = TaskDeclarationRegistry()
        loaded = registry.load_table(
            {
                "app.A": {"expression": "0 * * * *"},
                "app.B": DeclaredTaskSettings(expression="@daily", description="daily"),
            }
        )
        assert loaded == 2
        assert registry.get("app.A").description == ""
        assert registry.get("app.B").expression == "@daily"

    def test_clear(self):
        registry = TaskDeclarationRegistry()
        registry.declare("app.A", "0 * * * *")
        registry.clear()
        assert registry.list_declared_tasks() == []


class TestDecorators:
    def test_scheduled_declares_and_registers(self):
        @scheduled("*/10 * * * *", description="Refresh feeds")
        class RefreshFeeds(TaskInterface):
            def execute(self, arguments):
                return "refreshed"

        name = f"{RefreshFeeds.__module__}.{RefreshFeeds.__qualname__}"
        declaration = default_registry.get(name)
        assert declaration.expression == "*/10 * * * *"
        assert declaration.description == "Refresh feeds"
        assert isinstance(default_resolver.resolve(name), RefreshFeeds)

    def test_scheduled_with_explicit_name_and_class_description(self):
        @scheduled("@hourly", name="feeds.refresh")
        class RefreshFeeds(TaskInterface):
            description = "From the class"

            def execute(self, arguments):
                return None

        assert default_registry.get("feeds.refresh").description == "From the class"
        assert "feeds.refresh" in default_resolver

    def test_register_task_only_resolves(self):
        @register_task("mail.send_digest")
        class SendDigest(TaskInterface):
            def execute(self, arguments):
                return None

        assert "mail.send_digest" in default_resolver
        assert default_registry.get("mail.send_digest") is None

    def test_redecorating_a_name_replaces_the_earlier_class(self):
        # a reloaded task module builds a new class object under the same name
        @scheduled("0 * * * *", name="feeds.reloaded")
        class Before(TaskInterface):
            def execute(self, arguments):
                return "before"

        @scheduled("0 0 * * *", name="feeds.reloaded")
        class After(TaskInterface):
            def execute(self, arguments):
                return "after"

        assert default_resolver.validate("feeds.reloaded") is After
        assert default_resolver.resolve("feeds.reloaded").execute([]) == "after"
        assert default_registry.get("feeds.reloaded").expression == "0 0 * * *"

    def test_register_task_twice_replaces_the_earlier_class(self):
        @register_task("mail.reloaded")
        class Before(TaskInterface):
            def execute(self, arguments):
                return "before"

        @register_task("mail.reloaded")
        class After(TaskInterface):
            def execute(self, arguments):
                return "after"

        assert default_resolver.validate("mail.reloaded") is After


class TestImplementationResolver:
    def test_resolve_registered_factory(self):
        resolver = ImplementationResolver()
        resolver.register("echo", Echo)
        assert resolver.resolve("echo").execute([1, 2]) == [1, 2]

    def test_register_conflict_raises(self):
        resolver = ImplementationResolver()
        resolver.register("echo", Echo)
        resolver.register("echo", Echo)
        with pytest.raises(ValueError):
            resolver.register("echo", lambda: Echo())

    def test_resolve_dotted_path(self):
        resolver = ImplementationResolver()
        assert isinstance(resolver.resolve(f"{__name__}.Echo"), Echo)

    def test_resolve_colon_path(self):
        resolver = ImplementationResolver()
        assert isinstance(resolver.resolve(f"{__name__}:Echo"), Echo)

    @pytest.mark.parametrize(
        "name",
        ["NoSuchThing", "no_such_module_xyz.Task", f"{__name__}.Missing"],
    )
    def test_unknown_implementation(self, name):
        with pytest.raises(UnknownImplementationError) as exc_info:
            ImplementationResolver().validate(name)
        assert exc_info.value.implementation == name
        assert "must exist" in exc_info.value.message

    def test_import_disabled(self):
        resolver = ImplementationResolver(allow_import=False)
        with pytest.raises(UnknownImplementationError):
            resolver.validate(f"{__name__}.Echo")

    def test_class_not_implementing_interface(self):
        with pytest.raises(InvalidImplementationError):
            ImplementationResolver().validate(f"{__name__}.NotATask")

    def test_abstract_interface_itself_is_invalid(self):
        with pytest.raises(InvalidImplementationError):
            ImplementationResolver().validate("taskspine.scheduling.resolver.TaskInterface")

    def test_non_callable_is_invalid(self):
        with pytest.raises(InvalidImplementationError):
            ImplementationResolver().validate(f"{__name__}.__doc__")

    def test_factory_returning_wrong_type_fails_on_resolve(self):
        resolver = ImplementationResolver()
        resolver.register("broken", lambda: NotATask())
        resolver.validate("broken")
        with pytest.raises(InvalidImplementationError):
            resolver.resolve("broken")

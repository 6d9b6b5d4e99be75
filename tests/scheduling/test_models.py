"""Tests for Task and TaskDescriptor."""

from datetime import UTC, datetime, timedelta

import pytest

from taskspine.core.errors import InvalidExpressionError
from taskspine.core.hashing import compute_arguments_hash, implementation_key
from taskspine.scheduling.models import Task, TaskDescriptor, TaskOrigin, TaskStatus

NOW = datetime(2024, 1, 1, tzinfo=UTC)


def make_task(expression="*/5 * * * *", implementation="app.Cleanup", arguments=(), now=NOW) -> Task:
    return Task.new(expression, implementation, arguments, now=now)


class TestTaskNew:
    def test_new_task_is_disabled(self):
        task = make_task()
        assert task.status == TaskStatus.DISABLED
        assert task.is_disabled
        assert not task.is_enabled

    def test_new_task_schedule(self):
        task = make_task()
        assert task.created_at == NOW
        assert task.next_execution == datetime(2024, 1, 1, 0, 5, tzinfo=UTC)
        assert task.last_execution is None
        assert task.id == ""

    def test_new_task_hashes_arguments(self):
        task = make_task(arguments=["weekly", {"b": 1, "a": 2}])
        assert task.arguments == ["weekly", {"b": 1, "a": 2}]
        assert task.arguments_hash == compute_arguments_hash(["weekly", {"a": 2, "b": 1}])

    def test_invalid_expression_raises(self):
        with pytest.raises(InvalidExpressionError):
            make_task(expression="not a cron")

    def test_naive_now_is_utc(self):
        task = make_task(now=datetime(2024, 1, 1))
        assert task.created_at == NOW


class TestTaskStatus:
    def test_enable_disable(self):
        task = make_task()
        task.enable()
        assert task.is_enabled
        task.disable()
        assert task.is_disabled

    @pytest.mark.parametrize("enabled", [True, False])
    @pytest.mark.parametrize("minutes", [0, 4, 5, 6, 60])
    def test_is_due_iff_enabled_and_next_execution_reached(self, enabled, minutes):
        task = make_task()
        if enabled:
            task.enable()
        now = NOW + timedelta(minutes=minutes)
        assert task.is_due(now) == (enabled and task.next_execution <= now)


class TestMarkAsRun:
    def test_mark_as_run_sets_last_and_next(self):
        task = make_task()
        run_at = datetime(2024, 1, 1, 0, 7, tzinfo=UTC)
        task.mark_as_run(run_at)
        assert task.last_execution == run_at
        assert task.next_execution == datetime(2024, 1, 1, 0, 10, tzinfo=UTC)

    def test_repeated_marks_never_move_backwards(self):
        task = make_task()
        previous = task.next_execution
        for minutes in (3, 5, 11, 12, 40):
            task.mark_as_run(NOW + timedelta(minutes=minutes))
            assert task.next_execution >= previous
            assert task.next_execution > task.last_execution
            previous = task.next_execution

    def test_mark_as_run_does_not_change_status(self):
        task = make_task()
        task.mark_as_run(NOW)
        assert task.is_disabled


class TestExpressionAndArguments:
    def test_set_expression_recomputes_next_execution(self):
        task = make_task()
        later = datetime(2024, 1, 1, 9, 0, tzinfo=UTC)
        task.set_expression("0 12 * * *", now=later)
        assert task.expression == "0 12 * * *"
        assert task.cron.expression == "0 12 * * *"
        assert task.next_execution == datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

    def test_invalid_set_expression_leaves_task_untouched(self):
        task = make_task()
        before = (task.expression, task.next_execution)
        with pytest.raises(InvalidExpressionError):
            task.set_expression("nope", now=NOW)
        assert (task.expression, task.next_execution) == before

    def test_set_arguments_rehashes(self):
        task = make_task(arguments=["a"])
        old_hash = task.arguments_hash
        task.set_arguments(["b"])
        assert task.arguments == ["b"]
        assert task.arguments_hash != old_hash
        assert task.arguments_hash == compute_arguments_hash(["b"])

    def test_arguments_hash_is_deterministic(self):
        assert make_task(arguments=["x", 1]).arguments_hash == make_task(arguments=["x", 1]).arguments_hash

    def test_get_next_execution_without_reference_is_stored_value(self):
        task = make_task()
        assert task.get_next_execution() == task.next_execution

    def test_get_next_execution_with_reference_does_not_mutate(self):
        task = make_task()
        stored = task.next_execution
        assert task.get_next_execution(datetime(2024, 1, 1, 1, 2, tzinfo=UTC)) == datetime(
            2024, 1, 1, 1, 5, tzinfo=UTC
        )
        assert task.next_execution == stored

    def test_get_previous_run_date(self):
        task = make_task(expression="0 8 * * *")
        assert task.get_previous_run_date(datetime(2024, 1, 2, 7, 0, tzinfo=UTC)) == datetime(
            2024, 1, 1, 8, 0, tzinfo=UTC
        )

    def test_rehydrated_task_parses_expression_lazily(self):
        task = Task(
            expression="0 * * * *",
            implementation="app.Cleanup",
            created_at=NOW,
            next_execution=datetime(2024, 1, 1, 1, 0, tzinfo=UTC),
            id="abc",
        )
        task.mark_as_run(datetime(2024, 1, 1, 1, 0, tzinfo=UTC))
        assert task.next_execution == datetime(2024, 1, 1, 2, 0, tzinfo=UTC)


class TestTaskDescriptor:
    def test_persisted_descriptor_uses_storage_id(self):
        task = make_task()
        task.id = "task-1"
        descriptor = TaskDescriptor.from_persisted_task(task)
        assert descriptor.origin == TaskOrigin.PERSISTED
        assert descriptor.identifier == "task-1"
        assert descriptor.is_persisted

    def test_persisted_descriptor_requires_id(self):
        with pytest.raises(ValueError):
            TaskDescriptor.from_persisted_task(make_task())

    def test_dynamic_identifier_is_implementation_key(self):
        last = datetime(2023, 12, 31, tzinfo=UTC)
        descriptor = TaskDescriptor.from_dynamic_task(make_task(implementation="app.Purge"), last)
        assert descriptor.origin == TaskOrigin.DYNAMIC
        assert descriptor.identifier == implementation_key("app.Purge")
        assert descriptor.last_execution == last
        assert descriptor.is_dynamic

    def test_dynamic_identifier_is_stable(self):
        a = TaskDescriptor.from_dynamic_task(make_task(implementation="app.Purge"), None)
        b = TaskDescriptor.from_dynamic_task(make_task(implementation="app.Purge", now=NOW + timedelta(days=3)), None)
        assert a.identifier == b.identifier

    def test_enabled_label(self):
        task = make_task()
        task.id = "t"
        assert TaskDescriptor.from_persisted_task(task).enabled_label == "Off"
        task.enable()
        assert TaskDescriptor.from_persisted_task(task).enabled_label == "On"

    def test_descriptor_is_frozen(self):
        task = make_task()
        task.id = "t"
        descriptor = TaskDescriptor.from_persisted_task(task)
        with pytest.raises(AttributeError):
            descriptor.identifier = "other"  # type: ignore[misc]

    def test_to_dict(self):
        task = make_task(implementation="app.Purge")
        task.id = "t"
        row = TaskDescriptor.from_persisted_task(task).to_dict()
        assert row["type"] == "persisted"
        assert row["status"] == "Off"
        assert row["implementation"] == "app.Purge"
        assert row["next_execution"] == "2024-01-01T00:05:00+00:00"
        assert row["last_execution"] is None

"""Tests for TaskRunner (one scheduler pass)."""

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest

from taskspine.core.errors import ConfigError, TaskExecutionError, TaskNotFoundError
from taskspine.core.hashing import implementation_key
from taskspine.scheduling import RunStatus, TaskInterface, TaskOrigin, TaskRunner


class TestRun:
    def test_runs_due_tasks_with_arguments(self, service, task_runner, calls, clock):
        service.create("*/5 * * * *", "tests.Record", ["weekly", 3], enabled=True)
        clock.advance(minutes=5)

        report = task_runner.run()

        assert calls == [["weekly", 3]]
        assert report.succeeded == 1
        assert report.failed == 0
        assert not report.already_running
        assert report.results[0].status == RunStatus.SUCCESS

    def test_failure_is_isolated(self, service, task_runner, calls, clock):
        """A failing task does not stop the next one; both are marked as run."""
        failing = service.create("*/5 * * * *", "tests.Fail", enabled=True)
        clock.advance(minutes=1)
        succeeding = service.create("*/5 * * * *", "tests.Record", ["ok"], enabled=True)
        clock.now = datetime(2024, 1, 1, 0, 5, tzinfo=UTC)

        report = task_runner.run()

        # same next execution, so identifier decides the order
        assert [r.identifier for r in report.results] == sorted([failing.id, succeeding.id])
        assert report.failed == 1
        assert report.succeeded == 1
        assert calls == [["ok"]]
        for task_id in (failing.id, succeeding.id):
            stored = service.get_persisted_task(task_id)
            assert stored.last_execution == clock.now
            assert stored.next_execution == datetime(2024, 1, 1, 0, 10, tzinfo=UTC)

    def test_failure_is_reported_with_identifiers(self, service, task_runner, clock):
        task = service.create("*/5 * * * *", "tests.Fail", enabled=True)
        clock.advance(minutes=5)

        (result,) = task_runner.run().results

        assert result.status == RunStatus.FAILED
        assert isinstance(result.error, TaskExecutionError)
        assert "tests.Fail" in result.error.message
        assert task.id in result.error.message
        assert isinstance(result.error.cause, RuntimeError)
        assert result.to_dict()["error"]["category"] == "EXECUTION"

    def test_dry_run_skips_execution_but_advances_schedule(self, service, task_runner, calls, clock):
        task = service.create("*/5 * * * *", "tests.Record", enabled=True)
        clock.advance(minutes=5)

        report = task_runner.run(dry_run=True)

        assert report.dry_run
        assert calls == []
        assert [r.status for r in report.results] == [RunStatus.SKIPPED]
        assert service.get_persisted_task(task.id).next_execution == datetime(2024, 1, 1, 0, 10, tzinfo=UTC)

    def test_schedule_advances_on_failure(self, service, task_runner, clock):
        task = service.create("*/5 * * * *", "tests.Fail", enabled=True)
        clock.advance(minutes=5)
        task_runner.run()
        assert task_runner.run().results == []
        assert service.get_persisted_task(task.id).next_execution == datetime(2024, 1, 1, 0, 10, tzinfo=UTC)

    def test_dynamic_task_runs_and_records_last_execution(
        self, task_runner, declarations, last_executions, calls, clock
    ):
        declarations.declare("tests.Record", "*/5 * * * *")

        report = task_runner.run()

        assert calls == [[]]
        assert report.results[0].origin == TaskOrigin.DYNAMIC
        assert last_executions.get("tests.Record") == clock.now
        assert task_runner.run().results == []

    def test_task_removed_mid_pass_does_not_abort_pass(self, service, task_runner, resolver, calls, clock):
        """A task deleted after the due list was read fails alone; later tasks still run."""
        doomed = []

        class RemoveOther(TaskInterface):
            def execute(self, arguments):
                service.remove_by_identifier(doomed[0])

        resolver.register("tests.Remove", RemoveOther)
        service.create("*/5 * * * *", "tests.Remove", enabled=True)
        clock.advance(minutes=5)
        doomed.append(service.create("*/5 * * * *", "tests.Record", ["removed"], enabled=True).id)
        clock.advance(minutes=5)
        service.create("*/5 * * * *", "tests.Record", ["last"], enabled=True)
        clock.advance(minutes=5)

        report = task_runner.run()

        assert [r.status for r in report.results] == [RunStatus.SUCCESS, RunStatus.FAILED, RunStatus.SUCCESS]
        assert isinstance(report.results[1].error, TaskNotFoundError)
        assert report.results[1].error.context.identifier == doomed[0]
        assert calls == [["last"]]

    def test_nothing_due(self, task_runner):
        report = task_runner.run()
        assert report.results == []
        assert report.finished_at is not None

    def test_task_is_marked_before_execution(self, service, clock, resolver):
        task = service.create("*/5 * * * *", "tests.Record", enabled=True)
        clock.advance(minutes=5)
        seen = []

        class ReadLastExecution:
            def execute(self, arguments):
                seen.append(service.get_persisted_task(task.id).last_execution)

        inspecting_resolver = MagicMock()
        inspecting_resolver.resolve.return_value = ReadLastExecution()

        TaskRunner(service, inspecting_resolver).run()

        assert seen == [clock.now]


class TestLocking:
    def test_lock_unavailable_does_no_work(self, service, exclusive_runner, lock_provider, calls, clock):
        task = service.create("*/5 * * * *", "tests.Record", enabled=True)
        clock.advance(minutes=5)
        lock_provider.acquire(exclusive_runner.lock_name)

        report = exclusive_runner.run()

        assert report.already_running
        assert report.results == []
        assert calls == []
        assert service.get_persisted_task(task.id).last_execution is None

    def test_lock_released_after_pass(self, service, exclusive_runner, lock_provider, clock):
        service.create("*/5 * * * *", "tests.Fail", enabled=True)
        clock.advance(minutes=5)

        exclusive_runner.run()

        assert not lock_provider.is_locked(exclusive_runner.lock_name)

    def test_lock_released_when_pass_raises(self, service, exclusive_runner, lock_provider, monkeypatch):
        monkeypatch.setattr(service, "get_due_tasks", MagicMock(side_effect=RuntimeError("db down")))

        with pytest.raises(RuntimeError):
            exclusive_runner.run()

        assert not lock_provider.is_locked(exclusive_runner.lock_name)

    def test_parallel_mode_ignores_lock(self, service, lock_provider, calls):
        runner = TaskRunner(service, lock_provider=lock_provider, lock_name="held")
        lock_provider.acquire("held")
        service.declarations.declare("tests.Record", "*/5 * * * *")

        assert not runner.run().already_running
        assert calls == [[]]

    def test_exclusive_mode_requires_provider(self, service):
        with pytest.raises(ConfigError):
            TaskRunner(service, allow_parallel_execution=False)


class TestRunSingle:
    def test_runs_disabled_task_not_due(self, service, task_runner, calls, clock):
        task = service.create("0 12 * * *", "tests.Record", ["now"])

        result = task_runner.run_single(task.id)

        assert result.status == RunStatus.SUCCESS
        assert calls == [["now"]]
        stored = service.get_persisted_task(task.id)
        assert stored.last_execution == clock.now
        assert stored.is_disabled

    def test_run_single_dynamic(self, task_runner, declarations, last_executions, clock):
        declarations.declare("tests.Record", "0 12 * * *")
        result = task_runner.run_single(implementation_key("tests.Record"))
        assert result.origin == TaskOrigin.DYNAMIC
        assert last_executions.get("tests.Record") == clock.now

    def test_run_single_failure_is_reported(self, service, task_runner):
        task = service.create("0 12 * * *", "tests.Fail")
        assert task_runner.run_single(task.id).status == RunStatus.FAILED

    def test_run_single_unknown(self, task_runner):
        with pytest.raises(TaskNotFoundError):
            task_runner.run_single("nope")

    def test_result_duration(self, service, task_runner, clock):
        task = service.create("0 12 * * *", "tests.Record")
        result = task_runner.run_single(task.id)
        assert result.duration_seconds == pytest.approx(0.0)
        assert result.finished_at - result.started_at == timedelta(0)

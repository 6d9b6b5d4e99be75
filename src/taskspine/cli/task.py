"""
CLI: ``taskspine task`` - run passes and manage persisted tasks.
"""

from __future__ import annotations

import json
from typing import Any

import typer

from taskspine.cli.utils import (
    ALREADY_RUNNING,
    cli_errors,
    console,
    fail,
    make_context,
    output_tasks,
    status_message,
    tell_status,
)

app = typer.Typer(no_args_is_help=True)


def parse_arguments(raw: str | None) -> list[Any]:
    """Decode ``--arguments`` JSON into the task's argument list.

    A JSON array is used as is and a JSON object becomes the single
    argument. Bare scalars are rejected.
    """
    if not raw:
        return []
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError as e:
        fail(f"Arguments must be valid JSON ({e.msg} at position {e.pos})")
    if isinstance(decoded, list):
        return decoded
    if isinstance(decoded, dict):
        return [decoded]
    fail(f"Arguments must be a JSON array or object, got {raw!r}")


@app.command("run")
def run_tasks(
    dry_run: bool = typer.Option(False, "--dry-run", help="Mark due tasks as run without executing them"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Run every due task once (one scheduler pass)."""
    with cli_errors():
        scheduler = make_context(database)
        try:
            report = scheduler.runner.run(dry_run=dry_run)
        finally:
            scheduler.close()

    if report.already_running:
        tell_status(ALREADY_RUNNING)
        return
    for result in report.results:
        tell_status(status_message(result), at=result.finished_at)


@app.command("run-single")
def run_single(
    identifier: str = typer.Argument(..., help="Task identifier, see `task list`"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Run one task now, ignoring its status and schedule."""
    with cli_errors():
        scheduler = make_context(database)
        try:
            result = scheduler.runner.run_single(identifier)
        finally:
            scheduler.close()
    tell_status(status_message(result), at=result.finished_at)


@app.command("list")
def list_tasks(
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List persisted and dynamic tasks in run order."""
    with cli_errors():
        scheduler = make_context(database)
        try:
            descriptors = scheduler.service.get_tasks()
        finally:
            scheduler.close()
    output_tasks(descriptors, as_json=json_out)


@app.command("register")
def register_task(
    expression: str = typer.Argument(..., help="Cron expression, e.g. '0 8 * * 1'"),
    implementation: str = typer.Argument(..., help="Task implementation (name or dotted path)"),
    arguments: str | None = typer.Option(
        None, "--arguments", "-a", help="Task arguments as a JSON array (an object is passed as the single argument)"
    ),
    description: str = typer.Option("", "--description"),
    enable: bool = typer.Option(False, "--enable", help="Enable the task right away"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Register a persisted task (disabled unless --enable)."""
    decoded = parse_arguments(arguments)
    with cli_errors():
        scheduler = make_context(database)
        try:
            task = scheduler.service.create(
                expression, implementation, decoded, description, enabled=enable
            )
        finally:
            scheduler.close()
    state = "enabled" if task.is_enabled else "disabled"
    console.print(f"Registered task [bold]{task.id}[/bold] ({state}), next execution {task.next_execution.isoformat()}")


@app.command("enable")
def enable_task(
    identifier: str = typer.Argument(..., help="Persisted task identifier"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Enable a persisted task."""
    with cli_errors():
        scheduler = make_context(database)
        try:
            scheduler.service.enable(identifier)
        finally:
            scheduler.close()
    console.print(f"Task {identifier} enabled")


@app.command("disable")
def disable_task(
    identifier: str = typer.Argument(..., help="Persisted task identifier"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Disable a persisted task."""
    with cli_errors():
        scheduler = make_context(database)
        try:
            scheduler.service.disable(identifier)
        finally:
            scheduler.close()
    console.print(f"Task {identifier} disabled")


@app.command("remove")
def remove_task(
    identifier: str = typer.Argument(..., help="Persisted task identifier"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Remove a persisted task."""
    with cli_errors():
        scheduler = make_context(database)
        try:
            scheduler.service.remove_by_identifier(identifier)
        finally:
            scheduler.close()
    console.print(f"Task {identifier} removed")

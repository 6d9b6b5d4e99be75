"""
CLI utility helpers - scheduler wiring, status lines and output formatting.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from taskspine.core.errors import SchedulerError
from taskspine.core.logging import configure_logging
from taskspine.core.settings import get_settings
from taskspine.scheduling.bootstrap import Scheduler, build_scheduler
from taskspine.scheduling.models import TaskDescriptor
from taskspine.scheduling.runner import RunStatus, TaskRunResult

console = Console()
err_console = Console(stderr=True)

ALREADY_RUNNING = "The scheduler is already running and parallel execution is disabled."


# ── Scheduler helper ─────────────────────────────────────────────────────


def make_context(database: str | None = None) -> Scheduler:
    """Wire a scheduler from settings. ``--database`` overrides the configured path."""
    settings = get_settings()
    if database:
        settings = settings.model_copy(update={"database_path": Path(database)})
    configure_logging(level=settings.log_level, json_format=settings.json_logs)
    return build_scheduler(settings)


@contextmanager
def cli_errors() -> Iterator[None]:
    """Turn scheduler errors into a red error line and exit code 1."""
    try:
        yield
    except SchedulerError as e:
        fail(f"{e.message}")


def fail(message: str) -> None:
    err_console.print(f"[bold red]Error[/bold red]: {escape(message)}", markup=True, highlight=False)
    raise typer.Exit(code=1)


# ── Status lines ─────────────────────────────────────────────────────────


def tell_status(message: str, *, at: datetime | None = None) -> None:
    """Print ``<ISO time>: <message>`` on stdout.

    Plain ``typer.echo`` so bracketed labels are not read as Rich markup.
    """
    at = (at or datetime.now()).astimezone()
    typer.echo(f"{at.isoformat(timespec='seconds')}: {message}")


def status_message(result: TaskRunResult) -> str:
    if result.status == RunStatus.SUCCESS:
        return f'[Success] Run "{result.implementation}" ({result.identifier})'
    if result.status == RunStatus.SKIPPED:
        return f'[Skipped, dry run] Skipped "{result.implementation}" ({result.identifier})'
    return (
        f'[Error] Task "{result.implementation}" ({result.identifier}) '
        "throw an exception, check your log"
    )


# ── Output helpers ───────────────────────────────────────────────────────

TASK_COLUMNS = [
    "Type",
    "Status",
    "Identifier",
    "Expression",
    "Implementation",
    "Next Execution",
    "Last Execution",
    "Description",
]


def output_tasks(descriptors: list[TaskDescriptor], *, as_json: bool = False) -> None:
    """Render the task list as a Rich table (or JSON)."""
    rows = [d.to_dict() for d in descriptors]

    if as_json:
        console.print_json(json.dumps(rows, default=str))
        return

    if not rows:
        console.print("Empty task list ...")
        return

    table = Table(title="Tasks", show_lines=False, pad_edge=False)
    for col in TASK_COLUMNS:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*(_cell(v) for v in row.values()))
    console.print(table)


def _cell(value: Any) -> str:
    return "" if value is None else str(value)

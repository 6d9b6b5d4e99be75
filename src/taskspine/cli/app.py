"""
Root Typer application for the taskspine CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

app = Typer(
    name="taskspine",
    help="taskspine - cron task scheduler.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("taskspine")
        except PackageNotFoundError:
            from taskspine import __version__ as v
        typer.echo(f"taskspine {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """taskspine CLI - run scheduler passes and manage tasks."""


# ── Sub-command registration ─────────────────────────────────────────────

from taskspine.cli.task import app as task_app  # noqa: E402

app.add_typer(task_app, name="task", help="Task scheduling.")


if __name__ == "__main__":
    app()

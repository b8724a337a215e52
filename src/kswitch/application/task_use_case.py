"""Task listing and execution use-cases."""

import asyncio
from collections.abc import Iterable, Mapping
from dataclasses import replace

from rich.console import Console
from rich.live import Live

from kswitch.application.stdout_renderer import (
    render_task_run,
    render_tasks,
    to_rich_text,
)
from kswitch.application.task_service import TaskService
from kswitch.application.use_case_utils import AppContext, build_app_context
from kswitch.domain.ansi_parser import StyledText
from kswitch.domain.task import ScriptTask
from kswitch.domain.task_run import TaskRun
from kswitch.infrastructure.task_catalog import TaskCatalog
from kswitch.infrastructure.task_executor import TaskExecutor

LIVE_TAIL_CHARS = 16 * 1024


def parse_input_pairs(pairs: Iterable[str]) -> dict[str, str]:
    """Parse ``KEY=VALUE`` strings into a mapping."""
    values: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ValueError(f"Invalid input '{pair}', expected KEY=VALUE")
        values[key] = value
    return values


def _catalog(app: AppContext) -> TaskCatalog:
    catalog = TaskCatalog(app.settings.resolved_tasks_directory)
    catalog.load()
    return catalog


def execute_list_tasks(
    *, app: AppContext | None = None, console: Console | None = None
) -> tuple[ScriptTask, ...]:
    """Print tasks discovered in the tasks directory."""
    app = app or build_app_context()
    console = console or Console()
    tasks = _catalog(app).tasks
    console.print(f"[dim]Tasks directory: {app.settings.resolved_tasks_directory}[/dim]")
    render_tasks(console, tasks)
    return tasks


def execute_run_task(
    name: str,
    *,
    inputs: Mapping[str, str] | None = None,
    timeout_minutes: int | None = None,
    app: AppContext | None = None,
    console: Console | None = None,
) -> TaskRun:
    """Run a task, streaming its styled output live."""
    app = app or build_app_context()
    console = console or Console()
    catalog = _catalog(app)
    task = catalog.find(name)
    if task is None:
        raise ValueError(f"Unknown task: {name}")

    settings = app.settings
    if timeout_minutes is not None:
        settings = replace(settings, task_timeout_minutes=timeout_minutes)
    if settings.task_timeout_minutes <= 0:
        raise ValueError("Task timeout must be positive")
    executor = TaskExecutor(
        app.runner, app.shell, timeout_minutes=settings.task_timeout_minutes
    )

    with Live(console=console, auto_refresh=False, transient=True) as live:

        def show(_: str, output: StyledText) -> None:
            live.update(to_rich_text(output.tail(LIVE_TAIL_CHARS)), refresh=True)

        service = TaskService(catalog, executor, on_live_output=show)
        try:
            run = asyncio.run(
                service.run(
                    task, inputs or {}, timeout_seconds=settings.task_timeout_seconds
                )
            )
        except KeyboardInterrupt:
            console.print("[yellow]Interrupted.[/yellow]")
            raise

    render_task_run(console, task, run)
    return run


__all__ = ["execute_list_tasks", "execute_run_task", "parse_input_pairs"]

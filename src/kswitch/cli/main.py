"""CLI entrypoint for kswitch."""

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as package_version

import typer
from rich.console import Console

from kswitch.application import (
    execute_edit_context,
    execute_forget_context,
    execute_list_contexts,
    execute_list_tasks,
    execute_run_task,
    execute_status,
    execute_use_context,
    execute_watch,
    parse_input_pairs,
)
from kswitch.logging_setup import configure_logging

app = typer.Typer(
    name="kswitch",
    help="Kubernetes context monitor and task runner",
    no_args_is_help=True,
    add_completion=False,
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
console = Console()


def _resolve_version() -> str:
    """Return installed package version or local fallback."""
    try:
        return package_version("kswitch")
    except PackageNotFoundError:
        return "0.1.0"


@app.callback()
def callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging.",
    ),
) -> None:
    """Handle global CLI options."""
    if version:
        console.print(f"kswitch {_resolve_version()}")
        raise typer.Exit(code=0)
    configure_logging(verbose=verbose)
    if ctx.invoked_subcommand is None:
        raise typer.Exit(code=0)


def _handle_error(exc: Exception) -> None:
    """Convert domain exceptions to CLI exit codes."""
    if isinstance(exc, ValueError):
        console.print(f"[red]ERROR:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    if isinstance(exc, RuntimeError):
        console.print(f"[red]ERROR:[/red] {exc}")
        raise typer.Exit(code=2) from exc
    raise exc


@app.command("contexts")
def contexts_command() -> None:
    """List kubeconfig contexts with their customizations."""
    try:
        execute_list_contexts(console=console)
    except (ValueError, RuntimeError) as exc:
        _handle_error(exc)


@app.command("status")
def status_command(
    context: str | None = typer.Option(
        None,
        "--context",
        "-c",
        help="Context to check instead of the current one.",
    ),
    all_contexts: bool = typer.Option(
        False,
        "--all",
        "-a",
        help="Check every visible context concurrently.",
    ),
) -> None:
    """Check reachability, nodes and Flux state."""
    try:
        execute_status(context=context, all_contexts=all_contexts, console=console)
    except (ValueError, RuntimeError) as exc:
        _handle_error(exc)


@app.command("use")
def use_command(
    name: str = typer.Argument(..., help="Context to switch to."),
) -> None:
    """Switch the kubeconfig current context."""
    try:
        execute_use_context(name, console=console)
    except (ValueError, RuntimeError) as exc:
        _handle_error(exc)


@app.command("watch")
def watch_command(
    interval: int | None = typer.Option(
        None,
        "--interval",
        "-n",
        help="Seconds between refreshes (defaults to settings).",
    ),
) -> None:
    """Refresh every visible context until interrupted, with notifications."""
    try:
        execute_watch(interval=interval, console=console)
    except (ValueError, RuntimeError) as exc:
        _handle_error(exc)


@app.command("edit")
def edit_command(
    name: str = typer.Argument(..., help="Context to customize."),
    display_name: str | None = typer.Option(
        None,
        "--display-name",
        help="Display name; pass an empty string to clear it.",
    ),
    color: str | None = typer.Option(None, "--color", help="Color tag, e.g. #3B82F6."),
    favorite: bool | None = typer.Option(
        None, "--favorite/--no-favorite", help="Mark or unmark as favorite."
    ),
    hidden: bool | None = typer.Option(
        None, "--hide/--show", help="Hide from or show in status views."
    ),
) -> None:
    """Update display name, color, favorite or hidden flag of a context."""
    try:
        execute_edit_context(
            name,
            display_name=display_name,
            color=color,
            favorite=favorite,
            hidden=hidden,
            console=console,
        )
    except (ValueError, RuntimeError) as exc:
        _handle_error(exc)


@app.command("forget")
def forget_command(
    name: str = typer.Argument(..., help="Stored context to delete."),
) -> None:
    """Delete a stored context and its customizations."""
    try:
        execute_forget_context(name, console=console)
    except (ValueError, RuntimeError) as exc:
        _handle_error(exc)


@app.command("tasks")
def tasks_command() -> None:
    """List task scripts in the tasks directory."""
    try:
        execute_list_tasks(console=console)
    except (ValueError, RuntimeError) as exc:
        _handle_error(exc)


@app.command("run-task")
def run_task_command(
    name: str = typer.Argument(..., help="Task name or script file name."),
    inputs: list[str] | None = typer.Option(
        None,
        "--input",
        "-i",
        help="Task input as KEY=VALUE; repeatable.",
    ),
    timeout_minutes: int | None = typer.Option(
        None,
        "--timeout-minutes",
        help="Override the task timeout.",
    ),
) -> None:
    """Run a task and stream its output.

    Exits with code 1 when the run fails, times out or is stopped.
    """
    try:
        run = execute_run_task(
            name,
            inputs=parse_input_pairs(inputs or []),
            timeout_minutes=timeout_minutes,
            console=console,
        )
    except (ValueError, RuntimeError) as exc:
        _handle_error(exc)
        return
    if not run.succeeded:
        raise typer.Exit(code=1)


def main() -> None:
    """Project entrypoint for `kswitch` script."""
    app()


if __name__ == "__main__":
    main()

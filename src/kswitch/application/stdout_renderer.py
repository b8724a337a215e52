"""Render contexts, statuses, tasks and task output to stdout using rich."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from rich import box
from rich.color import Color
from rich.console import Console
from rich.panel import Panel
from rich.style import Style
from rich.table import Table
from rich.text import Text

from kswitch.domain.ansi_parser import Color as AnsiColor
from kswitch.domain.ansi_parser import StyledText, TextStyle
from kswitch.domain.cluster import ClusterContext
from kswitch.domain.cluster_status import ClusterStatus, StatusColor
from kswitch.domain.quantity_parser import format_cpu, format_memory
from kswitch.domain.task import ScriptTask
from kswitch.domain.task_run import TaskRun

_DOT_STYLES: dict[StatusColor, str] = {
    StatusColor.GREEN: "green",
    StatusColor.YELLOW: "yellow",
    StatusColor.RED: "red",
    StatusColor.GRAY: "bright_black",
}


def _rich_color(color: AnsiColor | None) -> Color | None:
    if color is None:
        return None
    if isinstance(color, tuple):
        return Color.from_rgb(*color)
    return Color.from_ansi(color)


def to_rich_style(style: TextStyle) -> Style:
    """Convert a parsed terminal style to a rich style."""
    return Style(
        color=_rich_color(style.foreground),
        bgcolor=_rich_color(style.background),
        bold=style.bold or None,
        dim=style.dim or None,
    )


def to_rich_text(styled: StyledText) -> Text:
    """Convert parsed terminal output to rich text."""
    text = Text()
    for segment in styled.segments:
        text.append(segment.text, style=to_rich_style(segment.style))
    return text


def status_dot(status: ClusterStatus) -> Text:
    """Return colored indicator with status label."""
    style = _DOT_STYLES[status.status_color]
    return Text.assemble(("●", style), " ", (status.status_label, style))


def render_contexts(
    console: Console,
    clusters: Sequence[ClusterContext],
    current_context: str,
) -> None:
    """Print stored contexts, marking the current one."""
    table = Table(title="Contexts", box=box.SIMPLE_HEAVY, expand=True)
    table.add_column("", width=1)
    table.add_column("Name", overflow="fold")
    table.add_column("Context", overflow="fold")
    table.add_column("Flags")

    for cluster in clusters:
        flags = []
        if cluster.is_favorite:
            flags.append("[yellow]favorite[/yellow]")
        if cluster.is_hidden:
            flags.append("[dim]hidden[/dim]")
        if not cluster.is_present_in_source:
            flags.append("[red]removed from kubeconfig[/red]")
        marker = "[green]*[/green]" if cluster.context_name == current_context else ""
        table.add_row(
            marker,
            Text(cluster.truncated_name, style=cluster.color_tag),
            cluster.context_name,
            " ".join(flags),
        )

    if not clusters:
        console.print("[yellow]No contexts found in kubeconfig.[/yellow]")
        return
    console.print(table)


def render_statuses(
    console: Console,
    names: Iterable[str],
    statuses: Mapping[str, ClusterStatus],
    display_names: Mapping[str, str] | None = None,
) -> None:
    """Print a status table for the given contexts."""
    display_names = display_names or {}
    table = Table(title="Cluster Status", box=box.SIMPLE_HEAVY, expand=True)
    table.add_column("Cluster", overflow="fold")
    table.add_column("Status")
    table.add_column("Version")
    table.add_column("Nodes", justify="right")
    table.add_column("CPU", justify="right")
    table.add_column("Memory", justify="right")
    table.add_column("Flux", overflow="fold")

    notes: list[str] = []
    for name in names:
        status = statuses.get(name) or ClusterStatus()
        label = display_names.get(name, name)
        nodes = f"{status.ready_node_count}/{len(status.nodes)}" if status.nodes else "-"
        cpu = sum(node.cpu_millicores for node in status.nodes)
        memory = sum(node.memory_bytes for node in status.nodes)
        table.add_row(
            label,
            status_dot(status),
            status.kubernetes_version or "-",
            nodes,
            format_cpu(cpu) if status.nodes else "-",
            format_memory(memory) if status.nodes else "-",
            status.flux_state.label,
        )
        if status.reachability.reason:
            notes.append(f"[red]{label}:[/red] {status.reachability.reason}")
        for error in (status.node_error, status.flux_error):
            if error:
                notes.append(f"[yellow]{label}:[/yellow] {error}")

    console.print(table)
    for note in notes:
        console.print(note)


def render_tasks(
    console: Console,
    tasks: Sequence[ScriptTask],
    last_runs: Mapping[str, TaskRun] | None = None,
) -> None:
    """Print discovered tasks with their inputs and last result."""
    last_runs = last_runs or {}
    if not tasks:
        console.print("[yellow]No tasks found.[/yellow]")
        return

    table = Table(title="Tasks", box=box.SIMPLE_HEAVY, expand=True)
    table.add_column("Name", overflow="fold")
    table.add_column("Description", overflow="fold")
    table.add_column("Inputs", overflow="fold")
    table.add_column("Last run")
    for task in tasks:
        inputs = ", ".join(
            item.name if item.required else f"[dim]{item.name}?[/dim]"
            for item in task.inputs
        )
        run = last_runs.get(task.id)
        table.add_row(task.name, task.description, inputs or "-", _run_label(run))
    console.print(table)


def _run_label(run: TaskRun | None) -> str:
    if run is None:
        return "-"
    if run.succeeded:
        return f"[green]ok[/green] ({run.formatted_duration})"
    if run.timed_out:
        return "[red]timed out[/red]"
    if run.cancelled:
        return "[yellow]stopped[/yellow]"
    return f"[red]exit {run.exit_code}[/red]"


def render_task_run(console: Console, task: ScriptTask, run: TaskRun) -> None:
    """Print the final output and outcome of a task run."""
    border = "green" if run.succeeded else "red"
    console.print(
        Panel(
            to_rich_text(run.styled_output()),
            title=task.name,
            subtitle=f"{_run_label(run)} in {run.formatted_duration}",
            border_style=border,
        )
    )

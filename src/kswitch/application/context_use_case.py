"""Context listing, switching and customization use-cases."""

import asyncio

from rich.console import Console

from kswitch.application.stdout_renderer import render_contexts
from kswitch.application.use_case_utils import AppContext, build_app_context
from kswitch.domain.cluster import ClusterContext
from kswitch.domain.errors import KSwitchError


def execute_list_contexts(
    *, app: AppContext | None = None, console: Console | None = None
) -> list[ClusterContext]:
    """Sync contexts with the kubeconfig and print them."""
    app = app or build_app_context()
    console = console or Console()
    fleet = app.fleet()
    asyncio.run(fleet.refresh_contexts())
    if fleet.last_error:
        raise KSwitchError(fleet.last_error)
    render_contexts(console, fleet.clusters, fleet.current_context)
    return fleet.clusters


def execute_use_context(
    name: str, *, app: AppContext | None = None, console: Console | None = None
) -> None:
    """Switch the kubeconfig current context."""
    app = app or build_app_context()
    console = console or Console()

    async def _switch() -> None:
        client = app.kubectl()
        contexts = await client.list_contexts()
        if name not in contexts:
            raise ValueError(f"Unknown context: {name}")
        await client.set_current_context(name)

    asyncio.run(_switch())
    console.print(f"[green]Switched to context[/green] {name}")


def execute_edit_context(
    name: str,
    *,
    display_name: str | None = None,
    color: str | None = None,
    favorite: bool | None = None,
    hidden: bool | None = None,
    app: AppContext | None = None,
    console: Console | None = None,
) -> ClusterContext:
    """Update display name, color, favorite or hidden flag of a context."""
    app = app or build_app_context()
    console = console or Console()
    fleet = app.fleet()
    if fleet.cluster(name) is None:
        asyncio.run(fleet.refresh_contexts())

    changes: dict[str, object] = {}
    if display_name is not None:
        changes["display_name"] = display_name or None
    if color is not None:
        changes["color_tag"] = color
    if favorite is not None:
        changes["is_favorite"] = favorite
    if hidden is not None:
        changes["is_hidden"] = hidden
    if not changes:
        raise ValueError("Nothing to change")

    updated = fleet.edit_cluster(name, **changes)
    console.print(f"[green]Updated[/green] {updated.effective_name}")
    return updated


def execute_forget_context(
    name: str, *, app: AppContext | None = None, console: Console | None = None
) -> None:
    """Delete a stored context and its customizations."""
    app = app or build_app_context()
    console = console or Console()
    fleet = app.fleet()
    if not fleet.delete_cluster(name):
        raise ValueError(f"Unknown context: {name}")
    console.print(f"[green]Forgot[/green] {name}")


__all__ = [
    "execute_edit_context",
    "execute_forget_context",
    "execute_list_contexts",
    "execute_use_context",
]

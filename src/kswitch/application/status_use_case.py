"""Cluster status and watch use-cases."""

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import replace

from rich.console import Console

from kswitch.application.cluster_fleet_service import ClusterFleetService
from kswitch.application.notifications import ConsoleNotifier
from kswitch.application.stdout_renderer import render_statuses
from kswitch.application.use_case_utils import AppContext, build_app_context
from kswitch.domain.cluster_status import ClusterStatus
from kswitch.domain.errors import KSwitchError
from kswitch.infrastructure.kubeconfig_watcher import KubeconfigWatcher

logger = logging.getLogger(__name__)


def _render(console: Console, fleet: ClusterFleetService, names: list[str]) -> None:
    render_statuses(
        console,
        names,
        fleet.statuses,
        {name: fleet.display_name(name) for name in names},
    )


async def _status(
    fleet: ClusterFleetService, context: str | None, all_contexts: bool
) -> list[str]:
    await fleet.refresh_contexts()
    if fleet.last_error:
        raise KSwitchError(fleet.last_error)

    if all_contexts:
        await fleet.refresh_all_statuses()
        return [
            c.context_name
            for c in fleet.visible_clusters
            if c.is_present_in_source
        ]

    name = context or fleet.current_context
    if not name:
        raise ValueError("No current context; pass --context or run 'kswitch use'")
    await fleet.refresh_status(name)
    return [name]


def execute_status(
    *,
    context: str | None = None,
    all_contexts: bool = False,
    app: AppContext | None = None,
    console: Console | None = None,
) -> Mapping[str, ClusterStatus]:
    """Refresh and print status of the current, named or every visible context."""
    app = app or build_app_context()
    console = console or Console()
    fleet = app.fleet()
    names = asyncio.run(_status(fleet, context, all_contexts))
    _render(console, fleet, names)
    return fleet.statuses


async def _watch(
    app: AppContext, fleet: ClusterFleetService, console: Console
) -> None:
    def render(_: Mapping[str, ClusterStatus]) -> None:
        names = [c.context_name for c in fleet.visible_clusters if c.is_present_in_source]
        console.clear()
        _render(console, fleet, names)

    render(await fleet.refresh_all_statuses())
    watcher = KubeconfigWatcher(
        lambda: app.settings.effective_kubeconfig_paths,
        fleet.handle_kubeconfig_change,
    )
    watcher.start()
    try:
        await fleet.run_background_refresh(asyncio.Event(), on_refresh=render)
    finally:
        watcher.stop()


def execute_watch(
    *,
    interval: int | None = None,
    app: AppContext | None = None,
    console: Console | None = None,
) -> None:
    """Refresh every visible context on an interval until interrupted."""
    app = app or build_app_context()
    console = console or Console()
    if interval is not None:
        app.settings = replace(app.settings, refresh_interval_seconds=interval)
    if app.settings.refresh_interval_seconds <= 0:
        raise ValueError("Refresh interval must be positive for watch mode")

    fleet = app.fleet(notifier=ConsoleNotifier())
    try:
        asyncio.run(_watch(app, fleet, console))
    except KeyboardInterrupt:
        logger.debug("Watch interrupted")
        console.print("[dim]Stopped watching.[/dim]")


__all__ = ["execute_status", "execute_watch"]

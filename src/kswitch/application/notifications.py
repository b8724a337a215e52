"""Cluster transition notifications."""

from __future__ import annotations

import logging
from typing import Protocol

from rich.console import Console

logger = logging.getLogger(__name__)


class ClusterNotifier(Protocol):
    """Delivery collaborator for cluster state transitions."""

    def notify_became_unreachable(self, name: str) -> None: ...

    def notify_recovered(self, name: str) -> None: ...

    def notify_reconciliation_failures_increased(self, name: str, count: int) -> None: ...


class NullNotifier:
    """Notifier that drops every notification."""

    def notify_became_unreachable(self, name: str) -> None:
        return None

    def notify_recovered(self, name: str) -> None:
        return None

    def notify_reconciliation_failures_increased(self, name: str, count: int) -> None:
        return None


class ConsoleNotifier:
    """Notifier that prints transitions to a rich console."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console(stderr=True)

    def notify_became_unreachable(self, name: str) -> None:
        logger.info("Notify: %s became unreachable", name)
        self._console.print(f"[red]●[/red] [bold]{name}[/bold] is unreachable")

    def notify_recovered(self, name: str) -> None:
        logger.info("Notify: %s recovered", name)
        self._console.print(f"[green]●[/green] [bold]{name}[/bold] is reachable again")

    def notify_reconciliation_failures_increased(self, name: str, count: int) -> None:
        logger.info("Notify: %s has %d failing reconcilers", name, count)
        noun = "resource" if count == 1 else "resources"
        self._console.print(
            f"[yellow]●[/yellow] [bold]{name}[/bold]: {count} Flux {noun} failing"
        )

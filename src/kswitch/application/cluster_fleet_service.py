"""Context list ownership and status refresh scheduling."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import replace
from typing import Protocol

from kswitch.application.cluster_status_orchestrator import (
    ClusterClient,
    ClusterStatusOrchestrator,
)
from kswitch.application.notifications import ClusterNotifier
from kswitch.config import AppSettings
from kswitch.domain.cluster import ClusterContext, sync_clusters
from kswitch.domain.cluster_status import ClusterStatus
from kswitch.domain.errors import KSwitchError
from kswitch.infrastructure.storage import AppStorage

logger = logging.getLogger(__name__)


class ContextClient(ClusterClient, Protocol):
    """Cluster client with kubeconfig context operations."""

    async def list_contexts(self) -> list[str]: ...

    async def current_context(self) -> str: ...

    async def set_current_context(self, name: str) -> None: ...


class ClusterFleetService:
    """Owns stored contexts and drives the status orchestrator."""

    def __init__(
        self,
        client: ContextClient,
        storage: AppStorage,
        settings: AppSettings,
        *,
        notifier: ClusterNotifier | None = None,
    ) -> None:
        self._client = client
        self._storage = storage
        self.settings = settings
        self.clusters: list[ClusterContext] = storage.load_clusters()
        self.current_context = ""
        self.last_error: str | None = None
        self.orchestrator = ClusterStatusOrchestrator(
            client,
            notifier=notifier,
            notifications_enabled=lambda: self.settings.notifications_enabled,
            display_name=self.display_name,
        )

    def cluster(self, name: str) -> ClusterContext | None:
        """Return stored context by context name."""
        return next((c for c in self.clusters if c.context_name == name), None)

    def display_name(self, name: str) -> str:
        """Return effective name of a context."""
        cluster = self.cluster(name)
        return cluster.effective_name if cluster else name

    @property
    def visible_clusters(self) -> list[ClusterContext]:
        return [c for c in self.clusters if not c.is_hidden]

    @property
    def favorite_clusters(self) -> list[ClusterContext]:
        return [c for c in self.clusters if c.is_favorite and not c.is_hidden]

    @property
    def hidden_clusters(self) -> list[ClusterContext]:
        return [c for c in self.clusters if c.is_hidden]

    @property
    def statuses(self) -> Mapping[str, ClusterStatus]:
        """Return read-only status table."""
        return self.orchestrator.snapshot()

    def save(self) -> None:
        """Persist contexts."""
        self._storage.save_clusters(self.clusters)

    async def refresh_contexts(self) -> bool:
        """Sync stored contexts with the kubeconfig; record any error."""
        try:
            names = await self._client.list_contexts()
        except KSwitchError as exc:
            logger.warning("Failed to list contexts: %s", exc)
            self.last_error = str(exc)
            return False

        try:
            self.current_context = await self._client.current_context()
        except KSwitchError as exc:
            logger.debug("No current context: %s", exc)
            self.current_context = ""

        self.clusters = sync_clusters(self.clusters, names)
        self.save()
        self.last_error = None
        return True

    async def switch_context(self, name: str) -> ClusterStatus:
        """Make ``name`` the current context and refresh its status."""
        await self._client.set_current_context(name)
        self.current_context = name
        return await self.refresh_status(name)

    async def refresh_status(self, name: str) -> ClusterStatus:
        """Refresh one context."""
        return await self.orchestrator.refresh(name)

    async def refresh_all_statuses(self) -> Mapping[str, ClusterStatus]:
        """Re-read contexts, then refresh every visible present context."""
        await self.refresh_contexts()
        names = [
            c.context_name
            for c in self.clusters
            if not c.is_hidden and c.is_present_in_source
        ]
        return await self.orchestrator.refresh_all(names)

    async def handle_kubeconfig_change(self) -> None:
        """Pick up an externally switched context and re-sync."""
        logger.info("Handling kubeconfig change")
        try:
            new_context = await self._client.current_context()
        except KSwitchError:
            new_context = ""
        if new_context and new_context != self.current_context:
            logger.info(
                "Context changed externally: %s -> %s", self.current_context, new_context
            )
            self.current_context = new_context
            try:
                await self.refresh_status(new_context)
            except Exception as exc:
                logger.error("Status refresh of %s failed: %s", new_context, exc)
        await self.refresh_contexts()

    def update_cluster(self, cluster: ClusterContext) -> bool:
        """Replace a stored context by id and persist."""
        for index, existing in enumerate(self.clusters):
            if existing.id == cluster.id:
                self.clusters[index] = cluster
                self.save()
                return True
        return False

    def edit_cluster(self, name: str, **changes: object) -> ClusterContext:
        """Apply customization changes to a context by name."""
        cluster = self.cluster(name)
        if cluster is None:
            raise ValueError(f"Unknown context: {name}")
        updated = replace(cluster, **changes)  # type: ignore[arg-type]
        self.update_cluster(updated)
        return updated

    def delete_cluster(self, name: str) -> bool:
        """Forget a stored context and its status."""
        before = len(self.clusters)
        self.clusters = [c for c in self.clusters if c.context_name != name]
        if len(self.clusters) == before:
            return False
        self.orchestrator.remove(name)
        self.save()
        return True

    async def run_background_refresh(
        self,
        stop_event: asyncio.Event,
        on_refresh: Callable[[Mapping[str, ClusterStatus]], None] | None = None,
    ) -> None:
        """Sleep for the refresh interval, refresh everything, repeat."""
        interval = self.settings.refresh_interval_seconds
        if interval <= 0:
            return
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except TimeoutError:
                statuses = await self.refresh_all_statuses()
                if on_refresh is not None:
                    on_refresh(statuses)

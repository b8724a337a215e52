"""Concurrent per-context status refresh and transition notifications."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any, Protocol

from kswitch.application.notifications import ClusterNotifier, NullNotifier
from kswitch.domain.cluster_status import (
    ClusterStatus,
    FluxState,
    FluxStateKind,
    NodeInfo,
    Reachability,
    ReachabilityKind,
)
from kswitch.domain.errors import FluxReportNotFoundError, KSwitchError
from kswitch.domain.flux_report import (
    FluxReportSpec,
    FluxReportSummary,
    classify_flux_state,
)

logger = logging.getLogger(__name__)


class ClusterClient(Protocol):
    """Cluster queries the orchestrator depends on."""

    async def get_server_version(self, context: str) -> str: ...

    async def get_nodes(self, context: str) -> tuple[NodeInfo, ...]: ...

    async def get_flux_report(self, context: str) -> FluxReportSpec: ...


def _utc_now() -> datetime:
    return datetime.now(UTC)


class ClusterStatusOrchestrator:
    """Single owner of the status table.

    Writes replace the whole table (copy-on-write), so a snapshot handed
    to a reader never changes and never shows a half-updated status.
    Concurrent refreshes of the same context share one in-flight check.
    """

    def __init__(
        self,
        client: ClusterClient,
        *,
        notifier: ClusterNotifier | None = None,
        notifications_enabled: Callable[[], bool] = lambda: True,
        display_name: Callable[[str], str] = lambda name: name,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._client = client
        self._notifier = notifier or NullNotifier()
        self._notifications_enabled = notifications_enabled
        self._display_name = display_name
        self._clock = clock
        self._statuses: dict[str, ClusterStatus] = {}
        self._in_flight: dict[str, asyncio.Future[ClusterStatus]] = {}

    def snapshot(self) -> Mapping[str, ClusterStatus]:
        """Return read-only view of the current table."""
        return MappingProxyType(self._statuses)

    def status(self, name: str) -> ClusterStatus:
        """Return status of a context, or an unknown status."""
        return self._statuses.get(name) or ClusterStatus()

    def is_refreshing(self, name: str) -> bool:
        """Return whether a check of the context is in flight."""
        return name in self._in_flight

    def remove(self, name: str) -> None:
        """Drop a context from the table."""
        if name in self._statuses:
            table = dict(self._statuses)
            del table[name]
            self._statuses = table

    def _publish(self, name: str, status: ClusterStatus) -> None:
        table = dict(self._statuses)
        table[name] = status
        self._statuses = table

    async def refresh(self, name: str) -> ClusterStatus:
        """Check one context and publish its new status."""
        pending = self._in_flight.get(name)
        if pending is None:
            pending = asyncio.ensure_future(self._refresh(name))
            self._in_flight[name] = pending
            pending.add_done_callback(lambda _: self._in_flight.pop(name, None))
        return await asyncio.shield(pending)

    async def refresh_all(self, names: Iterable[str]) -> Mapping[str, ClusterStatus]:
        """Check contexts concurrently; one failure never affects the others."""
        unique = list(dict.fromkeys(names))
        results = await asyncio.gather(
            *(self.refresh(name) for name in unique), return_exceptions=True
        )
        for result in results:
            if isinstance(result, asyncio.CancelledError):
                raise result
        return self.snapshot()

    async def _refresh(self, name: str) -> ClusterStatus:
        previous = self.status(name)
        self._publish(name, previous.checking())
        try:
            status = await self._check(name, previous)
        except asyncio.CancelledError:
            self._publish(name, previous)
            raise
        except Exception as exc:
            logger.error("Status refresh of %s failed: %r", name, exc)
            self._publish(
                name,
                previous.settled(
                    Reachability.unreachable(str(exc) or type(exc).__name__),
                    last_checked_at=self._clock(),
                ),
            )
            raise

        self._publish(name, status)
        self._notify(name, previous, status)
        return status

    async def _check(self, name: str, previous: ClusterStatus) -> ClusterStatus:
        try:
            version = await self._client.get_server_version(name)
        except KSwitchError as exc:
            logger.warning("%s is unreachable: %s", name, exc)
            return previous.settled(
                Reachability.unreachable(str(exc)),
                flux_state=FluxState.unknown(),
                last_checked_at=self._clock(),
            )

        nodes_result, flux_result = await asyncio.gather(
            self._client.get_nodes(name),
            self._client.get_flux_report(name),
            return_exceptions=True,
        )
        changes: dict[str, Any] = {"kubernetes_version": version}
        changes.update(self._node_changes(name, nodes_result))
        changes.update(self._flux_changes(name, flux_result))
        changes["last_checked_at"] = self._clock()

        return previous.settled(Reachability.reachable(), **changes)

    def _node_changes(self, name: str, result: object) -> dict[str, Any]:
        if isinstance(result, KSwitchError):
            logger.warning("Failed to get nodes for %s: %s", name, result)
            return {"node_error": str(result)}
        if isinstance(result, BaseException):
            raise result
        return {"nodes": result, "node_error": None}

    def _flux_changes(self, name: str, result: object) -> dict[str, Any]:
        if isinstance(result, FluxReportNotFoundError):
            return {
                "flux_state": FluxState.not_installed(),
                "flux_summary": None,
                "flux_error": None,
            }
        if isinstance(result, KSwitchError):
            logger.warning("Failed to get FluxReport for %s: %s", name, result)
            return {"flux_state": FluxState.unknown(), "flux_error": str(result)}
        if isinstance(result, BaseException):
            raise result

        assert isinstance(result, FluxReportSpec)
        summary = FluxReportSummary.from_spec(result)
        state = classify_flux_state(summary)
        if state.kind is FluxStateKind.DEGRADED:
            logger.warning("Flux degraded for %s: %d failing", name, state.failing)
        return {"flux_state": state, "flux_summary": summary, "flux_error": None}

    def _notify(
        self, name: str, previous: ClusterStatus, current: ClusterStatus
    ) -> None:
        if not self._notifications_enabled():
            return
        label = self._display_name(name)
        before = previous.last_outcome.kind
        after = current.reachability.kind

        if before is ReachabilityKind.REACHABLE and after is ReachabilityKind.UNREACHABLE:
            self._notifier.notify_became_unreachable(label)
        elif before is ReachabilityKind.UNREACHABLE and after is ReachabilityKind.REACHABLE:
            self._notifier.notify_recovered(label)

        if (
            after is ReachabilityKind.REACHABLE
            and current.total_failing > 0
            and current.total_failing > previous.total_failing
        ):
            self._notifier.notify_reconciliation_failures_increased(
                label, current.total_failing
            )

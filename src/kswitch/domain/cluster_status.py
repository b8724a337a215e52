"""Per-cluster status snapshot and derived health."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kswitch.domain.flux_report import FluxReportSummary


class ReachabilityKind(str, Enum):
    """Control-plane reachability states."""

    UNKNOWN = "unknown"
    CHECKING = "checking"
    REACHABLE = "reachable"
    UNREACHABLE = "unreachable"


@dataclass(frozen=True)
class Reachability:
    """Reachability state; ``reason`` is set only for unreachable clusters."""

    kind: ReachabilityKind
    reason: str | None = None

    @classmethod
    def unknown(cls) -> Reachability:
        return cls(ReachabilityKind.UNKNOWN)

    @classmethod
    def checking(cls) -> Reachability:
        return cls(ReachabilityKind.CHECKING)

    @classmethod
    def reachable(cls) -> Reachability:
        return cls(ReachabilityKind.REACHABLE)

    @classmethod
    def unreachable(cls, reason: str) -> Reachability:
        return cls(ReachabilityKind.UNREACHABLE, reason)

    @property
    def is_settled(self) -> bool:
        """Return whether this is the outcome of a finished check."""
        return self.kind in (ReachabilityKind.REACHABLE, ReachabilityKind.UNREACHABLE)


class FluxStateKind(str, Enum):
    """Flux installation states."""

    UNKNOWN = "unknown"
    CHECKING = "checking"
    NOT_INSTALLED = "not_installed"
    OPERATOR_ONLY = "operator_only"
    INSTALLED = "installed"
    DEGRADED = "degraded"


@dataclass(frozen=True)
class FluxState:
    """Flux state with the version and counters relevant to its kind."""

    kind: FluxStateKind
    version: str | None = None
    healthy: bool | None = None
    failing: int = 0

    @classmethod
    def unknown(cls) -> FluxState:
        return cls(FluxStateKind.UNKNOWN)

    @classmethod
    def checking(cls) -> FluxState:
        return cls(FluxStateKind.CHECKING)

    @classmethod
    def not_installed(cls) -> FluxState:
        return cls(FluxStateKind.NOT_INSTALLED)

    @classmethod
    def operator_only(cls, version: str) -> FluxState:
        return cls(FluxStateKind.OPERATOR_ONLY, version=version)

    @classmethod
    def installed(cls, version: str, healthy: bool) -> FluxState:
        return cls(FluxStateKind.INSTALLED, version=version, healthy=healthy)

    @classmethod
    def degraded(cls, version: str, failing: int) -> FluxState:
        return cls(FluxStateKind.DEGRADED, version=version, failing=failing)

    @property
    def label(self) -> str:
        """Return short human-readable description."""
        if self.kind is FluxStateKind.OPERATOR_ONLY:
            return f"Operator only ({self.version})"
        if self.kind is FluxStateKind.INSTALLED:
            return f"Flux {self.version}"
        if self.kind is FluxStateKind.DEGRADED:
            return f"Flux {self.version} ({self.failing} failing)"
        if self.kind is FluxStateKind.NOT_INSTALLED:
            return "Not installed"
        if self.kind is FluxStateKind.CHECKING:
            return "Checking"
        return "Unknown"


class StatusColor(str, Enum):
    """Indicator colors derived from a status."""

    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"
    GRAY = "gray"


@dataclass(frozen=True)
class NodeInfo:
    """Node readiness and allocatable capacity."""

    id: str
    name: str
    ready: bool
    cpu_millicores: int
    memory_bytes: int
    pods: int


@dataclass(frozen=True)
class ClusterStatus:
    """Immutable status snapshot for one context.

    Every field is independently optional so a refresh can merge what it
    learned without discarding what it could not re-fetch. ``last_outcome``
    remembers the last settled reachability while a new check is running.
    """

    reachability: Reachability = Reachability(ReachabilityKind.UNKNOWN)
    last_outcome: Reachability = Reachability(ReachabilityKind.UNKNOWN)
    kubernetes_version: str | None = None
    nodes: tuple[NodeInfo, ...] = ()
    node_error: str | None = None
    flux_state: FluxState = FluxState(FluxStateKind.UNKNOWN)
    flux_summary: FluxReportSummary | None = None
    flux_error: str | None = None
    last_checked_at: datetime | None = None

    def checking(self) -> ClusterStatus:
        """Return this status marked as checking, keeping all known data."""
        flux_state = self.flux_state
        if flux_state.kind is FluxStateKind.UNKNOWN:
            flux_state = FluxState.checking()
        return replace(self, reachability=Reachability.checking(), flux_state=flux_state)

    def settled(self, reachability: Reachability, **changes: object) -> ClusterStatus:
        """Return a status with a finished check outcome applied."""
        return replace(
            self,
            reachability=reachability,
            last_outcome=reachability,
            **changes,  # type: ignore[arg-type]
        )

    @property
    def total_failing(self) -> int:
        """Return failing reconcilers from the last Flux summary."""
        return self.flux_summary.total_failing if self.flux_summary else 0

    @property
    def ready_node_count(self) -> int:
        """Return number of nodes reporting Ready."""
        return sum(1 for node in self.nodes if node.ready)

    @property
    def is_degraded(self) -> bool:
        """Return whether any resource is failing or the last fetch errored."""
        return (
            self.total_failing > 0
            or self.node_error is not None
            or self.flux_error is not None
            or any(not node.ready for node in self.nodes)
        )

    @property
    def status_color(self) -> StatusColor:
        """Return indicator color for the current or last settled outcome."""
        outcome = self.reachability if self.reachability.is_settled else self.last_outcome
        if outcome.kind is ReachabilityKind.UNREACHABLE:
            return StatusColor.RED
        if outcome.kind is ReachabilityKind.REACHABLE:
            return StatusColor.YELLOW if self.is_degraded else StatusColor.GREEN
        return StatusColor.GRAY

    @property
    def status_label(self) -> str:
        """Return label matching ``status_color``."""
        color = self.status_color
        if color is StatusColor.GREEN:
            return "Healthy"
        if color is StatusColor.YELLOW:
            return "Degraded"
        if color is StatusColor.RED:
            return "Offline"
        if self.reachability.kind is ReachabilityKind.CHECKING:
            return "Checking"
        return "Unknown"

"""Flux Operator FluxReport model, summary and state classification."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from kswitch.domain.cluster_status import FluxState
from kswitch.domain.errors import InvalidResponseError


@dataclass(frozen=True)
class FluxClusterInfo:
    """Cluster facts reported by the operator."""

    platform: str | None = None
    server_version: str | None = None
    nodes: int | None = None


@dataclass(frozen=True)
class FluxDistribution:
    """Installed Flux distribution."""

    version: str | None = None
    status: str | None = None
    entitlement: str | None = None
    managed_by: str | None = None


@dataclass(frozen=True)
class FluxComponent:
    """One Flux controller deployment."""

    name: str
    ready: bool
    image: str | None = None
    status: str | None = None


@dataclass(frozen=True)
class FluxReconciler:
    """Reconciler statistics for one resource kind."""

    api_version: str
    kind: str
    running: int
    failing: int
    suspended: int
    total_size: str | None = None


@dataclass(frozen=True)
class FluxSync:
    """Cluster sync (bootstrap source) status."""

    ready: bool
    id: str | None = None
    path: str | None = None
    source: str | None = None
    status: str | None = None


@dataclass(frozen=True)
class FluxOperatorInfo:
    """Flux Operator build information."""

    api_version: str | None = None
    version: str | None = None
    platform: str | None = None


@dataclass(frozen=True)
class FluxReportSpec:
    """The ``spec`` section of a FluxReport object."""

    cluster: FluxClusterInfo | None = None
    distribution: FluxDistribution | None = None
    components: tuple[FluxComponent, ...] | None = None
    reconcilers: tuple[FluxReconciler, ...] | None = None
    sync: FluxSync | None = None
    operator: FluxOperatorInfo | None = None

    @classmethod
    def from_dict(cls, raw: Any) -> FluxReportSpec:
        """Decode a FluxReport spec, raising InvalidResponseError on bad shape."""
        spec = _mapping(raw, "spec")
        return cls(
            cluster=_optional(spec, "cluster", _cluster_info),
            distribution=_optional(spec, "distribution", _distribution),
            components=_optional_list(spec, "components", _component),
            reconcilers=_optional_list(spec, "reconcilers", _reconciler),
            sync=_optional(spec, "sync", _sync),
            operator=_optional(spec, "operator", _operator),
        )


def parse_flux_report_list(payload: Any) -> FluxReportSpec | None:
    """Return the spec of the first FluxReport in a list payload, if any."""
    items = _mapping(payload, "list").get("items")
    if not isinstance(items, list):
        raise InvalidResponseError("FluxReport list has no items array")
    if not items:
        return None
    first = _mapping(items[0], "item")
    return FluxReportSpec.from_dict(first.get("spec"))


@dataclass(frozen=True)
class FluxReportSummary:
    """Aggregated view of a FluxReport for status display."""

    distribution_version: str
    operator_version: str
    is_distribution_installed: bool
    sync_ready: bool
    sync_path: str | None
    total_running: int
    total_failing: int
    total_suspended: int
    components_ready: int
    components_total: int
    reconciler_count: int

    @classmethod
    def from_spec(cls, spec: FluxReportSpec) -> FluxReportSummary:
        """Aggregate reconciler and component counters."""
        reconcilers = spec.reconcilers or ()
        components = spec.components or ()
        distribution = spec.distribution
        return cls(
            distribution_version=(distribution and distribution.version) or "unknown",
            operator_version=(spec.operator and spec.operator.version) or "unknown",
            is_distribution_installed=bool(
                distribution and distribution.status == "Installed"
            ),
            sync_ready=bool(spec.sync and spec.sync.ready),
            sync_path=spec.sync.path if spec.sync else None,
            total_running=sum(r.running for r in reconcilers),
            total_failing=sum(r.failing for r in reconcilers),
            total_suspended=sum(r.suspended for r in reconcilers),
            components_ready=sum(1 for c in components if c.ready),
            components_total=len(components),
            reconciler_count=len(reconcilers),
        )

    @property
    def is_healthy(self) -> bool:
        """Return whether nothing is failing and all components are ready."""
        return self.total_failing == 0 and self.components_ready == self.components_total

    @property
    def has_workloads(self) -> bool:
        """Return whether the report lists any reconcilers or components."""
        return self.reconciler_count > 0 or self.components_total > 0


def classify_flux_state(summary: FluxReportSummary) -> FluxState:
    """Map a summary onto the Flux state machine."""
    if not summary.has_workloads or not summary.is_distribution_installed:
        return FluxState.operator_only(summary.operator_version)
    if summary.is_healthy:
        return FluxState.installed(summary.distribution_version, healthy=True)
    return FluxState.degraded(summary.distribution_version, summary.total_failing)


def _mapping(value: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise InvalidResponseError(f"expected object for FluxReport {what}")
    return value


def _optional(spec: Mapping[str, Any], key: str, build: Any) -> Any:
    value = spec.get(key)
    if value is None:
        return None
    return build(_mapping(value, key))


def _optional_list(spec: Mapping[str, Any], key: str, build: Any) -> Any:
    value = spec.get(key)
    if value is None:
        return None
    if not isinstance(value, list):
        raise InvalidResponseError(f"expected array for FluxReport {key}")
    return tuple(build(_mapping(item, key)) for item in value)


def _int(value: Any, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidResponseError(f"expected integer for {what}")
    return value


def _str(value: Any) -> str | None:
    return None if value is None else str(value)


def _cluster_info(raw: Mapping[str, Any]) -> FluxClusterInfo:
    nodes = raw.get("nodes")
    return FluxClusterInfo(
        platform=_str(raw.get("platform")),
        server_version=_str(raw.get("serverVersion")),
        nodes=None if nodes is None else _int(nodes, "cluster.nodes"),
    )


def _distribution(raw: Mapping[str, Any]) -> FluxDistribution:
    return FluxDistribution(
        version=_str(raw.get("version")),
        status=_str(raw.get("status")),
        entitlement=_str(raw.get("entitlement")),
        managed_by=_str(raw.get("managedBy")),
    )


def _component(raw: Mapping[str, Any]) -> FluxComponent:
    if "name" not in raw or "ready" not in raw:
        raise InvalidResponseError("component requires name and ready")
    return FluxComponent(
        name=str(raw["name"]),
        ready=bool(raw["ready"]),
        image=_str(raw.get("image")),
        status=_str(raw.get("status")),
    )


def _reconciler(raw: Mapping[str, Any]) -> FluxReconciler:
    stats = _mapping(raw.get("stats"), "reconciler stats")
    return FluxReconciler(
        api_version=str(raw.get("apiVersion", "")),
        kind=str(raw.get("kind", "")),
        running=_int(stats.get("running", 0), "stats.running"),
        failing=_int(stats.get("failing", 0), "stats.failing"),
        suspended=_int(stats.get("suspended", 0), "stats.suspended"),
        total_size=_str(stats.get("totalSize")),
    )


def _sync(raw: Mapping[str, Any]) -> FluxSync:
    return FluxSync(
        ready=bool(raw.get("ready", False)),
        id=_str(raw.get("id")),
        path=_str(raw.get("path")),
        source=_str(raw.get("source")),
        status=_str(raw.get("status")),
    )


def _operator(raw: Mapping[str, Any]) -> FluxOperatorInfo:
    return FluxOperatorInfo(
        api_version=_str(raw.get("apiVersion")),
        version=_str(raw.get("version")),
        platform=_str(raw.get("platform")),
    )

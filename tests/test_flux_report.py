"""Tests for FluxReport decoding and state classification."""

from __future__ import annotations

from typing import Any

import pytest

from kswitch.domain.cluster_status import FluxStateKind
from kswitch.domain.errors import InvalidResponseError
from kswitch.domain.flux_report import (
    FluxReportSummary,
    classify_flux_state,
    parse_flux_report_list,
)


def _report(
    *,
    status: str = "Installed",
    failing: int = 0,
    components_ready: bool = True,
    reconcilers: bool = True,
) -> dict[str, Any]:
    spec: dict[str, Any] = {
        "cluster": {"platform": "linux/amd64", "serverVersion": "v1.30.2", "nodes": 3},
        "distribution": {"version": "v2.4.0", "status": status, "managedBy": "flux-operator"},
        "components": [
            {"name": "source-controller", "ready": True, "image": "ghcr.io/fluxcd/source"},
            {"name": "kustomize-controller", "ready": components_ready},
        ],
        "operator": {"apiVersion": "fluxcd.controlplane.io/v1", "version": "v0.14.0"},
        "sync": {"ready": True, "path": "clusters/prod", "source": "git"},
    }
    if reconcilers:
        spec["reconcilers"] = [
            {
                "apiVersion": "kustomize.toolkit.fluxcd.io/v1",
                "kind": "Kustomization",
                "stats": {"running": 5, "failing": failing, "suspended": 1},
            },
            {
                "apiVersion": "helm.toolkit.fluxcd.io/v2",
                "kind": "HelmRelease",
                "stats": {"running": 3, "failing": 0, "suspended": 0, "totalSize": "1 MiB"},
            },
        ]
    return {"apiVersion": "v1", "kind": "List", "items": [{"spec": spec}]}


def _summary(payload: dict[str, Any]) -> FluxReportSummary:
    spec = parse_flux_report_list(payload)
    assert spec is not None
    return FluxReportSummary.from_spec(spec)


def test_parse_report_fields() -> None:
    spec = parse_flux_report_list(_report())

    assert spec is not None
    assert spec.cluster is not None and spec.cluster.nodes == 3
    assert spec.distribution is not None and spec.distribution.managed_by == "flux-operator"
    assert spec.reconcilers is not None and spec.reconcilers[1].total_size == "1 MiB"
    assert spec.sync is not None and spec.sync.path == "clusters/prod"


def test_empty_list_means_no_report() -> None:
    assert parse_flux_report_list({"items": []}) is None


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"kind": "List"},
        {"items": ["nope"]},
        {"items": [{"spec": {"reconcilers": {"kind": "x"}}}]},
        {"items": [{"spec": {"components": [{"name": "x"}]}}]},
        {"items": [{"spec": {"reconcilers": [{"stats": {"failing": "2"}}]}}]},
    ],
)
def test_bad_shapes_raise(payload: Any) -> None:
    with pytest.raises(InvalidResponseError):
        parse_flux_report_list(payload)


def test_summary_aggregates_counters() -> None:
    summary = _summary(_report(failing=2, components_ready=False))

    assert summary.total_running == 8
    assert summary.total_failing == 2
    assert summary.total_suspended == 1
    assert summary.components_ready == 1
    assert summary.components_total == 2
    assert summary.reconciler_count == 2
    assert summary.sync_ready is True
    assert summary.sync_path == "clusters/prod"
    assert not summary.is_healthy


def test_summary_defaults_versions_to_unknown() -> None:
    summary = _summary({"items": [{"spec": {}}]})

    assert summary.distribution_version == "unknown"
    assert summary.operator_version == "unknown"
    assert not summary.is_distribution_installed
    assert not summary.has_workloads


def test_classify_installed_healthy() -> None:
    state = classify_flux_state(_summary(_report()))

    assert state.kind is FluxStateKind.INSTALLED
    assert state.version == "v2.4.0"
    assert state.healthy is True


def test_classify_degraded_on_failures() -> None:
    state = classify_flux_state(_summary(_report(failing=4)))

    assert state.kind is FluxStateKind.DEGRADED
    assert state.failing == 4


def test_classify_degraded_on_unready_component() -> None:
    state = classify_flux_state(_summary(_report(components_ready=False)))

    assert state.kind is FluxStateKind.DEGRADED
    assert state.failing == 0


def test_classify_operator_only() -> None:
    not_installed = classify_flux_state(_summary(_report(status="NotInstalled")))
    no_workloads = classify_flux_state(_summary({"items": [{"spec": {}}]}))

    assert not_installed.kind is FluxStateKind.OPERATOR_ONLY
    assert not_installed.version == "v0.14.0"
    assert no_workloads.kind is FluxStateKind.OPERATOR_ONLY
    assert no_workloads.version == "unknown"

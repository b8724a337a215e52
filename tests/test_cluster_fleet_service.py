"""Tests for context list ownership and refresh scheduling."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from pathlib import Path

import pytest

from kswitch.application.cluster_fleet_service import ClusterFleetService
from kswitch.config import AppSettings
from kswitch.domain.cluster import ClusterContext
from kswitch.domain.cluster_status import ClusterStatus, NodeInfo, ReachabilityKind
from kswitch.domain.errors import FluxReportNotFoundError, KubectlFailedError
from kswitch.domain.flux_report import FluxReportSpec
from kswitch.infrastructure.storage import AppStorage


class FakeContextClient:
    """In-memory kubeconfig with every context reachable."""

    def __init__(self, contexts: list[str], current: str = "") -> None:
        self.contexts = contexts
        self.current = current
        self.list_error: Exception | None = None
        self.checked: list[str] = []

    async def list_contexts(self) -> list[str]:
        if self.list_error is not None:
            raise self.list_error
        return list(self.contexts)

    async def current_context(self) -> str:
        if not self.current:
            raise KubectlFailedError("error: current-context is not set")
        return self.current

    async def set_current_context(self, name: str) -> None:
        self.current = name

    async def get_server_version(self, context: str) -> str:
        self.checked.append(context)
        return "v1.30.2"

    async def get_nodes(self, context: str) -> tuple[NodeInfo, ...]:
        return ()

    async def get_flux_report(self, context: str) -> FluxReportSpec:
        raise FluxReportNotFoundError()


def _fleet(
    tmp_path: Path,
    client: FakeContextClient,
    settings: AppSettings | None = None,
) -> ClusterFleetService:
    return ClusterFleetService(client, AppStorage(tmp_path), settings or AppSettings())


def test_refresh_contexts_syncs_and_persists(tmp_path: Path) -> None:
    client = FakeContextClient(["prod", "dev"], current="dev")
    fleet = _fleet(tmp_path, client)

    assert asyncio.run(fleet.refresh_contexts()) is True

    assert [c.context_name for c in fleet.clusters] == ["prod", "dev"]
    assert fleet.current_context == "dev"
    assert fleet.last_error is None
    reloaded = _fleet(tmp_path, client)
    assert reloaded.clusters == fleet.clusters


def test_refresh_contexts_records_error(tmp_path: Path) -> None:
    client = FakeContextClient(["prod"])
    client.list_error = KubectlFailedError("kubeconfig is broken")
    fleet = _fleet(tmp_path, client)

    assert asyncio.run(fleet.refresh_contexts()) is False
    assert fleet.last_error is not None and "kubeconfig is broken" in fleet.last_error
    assert fleet.clusters == []


def test_missing_current_context_is_empty(tmp_path: Path) -> None:
    fleet = _fleet(tmp_path, FakeContextClient(["prod"]))

    asyncio.run(fleet.refresh_contexts())

    assert fleet.current_context == ""


def test_refresh_all_skips_hidden_and_absent(tmp_path: Path) -> None:
    storage = AppStorage(tmp_path)
    storage.save_clusters(
        [
            ClusterContext(context_name="gone"),
            ClusterContext(context_name="secret", is_hidden=True),
        ]
    )
    client = FakeContextClient(["prod", "secret"])
    fleet = ClusterFleetService(client, storage, AppSettings())

    statuses = asyncio.run(fleet.refresh_all_statuses())

    assert client.checked == ["prod"]
    assert list(statuses) == ["prod"]
    assert [c.context_name for c in fleet.visible_clusters] == ["prod", "gone"]
    assert [c.context_name for c in fleet.hidden_clusters] == ["secret"]


def test_switch_context_refreshes_status(tmp_path: Path) -> None:
    client = FakeContextClient(["prod", "dev"], current="prod")
    fleet = _fleet(tmp_path, client)

    status = asyncio.run(fleet.switch_context("dev"))

    assert client.current == "dev"
    assert fleet.current_context == "dev"
    assert status.reachability.kind is ReachabilityKind.REACHABLE
    assert fleet.statuses["dev"] == status


def test_edit_and_delete_cluster(tmp_path: Path) -> None:
    client = FakeContextClient(["prod", "dev"])
    fleet = _fleet(tmp_path, client)
    asyncio.run(fleet.refresh_contexts())
    asyncio.run(fleet.refresh_status("dev"))

    updated = fleet.edit_cluster("prod", display_name="Production", is_favorite=True)

    assert fleet.display_name("prod") == "Production"
    assert [c.context_name for c in fleet.favorite_clusters] == ["prod"]
    assert _fleet(tmp_path, client).cluster("prod") == updated

    assert fleet.delete_cluster("dev") is True
    assert fleet.delete_cluster("dev") is False
    assert "dev" not in fleet.statuses
    assert _fleet(tmp_path, client).cluster("dev") is None

    with pytest.raises(ValueError, match="Unknown context"):
        fleet.edit_cluster("missing", is_hidden=True)


def test_kubeconfig_change_refreshes_new_context(tmp_path: Path) -> None:
    client = FakeContextClient(["prod", "dev"], current="prod")
    fleet = _fleet(tmp_path, client)
    asyncio.run(fleet.refresh_contexts())

    client.current = "dev"
    client.contexts.append("stage")
    asyncio.run(fleet.handle_kubeconfig_change())

    assert fleet.current_context == "dev"
    assert client.checked == ["dev"]
    assert fleet.cluster("stage") is not None


def test_background_refresh_runs_until_stopped(tmp_path: Path) -> None:
    client = FakeContextClient(["prod"])
    fleet = _fleet(tmp_path, client, AppSettings(refresh_interval_seconds=1))
    refreshed: list[Mapping[str, ClusterStatus]] = []

    async def scenario() -> None:
        stop = asyncio.Event()

        def on_refresh(statuses: Mapping[str, ClusterStatus]) -> None:
            refreshed.append(statuses)
            stop.set()

        await asyncio.wait_for(fleet.run_background_refresh(stop, on_refresh), timeout=10)

    asyncio.run(scenario())

    assert len(refreshed) == 1
    assert "prod" in refreshed[0]


def test_background_refresh_disabled_by_zero_interval(tmp_path: Path) -> None:
    client = FakeContextClient(["prod"])
    fleet = _fleet(tmp_path, client, AppSettings(refresh_interval_seconds=0))

    asyncio.run(fleet.run_background_refresh(asyncio.Event()))

    assert client.checked == []

"""Tests for cluster contexts and kubeconfig sync."""

from __future__ import annotations

from kswitch.domain.cluster import DEFAULT_COLORS, ClusterContext, sync_clusters


def test_new_context_gets_palette_color_and_unique_id() -> None:
    first = ClusterContext(context_name="prod")
    second = ClusterContext(context_name="prod")

    assert first.color_tag in DEFAULT_COLORS
    assert first.id != second.id
    assert first.is_present_in_source is True


def test_effective_and_truncated_name() -> None:
    plain = ClusterContext(context_name="arn:aws:eks:eu-west-1:123456789012:cluster/prod")
    named = ClusterContext(context_name="ctx", display_name="Production")

    assert named.effective_name == "Production"
    assert plain.effective_name == plain.context_name
    assert len(plain.truncated_name) == 30
    assert plain.truncated_name.endswith("...")
    assert named.truncated_name == "Production"


def test_dict_round_trip_keeps_customizations() -> None:
    cluster = ClusterContext(
        context_name="staging",
        display_name="Stage",
        color_tag="#EF4444",
        is_favorite=True,
        is_hidden=True,
        sort_order=3,
    )

    assert ClusterContext.from_dict(cluster.to_dict()) == cluster


def test_from_dict_fills_missing_fields() -> None:
    cluster = ClusterContext.from_dict({"context_name": "dev", "display_name": ""})

    assert cluster.display_name is None
    assert cluster.color_tag in DEFAULT_COLORS
    assert cluster.id
    assert cluster.is_present_in_source is True


def test_sync_follows_kubeconfig_order_and_keeps_missing() -> None:
    stored = [
        ClusterContext(context_name="old", display_name="Old one", sort_order=0),
        ClusterContext(context_name="prod", color_tag="#10B981", sort_order=1),
    ]

    result = sync_clusters(stored, ["prod", "dev", "prod"])

    assert [c.context_name for c in result] == ["prod", "dev", "old"]
    assert [c.sort_order for c in result[:2]] == [0, 1]
    assert result[0].color_tag == "#10B981"
    assert result[0].id == stored[1].id
    assert result[1].is_present_in_source is True
    assert result[2].is_present_in_source is False
    assert result[2].display_name == "Old one"


def test_sync_restores_presence_when_context_returns() -> None:
    gone = ClusterContext(context_name="prod", is_present_in_source=False)

    result = sync_clusters([gone], ["prod"])

    assert len(result) == 1
    assert result[0].is_present_in_source is True
    assert result[0].id == gone.id
    assert result[0].color_tag == gone.color_tag

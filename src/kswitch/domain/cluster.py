"""Cluster contexts and their sync against the kubeconfig context list."""

from __future__ import annotations

import random
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any
from uuid import uuid4

DEFAULT_COLORS: tuple[str, ...] = (
    "#3B82F6",  # blue
    "#10B981",  # green
    "#F59E0B",  # amber
    "#EF4444",  # red
    "#8B5CF6",  # purple
    "#EC4899",  # pink
    "#06B6D4",  # cyan
    "#F97316",  # orange
)

_MAX_NAME_LENGTH = 30


def _random_color() -> str:
    return random.choice(DEFAULT_COLORS)


def _new_id() -> str:
    return str(uuid4())


@dataclass(frozen=True)
class ClusterContext:
    """A kubeconfig context plus the user's customizations for it."""

    context_name: str
    display_name: str | None = None
    color_tag: str = field(default_factory=_random_color)
    is_favorite: bool = False
    is_hidden: bool = False
    is_present_in_source: bool = True
    sort_order: int = 0
    id: str = field(default_factory=_new_id)

    @property
    def effective_name(self) -> str:
        """Return display name when set, otherwise the context name."""
        return self.display_name or self.context_name

    @property
    def truncated_name(self) -> str:
        """Return effective name shortened for narrow layouts."""
        name = self.effective_name
        if len(name) > _MAX_NAME_LENGTH:
            return name[: _MAX_NAME_LENGTH - 3] + "..."
        return name

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "id": self.id,
            "context_name": self.context_name,
            "display_name": self.display_name,
            "color_tag": self.color_tag,
            "is_favorite": self.is_favorite,
            "is_hidden": self.is_hidden,
            "is_present_in_source": self.is_present_in_source,
            "sort_order": self.sort_order,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> ClusterContext:
        """Build a context from its stored dictionary form."""
        return cls(
            context_name=str(raw["context_name"]),
            display_name=raw.get("display_name") or None,
            color_tag=str(raw.get("color_tag") or _random_color()),
            is_favorite=bool(raw.get("is_favorite", False)),
            is_hidden=bool(raw.get("is_hidden", False)),
            is_present_in_source=bool(raw.get("is_present_in_source", True)),
            sort_order=int(raw.get("sort_order", 0)),
            id=str(raw.get("id") or _new_id()),
        )


def sync_clusters(
    clusters: Iterable[ClusterContext],
    context_names: Iterable[str],
) -> list[ClusterContext]:
    """Merge stored contexts with the names currently in the kubeconfig.

    Contexts present in the kubeconfig come first, in kubeconfig order.
    Stored contexts that disappeared upstream are kept after them with
    ``is_present_in_source=False`` so their customizations survive.
    """
    existing = {cluster.context_name: cluster for cluster in clusters}
    seen: set[str] = set()
    result: list[ClusterContext] = []

    for name in context_names:
        if name in seen:
            continue
        seen.add(name)
        index = len(result)
        current = existing.get(name)
        if current is None:
            result.append(ClusterContext(context_name=name, sort_order=index))
        else:
            result.append(
                replace(current, sort_order=index, is_present_in_source=True)
            )

    for name, cluster in existing.items():
        if name not in seen:
            result.append(replace(cluster, is_present_in_source=False))

    return result

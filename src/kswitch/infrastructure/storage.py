"""JSON persistence of cluster customizations and settings."""

import json
import logging
from pathlib import Path
from typing import Any

from kswitch.config import AppSettings
from kswitch.domain.cluster import ClusterContext

logger = logging.getLogger(__name__)

CLUSTERS_FILE = "clusters.json"
SETTINGS_FILE = "settings.json"


class AppStorage:
    """Reads and writes ``clusters.json`` and ``settings.json`` under ``root``.

    Missing or corrupt files yield defaults; write failures are logged.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    @property
    def clusters_path(self) -> Path:
        return self.root / CLUSTERS_FILE

    @property
    def settings_path(self) -> Path:
        return self.root / SETTINGS_FILE

    def load_clusters(self) -> list[ClusterContext]:
        """Return stored contexts, or an empty list."""
        raw = self._read(self.clusters_path)
        if raw is None:
            return []
        try:
            return [ClusterContext.from_dict(item) for item in raw]
        except (KeyError, TypeError, ValueError) as exc:
            logger.error("Failed to load clusters from %s: %s", self.clusters_path, exc)
            return []

    def save_clusters(self, clusters: list[ClusterContext]) -> None:
        """Persist contexts."""
        self._write(self.clusters_path, [cluster.to_dict() for cluster in clusters])

    def load_settings(self) -> AppSettings:
        """Return stored settings, or defaults."""
        raw = self._read(self.settings_path)
        if raw is None:
            return AppSettings()
        try:
            return AppSettings.from_dict(raw)
        except (AttributeError, TypeError, ValueError) as exc:
            logger.error("Failed to load settings from %s: %s", self.settings_path, exc)
            return AppSettings()

    def save_settings(self, settings: AppSettings) -> None:
        """Persist settings."""
        self._write(self.settings_path, settings.to_dict())

    def _read(self, path: Path) -> Any:
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("Failed to read %s: %s", path, exc)
            return None

    def _write(self, path: Path, payload: Any) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(
                json.dumps(payload, ensure_ascii=False, indent=2) + "\n",
                encoding="utf-8",
            )
        except OSError as exc:
            logger.error("Failed to save %s: %s", path, exc)

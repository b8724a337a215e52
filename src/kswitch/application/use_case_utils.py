"""Shared wiring of settings, storage and process collaborators for use-cases."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from kswitch.application.cluster_fleet_service import ClusterFleetService
from kswitch.application.notifications import ClusterNotifier
from kswitch.config import AppSettings, default_storage_dir, load_config
from kswitch.infrastructure.command_runner import AsyncCommandRunner
from kswitch.infrastructure.kubectl_client import KubectlClient
from kswitch.infrastructure.shell_environment import ShellEnvironment
from kswitch.infrastructure.storage import AppStorage


@dataclass
class AppContext:
    """Collaborators shared by one CLI invocation."""

    settings: AppSettings
    storage: AppStorage
    runner: AsyncCommandRunner = field(default_factory=AsyncCommandRunner)
    shell: ShellEnvironment = field(init=False)

    def __post_init__(self) -> None:
        self.shell = ShellEnvironment(self.runner)

    def kubectl(self) -> KubectlClient:
        """Return kubectl client bound to the current settings."""
        return KubectlClient(
            lambda: self.settings, runner=self.runner, environment=self.shell
        )

    def fleet(self, notifier: ClusterNotifier | None = None) -> ClusterFleetService:
        """Return fleet service over stored contexts."""
        return ClusterFleetService(
            self.kubectl(), self.storage, self.settings, notifier=notifier
        )


def build_app_context(
    *,
    storage_dir: Path | None = None,
    env_path: Path = Path(".env"),
) -> AppContext:
    """Load persisted settings, overlay the environment and wire collaborators."""
    storage = AppStorage(storage_dir or default_storage_dir())
    settings = load_config(env_path, base=storage.load_settings())
    return AppContext(settings=settings, storage=storage)

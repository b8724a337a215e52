"""Application settings and environment loading."""

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

DEFAULT_REFRESH_INTERVAL = 30
DEFAULT_TASK_TIMEOUT_MINUTES = 5
DEFAULT_TASKS_DIRECTORY = "~/.kswitch/tasks"
DEFAULT_KUBECONFIG = "~/.kube/config"

_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class AppSettings:
    """User-configurable settings."""

    kubeconfig_paths: tuple[str, ...] = ()
    kubectl_path: str | None = None
    refresh_interval_seconds: int = DEFAULT_REFRESH_INTERVAL
    notifications_enabled: bool = True
    tasks_directory: str = DEFAULT_TASKS_DIRECTORY
    task_timeout_minutes: int = DEFAULT_TASK_TIMEOUT_MINUTES

    @property
    def effective_kubeconfig_paths(self) -> list[str]:
        """Return configured kubeconfig paths, or the default kubeconfig."""
        if self.kubeconfig_paths:
            return [os.path.expanduser(path) for path in self.kubeconfig_paths]
        return [os.path.expanduser(DEFAULT_KUBECONFIG)]

    @property
    def resolved_tasks_directory(self) -> Path:
        """Return tasks directory with ``~`` expanded."""
        return Path(self.tasks_directory).expanduser()

    @property
    def task_timeout_seconds(self) -> float:
        """Return per-task timeout in seconds."""
        return float(self.task_timeout_minutes * 60)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "kubeconfig_paths": list(self.kubeconfig_paths),
            "kubectl_path": self.kubectl_path,
            "refresh_interval_seconds": self.refresh_interval_seconds,
            "notifications_enabled": self.notifications_enabled,
            "tasks_directory": self.tasks_directory,
            "task_timeout_minutes": self.task_timeout_minutes,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "AppSettings":
        """Build settings from stored JSON, ignoring unknown keys."""
        known = {item.name for item in fields(cls)}
        values = {key: value for key, value in raw.items() if key in known}
        if "kubeconfig_paths" in values:
            values["kubeconfig_paths"] = tuple(
                str(path) for path in values["kubeconfig_paths"] or ()
            )
        return cls(**values)


def default_storage_dir() -> Path:
    """Return directory for persisted clusters and settings."""
    raw = os.getenv("KSWITCH_HOME")
    return Path(raw).expanduser() if raw else Path.home() / ".kswitch"


def _env_int(name: str) -> int | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {value}")
    return value


def load_config(
    env_path: Path = Path(".env"), *, base: AppSettings | None = None
) -> AppSettings:
    """Load settings from environment and optional .env file."""
    load_dotenv(env_path, override=False)
    settings = base or AppSettings()
    changes: dict[str, Any] = {}

    kubeconfig_raw = os.getenv("KUBECONFIG")
    if kubeconfig_raw:
        changes["kubeconfig_paths"] = tuple(
            path for path in kubeconfig_raw.split(os.pathsep) if path
        )
    kubectl_path = os.getenv("KSWITCH_KUBECTL_PATH")
    if kubectl_path:
        changes["kubectl_path"] = kubectl_path
    refresh = _env_int("KSWITCH_REFRESH_INTERVAL")
    if refresh is not None:
        changes["refresh_interval_seconds"] = refresh
    notifications = os.getenv("KSWITCH_NOTIFICATIONS")
    if notifications is not None and notifications.strip():
        changes["notifications_enabled"] = (
            notifications.strip().lower() not in _FALSE_VALUES
        )
    tasks_dir = os.getenv("KSWITCH_TASKS_DIR")
    if tasks_dir:
        changes["tasks_directory"] = tasks_dir
    timeout = _env_int("KSWITCH_TASK_TIMEOUT_MINUTES")
    if timeout is not None:
        changes["task_timeout_minutes"] = timeout

    return replace(settings, **changes)

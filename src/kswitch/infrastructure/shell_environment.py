"""Login-shell PATH discovery and executable resolution."""

from __future__ import annotations

import asyncio
import logging
import os
import re
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path

from kswitch.domain.errors import CommandSpawnError
from kswitch.infrastructure.command_runner import AsyncCommandRunner, CommandRunner
from kswitch.infrastructure.shell import ShellFlavor, path_query

logger = logging.getLogger(__name__)

FALLBACK_PATH = "/usr/bin:/bin:/usr/sbin:/sbin"
DEFAULT_SHELL = "/bin/sh"
SHELL_QUERY_TIMEOUT = 10.0

SYSTEM_PATH_FILES: tuple[str, ...] = ("/etc/paths",)
SYSTEM_PATH_DIRS: tuple[str, ...] = ("/etc/paths.d",)

_PROTECTED_FOLDERS = ("Documents", "Desktop", "Downloads")
_EXECUTABLE_NAME_RE = re.compile(r"^[A-Za-z0-9._-]+$")


def package_manager_dirs(home: str) -> list[str]:
    """Return well-known tool install directories in probe order."""
    return [
        "/opt/homebrew/bin",
        "/usr/local/bin",
        "/opt/local/bin",
        f"{home}/.asdf/shims",
        f"{home}/.local/share/mise/shims",
        f"{home}/.nix-profile/bin",
        f"{home}/.local/bin",
    ]


def _is_executable(path: str) -> bool:
    return os.path.isfile(path) and os.access(path, os.X_OK)


def _is_within(path: str, roots: Sequence[str]) -> bool:
    return any(path == root or path.startswith(root + "/") for root in roots)


def _dedupe(paths: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for path in paths:
        if path and path not in seen:
            seen.add(path)
            result.append(path)
    return result


class ShellEnvironment:
    """Resolve the user's login PATH and locate developer tools.

    Results are computed once per instance and then shared read-only.

    Parameters
    ----------
    runner:
        Command runner used to query the login shell.
    environ:
        Process environment to read ``SHELL`` and ``HOME`` from.
    home:
        Home directory override; defaults to ``HOME`` or ``Path.home()``.
    system_path_files, system_path_dirs:
        Path-list files (one directory per line) appended to the probe list.
    """

    def __init__(
        self,
        runner: CommandRunner | None = None,
        *,
        environ: Mapping[str, str] | None = None,
        home: str | None = None,
        system_path_files: Sequence[str] = SYSTEM_PATH_FILES,
        system_path_dirs: Sequence[str] = SYSTEM_PATH_DIRS,
    ) -> None:
        self._runner = runner or AsyncCommandRunner()
        self._environ = dict(os.environ if environ is None else environ)
        self._home = home or self._environ.get("HOME") or str(Path.home())
        self._system_path_files = tuple(system_path_files)
        self._system_path_dirs = tuple(system_path_dirs)

        self._shell_path: str | None = None
        self._shell_path_lock = asyncio.Lock()
        self._search_paths: list[str] | None = None
        self._search_paths_lock = asyncio.Lock()
        self._resolved: dict[str, str] = {}

    @property
    def home(self) -> str:
        """Return the home directory used for lookups."""
        return self._home

    @property
    def protected_dirs(self) -> tuple[str, ...]:
        """Return folders that must never be probed."""
        return tuple(f"{self._home}/{folder}" for folder in _PROTECTED_FOLDERS)

    async def get_shell_path(self) -> str:
        """Return PATH as printed by the user's login shell, cached."""
        if self._shell_path is not None:
            return self._shell_path
        async with self._shell_path_lock:
            if self._shell_path is None:
                self._shell_path = await self._query_shell_path()
        return self._shell_path

    async def _query_shell_path(self) -> str:
        shell = self._environ.get("SHELL") or DEFAULT_SHELL
        query = path_query(ShellFlavor.detect(shell))
        env = {"HOME": self._home}
        try:
            result = await self._runner.run(shell, query.args, env, SHELL_QUERY_TIMEOUT)
        except CommandSpawnError as exc:
            logger.debug("Failed to run shell %s: %s, using fallback PATH", shell, exc)
            return FALLBACK_PATH

        if result.timed_out:
            logger.debug("Shell %s timed out, using fallback PATH", shell)
            return FALLBACK_PATH
        if result.exit_code != 0:
            logger.debug(
                "Shell exited with status %s, using fallback PATH", result.exit_code
            )
            return FALLBACK_PATH

        path = query.parse(result.output)
        if not path:
            logger.debug("Shell returned empty PATH, using fallback")
            return FALLBACK_PATH
        logger.debug("Got PATH from login shell: %s", path[:100])
        return path

    async def get_environment(
        self, kubeconfig_paths: Sequence[str] = ()
    ) -> dict[str, str]:
        """Return the minimal explicit environment for child processes."""
        env = {"PATH": await self.get_shell_path(), "HOME": self._home}
        if kubeconfig_paths:
            env["KUBECONFIG"] = ":".join(kubeconfig_paths)
        return env

    async def search_paths(self) -> list[str]:
        """Return candidate directories in probe order, deduplicated."""
        if self._search_paths is not None:
            return self._search_paths
        async with self._search_paths_lock:
            if self._search_paths is None:
                shell_dirs = (await self.get_shell_path()).split(":")
                system_dirs = await asyncio.to_thread(self._read_system_paths)
                self._search_paths = _dedupe(
                    [*shell_dirs, *package_manager_dirs(self._home), *system_dirs]
                )
        return self._search_paths

    def _read_system_paths(self) -> list[str]:
        files = [Path(path) for path in self._system_path_files]
        for directory in self._system_path_dirs:
            try:
                files.extend(sorted(Path(directory).iterdir()))
            except OSError:
                continue

        dirs: list[str] = []
        for file in files:
            try:
                content = file.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                continue
            dirs.extend(line.strip() for line in content.splitlines())
        return dirs

    def is_protected(self, directory: str) -> bool:
        """Return whether a directory, raw or symlink-resolved, is protected."""
        protected = self.protected_dirs
        if _is_within(directory, protected):
            return True
        return _is_within(os.path.realpath(directory), protected)

    async def find_executable(self, name: str) -> str | None:
        """Return the first executable ``name`` on the search path, or None."""
        if not _EXECUTABLE_NAME_RE.match(name) or name in (".", ".."):
            logger.debug("Refusing to resolve executable name %r", name)
            return None
        if name in self._resolved:
            return self._resolved[name]

        for directory in await self.search_paths():
            if self.is_protected(directory):
                logger.debug("Skipping protected directory %s", directory)
                continue
            candidate = f"{directory}/{name}"
            if _is_executable(candidate):
                logger.debug("Found %s at: %s", name, candidate)
                self._resolved[name] = candidate
                return candidate

        logger.debug("Could not find %s in PATH", name)
        return None

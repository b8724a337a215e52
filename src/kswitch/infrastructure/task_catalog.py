"""Discovery and polling of task scripts in the tasks directory."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from pathlib import Path

from kswitch.domain.task import TASK_SUFFIX, ScriptTask
from kswitch.infrastructure.file_state import modification_state

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 2.0

TasksCallback = Callable[[tuple[ScriptTask, ...]], None]


def scan(directory: Path) -> list[ScriptTask]:
    """Return executable ``*.kswitch.sh`` tasks sorted by name, case-insensitively."""
    directory = directory.expanduser()
    if not directory.is_dir():
        return []
    try:
        entries = sorted(directory.iterdir())
    except OSError as exc:
        logger.error("Failed to scan tasks directory %s: %s", directory, exc)
        return []

    tasks: list[ScriptTask] = []
    for entry in entries:
        if not entry.name.endswith(TASK_SUFFIX):
            continue
        if not (entry.is_file() and os.access(entry, os.X_OK)):
            logger.debug("Skipping non-executable: %s", entry.name)
            continue
        tasks.append(ScriptTask.from_file(entry.absolute()))

    tasks.sort(key=lambda task: task.name.casefold())
    return tasks


class TaskCatalog:
    """Owns the task list and re-scans it on a fixed interval.

    The change callback fires once on ``start`` and afterwards only when the
    path -> modification-time map differs from the previous scan.
    """

    def __init__(
        self,
        directory: Path,
        *,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        on_change: TasksCallback | None = None,
    ) -> None:
        self.directory = directory.expanduser()
        self.poll_interval = poll_interval
        self._on_change = on_change
        self._tasks: tuple[ScriptTask, ...] = ()
        self._state: dict[str, int] = {}
        self._poller: asyncio.Task[None] | None = None

    @property
    def tasks(self) -> tuple[ScriptTask, ...]:
        """Return the last scanned task list."""
        return self._tasks

    def find(self, name: str) -> ScriptTask | None:
        """Return task matching a display name, file name or path."""
        wanted = name.casefold()
        for task in self._tasks:
            filename = Path(task.path).name
            if wanted in (
                task.name.casefold(),
                filename.casefold(),
                filename.removesuffix(TASK_SUFFIX).casefold(),
                task.path.casefold(),
            ):
                return task
        return None

    def load(self) -> tuple[ScriptTask, ...]:
        """Scan synchronously and replace the task list."""
        tasks = tuple(scan(self.directory))
        self._tasks = tasks
        self._state = modification_state(task.path for task in tasks)
        return tasks

    async def refresh(self) -> bool:
        """Re-scan and return whether the directory changed since last scan."""
        tasks = tuple(await asyncio.to_thread(scan, self.directory))
        state = await asyncio.to_thread(
            modification_state, [task.path for task in tasks]
        )
        if state == self._state:
            return False

        logger.info("Tasks directory changed, found %d tasks", len(tasks))
        self._state = state
        self._tasks = tasks
        self._notify()
        return True

    async def start(self) -> None:
        """Scan once, notify, and begin polling."""
        self.stop()
        tasks = await asyncio.to_thread(self.load)
        if tasks:
            logger.info("Discovered %d tasks at %s", len(tasks), self.directory)
        self._notify()
        self._poller = asyncio.create_task(self._poll())
        logger.debug("Started polling tasks directory")

    def stop(self) -> None:
        """Stop polling."""
        if self._poller is not None:
            self._poller.cancel()
            self._poller = None
            logger.debug("Stopped polling tasks directory")

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            try:
                await self.refresh()
            except OSError as exc:
                logger.error("Failed to refresh tasks: %s", exc)

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self._tasks)

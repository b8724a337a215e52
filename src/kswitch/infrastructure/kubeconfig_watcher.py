"""Polling watcher for kubeconfig file changes."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

from kswitch.infrastructure.file_state import modification_state

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 2.0


class KubeconfigWatcher:
    """Call ``on_change`` when any watched kubeconfig is modified.

    A file that does not exist is absent from the snapshot, so creating or
    deleting it counts as a change.
    """

    def __init__(
        self,
        paths: Callable[[], Sequence[str]],
        on_change: Callable[[], Awaitable[None]],
        *,
        poll_interval: float = POLL_INTERVAL_SECONDS,
    ) -> None:
        self._paths = paths
        self._on_change = on_change
        self.poll_interval = poll_interval
        self._state: dict[str, int] = {}
        self._poller: asyncio.Task[None] | None = None

    def snapshot(self) -> None:
        """Record current modification times as the baseline."""
        self._state = modification_state(self._paths())

    async def check(self) -> bool:
        """Compare against the baseline and run the callback on change."""
        state = await asyncio.to_thread(modification_state, list(self._paths()))
        if state == self._state:
            return False
        self._state = state
        logger.info("Kubeconfig file changed")
        await self._on_change()
        return True

    def start(self) -> None:
        """Take a baseline and begin polling."""
        self.stop()
        self.snapshot()
        self._poller = asyncio.create_task(self._poll())
        logger.info("Started watching kubeconfig at %s", ", ".join(self._paths()))

    def stop(self) -> None:
        """Stop polling."""
        if self._poller is not None:
            self._poller.cancel()
            self._poller = None

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            try:
                await self.check()
            except (OSError, RuntimeError, ValueError) as exc:
                logger.error("Failed to handle kubeconfig change: %s", exc)

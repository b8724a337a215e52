"""Task lifecycle: input validation, single-run guard and live output."""

from __future__ import annotations

import codecs
import logging
import time
from collections.abc import Callable, Mapping

from kswitch.domain.ansi_parser import AnsiStream, StyledText
from kswitch.domain.errors import MissingTaskInputError, TaskAlreadyRunningError
from kswitch.domain.task import ScriptTask
from kswitch.domain.task_run import TaskRun
from kswitch.infrastructure.task_catalog import TaskCatalog
from kswitch.infrastructure.task_executor import TaskExecutor

logger = logging.getLogger(__name__)

LiveOutputCallback = Callable[[str, StyledText], None]

LIVE_UPDATE_INTERVAL = 0.1


class _LiveBuffer:
    """Incrementally decoded and parsed output of one running task."""

    def __init__(self, limit: int) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._stream = AnsiStream(limit=limit)

    def feed(self, chunk: bytes) -> None:
        self._stream.feed(self._decoder.decode(chunk))

    def close(self) -> None:
        self._stream.feed(self._decoder.decode(b"", final=True))

    @property
    def text(self) -> StyledText:
        return self._stream.snapshot()


class TaskService:
    """Caller layer over the task catalog and executor.

    ``on_live_output`` receives the parsed output of a running task at
    most once per ``live_interval`` seconds, and once more when the run
    ends.
    """

    def __init__(
        self,
        catalog: TaskCatalog,
        executor: TaskExecutor,
        *,
        on_live_output: LiveOutputCallback | None = None,
        live_interval: float = LIVE_UPDATE_INTERVAL,
    ) -> None:
        self.catalog = catalog
        self.executor = executor
        self._on_live_output = on_live_output
        self._live_interval = live_interval
        self._live: dict[str, _LiveBuffer] = {}

    @property
    def tasks(self) -> tuple[ScriptTask, ...]:
        return self.catalog.tasks

    def find(self, name: str) -> ScriptTask | None:
        """Return a task by name or file name."""
        return self.catalog.find(name)

    def is_running(self, task_id: str) -> bool:
        return self.executor.is_running(task_id)

    def last_run(self, task_id: str) -> TaskRun | None:
        return self.executor.last_run(task_id)

    def live_output(self, task_id: str) -> StyledText:
        """Return parsed output of a running task so far."""
        buffer = self._live.get(task_id)
        return buffer.text if buffer else StyledText()

    def stop(self, task_id: str) -> bool:
        """Request termination of a running task."""
        return self.executor.cancel(task_id)

    async def run(
        self,
        task: ScriptTask,
        input_values: Mapping[str, str] | None = None,
        *,
        timeout_seconds: float | None = None,
    ) -> TaskRun:
        """Validate and run a task, rejecting a second concurrent run."""
        values = dict(input_values or {})
        if self.executor.is_running(task.id):
            raise TaskAlreadyRunningError(task.name)
        missing = task.missing_inputs(values)
        if missing:
            raise MissingTaskInputError(task.name, missing)

        buffer = _LiveBuffer(self.executor.output_limit)
        self._live[task.id] = buffer
        last_update = time.monotonic()

        def on_output(chunk: bytes) -> None:
            nonlocal last_update
            buffer.feed(chunk)
            now = time.monotonic()
            if self._on_live_output is not None and now - last_update >= self._live_interval:
                last_update = now
                self._on_live_output(task.id, buffer.text)

        try:
            run = await self.executor.run(
                task, values, timeout_seconds=timeout_seconds, on_output=on_output
            )
        finally:
            self._live.pop(task.id, None)

        if self._on_live_output is not None:
            buffer.close()
            self._on_live_output(task.id, buffer.text)
        return run

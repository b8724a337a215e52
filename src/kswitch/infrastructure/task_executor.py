"""Execution of task scripts with timeout and cancellation."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from types import MappingProxyType

from kswitch.domain.errors import CommandSpawnError
from kswitch.domain.task import ScriptTask
from kswitch.domain.task_run import TaskRun
from kswitch.infrastructure.command_runner import (
    OUTPUT_LIMIT_BYTES,
    CommandRunner,
    OutputCallback,
)
from kswitch.infrastructure.shell_environment import ShellEnvironment

logger = logging.getLogger(__name__)

TERMINAL_ENVIRONMENT = {
    "TERM": "xterm-256color",
    "FORCE_COLOR": "1",
    "CLICOLOR_FORCE": "1",
}


class TaskExecutor:
    """Runs task scripts and keeps the last run of each task.

    At most one live run per task is tracked here. Rejecting a second
    start is the caller's job (see ``is_running``).
    """

    def __init__(
        self,
        runner: CommandRunner,
        environment: ShellEnvironment,
        *,
        timeout_minutes: int = 5,
        output_limit: int = OUTPUT_LIMIT_BYTES,
    ) -> None:
        self._runner = runner
        self._environment = environment
        self.timeout_minutes = timeout_minutes
        self._output_limit = output_limit
        self._running: dict[str, asyncio.Event] = {}
        self._last_runs: dict[str, TaskRun] = {}

    @property
    def output_limit(self) -> int:
        """Return the maximum number of output bytes kept per run."""
        return self._output_limit

    def is_running(self, task_id: str) -> bool:
        """Return whether a run of the task is live."""
        return task_id in self._running

    def last_run(self, task_id: str) -> TaskRun | None:
        """Return the most recent finished run of a task."""
        return self._last_runs.get(task_id)

    @property
    def last_runs(self) -> Mapping[str, TaskRun]:
        """Return read-only view of last runs keyed by task id."""
        return MappingProxyType(dict(self._last_runs))

    def cancel(self, task_id: str) -> bool:
        """Request termination of a live run; no-op when none is running."""
        event = self._running.get(task_id)
        if event is None:
            return False
        logger.info("Stopping task: %s", task_id)
        event.set()
        return True

    async def build_environment(self, input_values: Mapping[str, str]) -> dict[str, str]:
        """Return child environment: shell PATH, terminal hints, then inputs."""
        env = await self._environment.get_environment()
        env.update(TERMINAL_ENVIRONMENT)
        env.update(input_values)
        return env

    async def run(
        self,
        task: ScriptTask,
        input_values: Mapping[str, str] | None = None,
        *,
        timeout_seconds: float | None = None,
        on_output: OutputCallback | None = None,
    ) -> TaskRun:
        """Run a task to completion, timeout or cancellation and record it."""
        values = dict(input_values or {})
        timeout = timeout_seconds if timeout_seconds is not None else self.timeout_minutes * 60
        cancel_event = asyncio.Event()
        self._running[task.id] = cancel_event

        started_at = datetime.now(UTC)
        started = time.monotonic()
        logger.info("Running task: %s at %s", task.name, task.path)
        try:
            env = await self.build_environment(values)
            result = await self._runner.run_streaming(
                task.path,
                [],
                env,
                timeout,
                cwd=str(Path(task.path).parent),
                on_output=on_output,
                cancel_event=cancel_event,
                output_limit=self._output_limit,
            )
            run = TaskRun(
                raw_output=result.output,
                exit_code=result.exit_code,
                timed_out=result.timed_out,
                cancelled=result.cancelled,
                started_at=started_at,
                duration=time.monotonic() - started,
                input_values=values,
            )
        except CommandSpawnError as exc:
            logger.error("Failed to start task %s: %s", task.name, exc)
            run = TaskRun(
                raw_output=str(exc).encode("utf-8"),
                exit_code=-1,
                started_at=started_at,
                duration=time.monotonic() - started,
                input_values=values,
            )
        finally:
            self._running.pop(task.id, None)

        self._last_runs[task.id] = run
        logger.info(
            "Task finished: %s with exit code %s%s",
            task.name,
            run.exit_code,
            " (timed out)" if run.timed_out else "",
        )
        return run

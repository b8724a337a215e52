"""Timeout-bounded external process execution."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol

from kswitch.domain.errors import CommandSpawnError

logger = logging.getLogger(__name__)

TERMINATE_GRACE_SECONDS = 3.0
OUTPUT_LIMIT_BYTES = 10 * 1024 * 1024
_READ_CHUNK = 4096

OutputCallback = Callable[[bytes], None]


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a finished command.

    ``output`` is stderr when the command failed and wrote to stderr,
    otherwise stdout.
    """

    output: str
    exit_code: int
    timed_out: bool = False


@dataclass(frozen=True)
class StreamedCommandResult:
    """Outcome of a command whose merged output was streamed."""

    output: bytes
    exit_code: int
    timed_out: bool = False
    cancelled: bool = False


class CommandRunner(Protocol):
    """Runs external executables with an explicit environment."""

    async def run(
        self,
        executable: str,
        args: Sequence[str],
        environment: Mapping[str, str],
        timeout: float,
    ) -> CommandResult: ...

    async def run_streaming(
        self,
        executable: str,
        args: Sequence[str],
        environment: Mapping[str, str],
        timeout: float,
        *,
        cwd: str | None = None,
        on_output: OutputCallback | None = None,
        cancel_event: asyncio.Event | None = None,
        output_limit: int = OUTPUT_LIMIT_BYTES,
    ) -> StreamedCommandResult: ...


class AsyncCommandRunner:
    """CommandRunner built on asyncio subprocesses.

    Each child runs in its own session so a timeout or cancellation can
    signal the whole process group. Termination sends SIGTERM first and
    SIGKILL only after ``terminate_grace`` seconds.
    """

    def __init__(self, terminate_grace: float = TERMINATE_GRACE_SECONDS) -> None:
        self.terminate_grace = terminate_grace

    async def run(
        self,
        executable: str,
        args: Sequence[str],
        environment: Mapping[str, str],
        timeout: float,
    ) -> CommandResult:
        """Run a command to completion and capture stdout and stderr."""
        logger.debug("Running %s %s", executable, " ".join(args))
        process = await self._spawn(
            executable,
            args,
            environment,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        communicate = asyncio.ensure_future(process.communicate())
        try:
            done, _ = await asyncio.wait({communicate}, timeout=timeout)
        except asyncio.CancelledError:
            communicate.cancel()
            await self._terminate(process)
            raise

        timed_out = communicate not in done
        stdout, stderr = b"", b""
        if timed_out:
            logger.warning("%s timed out after %.1fs", executable, timeout)
            await self._terminate(process)
            try:
                stdout, stderr = await asyncio.wait_for(communicate, self.terminate_grace)
            except TimeoutError:
                logger.debug("Output pipes of %s stayed open after termination", executable)
        else:
            stdout, stderr = communicate.result()

        exit_code = process.returncode if process.returncode is not None else -1
        out = _decode(stdout)
        err = _decode(stderr)
        output = err if exit_code != 0 and err else out
        logger.debug("%s exited with %s", executable, exit_code)
        return CommandResult(output=output, exit_code=exit_code, timed_out=timed_out)

    async def run_streaming(
        self,
        executable: str,
        args: Sequence[str],
        environment: Mapping[str, str],
        timeout: float,
        *,
        cwd: str | None = None,
        on_output: OutputCallback | None = None,
        cancel_event: asyncio.Event | None = None,
        output_limit: int = OUTPUT_LIMIT_BYTES,
    ) -> StreamedCommandResult:
        """Run a command with stderr merged into stdout, streaming chunks.

        Every chunk is passed to ``on_output``; at most ``output_limit``
        bytes are kept in the result. Setting ``cancel_event`` terminates
        the process.
        """
        logger.debug("Streaming %s %s", executable, " ".join(args))
        process = await self._spawn(
            executable,
            args,
            environment,
            cwd=cwd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        captured = bytearray()

        async def pump() -> int:
            assert process.stdout is not None
            while chunk := await process.stdout.read(_READ_CHUNK):
                if on_output is not None:
                    on_output(chunk)
                room = output_limit - len(captured)
                if room > 0:
                    captured.extend(chunk[:room])
            return await process.wait()

        finished = asyncio.ensure_future(pump())
        waiters: set[asyncio.Future[object]] = {finished}
        cancel_waiter: asyncio.Future[object] | None = None
        if cancel_event is not None:
            cancel_waiter = asyncio.ensure_future(cancel_event.wait())
            waiters.add(cancel_waiter)

        try:
            done, _ = await asyncio.wait(
                waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            finished.cancel()
            await self._terminate(process)
            raise
        finally:
            if cancel_waiter is not None and not cancel_waiter.done():
                cancel_waiter.cancel()

        timed_out = False
        cancelled = False
        if finished not in done:
            if cancel_waiter is not None and cancel_waiter in done:
                cancelled = True
                logger.info("Cancelling %s", executable)
            else:
                timed_out = True
                logger.warning("%s timed out after %.1fs", executable, timeout)
            await self._terminate(process)
            try:
                await asyncio.wait_for(finished, self.terminate_grace)
            except TimeoutError:
                logger.debug("Output pipe of %s stayed open after termination", executable)
        else:
            finished.result()

        exit_code = process.returncode if process.returncode is not None else -1
        return StreamedCommandResult(
            output=bytes(captured),
            exit_code=exit_code,
            timed_out=timed_out,
            cancelled=cancelled,
        )

    async def _spawn(
        self,
        executable: str,
        args: Sequence[str],
        environment: Mapping[str, str],
        **kwargs: object,
    ) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                executable,
                *args,
                env=dict(environment),
                stdin=asyncio.subprocess.DEVNULL,
                start_new_session=True,
                **kwargs,  # type: ignore[arg-type]
            )
        except OSError as exc:
            raise CommandSpawnError(f"Failed to start {executable}: {exc}") from exc

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """Stop a process group: SIGTERM, then SIGKILL after the grace period."""
        if process.returncode is not None:
            return
        _signal_group(process, signal.SIGTERM)
        try:
            await asyncio.wait_for(process.wait(), self.terminate_grace)
        except TimeoutError:
            logger.warning("Process %s ignored SIGTERM, killing it", process.pid)
            _signal_group(process, signal.SIGKILL)
            await process.wait()


def _signal_group(process: asyncio.subprocess.Process, sig: signal.Signals) -> None:
    try:
        os.killpg(process.pid, sig)
    except ProcessLookupError:
        pass
    except PermissionError:
        process.send_signal(sig)


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace").strip()

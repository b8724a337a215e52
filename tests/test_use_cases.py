"""Tests for application use-cases."""

from __future__ import annotations

import io
from collections.abc import Iterator
import os
from dataclasses import replace
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from rich.console import Console

from kswitch.application import (
    execute_edit_context,
    execute_forget_context,
    execute_list_contexts,
    execute_list_tasks,
    execute_run_task,
    execute_status,
    execute_use_context,
    execute_watch,
    parse_input_pairs,
)
from kswitch.application.task_service import TaskService
from kswitch.application.use_case_utils import AppContext
from kswitch.config import AppSettings
from kswitch.domain.cluster_status import NodeInfo
from kswitch.domain.errors import FluxReportNotFoundError, KSwitchError, KubectlFailedError
from kswitch.domain.flux_report import FluxReportSpec
from kswitch.domain.task_run import TaskRun
from kswitch.infrastructure.shell_environment import ShellEnvironment
from kswitch.infrastructure.storage import AppStorage


class FakeKubectl:
    """Kubeconfig with two contexts; ``prod`` is current."""

    def __init__(self) -> None:
        self.contexts = ["prod", "dev"]
        self.current = "prod"
        self.fail_listing = False

    async def list_contexts(self) -> list[str]:
        if self.fail_listing:
            raise KubectlFailedError("invalid kubeconfig")
        return list(self.contexts)

    async def current_context(self) -> str:
        if not self.current:
            raise KubectlFailedError("current-context is not set")
        return self.current

    async def set_current_context(self, name: str) -> None:
        self.current = name

    async def get_server_version(self, context: str) -> str:
        return "v1.30.2"

    async def get_nodes(self, context: str) -> tuple[NodeInfo, ...]:
        return (
            NodeInfo(
                id="n1", name="n1", ready=True, cpu_millicores=4000,
                memory_bytes=8 * 1024**3, pods=110,
            ),
        )

    async def get_flux_report(self, context: str) -> FluxReportSpec:
        raise FluxReportNotFoundError()


@pytest.fixture
def app(tmp_path: Path) -> AppContext:
    settings = AppSettings(tasks_directory=str(tmp_path / "tasks"))
    context = AppContext(settings=settings, storage=AppStorage(tmp_path / "state"))
    environment = AsyncMock(spec=ShellEnvironment)
    environment.get_environment.side_effect = lambda *args: {
        "PATH": os.environ.get("PATH", "/usr/bin:/bin"),
        "HOME": str(tmp_path),
    }
    context.shell = environment
    return context


@pytest.fixture
def kubectl(app: AppContext) -> Iterator[FakeKubectl]:
    fake = FakeKubectl()
    with patch.object(AppContext, "kubectl", return_value=fake):
        yield fake


def _console() -> tuple[Console, io.StringIO]:
    buffer = io.StringIO()
    return Console(file=buffer, width=160, color_system=None), buffer


def test_parse_input_pairs() -> None:
    assert parse_input_pairs(["A=1", "B=x=y", "C="]) == {"A": "1", "B": "x=y", "C": ""}
    with pytest.raises(ValueError, match="KEY=VALUE"):
        parse_input_pairs(["novalue"])
    with pytest.raises(ValueError):
        parse_input_pairs(["=value"])


def test_list_contexts_marks_current(app: AppContext, kubectl: FakeKubectl) -> None:
    console, buffer = _console()

    clusters = execute_list_contexts(app=app, console=console)

    assert [c.context_name for c in clusters] == ["prod", "dev"]
    assert "prod" in buffer.getvalue()
    assert app.storage.clusters_path.exists()


def test_list_contexts_reports_kubeconfig_error(app: AppContext, kubectl: FakeKubectl) -> None:
    kubectl.fail_listing = True

    with pytest.raises(KSwitchError, match="invalid kubeconfig"):
        execute_list_contexts(app=app, console=_console()[0])


def test_use_context(app: AppContext, kubectl: FakeKubectl) -> None:
    console, buffer = _console()

    execute_use_context("dev", app=app, console=console)

    assert kubectl.current == "dev"
    assert "Switched to context" in buffer.getvalue()
    with pytest.raises(ValueError, match="Unknown context"):
        execute_use_context("missing", app=app, console=console)


def test_edit_and_forget_context(app: AppContext, kubectl: FakeKubectl) -> None:
    console, _ = _console()

    updated = execute_edit_context(
        "prod", display_name="Production", favorite=True, app=app, console=console
    )
    assert updated.effective_name == "Production"
    assert updated.is_favorite
    assert app.fleet().cluster("prod") == updated

    cleared = execute_edit_context("prod", display_name="", app=app, console=console)
    assert cleared.display_name is None

    with pytest.raises(ValueError, match="Nothing to change"):
        execute_edit_context("prod", app=app, console=console)

    execute_forget_context("dev", app=app, console=console)
    assert app.fleet().cluster("dev") is None
    with pytest.raises(ValueError, match="Unknown context"):
        execute_forget_context("dev", app=app, console=console)


def test_status_of_current_context(app: AppContext, kubectl: FakeKubectl) -> None:
    console, buffer = _console()

    statuses = execute_status(app=app, console=console)

    assert list(statuses) == ["prod"]
    output = buffer.getvalue()
    assert "Healthy" in output
    assert "4 cores" in output
    assert "Not installed" in output


def test_status_of_all_contexts(app: AppContext, kubectl: FakeKubectl) -> None:
    statuses = execute_status(all_contexts=True, app=app, console=_console()[0])

    assert sorted(statuses) == ["dev", "prod"]


def test_status_without_current_context(app: AppContext, kubectl: FakeKubectl) -> None:
    kubectl.current = ""

    with pytest.raises(ValueError, match="No current context"):
        execute_status(app=app, console=_console()[0])


def test_watch_rejects_non_positive_interval(app: AppContext) -> None:
    with pytest.raises(ValueError, match="positive"):
        execute_watch(interval=0, app=app, console=_console()[0])


def _write_task(app: AppContext, filename: str, body: str) -> Path:
    directory = app.settings.resolved_tasks_directory
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / filename
    path.write_text(f"#!/bin/sh\n{body}\n", encoding="utf-8")
    path.chmod(0o755)
    return path


def test_list_tasks(app: AppContext) -> None:
    _write_task(app, "hello.kswitch.sh", "# KSWITCH_TASK: Say Hello\n# KSWITCH_INPUT: WHO")
    console, buffer = _console()

    tasks = execute_list_tasks(app=app, console=console)

    assert [task.name for task in tasks] == ["Say Hello"]
    assert "WHO" in buffer.getvalue()


def test_run_task(app: AppContext) -> None:
    _write_task(app, "hello.kswitch.sh", '# KSWITCH_INPUT: WHO\necho "hello $WHO"')
    console, buffer = _console()

    run = execute_run_task("hello", inputs={"WHO": "world"}, app=app, console=console)

    assert run.succeeded
    assert run.raw_output == b"hello world\n"
    assert "hello world" in buffer.getvalue()


def test_run_task_timeout_comes_from_settings(app: AppContext) -> None:
    _write_task(app, "hello.kswitch.sh", "echo hi")
    app.settings = replace(app.settings, task_timeout_minutes=3)
    console, _ = _console()
    run = TaskRun(raw_output=b"hi\n", exit_code=0)

    with patch.object(TaskService, "run", new_callable=AsyncMock, return_value=run) as runner:
        execute_run_task("hello", app=app, console=console)
        assert runner.await_args.kwargs["timeout_seconds"] == 180.0

        execute_run_task("hello", timeout_minutes=1, app=app, console=console)
        assert runner.await_args.kwargs["timeout_seconds"] == 60.0


def test_run_task_errors(app: AppContext) -> None:
    _write_task(app, "hello.kswitch.sh", "# KSWITCH_INPUT: WHO\necho hi")
    console, _ = _console()

    with pytest.raises(ValueError, match="Unknown task"):
        execute_run_task("nope", app=app, console=console)
    with pytest.raises(ValueError, match="positive"):
        execute_run_task("hello", timeout_minutes=0, app=app, console=console)
    with pytest.raises(ValueError, match="WHO"):
        execute_run_task("hello", app=app, console=console)

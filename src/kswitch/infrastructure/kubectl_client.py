"""kubectl execution and decoding of its JSON responses."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Sequence
from typing import Any

from kswitch.config import AppSettings
from kswitch.domain.cluster_status import NodeInfo
from kswitch.domain.errors import (
    CommandTimeoutError,
    FluxReportNotFoundError,
    InvalidResponseError,
    KubectlFailedError,
    KubectlNotFoundError,
)
from kswitch.domain.flux_report import FluxReportSpec, parse_flux_report_list
from kswitch.domain.quantity_parser import parse_cpu, parse_memory
from kswitch.infrastructure.command_runner import AsyncCommandRunner, CommandRunner
from kswitch.infrastructure.shell_environment import ShellEnvironment

logger = logging.getLogger(__name__)

COMMAND_TIMEOUT_SECONDS = 10.0
# kubectl phrasing when the FluxReport CRD is not installed.
MISSING_RESOURCE_MARKER = "doesn't have a resource type"


class KubectlClient:
    """Domain operations over the kubectl binary.

    Cluster-scoped calls pass ``--context`` explicitly and never touch the
    kubeconfig current context, so concurrent calls do not interfere.
    """

    def __init__(
        self,
        settings: Callable[[], AppSettings],
        *,
        runner: CommandRunner | None = None,
        environment: ShellEnvironment | None = None,
        timeout: float = COMMAND_TIMEOUT_SECONDS,
    ) -> None:
        self._settings = settings
        self._runner = runner or AsyncCommandRunner()
        self._environment = environment or ShellEnvironment(self._runner)
        self._timeout = timeout
        self._resolved_path: str | None = None
        self._resolve_lock = asyncio.Lock()

    async def kubectl_path(self) -> str:
        """Return configured kubectl path, else the discovered one."""
        configured = self._settings().kubectl_path
        if configured:
            return configured
        if self._resolved_path is not None:
            return self._resolved_path

        async with self._resolve_lock:
            if self._resolved_path is None:
                found = await self._environment.find_executable("kubectl")
                if found is None:
                    logger.error("kubectl not found in PATH")
                    raise KubectlNotFoundError()
                logger.info("Found kubectl at: %s", found)
                self._resolved_path = found
        return self._resolved_path

    async def _run(
        self,
        args: Sequence[str],
        context: str | None = None,
        *,
        log_errors: bool = True,
    ) -> str:
        path = await self.kubectl_path()
        env = await self._environment.get_environment(
            self._settings().effective_kubeconfig_paths
        )
        full_args = list(args)
        if context is not None:
            full_args = ["--context", context, *full_args]

        result = await self._runner.run(path, full_args, env, self._timeout)
        if result.timed_out:
            if log_errors:
                logger.warning("kubectl %s timed out", " ".join(full_args))
            raise CommandTimeoutError(result.output)
        if result.exit_code != 0:
            if log_errors:
                logger.error("kubectl failed: %s", result.output)
            raise KubectlFailedError(result.output)
        return result.output

    async def _run_json(
        self,
        args: Sequence[str],
        context: str | None = None,
        *,
        log_errors: bool = True,
    ) -> Any:
        output = await self._run(args, context, log_errors=log_errors)
        try:
            return json.loads(output)
        except json.JSONDecodeError as exc:
            logger.error(
                "Failed to decode kubectl %s output (%d bytes)", args[0], len(output)
            )
            raise InvalidResponseError(f"kubectl returned invalid JSON: {exc}") from exc

    async def list_contexts(self) -> list[str]:
        """Return context names from the kubeconfig."""
        output = await self._run(["config", "get-contexts", "-o", "name"])
        return [line.strip() for line in output.splitlines() if line.strip()]

    async def current_context(self) -> str:
        """Return the kubeconfig current context."""
        return (await self._run(["config", "current-context"])).strip()

    async def set_current_context(self, name: str) -> None:
        """Switch the kubeconfig current context."""
        logger.info("Switching to context: %s", name)
        await self._run(["config", "use-context", name])

    async def get_server_version(self, context: str) -> str:
        """Return the API server git version of a context."""
        payload = await self._run_json(["version", "-o", "json"], context)
        try:
            version = payload["serverVersion"]["gitVersion"]
        except (KeyError, TypeError) as exc:
            logger.error("kubectl version response has no serverVersion.gitVersion")
            raise InvalidResponseError("missing serverVersion.gitVersion") from exc
        logger.debug("Fetched server version for %s: %s", context, version)
        return str(version)

    async def get_nodes(self, context: str) -> tuple[NodeInfo, ...]:
        """Return readiness and allocatable capacity of every node."""
        payload = await self._run_json(["get", "nodes", "-o", "json"], context)
        items = payload.get("items") if isinstance(payload, dict) else None
        if not isinstance(items, list):
            logger.error("kubectl node list response has no items array")
            raise InvalidResponseError("node list has no items array")
        return tuple(_node_info(item) for item in items if isinstance(item, dict))

    async def get_flux_report(self, context: str) -> FluxReportSpec:
        """Return the FluxReport spec, or raise FluxReportNotFoundError."""
        try:
            payload = await self._run_json(
                ["get", "fluxreport", "-A", "-o", "json"], context, log_errors=False
            )
        except KubectlFailedError as exc:
            if MISSING_RESOURCE_MARKER in exc.output:
                raise FluxReportNotFoundError() from exc
            logger.error("FluxReport fetch failed for %s: %s", context, exc)
            raise

        try:
            spec = parse_flux_report_list(payload)
        except InvalidResponseError:
            logger.error("Unexpected FluxReport shape for %s", context)
            raise
        if spec is None:
            raise FluxReportNotFoundError()
        logger.debug(
            "Fetched FluxReport for %s: operator %s",
            context,
            (spec.operator and spec.operator.version) or "unknown",
        )
        return spec


def _node_info(item: dict[str, Any]) -> NodeInfo:
    metadata = item.get("metadata") or {}
    status = item.get("status") or {}
    allocatable = status.get("allocatable") or {}
    conditions = status.get("conditions") or []
    ready = any(
        condition.get("type") == "Ready" and condition.get("status") == "True"
        for condition in conditions
        if isinstance(condition, dict)
    )
    try:
        pods = int(allocatable.get("pods", 0))
    except (TypeError, ValueError):
        pods = 0
    name = str(metadata.get("name", ""))
    return NodeInfo(
        id=str(metadata.get("uid") or name),
        name=name,
        ready=ready,
        cpu_millicores=parse_cpu(str(allocatable.get("cpu", ""))),
        memory_bytes=parse_memory(str(allocatable.get("memory", ""))),
        pods=pods,
    )

"""Error taxonomy shared by the cluster and task layers."""


class KSwitchError(RuntimeError):
    """Base class for kswitch failures."""


class KubectlNotFoundError(KSwitchError):
    """kubectl could not be located on this machine."""

    def __init__(self) -> None:
        super().__init__("kubectl not found. Check settings to configure the path.")


class CommandSpawnError(KSwitchError):
    """An external process could not be started."""


class KubectlFailedError(KSwitchError):
    """kubectl ran but exited with a non-zero status."""

    def __init__(self, output: str, *, message: str | None = None) -> None:
        super().__init__(message or f"kubectl error: {output}")
        self.output = output


class CommandTimeoutError(KubectlFailedError):
    """kubectl did not finish within its time budget."""

    def __init__(self, output: str = "") -> None:
        super().__init__(output, message="Command timed out")


class FluxReportNotFoundError(KSwitchError):
    """The FluxReport resource type or object does not exist in the cluster."""

    def __init__(self) -> None:
        super().__init__("FluxReport not found in cluster")


class InvalidResponseError(KSwitchError):
    """kubectl output could not be decoded into the expected shape."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Invalid response: {detail}")
        self.detail = detail


class TaskAlreadyRunningError(KSwitchError):
    """A task was started while a previous run is still live."""

    def __init__(self, task_name: str) -> None:
        super().__init__(f"Task is already running: {task_name}")
        self.task_name = task_name


class MissingTaskInputError(ValueError):
    """Required task inputs were not supplied."""

    def __init__(self, task_name: str, missing: list[str]) -> None:
        super().__init__(
            f"Task '{task_name}' requires inputs: {', '.join(missing)}"
        )
        self.task_name = task_name
        self.missing = missing

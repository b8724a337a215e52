"""Task scripts discovered in the tasks directory and their header metadata."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

TASK_SUFFIX = ".kswitch.sh"
HEADER_LINE_LIMIT = 100

_NAME_RE = re.compile(r"#\s*KSWITCH_TASK:\s*(.+)")
_DESC_RE = re.compile(r"#\s*KSWITCH_TASK_DESC:\s*(.+)")
_INPUT_RE = re.compile(r'#\s*KSWITCH_INPUT:\s*(\w+)(?:\s+"([^"]*)")?')
_INPUT_OPT_RE = re.compile(r'#\s*KSWITCH_INPUT_OPT:\s*(\w+)(?:\s+"([^"]*)")?')


@dataclass(frozen=True)
class TaskInput:
    """An environment variable a task script expects."""

    name: str
    description: str = ""
    required: bool = True


@dataclass(frozen=True)
class TaskHeader:
    """Metadata parsed from the leading comment lines of a script."""

    name: str | None = None
    description: str | None = None
    inputs: tuple[TaskInput, ...] = ()


@dataclass(frozen=True)
class ScriptTask:
    """An executable task script; identified by its absolute path."""

    path: str
    name: str
    description: str
    inputs: tuple[TaskInput, ...] = ()

    @property
    def id(self) -> str:
        """Return stable identity of the task."""
        return self.path

    @property
    def has_required_inputs(self) -> bool:
        """Return whether any declared input is required."""
        return any(item.required for item in self.inputs)

    def missing_inputs(self, values: Mapping[str, str]) -> list[str]:
        """Return required input names with no (or an empty) value."""
        return [
            item.name for item in self.inputs if item.required and not values.get(item.name)
        ]

    @classmethod
    def from_file(cls, path: Path) -> ScriptTask:
        """Build a task from a script file, falling back to filename metadata."""
        try:
            with path.open(encoding="utf-8", errors="replace") as handle:
                lines = [line for _, line in zip(range(HEADER_LINE_LIMIT), handle)]
        except OSError:
            lines = []
        header = parse_header(lines)
        full_path = str(path)
        return cls(
            path=full_path,
            name=header.name or display_name(full_path),
            description=header.description or full_path,
            inputs=header.inputs,
        )


def display_name(path: str) -> str:
    """Derive a display name from a script filename.

    ``aws-sso-login.kswitch.sh`` becomes ``aws sso login``.
    """
    filename = Path(path).name
    if filename.endswith(TASK_SUFFIX):
        filename = filename[: -len(TASK_SUFFIX)]
    return filename.replace("-", " ").replace("_", " ")


def parse_header(lines: Iterable[str]) -> TaskHeader:
    """Parse task name, description and inputs from header lines."""
    name: str | None = None
    description: str | None = None
    inputs: list[TaskInput] = []

    for index, line in enumerate(lines):
        if index >= HEADER_LINE_LIMIT:
            break
        line = line.rstrip("\r\n")

        if name is None and (match := _NAME_RE.search(line)):
            name = match.group(1).strip() or None
        if description is None and (match := _DESC_RE.search(line)):
            description = match.group(1).strip() or None

        if match := _INPUT_RE.search(line):
            inputs.append(TaskInput(match.group(1), match.group(2) or "", required=True))
        elif match := _INPUT_OPT_RE.search(line):
            inputs.append(TaskInput(match.group(1), match.group(2) or "", required=False))

    return TaskHeader(name=name, description=description, inputs=tuple(inputs))

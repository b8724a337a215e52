"""Record of one finished task execution."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from kswitch.domain.ansi_parser import parse_ansi

if TYPE_CHECKING:
    from kswitch.domain.ansi_parser import StyledText


@dataclass(frozen=True)
class TaskRun:
    """Raw output and outcome of a task run."""

    raw_output: bytes
    exit_code: int
    timed_out: bool = False
    cancelled: bool = False
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    duration: float = 0.0
    input_values: dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        """Return whether the script exited cleanly on its own."""
        return self.exit_code == 0 and not self.timed_out and not self.cancelled

    @property
    def formatted_duration(self) -> str:
        """Return "420ms" under one second, otherwise "1.5s"."""
        if self.duration < 1:
            return f"{int(self.duration * 1000)}ms"
        return f"{self.duration:.1f}s"

    def styled_output(self) -> StyledText:
        """Return output with terminal control sequences resolved."""
        return parse_ansi(self.raw_output)

"""Login-shell flavors and how each one prints PATH."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath


class ShellFlavor(str, Enum):
    """Shell families with distinct PATH syntax."""

    POSIX = "posix"
    FISH = "fish"
    NUSHELL = "nushell"

    @classmethod
    def detect(cls, shell_path: str) -> ShellFlavor:
        """Classify a ``$SHELL`` value by its binary name."""
        name = PurePosixPath(shell_path).name.lower()
        if name in ("nu", "nushell"):
            return cls.NUSHELL
        if name == "fish":
            return cls.FISH
        return cls.POSIX


def _last_line(output: str) -> str:
    # Login profiles may print banners before the PATH line.
    lines = [line.strip() for line in output.splitlines() if line.strip()]
    return lines[-1] if lines else ""


@dataclass(frozen=True)
class PathQuery:
    """Arguments that print PATH and the rule that extracts it."""

    args: tuple[str, ...]
    parse: Callable[[str], str] = _last_line


PATH_QUERIES: dict[ShellFlavor, PathQuery] = {
    ShellFlavor.POSIX: PathQuery(("-l", "-c", "echo $PATH")),
    ShellFlavor.FISH: PathQuery(("-l", "-c", "string join : $PATH")),
    ShellFlavor.NUSHELL: PathQuery(("-l", "-c", "$env.PATH | str join ':'")),
}


def path_query(flavor: ShellFlavor) -> PathQuery:
    """Return the PATH query registered for a shell flavor."""
    return PATH_QUERIES[flavor]

"""Modification-time snapshots for polling-based change detection."""

import os
from collections.abc import Iterable


def modification_state(paths: Iterable[str]) -> dict[str, int]:
    """Return path -> mtime rounded to the second, skipping missing files."""
    state: dict[str, int] = {}
    for path in paths:
        try:
            state[path] = round(os.stat(path).st_mtime)
        except OSError:
            continue
    return state

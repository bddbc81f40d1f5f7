from __future__ import annotations

import os
from pathlib import Path

_UNITS = ["B", "K", "M", "G", "T"]


def format_size(num_bytes: int) -> str:
    """Human readable size in the style of ``du -h``."""
    size = float(num_bytes)
    for unit in _UNITS:
        if size < 1024 or unit == _UNITS[-1]:
            if unit == "B":
                return f"{int(size)}{unit}"
            return f"{size:.1f}{unit}"
        size /= 1024
    return f"{num_bytes}B"  # pragma: no cover


def directory_size(path: Path) -> int:
    total = 0
    for root, _dirs, files in os.walk(path):
        for name in files:
            try:
                total += os.lstat(os.path.join(root, name)).st_size
            except OSError:
                continue
    return total

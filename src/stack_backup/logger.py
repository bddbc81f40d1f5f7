"""
Logging setup for stack-backup.

Two independent sinks: the console (optionally coloured) and a per-run log
record written next to the archives.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

DEFAULT_PREFIX = "[Plex Backup]"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_CONSOLE_HANDLER_NAME = "stack-backup-console"


class Colors:
    """ANSI colour codes used for console severity markers."""

    GREEN = "\033[0;32m"
    YELLOW = "\033[1;33m"
    RED = "\033[0;31m"
    OFF = "\033[0m"


class PrefixFormatter(logging.Formatter):
    """Formats ``<prefix> [timestamp] LEVEL: message`` lines."""

    def __init__(self, prefix: str = DEFAULT_PREFIX) -> None:
        super().__init__(
            fmt=f"{prefix} [%(asctime)s] %(levelname)s: %(message)s",
            datefmt=DATE_FORMAT,
        )

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        if record.levelno == logging.WARNING:
            record.levelname = "WARN"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


class ColorFormatter(PrefixFormatter):
    LEVEL_COLORS = {
        logging.DEBUG: Colors.GREEN,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color = self.LEVEL_COLORS.get(record.levelno, Colors.OFF)
        return f"{color}{message}{Colors.OFF}"


def _use_color(color: str) -> bool:
    if color == "always":
        return True
    if color == "never":
        return False
    return hasattr(sys.stderr, "isatty") and sys.stderr.isatty()


def configure_logging(
    level: str = "INFO",
    *,
    console: bool = True,
    color: str = "auto",
    prefix: str = DEFAULT_PREFIX,
) -> None:
    """Configure the root logger with the console sink.

    Calling this again replaces the console handler installed by a previous
    call, so the scheduler can re-apply settings after a config reload.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(root.handlers):
        if handler.get_name() == _CONSOLE_HANDLER_NAME:
            root.removeHandler(handler)
            handler.close()

    if not console:
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_CONSOLE_HANDLER_NAME)
    handler.setFormatter(ColorFormatter(prefix) if _use_color(color) else PrefixFormatter(prefix))
    root.addHandler(handler)


@contextmanager
def run_log(path: Optional[Path], prefix: str = DEFAULT_PREFIX) -> Iterator[Optional[logging.Handler]]:
    """Attach a plain-text file sink for the duration of one run.

    ``path`` of ``None`` disables the file sink.
    """
    if path is None:
        yield None
        return

    handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    handler.setFormatter(PrefixFormatter(prefix))
    root = logging.getLogger()
    root.addHandler(handler)
    try:
        yield handler
    finally:
        root.removeHandler(handler)
        handler.close()

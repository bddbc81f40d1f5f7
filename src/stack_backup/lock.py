from __future__ import annotations

import fcntl
import logging
import os
from pathlib import Path
from typing import IO, Optional

from .errors import RunLockError

LOG = logging.getLogger(__name__)


class RunLock:
    """Exclusive, non-blocking advisory lock held for the duration of a run.

    The lock is released by the kernel if the process dies, so a stale lock
    file on disk never blocks later runs.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._fh: Optional[IO[str]] = None

    def acquire(self) -> None:
        fh = self.path.open("a+", encoding="utf-8")
        try:
            fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as exc:
            fh.seek(0)
            holder = fh.read().strip() or "unknown"
            fh.close()
            raise RunLockError(f"Another backup run is in progress (pid {holder}, lock {self.path})") from exc

        fh.seek(0)
        fh.truncate()
        fh.write(str(os.getpid()))
        fh.flush()
        self._fh = fh
        LOG.debug("Acquired run lock %s", self.path)

    def release(self) -> None:
        if self._fh is None:
            return
        try:
            self._fh.seek(0)
            self._fh.truncate()
            fcntl.flock(self._fh.fileno(), fcntl.LOCK_UN)
        finally:
            self._fh.close()
            self._fh = None
        LOG.debug("Released run lock %s", self.path)

    @property
    def locked(self) -> bool:
        return self._fh is not None

    def __enter__(self) -> "RunLock":
        self.acquire()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()

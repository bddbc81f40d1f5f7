from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List

from .retention import PruneResult, prune

TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"
ARCHIVE_EXTENSION = "tar.gz"
LOG_EXTENSION = "log"


@dataclass
class RunPaths:
    timestamp: str
    archive_path: Path
    log_path: Path


@dataclass
class FilesystemStorage:
    """Lays out archives and log records under one backup directory."""

    backup_dir: Path
    prefix: str

    @property
    def archive_pattern(self) -> str:
        return f"{self.prefix}_*.{ARCHIVE_EXTENSION}"

    @property
    def log_pattern(self) -> str:
        return f"{self.prefix}_*.{LOG_EXTENSION}"

    def prepare_run(self, started_at: datetime) -> RunPaths:
        stamp = started_at.strftime(TIMESTAMP_FORMAT)
        base = f"{self.prefix}_{stamp}"
        return RunPaths(
            timestamp=stamp,
            archive_path=self.backup_dir / f"{base}.{ARCHIVE_EXTENSION}",
            log_path=self.backup_dir / f"{base}.{LOG_EXTENSION}",
        )

    def enforce_retention(self, max_count: int) -> List[PruneResult]:
        return [
            prune(self.backup_dir, self.archive_pattern, max_count, label="backup"),
            prune(self.backup_dir, self.log_pattern, max_count, label="log file"),
        ]

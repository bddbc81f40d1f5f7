from __future__ import annotations

import logging
import tarfile
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Optional, Protocol, Sequence

from .errors import ArchiveError
from .utils import directory_size, format_size

LOG = logging.getLogger(__name__)


@dataclass
class ArchiveInfo:
    path: Path
    size: int
    members: int
    excluded: int


class Archiver(Protocol):
    def create(self, source_dir: Path, archive_path: Path) -> ArchiveInfo:
        ...


def is_excluded(arcname: str, patterns: Sequence[str], max_depth: int) -> bool:
    """Return True when a path component below the archive root matches a pattern.

    Component 0 is the archive root itself and is never tested; components
    ``1..max_depth`` are.
    """
    parts = arcname.split("/")
    for depth, part in enumerate(parts[1 : max_depth + 1], start=1):
        if any(fnmatchcase(part, pattern) for pattern in patterns):
            LOG.debug("Excluding %s (matched at depth %d)", arcname, depth)
            return True
    return False


class TarArchiver:
    """Writes gzip-compressed tarballs rooted at the source directory's name."""

    def __init__(self, exclude: Sequence[str] = (), exclude_max_depth: int = 5) -> None:
        self._exclude = list(exclude)
        self._max_depth = exclude_max_depth

    def create(self, source_dir: Path, archive_path: Path) -> ArchiveInfo:
        if not source_dir.is_dir():
            raise ArchiveError(f"Source directory not found: {source_dir}")
        if archive_path.exists():
            raise ArchiveError(f"Archive already exists, refusing to overwrite: {archive_path}")

        LOG.info("Creating backup: %s", archive_path.name)
        LOG.info("Source: %s", source_dir)
        LOG.info("Destination: %s", archive_path)
        LOG.info("Source directory size: %s", format_size(directory_size(source_dir)))
        if self._exclude:
            LOG.info("Excluding temporary/cache directories: %s", ", ".join(self._exclude))

        counts = {"members": 0, "excluded": 0}

        def _filter(info: tarfile.TarInfo) -> Optional[tarfile.TarInfo]:
            if is_excluded(info.name, self._exclude, self._max_depth):
                counts["excluded"] += 1
                return None
            counts["members"] += 1
            return info

        try:
            with tarfile.open(archive_path, "w:gz") as tar:
                tar.add(source_dir, arcname=source_dir.name, filter=_filter)
        except (OSError, tarfile.TarError) as exc:
            LOG.error("tar: %s", exc)
            _discard_partial(archive_path)
            raise ArchiveError(f"Backup creation failed: {exc}") from exc
        except BaseException:
            LOG.error("Archive creation interrupted; removing partial %s", archive_path.name)
            _discard_partial(archive_path)
            raise

        size = verify_archive(archive_path)
        LOG.info("Backup created successfully - Size: %s", format_size(size))
        return ArchiveInfo(
            path=archive_path,
            size=size,
            members=counts["members"],
            excluded=counts["excluded"],
        )


def verify_archive(archive_path: Path) -> int:
    if not archive_path.is_file():
        raise ArchiveError(f"Backup file not found after creation: {archive_path}")
    size = archive_path.stat().st_size
    if size == 0:
        _discard_partial(archive_path)
        raise ArchiveError(f"Backup file is empty: {archive_path}")
    return size


def _discard_partial(archive_path: Path) -> None:
    try:
        archive_path.unlink()
    except FileNotFoundError:
        return
    except OSError as exc:
        LOG.warning("Could not remove partial archive %s: %s", archive_path, exc)

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple

from .utils import format_size

LOG = logging.getLogger(__name__)


@dataclass
class PruneResult:
    label: str
    max_count: int
    deleted: List[Path] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    remaining: List[Tuple[str, int]] = field(default_factory=list)


def _sorted_by_mtime(directory: Path, pattern: str) -> List[Path]:
    entries = []
    for path in directory.glob(pattern):
        try:
            if not path.is_file():
                continue
            entries.append((path.stat().st_mtime, path.name, path))
        except OSError:
            # Vanished between glob and stat.
            continue
    entries.sort()
    return [path for _mtime, _name, path in entries]


def prune(directory: Path, pattern: str, max_count: int, *, label: str = "file") -> PruneResult:
    """Keep the ``max_count`` most recently modified files matching ``pattern``.

    Deletion failures are recorded as warnings; pruning never raises for them.
    The remaining set is reported newest first with sizes.
    """
    if max_count < 1:
        raise ValueError("max_count must be at least 1")

    result = PruneResult(label=label, max_count=max_count)
    LOG.info("Managing %s retention (keeping %d most recent)...", label, max_count)

    files = _sorted_by_mtime(directory, pattern)
    LOG.info("Current %s count: %d", label, len(files))

    excess = len(files) - max_count
    if excess > 0:
        LOG.info("Removing %d old %s(s)...", excess, label)
        for path in files[:excess]:
            LOG.info("Deleting old %s: %s", label, path.name)
            try:
                path.unlink()
            except FileNotFoundError:
                result.deleted.append(path)
            except OSError as exc:
                message = f"Failed to delete {path}: {exc}"
                LOG.warning(message)
                result.warnings.append(message)
            else:
                result.deleted.append(path)
    else:
        LOG.info("No old %ss to remove (current: %d, max: %d)", label, len(files), max_count)

    LOG.info("Remaining %ss:", label)
    for path in reversed(_sorted_by_mtime(directory, pattern)):
        try:
            size = path.stat().st_size
        except OSError:
            continue
        result.remaining.append((path.name, size))
        LOG.info("  - %s (%s)", path.name, format_size(size))

    return result

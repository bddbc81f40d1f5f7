from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Callable, Optional, Sequence

from .errors import PrerequisiteError
from .services import ServiceController

LOG = logging.getLogger(__name__)

Which = Callable[[str], Optional[str]]


def check_source(source_dir: Path) -> None:
    if not source_dir.is_dir():
        raise PrerequisiteError(f"Config directory not found: {source_dir}")


def check_run_slot(archive_path: Path, log_path: Optional[Path] = None) -> None:
    """Refuse a run whose timestamped archive or log name is already taken."""
    for path in (archive_path, log_path):
        if path is not None and path.exists():
            raise PrerequisiteError(f"A backup for this timestamp already exists: {path}")


def prepare_destination(backup_dir: Path, log_path: Optional[Path] = None) -> None:
    """Create the backup directory when missing and the run's empty log record."""
    if not backup_dir.is_dir():
        LOG.warning("Backup directory not found. Creating: %s", backup_dir)
        try:
            backup_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PrerequisiteError(f"Failed to create backup directory {backup_dir}: {exc}") from exc

    if log_path is not None and not log_path.exists():
        try:
            log_path.touch()
        except OSError as exc:
            raise PrerequisiteError(f"Failed to create log file {log_path}: {exc}") from exc


def check_tools(tools: Sequence[str], which: Which = shutil.which) -> None:
    missing = [tool for tool in tools if which(tool) is None]
    if missing:
        raise PrerequisiteError(f"Required command(s) not found: {', '.join(missing)}")


def check_service(controller: ServiceController, name: str) -> None:
    controller.check_tooling()
    try:
        known = controller.exists(name)
    except (OSError, subprocess.CalledProcessError) as exc:
        raise PrerequisiteError(f"Could not query container runtime: {exc}") from exc
    if not known:
        raise PrerequisiteError(f"Container '{name}' not found")


def check_prerequisites(
    source_dir: Path,
    tools: Sequence[str],
    controller: ServiceController,
    service_name: str,
    which: Which = shutil.which,
) -> None:
    """Validate everything needed before the service is touched.

    The destination is handled by :func:`prepare_destination` so the run's log
    record can be attached before these checks run.
    """
    LOG.info("Checking prerequisites...")
    check_source(source_dir)
    check_tools(tools, which=which)
    check_service(controller, service_name)
    LOG.info("Prerequisites check passed")

"""Service-aware configuration backups for a docker-compose media stack."""

from __future__ import annotations

from .config import BackupConfig, load_config  # noqa: F401
from .orchestrator import BackupOrchestrator, RunResult, build_orchestrator  # noqa: F401

from __future__ import annotations


class BackupError(Exception):
    """Fatal condition that aborts a backup run."""

    step = "run"

    def __init__(self, message: str, step: str | None = None) -> None:
        super().__init__(message)
        if step:
            self.step = step


class PrerequisiteError(BackupError):
    """Raised before any mutating action when the environment is not usable."""

    step = "prerequisites"


class RunLockError(PrerequisiteError):
    """Raised when another run already holds the run lock."""


class LifecycleError(BackupError):
    """Raised when the service cannot be stopped or started."""

    def __init__(self, message: str, step: str) -> None:
        if step not in ("stop", "start"):
            raise ValueError(f"Unknown lifecycle step '{step}'")
        super().__init__(message, step=step)


class ArchiveError(BackupError):
    """Raised when the archive cannot be created or fails verification."""

    step = "archive"


class RunInterrupted(BackupError):
    """Raised from the SIGTERM handler while a run is active."""

    step = "interrupted"

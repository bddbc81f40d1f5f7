from __future__ import annotations

from typing import Protocol


class ServiceController(Protocol):
    """Narrow lifecycle capability over a named long-running service."""

    def check_tooling(self) -> None:
        """Raise PrerequisiteError when the container runtime cannot be driven."""
        ...

    def exists(self, name: str) -> bool:
        ...

    def is_running(self, name: str) -> bool:
        ...

    def stop(self, name: str) -> bool:
        """Stop ``name`` if running. Returns False when it was already stopped."""
        ...

    def start(self, name: str) -> None:
        """Start ``name``. Must be a no-op for a running service."""
        ...

from __future__ import annotations

from stack_backup.config import ServiceConfig

from .base import ServiceController
from .docker import DockerComposeController


def create_controller(service: ServiceConfig) -> ServiceController:
    return DockerComposeController(
        compose_file=service.compose_file,
        stop_grace_seconds=service.stop_grace_seconds,
        start_grace_seconds=service.start_grace_seconds,
    )


__all__ = ["ServiceController", "DockerComposeController", "create_controller"]

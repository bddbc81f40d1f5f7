from __future__ import annotations

import logging
import subprocess
import time
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from stack_backup.errors import LifecycleError, PrerequisiteError

LOG = logging.getLogger(__name__)

Runner = Callable[..., "subprocess.CompletedProcess[str]"]


class DockerComposeController:
    """Drives a container through ``docker compose`` (or plain ``docker``)."""

    def __init__(
        self,
        compose_file: Optional[Path] = None,
        stop_grace_seconds: float = 5,
        start_grace_seconds: float = 10,
        runner: Runner = subprocess.run,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._compose_file = compose_file
        self._stop_grace = stop_grace_seconds
        self._start_grace = start_grace_seconds
        self._run = runner
        self._sleep = sleep

    # Queries ---------------------------------------------------------------
    def check_tooling(self) -> None:
        if not self._compose_file:
            return
        try:
            self._exec(["docker", "compose", "version"])
        except (OSError, subprocess.CalledProcessError) as exc:
            raise PrerequisiteError("Docker Compose command not found") from exc
        if not self._compose_file.is_file():
            raise PrerequisiteError(f"Docker Compose file not found: {self._compose_file}")

    def exists(self, name: str) -> bool:
        return name in self._container_names(all_containers=True)

    def is_running(self, name: str) -> bool:
        return name in self._container_names(all_containers=False)

    # Lifecycle -------------------------------------------------------------
    def stop(self, name: str) -> bool:
        LOG.info("Stopping %s container...", name)
        try:
            if not self.is_running(name):
                LOG.warning("%s container was not running", name)
                return False
            self._exec(self._lifecycle_command("stop", name))
        except (OSError, subprocess.CalledProcessError) as exc:
            LOG.error("Failed to stop %s container: %s", name, _stderr(exc))
            raise LifecycleError(f"Failed to stop {name} container", step="stop") from exc

        LOG.info("%s container stopped successfully", name)
        self._sleep(self._stop_grace)
        return True

    def start(self, name: str) -> None:
        LOG.info("Starting %s container...", name)
        try:
            if self.is_running(name):
                LOG.info("%s container is already running", name)
                return
            self._exec(self._lifecycle_command("start", name))
        except (OSError, subprocess.CalledProcessError) as exc:
            LOG.error("Failed to start %s container: %s", name, _stderr(exc))
            raise LifecycleError(f"Failed to start {name} container", step="start") from exc

        LOG.info("%s container started successfully", name)
        LOG.info("Waiting for %s to initialize...", name)
        self._sleep(self._start_grace)

    # Internal helpers ------------------------------------------------------
    def _lifecycle_command(self, action: str, name: str) -> List[str]:
        if self._compose_file:
            return ["docker", "compose", "-f", str(self._compose_file), action, name]
        return ["docker", action, name]

    def _container_names(self, all_containers: bool) -> List[str]:
        cmd = ["docker", "ps", "--format", "{{.Names}}"]
        if all_containers:
            cmd.insert(2, "-a")
        result = self._exec(cmd)
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def _exec(self, cmd: Sequence[str]) -> "subprocess.CompletedProcess[str]":
        LOG.debug("Running %s", " ".join(cmd))
        return self._run(list(cmd), check=True, capture_output=True, text=True)


def _stderr(exc: BaseException) -> str:
    if isinstance(exc, subprocess.CalledProcessError):
        return (exc.stderr or "").strip() or f"exit status {exc.returncode}"
    return str(exc)

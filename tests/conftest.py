"""Shared fixtures: fake service controller / archiver and a throwaway config tree."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import pytest

from stack_backup.archiver import ArchiveInfo
from stack_backup.config import BackupConfig
from stack_backup.errors import LifecycleError


class FakeController:
    """In-memory stand-in for the container runtime.

    Every lifecycle call is appended to ``events`` (shared with FakeArchiver)
    so tests can assert ordering.
    """

    def __init__(self, events: List[str], running: bool = True, known: bool = True) -> None:
        self.events = events
        self.running = running
        self.known = known
        self.fail_stop = False
        self.fail_start = False
        self.start_calls = 0

    def check_tooling(self) -> None:
        return None

    def exists(self, name: str) -> bool:
        return self.known

    def is_running(self, name: str) -> bool:
        return self.running

    def stop(self, name: str) -> bool:
        if self.fail_stop:
            self.events.append("stop-failed")
            raise LifecycleError(f"Failed to stop {name} container", step="stop")
        if not self.running:
            self.events.append("stop-noop")
            return False
        self.running = False
        self.events.append("stop")
        return True

    def start(self, name: str) -> None:
        self.start_calls += 1
        if self.fail_start:
            self.events.append("start-failed")
            raise LifecycleError(f"Failed to start {name} container", step="start")
        self.events.append("start-noop" if self.running else "start")
        self.running = True


class FakeArchiver:
    def __init__(self, events: List[str], controller: FakeController) -> None:
        self.events = events
        self.controller = controller
        self.error: Optional[BaseException] = None
        self.running_during_archive: Optional[bool] = None

    def create(self, source_dir: Path, archive_path: Path) -> ArchiveInfo:
        self.running_during_archive = self.controller.running
        self.events.append("archive")
        if self.error is not None:
            raise self.error
        archive_path.write_bytes(b"archive")
        return ArchiveInfo(path=archive_path, size=7, members=1, excluded=0)


@pytest.fixture
def events() -> List[str]:
    return []


@pytest.fixture
def controller(events) -> FakeController:
    return FakeController(events)


@pytest.fixture
def archiver(events, controller) -> FakeArchiver:
    return FakeArchiver(events, controller)


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    root = tmp_path / "PlexConfig"
    (root / "Library" / "Preferences").mkdir(parents=True)
    (root / "Library" / "Preferences" / "Preferences.xml").write_text("<Preferences/>", encoding="utf-8")
    return root


@pytest.fixture
def backup_config(tmp_path: Path, source_dir: Path) -> BackupConfig:
    return BackupConfig.model_validate(
        {
            "source_dir": str(source_dir),
            "backup_dir": str(tmp_path / "backups"),
            "service": {"name": "plex", "stop_grace_seconds": 0, "start_grace_seconds": 0},
            "retention": {"max_count": 3},
            "required_tools": [],
            "logging": {"color": "never"},
        }
    )


@pytest.fixture(autouse=True)
def _reset_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    root.setLevel(logging.INFO)
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)

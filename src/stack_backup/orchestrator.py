from __future__ import annotations

import logging
import shutil
import signal
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterator, List, Optional

from .archiver import Archiver, TarArchiver
from .config import BackupConfig
from .errors import BackupError, RunInterrupted
from .lock import RunLock
from .logger import run_log
from .notifications import send_notification
from .prerequisites import Which, check_prerequisites, check_run_slot, prepare_destination
from .services import ServiceController, create_controller
from .storage import FilesystemStorage

LOG = logging.getLogger(__name__)

BANNER = "=========================================="


@dataclass
class RunResult:
    status: str
    started_at: datetime
    completed_at: datetime
    archive_path: Optional[Path] = None
    archive_size: int = 0
    log_path: Optional[Path] = None
    failed_step: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    service_left_down: bool = False

    @property
    def success(self) -> bool:
        return self.status == "success"

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1


@contextmanager
def _sigterm_raises(enabled: bool = True) -> Iterator[None]:
    """Turn SIGTERM into RunInterrupted so cleanup paths run."""
    if not enabled or threading.current_thread() is not threading.main_thread():
        yield
        return

    def _handle(signum: int, _frame: Optional[object]) -> None:
        raise RunInterrupted(f"Received signal {signum}")

    previous = signal.signal(signal.SIGTERM, _handle)
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, previous)


class BackupOrchestrator:
    """Runs one backup: validate, stop, archive, start, prune."""

    def __init__(
        self,
        config: BackupConfig,
        controller: ServiceController,
        archiver: Archiver,
        clock: Callable[[], datetime] = datetime.now,
        which: Which = shutil.which,
        handle_signals: bool = True,
    ) -> None:
        self._config = config
        self._controller = controller
        self._archiver = archiver
        self._clock = clock
        self._which = which
        self._handle_signals = handle_signals
        self._storage = FilesystemStorage(config.backup_dir, config.archive.prefix)
        self._step = "prerequisites"
        self._interrupted_step: Optional[str] = None
        self._service_left_down = False

    def run(self) -> RunResult:
        self._step = "prerequisites"
        self._interrupted_step = None
        self._service_left_down = False

        started_at = self._clock()
        paths = self._storage.prepare_run(started_at)
        log_path = paths.log_path if self._config.logging.file else None
        result = RunResult(status="success", started_at=started_at, completed_at=started_at, log_path=log_path)

        try:
            check_run_slot(paths.archive_path, log_path)
            prepare_destination(self._config.backup_dir, log_path)
        except BackupError as exc:
            result.log_path = None
            self._finish(result, exc)
            send_notification(self._config.notifications, self._config.service.name, result)
            return result

        with run_log(log_path, prefix=self._config.logging.prefix), _sigterm_raises(self._handle_signals):
            LOG.info(BANNER)
            LOG.info("Backup of %s started", self._config.service.name)
            LOG.info(BANNER)
            if log_path is not None:
                LOG.info("Log file initialized: %s", log_path.name)

            error: Optional[BaseException] = None
            try:
                self._execute(paths.archive_path, result)
            except (Exception, KeyboardInterrupt) as exc:  # noqa: BLE001
                error = exc

            self._finish(result, error)
            LOG.info(BANNER)
            if result.success:
                LOG.info("Backup of %s completed successfully", self._config.service.name)
            else:
                LOG.error("Backup of %s failed at step '%s'", self._config.service.name, result.failed_step)
            LOG.info(BANNER)
            send_notification(self._config.notifications, self._config.service.name, result)

        return result

    # Sequencing ------------------------------------------------------------
    def _execute(self, archive_path: Path, result: RunResult) -> None:
        config = self._config
        name = config.service.name

        check_prerequisites(
            source_dir=config.source_dir,
            tools=config.required_tools,
            controller=self._controller,
            service_name=name,
            which=self._which,
        )

        with RunLock(config.effective_lock_file):
            with self._quiesced(name):
                self._step = "archive"
                info = self._archiver.create(config.source_dir, archive_path)
                result.archive_path = info.path
                result.archive_size = info.size

            self._step = "prune"
            for prune_result in self._storage.enforce_retention(config.retention.max_count):
                result.warnings.extend(prune_result.warnings)

    @contextmanager
    def _quiesced(self, name: str) -> Iterator[None]:
        """Hold the service stopped; a restart is attempted on every exit path."""
        self._step = "stop"
        try:
            self._controller.stop(name)
            yield
        except BaseException:
            self._interrupted_step = self._step
            LOG.error("Backup interrupted or failed during %s. Ensuring %s is restarted...", self._step, name)
            raise
        finally:
            self._step = "start"
            try:
                self._controller.start(name)
            except BaseException:
                self._service_left_down = True
                raise

    def _finish(self, result: RunResult, error: Optional[BaseException]) -> RunResult:
        result.completed_at = self._clock()
        result.service_left_down = self._service_left_down
        if error is None:
            result.status = "success"
            return result

        result.status = "failed"
        if isinstance(error, BackupError):
            result.failed_step = error.step
        elif isinstance(error, KeyboardInterrupt):
            result.failed_step = "interrupted"
        else:
            result.failed_step = self._interrupted_step or self._step

        result.errors.append(_describe(error))
        context = error.__context__
        if context is not None and context is not error:
            result.errors.append(f"(while handling) {_describe(context)}")

        if result.service_left_down:
            LOG.error("%s container could not be restarted and is left down", self._config.service.name)
        LOG.error("%s", result.errors[0])
        return result


def _describe(error: BaseException) -> str:
    if isinstance(error, KeyboardInterrupt):
        return "Interrupted"
    if isinstance(error, BackupError):
        return str(error)
    return f"{type(error).__name__}: {error}"


def build_orchestrator(config: BackupConfig, **kwargs) -> BackupOrchestrator:
    return BackupOrchestrator(
        config=config,
        controller=kwargs.pop("controller", None) or create_controller(config.service),
        archiver=kwargs.pop("archiver", None)
        or TarArchiver(exclude=config.archive.exclude, exclude_max_depth=config.archive.exclude_max_depth),
        **kwargs,
    )

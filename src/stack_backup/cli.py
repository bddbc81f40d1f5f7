from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence
from zoneinfo import ZoneInfo

from croniter import croniter

from .config import BackupConfig, ConfigurationError, SchedulerConfig, load_config
from .errors import BackupError
from .logger import configure_logging
from .orchestrator import build_orchestrator
from .prerequisites import check_prerequisites, prepare_destination
from .services import create_controller

DEFAULT_CONFIG_PATH = "/opt/stack-backup/config/stack-backup.yaml"

LOG = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Stop a service, archive its configuration, restart it, prune old backups.")
    parser.add_argument(
        "--config",
        default=os.getenv("STACK_BACKUP_CONFIG", DEFAULT_CONFIG_PATH),
        help="Path to configuration YAML file.",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL"),
        help="Log level (overrides the configuration file).",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Validate configuration and prerequisites, then exit.",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single backup even when a scheduler is configured.",
    )
    return parser.parse_args(argv)


def apply_logging(config: BackupConfig, level_override: Optional[str]) -> None:
    configure_logging(
        level_override or config.logging.level,
        console=config.logging.console,
        color=config.logging.color,
        prefix=config.logging.prefix,
    )


def run_check(config: BackupConfig) -> int:
    try:
        prepare_destination(config.backup_dir)
        check_prerequisites(
            source_dir=config.source_dir,
            tools=config.required_tools,
            controller=create_controller(config.service),
            service_name=config.service.name,
        )
    except BackupError as exc:
        LOG.error("%s", exc)
        return 1
    return 0


def run_once(config: BackupConfig) -> int:
    result = build_orchestrator(config).run()
    return result.exit_code


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    config_path = Path(args.config).expanduser()

    try:
        config = load_config(config_path)
    except ConfigurationError as exc:
        configure_logging(args.log_level or "INFO")
        LOG.error("Configuration error: %s", exc)
        return 1

    apply_logging(config, args.log_level)

    if args.check:
        return run_check(config)

    if config.scheduler and not args.once:
        return run_with_scheduler(config_path=config_path, initial_config=config, level_override=args.log_level)
    return run_once(config)


def run_with_scheduler(
    config_path: Path,
    initial_config: BackupConfig,
    level_override: Optional[str] = None,
) -> int:
    stop_event = threading.Event()

    def _handle_signal(signum: int, _frame: Optional[object]) -> None:
        LOG.info("Received signal %s; stopping scheduler", signum)
        stop_event.set()

    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGINT, _handle_signal)

    config = initial_config
    scheduler = _require_scheduler(config.scheduler)
    timezone = ZoneInfo(scheduler.timezone)
    next_run = datetime.now(timezone) if scheduler.run_on_startup else _next_run(scheduler.cron, datetime.now(timezone))

    if scheduler.run_on_startup:
        LOG.info("Executing initial run immediately")
    else:
        LOG.info("Next run scheduled for %s", next_run.isoformat())

    while not stop_event.is_set():
        now = datetime.now(timezone)
        if now >= next_run:
            try:
                config = load_config(config_path)
            except ConfigurationError as exc:
                LOG.error("Failed to reload configuration: %s; continuing with previous settings", exc)
            else:
                if not config.scheduler:
                    LOG.info("Scheduler removed from configuration; exiting loop")
                    break
                apply_logging(config, level_override)
                scheduler = _require_scheduler(config.scheduler)
                timezone = ZoneInfo(scheduler.timezone)

            result = build_orchestrator(config).run()
            if result.failed_step == "interrupted":
                LOG.info("Run interrupted; stopping scheduler")
                break
            if not result.success:
                LOG.warning("Scheduled run completed with errors (exit code %s)", result.exit_code)

            next_run = _next_run(scheduler.cron, datetime.now(timezone))
            LOG.info("Next run scheduled for %s", next_run.isoformat())
            continue

        sleep_for = max((next_run - now).total_seconds(), 0)
        stop_event.wait(min(sleep_for, 60))

    LOG.info("Scheduler stopped")
    return 0


def _require_scheduler(scheduler: Optional[SchedulerConfig]) -> SchedulerConfig:
    if not scheduler:
        raise ValueError("Scheduler configuration is required")
    return scheduler


def _next_run(cron_expression: str, reference: datetime) -> datetime:
    return croniter(cron_expression, reference).get_next(datetime)


if __name__ == "__main__":
    sys.exit(main())

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import List, Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from croniter import CroniterBadCronError, croniter
from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_EXCLUDES = ["Cache", "Crash Reports", "Codecs"]


class ConfigurationError(Exception):
    """Raised when the backup configuration is invalid."""


# --- Service -----------------------------------------------------------------


class ServiceConfig(BaseModel):
    name: str = Field(description="Container / compose service name to quiesce.")
    compose_file: Optional[Path] = Field(
        default=None,
        description="Compose file used for stop/start. Plain docker commands are used when omitted.",
    )
    stop_grace_seconds: float = 5
    start_grace_seconds: float = 10

    @field_validator("name")
    @classmethod
    def _require_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Service name must not be empty.")
        return value

    @field_validator("compose_file")
    @classmethod
    def _expand_compose_file(cls, value: Optional[Path]) -> Optional[Path]:
        return value.expanduser() if value else value

    @field_validator("stop_grace_seconds", "start_grace_seconds")
    @classmethod
    def _non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("Grace intervals cannot be negative.")
        return value


# --- Archive / retention -----------------------------------------------------


class ArchiveConfig(BaseModel):
    prefix: str = "plex-backup"
    exclude: List[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDES))
    exclude_max_depth: int = 5

    @field_validator("prefix")
    @classmethod
    def _validate_prefix(cls, value: str) -> str:
        if not value or "/" in value or os.sep in value:
            raise ValueError("Archive prefix must be a plain file name fragment.")
        return value

    @field_validator("exclude_max_depth")
    @classmethod
    def _positive_depth(cls, value: int) -> int:
        if value < 1:
            raise ValueError("exclude_max_depth must be at least 1.")
        return value


class RetentionConfig(BaseModel):
    max_count: int = 8

    @field_validator("max_count")
    @classmethod
    def _positive_count(cls, value: int) -> int:
        if value < 1:
            raise ValueError("Retention max_count must be at least 1.")
        return value


# --- Ambient -----------------------------------------------------------------


class LoggingConfig(BaseModel):
    level: str = "INFO"
    console: bool = True
    file: bool = True
    color: Literal["auto", "always", "never"] = "auto"
    prefix: str = "[Plex Backup]"

    @field_validator("level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()


class NotificationsConfig(BaseModel):
    slack_webhook_env: Optional[str] = None
    notify_on: Literal["failure", "always", "never"] = "failure"

    def resolve_slack_webhook(self) -> Optional[str]:
        if not self.slack_webhook_env:
            return None
        return os.getenv(self.slack_webhook_env)


class SchedulerConfig(BaseModel):
    cron: str
    timezone: str = "UTC"
    run_on_startup: bool = False

    @field_validator("cron")
    @classmethod
    def _validate_cron(cls, value: str) -> str:
        try:
            croniter(value, datetime.now())
        except (CroniterBadCronError, ValueError) as exc:  # pragma: no cover - library errors
            raise ValueError(f"Invalid cron expression '{value}': {exc}") from exc
        return value

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:  # pragma: no cover - library errors
            raise ValueError(f"Unknown timezone '{value}'") from exc
        return value


# --- Root --------------------------------------------------------------------


class BackupConfig(BaseModel):
    source_dir: Path
    backup_dir: Path
    service: ServiceConfig
    archive: ArchiveConfig = Field(default_factory=ArchiveConfig)
    retention: RetentionConfig = Field(default_factory=RetentionConfig)
    required_tools: List[str] = Field(default_factory=lambda: ["docker"])
    lock_file: Optional[Path] = None
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)
    scheduler: Optional[SchedulerConfig] = None

    @field_validator("source_dir", "backup_dir", "lock_file")
    @classmethod
    def _expand_paths(cls, value: Optional[Path]) -> Optional[Path]:
        return value.expanduser() if value else value

    @field_validator("source_dir")
    @classmethod
    def _absolute_source(cls, value: Path) -> Path:
        # The archive root is the directory name, so "." must become a real name.
        return value.resolve()

    @model_validator(mode="after")
    def _separate_directories(self) -> "BackupConfig":
        source = self.source_dir.resolve()
        backup = self.backup_dir.resolve()
        if backup == source or source in backup.parents:
            raise ValueError("backup_dir must not be inside source_dir.")
        return self

    @property
    def effective_lock_file(self) -> Path:
        if self.lock_file:
            return self.lock_file
        return self.backup_dir / f".{self.archive.prefix}.lock"


def load_config(path: Path) -> BackupConfig:
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            raw = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Configuration file is not valid YAML: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigurationError("Configuration root must be a mapping.")

    try:
        return BackupConfig.model_validate(raw)
    except Exception as exc:  # noqa: BLE001
        raise ConfigurationError(str(exc)) from exc

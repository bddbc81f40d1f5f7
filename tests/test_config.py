"""Configuration loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from stack_backup.config import ConfigurationError, load_config


def _write(tmp_path: Path, data) -> Path:
    path = tmp_path / "stack-backup.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


def _minimal(tmp_path: Path) -> dict:
    return {
        "source_dir": str(tmp_path / "PlexConfig"),
        "backup_dir": str(tmp_path / "Backups"),
        "service": {"name": "plex"},
    }


def test_defaults(tmp_path):
    config = load_config(_write(tmp_path, _minimal(tmp_path)))

    assert config.archive.prefix == "plex-backup"
    assert config.archive.exclude == ["Cache", "Crash Reports", "Codecs"]
    assert config.retention.max_count == 8
    assert config.required_tools == ["docker"]
    assert config.service.stop_grace_seconds == 5
    assert config.service.start_grace_seconds == 10
    assert config.service.compose_file is None
    assert config.scheduler is None
    assert config.effective_lock_file == tmp_path / "Backups" / ".plex-backup.lock"


def test_full_configuration(tmp_path):
    data = _minimal(tmp_path)
    data.update(
        {
            "service": {"name": "plex", "compose_file": "~/media-stack/docker-compose.yml"},
            "archive": {"prefix": "jellyfin", "exclude": ["cache"], "exclude_max_depth": 3},
            "retention": {"max_count": 4},
            "lock_file": str(tmp_path / "run.lock"),
            "logging": {"level": "debug", "color": "never"},
            "notifications": {"slack_webhook_env": "HOOK", "notify_on": "always"},
            "scheduler": {"cron": "0 4 * * 1", "timezone": "Europe/London"},
        }
    )

    config = load_config(_write(tmp_path, data))

    assert config.service.compose_file == Path("~/media-stack/docker-compose.yml").expanduser()
    assert config.archive.exclude_max_depth == 3
    assert config.retention.max_count == 4
    assert config.effective_lock_file == tmp_path / "run.lock"
    assert config.logging.level == "DEBUG"
    assert config.scheduler.cron == "0 4 * * 1"


def test_missing_file(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        load_config(tmp_path / "nope.yaml")


def test_invalid_yaml(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("source_dir: [unterminated\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(path)


@pytest.mark.parametrize(
    "override",
    [
        {"retention": {"max_count": 0}},
        {"service": {"name": "  "}},
        {"service": {"name": "plex", "stop_grace_seconds": -1}},
        {"archive": {"prefix": "a/b"}},
        {"archive": {"exclude_max_depth": 0}},
        {"logging": {"color": "sometimes"}},
        {"notifications": {"notify_on": "weekly"}},
        {"scheduler": {"cron": "not a cron"}},
    ],
)
def test_invalid_values(tmp_path, override):
    data = _minimal(tmp_path)
    data.update(override)
    with pytest.raises(ConfigurationError):
        load_config(_write(tmp_path, data))


def test_service_required(tmp_path):
    data = _minimal(tmp_path)
    del data["service"]
    with pytest.raises(ConfigurationError):
        load_config(_write(tmp_path, data))


def test_backup_dir_inside_source_rejected(tmp_path):
    data = _minimal(tmp_path)
    data["backup_dir"] = str(tmp_path / "PlexConfig" / "backups")
    with pytest.raises(ConfigurationError, match="inside source_dir"):
        load_config(_write(tmp_path, data))


def test_webhook_resolved_from_environment(tmp_path, monkeypatch):
    data = _minimal(tmp_path)
    data["notifications"] = {"slack_webhook_env": "STACK_BACKUP_TEST_HOOK"}
    config = load_config(_write(tmp_path, data))

    assert config.notifications.resolve_slack_webhook() is None
    monkeypatch.setenv("STACK_BACKUP_TEST_HOOK", "https://hooks.example/abc")
    assert config.notifications.resolve_slack_webhook() == "https://hooks.example/abc"


def test_relative_source_dir_resolved_to_named_directory(tmp_path, monkeypatch):
    source = tmp_path / "PlexConfig"
    source.mkdir()
    monkeypatch.chdir(source)
    data = _minimal(tmp_path)
    data["source_dir"] = "."

    config = load_config(_write(tmp_path, data))

    assert config.source_dir.is_absolute()
    assert config.source_dir.name == "PlexConfig"

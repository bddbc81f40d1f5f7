"""Retention pruning keeps the newest files by modification time."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from stack_backup.retention import prune


def _make(directory: Path, name: str, mtime: float, size: int = 4) -> Path:
    path = directory / name
    path.write_bytes(b"x" * size)
    os.utime(path, (mtime, mtime))
    return path


@pytest.mark.parametrize("existing,maximum", [(0, 3), (2, 3), (3, 3), (7, 3), (5, 1)])
def test_count_after_prune_is_min_of_existing_and_max(tmp_path, existing, maximum):
    for index in range(existing):
        _make(tmp_path, f"plex-backup_{index:02d}.tar.gz", 1_000_000 + index)

    result = prune(tmp_path, "plex-backup_*.tar.gz", maximum)

    remaining = list(tmp_path.glob("plex-backup_*.tar.gz"))
    assert len(remaining) == min(existing, maximum)
    assert len(result.deleted) == max(existing - maximum, 0)


def test_selection_is_by_mtime_not_name(tmp_path):
    # Names sort opposite to modification time.
    _make(tmp_path, "plex-backup_c.tar.gz", 100)
    _make(tmp_path, "plex-backup_b.tar.gz", 200)
    _make(tmp_path, "plex-backup_a.tar.gz", 300)

    result = prune(tmp_path, "plex-backup_*.tar.gz", 2)

    assert sorted(p.name for p in tmp_path.iterdir()) == ["plex-backup_a.tar.gz", "plex-backup_b.tar.gz"]
    assert [p.name for p in result.deleted] == ["plex-backup_c.tar.gz"]


def test_only_matching_files_are_considered(tmp_path):
    for index in range(4):
        _make(tmp_path, f"plex-backup_{index}.tar.gz", 100 + index)
        _make(tmp_path, f"plex-backup_{index}.log", 100 + index)
    _make(tmp_path, "unrelated.tar.gz", 1)

    prune(tmp_path, "plex-backup_*.log", 2)

    assert len(list(tmp_path.glob("plex-backup_*.tar.gz"))) == 4
    assert len(list(tmp_path.glob("plex-backup_*.log"))) == 2
    assert (tmp_path / "unrelated.tar.gz").exists()


def test_directories_matching_pattern_are_ignored(tmp_path):
    (tmp_path / "plex-backup_dir.tar.gz").mkdir()
    _make(tmp_path, "plex-backup_1.tar.gz", 100)

    result = prune(tmp_path, "plex-backup_*.tar.gz", 1)

    assert result.deleted == []
    assert (tmp_path / "plex-backup_dir.tar.gz").is_dir()


def test_remaining_reported_newest_first_with_size(tmp_path):
    _make(tmp_path, "plex-backup_old.tar.gz", 100, size=10)
    _make(tmp_path, "plex-backup_new.tar.gz", 200, size=20)

    result = prune(tmp_path, "plex-backup_*.tar.gz", 5)

    assert result.remaining == [("plex-backup_new.tar.gz", 20), ("plex-backup_old.tar.gz", 10)]


def test_deletion_failure_is_a_warning(tmp_path, monkeypatch, caplog):
    _make(tmp_path, "plex-backup_1.tar.gz", 100)
    _make(tmp_path, "plex-backup_2.tar.gz", 200)
    _make(tmp_path, "plex-backup_3.tar.gz", 300)

    original_unlink = Path.unlink

    def _unlink(self, *args, **kwargs):
        if self.name == "plex-backup_1.tar.gz":
            raise PermissionError("read-only")
        return original_unlink(self, *args, **kwargs)

    monkeypatch.setattr(Path, "unlink", _unlink)

    result = prune(tmp_path, "plex-backup_*.tar.gz", 1, label="backup")

    assert [p.name for p in result.deleted] == ["plex-backup_2.tar.gz"]
    assert len(result.warnings) == 1
    assert "plex-backup_1.tar.gz" in result.warnings[0]
    assert [name for name, _size in result.remaining] == ["plex-backup_3.tar.gz", "plex-backup_1.tar.gz"]
    assert any(record.levelname == "WARNING" for record in caplog.records)


def test_rejects_non_positive_max(tmp_path):
    with pytest.raises(ValueError):
        prune(tmp_path, "*", 0)

from __future__ import annotations

from pathlib import Path

from ansiweb.app.services.catalog import read_dir, read_lines


def test_read_dir_files_with_suffix(base_dir: Path):
    assert read_dir(base_dir / "playbooks", kind="file", suffix=".yml") == ["site"]
    assert read_dir(base_dir / "playbooks", kind="file") == ["notes.txt", "site.yml"]


def test_read_dir_directories(base_dir: Path):
    assert read_dir(base_dir / "roles", kind="dir") == ["common", "web"]
    assert read_dir(base_dir / "playbooks", kind="dir") == []


def test_read_dir_missing(tmp_path: Path):
    assert read_dir(tmp_path / "nope", kind="dir") == []


def test_read_lines(base_dir: Path, tmp_path: Path):
    assert read_lines(base_dir / "machines") == ["host1", "host2"]
    assert read_lines(tmp_path / "nope") == []

from __future__ import annotations

import os
import stat
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from ansiweb.app.services import workspace
from ansiweb.app.services.job_registry import list_jobs
from ansiweb.app.services.workspace import AllocationError, allocate_workspace
from ansiweb.app.settings import Settings
from ansiweb.app.utils.fs import write_text_exclusive


def _allocate(jobs_root: Path, roles_dir: Path, **overrides):
    kwargs = {
        "jobs_root": jobs_root,
        "roles_dir": roles_dir,
        "inventory": "[web]\nhost1",
        "playbook": "- hosts: web\n  tasks: []",
        "submitter": "127.0.0.1:5555",
    }
    kwargs.update(overrides)
    allocation = allocate_workspace(**kwargs)
    os.close(allocation.log_fd)
    return allocation


def test_allocate_persists_inputs(tmp_path: Path):
    roles_dir = tmp_path / "roles"
    roles_dir.mkdir()
    allocation = _allocate(tmp_path / "jobs", roles_dir)
    paths = allocation.paths

    assert paths.root.parent == tmp_path / "jobs"
    assert allocation.job_id == paths.root.name
    assert paths.inventory.read_bytes() == b"[web]\nhost1"
    assert paths.playbook.read_bytes() == b"- hosts: web\n  tasks: []"
    assert paths.remote.read_text(encoding="utf-8") == "job started by 127.0.0.1:5555"
    assert paths.log.exists()
    assert paths.log.stat().st_size == 0
    assert not paths.exitstatus.exists()
    assert paths.roles.is_symlink()
    assert Path(os.readlink(paths.roles)) == roles_dir.resolve()
    for artifact in (paths.inventory, paths.playbook, paths.remote, paths.log):
        assert stat.S_IMODE(artifact.stat().st_mode) == 0o444


def test_allocate_links_roles_that_do_not_exist_yet(tmp_path: Path):
    allocation = _allocate(tmp_path / "jobs", tmp_path / "roles")
    assert allocation.paths.roles.is_symlink()


def test_inputs_are_create_only(tmp_path: Path):
    allocation = _allocate(tmp_path / "jobs", tmp_path / "roles")
    with pytest.raises(FileExistsError):
        write_text_exclusive(allocation.paths.inventory, "[db]\nhost2")
    assert allocation.paths.inventory.read_text(encoding="utf-8") == "[web]\nhost1"


def test_concurrent_allocations_get_distinct_workspaces(tmp_path: Path):
    jobs_root = tmp_path / "jobs"

    def allocate(i: int) -> str:
        return _allocate(jobs_root, tmp_path / "roles", inventory=f"host{i}").job_id

    with ThreadPoolExecutor(max_workers=16) as pool:
        job_ids = list(pool.map(allocate, range(64)))

    assert len(set(job_ids)) == 64
    assert list_jobs(jobs_root) == sorted(job_ids)


def test_unusable_jobs_root_is_an_allocation_error(tmp_path: Path):
    jobs_root = tmp_path / "jobs"
    jobs_root.write_text("not a directory", encoding="utf-8")
    with pytest.raises(AllocationError) as e:
        _allocate(jobs_root, tmp_path / "roles")
    assert e.value.code == "jobs_root_unavailable"


def test_submitter_note_failure_does_not_abort(tmp_path: Path, monkeypatch):
    real_write = workspace.write_text_exclusive

    def flaky_write(path: Path, text: str, **kwargs):
        if path.name == "remote":
            raise OSError(28, "No space left on device")
        return real_write(path, text, **kwargs)

    monkeypatch.setattr(workspace, "write_text_exclusive", flaky_write)
    allocation = _allocate(tmp_path / "jobs", tmp_path / "roles")
    assert not allocation.paths.remote.exists()
    assert allocation.paths.log.exists()


def test_failed_allocation_leaves_no_listed_workspace(tmp_path: Path, monkeypatch):
    def broken_symlink(*args, **kwargs):
        raise OSError(1, "Operation not permitted")

    monkeypatch.setattr(workspace.os, "symlink", broken_symlink)
    jobs_root = tmp_path / "jobs"
    with pytest.raises(AllocationError) as e:
        _allocate(jobs_root, tmp_path / "roles")
    assert e.value.code == "workspace_write_failed"
    assert list_jobs(jobs_root) == []


def test_job_ids_sort_by_creation_time(tmp_path: Path, monkeypatch):
    prefixes = iter(["20240101T000000Z-", "20250101T000000Z-"])
    monkeypatch.setattr(workspace, "job_id_prefix", lambda: next(prefixes))
    first = _allocate(tmp_path / "jobs", tmp_path / "roles").job_id
    second = _allocate(tmp_path / "jobs", tmp_path / "roles").job_id
    assert first.startswith("20240101T000000Z-")
    assert list_jobs(tmp_path / "jobs") == [first, second]


def test_jobs_root_is_created_private(tmp_path: Path):
    jobs_root = tmp_path / "var" / "jobs"
    _allocate(jobs_root, tmp_path / "roles")
    assert stat.S_IMODE(jobs_root.stat().st_mode) == 0o700

    settings = Settings(base_dir=str(tmp_path / "base"))
    settings.ensure_dirs()
    assert stat.S_IMODE(settings.jobs_path.stat().st_mode) == 0o700

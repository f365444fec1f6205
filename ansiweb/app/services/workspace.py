from __future__ import annotations

"""Job workspace allocation.

Every submission gets its own directory under the jobs root. All creation
goes through exclusive OS primitives (`mkdtemp`, `O_CREAT|O_EXCL`, `symlink`)
so concurrent submissions never share or overwrite a workspace.
"""

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from ..utils.fs import create_exclusive, write_text_exclusive
from .job_paths import JobPaths, get_job_paths

logger = logging.getLogger(__name__)


class AllocationError(RuntimeError):
    def __init__(self, code: str, message: str):
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message


@dataclass(frozen=True)
class Allocation:
    job_id: str
    paths: JobPaths
    log_fd: int


def job_id_prefix() -> str:
    return datetime.now(tz=timezone.utc).strftime("%Y%m%dT%H%M%SZ-")


def ensure_jobs_root(jobs_root: Path) -> None:
    try:
        jobs_root.mkdir(mode=0o700, parents=True, exist_ok=True)
    except OSError as exc:
        raise AllocationError("jobs_root_unavailable", f"{jobs_root}: {exc}") from exc


def create_workspace_dir(jobs_root: Path) -> Path:
    # mkdtemp retries on name collisions and creates with mode 0700.
    try:
        return Path(tempfile.mkdtemp(prefix=job_id_prefix(), dir=jobs_root))
    except FileExistsError as exc:
        raise AllocationError("job_id_exhausted", str(exc)) from exc
    except OSError as exc:
        raise AllocationError("workspace_create_failed", str(exc)) from exc


def write_submitter_note(paths: JobPaths, submitter: str) -> None:
    # Provenance only; never fails the job.
    try:
        write_text_exclusive(paths.remote, f"job started by {submitter}")
    except OSError as exc:
        logger.warning("job %s: unable to record submitter: %s", paths.job_id, exc)


def discard_workspace(root: Path) -> None:
    try:
        shutil.rmtree(root)
    except OSError as exc:
        logger.error("unable to remove half-built workspace %s: %s", root, exc)


def allocate_workspace(
    *,
    jobs_root: Path,
    roles_dir: Path,
    inventory: str,
    playbook: str,
    submitter: str,
) -> Allocation:
    """Create and populate a workspace for one job.

    Returns the job id, its paths and an open descriptor on the freshly
    created log; the caller owns the descriptor. Raises `AllocationError`
    after removing whatever was created, so a failed allocation never shows
    up in the job listing.
    """

    ensure_jobs_root(jobs_root)
    root = create_workspace_dir(jobs_root)
    paths = get_job_paths(jobs_root=jobs_root, job_id=root.name)

    try:
        write_text_exclusive(paths.inventory, inventory)
        write_text_exclusive(paths.playbook, playbook)
        write_submitter_note(paths, submitter)
        os.symlink(roles_dir.resolve(), paths.roles, target_is_directory=True)
        log_fd = create_exclusive(paths.log, readable=True)
    except FileExistsError as exc:
        discard_workspace(root)
        raise AllocationError("artifact_exists", f"{exc.filename} already exists in fresh workspace") from exc
    except OSError as exc:
        discard_workspace(root)
        raise AllocationError("workspace_write_failed", str(exc)) from exc

    logger.info("job %s: workspace allocated at %s", paths.job_id, root)
    return Allocation(job_id=paths.job_id, paths=paths, log_fd=log_fd)

#
# Read-only view over the jobs root.
#
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from . import job_status
from .job_paths import JobPaths, get_job_paths


@dataclass(frozen=True)
class JobSummary:
    job_id: str
    status: job_status.JobStatus
    exit_code: int | None
    reason: str | None
    message: str | None
    finished_at: str | None
    log_bytes: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "job": self.job_id,
            "status": self.status,
            "exit_code": self.exit_code,
            "reason": self.reason,
            "message": self.message,
            "finished_at": self.finished_at,
            "log_bytes": self.log_bytes,
        }


def list_jobs(jobs_root: Path) -> list[str]:
    """Return the ids of all job workspaces, sorted by name."""

    try:
        entries = list(jobs_root.iterdir())
    except FileNotFoundError:
        return []
    return sorted(p.name for p in entries if p.is_dir() and not p.is_symlink())


def is_plain_name(name: str) -> bool:
    if not name or name in (".", ".."):
        return False
    return "/" not in name and "\\" not in name and "\x00" not in name


def resolve_job(jobs_root: Path, job_id: str) -> JobPaths:
    if not is_plain_name(job_id):
        raise FileNotFoundError(job_id)
    paths = get_job_paths(jobs_root=jobs_root, job_id=job_id)
    if paths.root.is_symlink() or not paths.root.is_dir():
        raise FileNotFoundError(job_id)
    return paths


def log_size(paths: JobPaths) -> int:
    try:
        return paths.log.stat().st_size
    except FileNotFoundError:
        return 0


def describe_job(paths: JobPaths) -> JobSummary:
    # Status first: a record implies the log has stopped growing.
    record = job_status.read_status(paths)
    return JobSummary(
        job_id=paths.job_id,
        status=record.status,
        exit_code=record.exit_code,
        reason=record.reason,
        message=record.message,
        finished_at=record.finished_at,
        log_bytes=log_size(paths),
    )


def list_artifacts(paths: JobPaths) -> list[str]:
    return sorted(p.name for p in paths.root.iterdir() if not p.name.startswith("."))

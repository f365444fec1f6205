#
# Job reconcile helpers (best-effort).
#
from __future__ import annotations

"""Startup recovery for jobs whose supervisor went away with a previous host process."""

import logging
import pathlib
from collections.abc import Container

from ..utils.fs import read_json
from . import job_registry, job_status, supervisor
from .job_paths import JobPaths

logger = logging.getLogger(__name__)


def is_orphaned(paths: JobPaths) -> bool:
    # An empty log means the engine never started or never wrote; leave it
    # observable as such instead of inventing an outcome.
    if paths.exitstatus.exists():
        return False
    if job_registry.log_size(paths) == 0:
        return False
    return not engine_running(paths)


def engine_running(paths: JobPaths) -> bool:
    """True when the engine recorded for `paths` is still running (possibly under another host process)."""

    try:
        note = read_json(paths.pid)
        pid = int(note["pid"])
        start_ticks = note.get("start_ticks")
    except FileNotFoundError:
        return False
    except (OSError, ValueError, KeyError, TypeError) as exc:
        logger.warning("job %s: unreadable pid record: %s", paths.job_id, exc)
        return False
    return supervisor.process_alive(pid, int(start_ticks) if start_ticks is not None else None)


def reconcile_jobs(*, jobs_root: pathlib.Path, supervised: Container[str] = ()) -> list[str]:
    """Mark orphaned running jobs as failed; returns the ids that were marked."""

    marked: list[str] = []
    for job_id in job_registry.list_jobs(jobs_root):
        if job_id in supervised:
            continue
        try:
            paths = job_registry.resolve_job(jobs_root, job_id)
        except FileNotFoundError:
            continue
        if not is_orphaned(paths):
            continue
        try:
            job_status.record_status(
                paths=paths,
                result=job_status.WaitResult(exit_code=None, reason="supervision_lost"),
            )
        except FileExistsError:
            continue
        except OSError as exc:
            logger.warning("job %s: unable to mark orphaned job failed: %s", job_id, exc)
            continue
        logger.warning("job %s: marked failed, supervision lost after restart", job_id)
        marked.append(job_id)
    return marked

from __future__ import annotations

# Job lifecycle orchestration.
#
# Turns a submission into a running job: allocate a workspace, launch the
# automation engine, hand completion to a background supervision thread.
# Handles stay in memory for the lifetime of the host process so callers can
# join, inspect or cancel a job after the submitting request has returned.

import logging
import pathlib
import threading
import typing

from . import job_manager_reconcile, job_registry, supervisor, workspace
from .job_status import JobStatusRecord
from .supervisor import JobHandle, LaunchConfig

logger = logging.getLogger(__name__)


class JobLimitReached(RuntimeError):
    pass


class JobManager:
    # Submit jobs and keep one supervision handle per job started here.
    def __init__(
        self,
        *,
        jobs_root: pathlib.Path,
        roles_dir: pathlib.Path,
        launch_config: LaunchConfig,
        max_running_jobs: int = 0,
        job_timeout_seconds: float = 0,
        terminate_grace_seconds: float = 5.0,
    ):
        self._jobs_root = jobs_root
        self._roles_dir = roles_dir
        self._launch_config = launch_config
        self._max_running_jobs = max(0, int(max_running_jobs or 0))
        self._job_timeout_seconds = max(0.0, float(job_timeout_seconds or 0))
        self._terminate_grace_seconds = max(0.0, float(terminate_grace_seconds))
        self._lock = threading.Lock()
        self._handles: dict[str, JobHandle] = {}
        self._running: set[str] = set()
        self._reserved = 0

    @property
    def jobs_root(self) -> pathlib.Path:
        return self._jobs_root

    def reconcile(self) -> list[str]:
        with self._lock:
            supervised = set(self._handles)
        return job_manager_reconcile.reconcile_jobs(jobs_root=self._jobs_root, supervised=supervised)

    def reserve_slot(self) -> None:
        with self._lock:
            if self._max_running_jobs and len(self._running) + self._reserved >= self._max_running_jobs:
                raise JobLimitReached(f"job_limit_reached: {self._max_running_jobs} jobs already running")
            self._reserved += 1

    def release_reservation(self) -> None:
        with self._lock:
            self._reserved -= 1

    def submit(self, *, inventory: str, playbook: str, submitter: str) -> JobHandle:
        """Allocate and launch one job; return as soon as the engine has started.

        Raises `JobLimitReached`, `workspace.AllocationError` or
        `supervisor.LaunchError`. Anything that goes wrong after this returns
        is only visible through the job's terminal status.
        """

        self.reserve_slot()
        try:
            allocation = workspace.allocate_workspace(
                jobs_root=self._jobs_root,
                roles_dir=self._roles_dir,
                inventory=inventory,
                playbook=playbook,
                submitter=submitter,
            )
            process = supervisor.launch(
                paths=allocation.paths,
                log_fd=allocation.log_fd,
                config=self._launch_config,
            )
        except Exception as exc:
            self.release_reservation()
            logger.error("job submission from %s failed: %s", submitter, exc)
            raise

        handle = JobHandle(job_id=allocation.job_id, paths=allocation.paths, process=process)
        with self._lock:
            self._reserved -= 1
            self._handles[handle.job_id] = handle
            self._running.add(handle.job_id)

        supervisor.start_supervision(
            handle,
            timeout_seconds=self._job_timeout_seconds,
            grace_seconds=self._terminate_grace_seconds,
            on_finished=self.mark_finished,
        )
        return handle

    def mark_finished(self, handle: JobHandle) -> None:
        with self._lock:
            self._running.discard(handle.job_id)

    def get_handle(self, job_id: str) -> JobHandle | None:
        with self._lock:
            return self._handles.get(job_id)

    def running_job_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._running)

    def wait(self, job_id: str, timeout: float | None = None) -> JobStatusRecord:
        handle = self.get_handle(job_id)
        if handle is None:
            raise FileNotFoundError(job_id)
        return typing.cast(JobStatusRecord, handle.future.result(timeout=timeout))

    def cancel_job(self, *, job_id: str) -> bool:
        # Stop a job supervised by this process. Returns False if it already finished.
        job_registry.resolve_job(self._jobs_root, job_id)
        handle = self.get_handle(job_id)
        if handle is None:
            raise RuntimeError("not_supervised")
        if handle.done or handle.process.poll() is not None:
            return False
        handle.cancel_requested.set()
        supervisor.stop_process_tree(handle.process)
        logger.info("job %s: cancellation requested", job_id)
        return True

    def shutdown(self, timeout: float | None = None) -> None:
        # Wait for every supervised job to record its status.
        with self._lock:
            handles = list(self._handles.values())
        for handle in handles:
            if handle.thread is not None:
                handle.thread.join(timeout=timeout)

    def close(self, *, cancel_running: bool = True, timeout: float | None = None) -> None:
        """Host shutdown: optionally stop running jobs, then wait for their status records."""

        if cancel_running:
            for job_id in self.running_job_ids():
                handle = self.get_handle(job_id)
                if handle is None or handle.done:
                    continue
                handle.cancel_requested.set()
                supervisor.stop_process_tree(handle.process)
                logger.info("job %s: stopped for shutdown", job_id)
        self.shutdown(timeout=timeout)
        still_running = self.running_job_ids()
        if still_running:
            logger.warning("shutdown left %d job(s) running: %s", len(still_running), ", ".join(still_running))

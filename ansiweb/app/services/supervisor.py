from __future__ import annotations

"""Automation engine process supervision.

`launch` starts the engine synchronously with its combined output going to
the job log; `supervise` is the per-job background task that waits for exit
and records the terminal status. Nothing in here blocks a request path once
`launch` has returned.
"""

import logging
import os
import signal
import subprocess
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from ..utils.fs import publish_json_exclusive
from . import job_status
from .job_paths import JobPaths

logger = logging.getLogger(__name__)


class LaunchError(RuntimeError):
    def __init__(self, code: str, message: str):
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message


@dataclass(frozen=True)
class LaunchConfig:
    engine_command: tuple[str, ...]
    cwd: Path
    extra_env: dict[str, str] = field(default_factory=dict)


@dataclass
class JobHandle:
    """In-memory handle for a job supervised by this process."""

    job_id: str
    paths: JobPaths
    process: subprocess.Popen[bytes]
    future: Future = field(default_factory=Future)
    cancel_requested: threading.Event = field(default_factory=threading.Event)
    thread: threading.Thread | None = None

    @property
    def done(self) -> bool:
        return self.future.done()


def build_command(engine_command: tuple[str, ...], paths: JobPaths) -> list[str]:
    return [*engine_command, "-i", str(paths.inventory.resolve()), str(paths.playbook.resolve())]


def build_env(extra_env: dict[str, str]) -> dict[str, str]:
    merged_env = os.environ.copy()
    merged_env.update(extra_env)
    # Ansible is Python and buffers its output otherwise; the log must
    # reflect progress while the job runs.
    merged_env["PYTHONUNBUFFERED"] = "1"
    return merged_env


def launch(*, paths: JobPaths, log_fd: int, config: LaunchConfig) -> subprocess.Popen[bytes]:
    """Start the engine for one job.

    The caller's copy of `log_fd` is closed whether or not the process starts;
    the child keeps its own inherited copy.
    """

    cmd = build_command(config.engine_command, paths)
    try:
        process = subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=log_fd,
            stderr=subprocess.STDOUT,
            cwd=str(config.cwd),
            env=build_env(config.extra_env),
            start_new_session=True,
        )
    except (OSError, ValueError) as exc:
        raise LaunchError("engine_spawn_failed", f"{type(exc).__name__}: {exc}") from exc
    finally:
        os.close(log_fd)

    logger.info("job %s: started %s (pid %s)", paths.job_id, cmd[0], process.pid)
    record_process(paths, process.pid)
    return process


def process_start_ticks(pid: int) -> int | None:
    """Start time of `pid` in clock ticks since boot, or None without procfs."""

    try:
        raw = Path(f"/proc/{pid}/stat").read_text(encoding="ascii", errors="replace")
    except OSError:
        return None
    # comm (field 2) may contain spaces; starttime is field 22.
    fields = raw[raw.rfind(")") + 2 :].split()
    try:
        return int(fields[19])
    except (IndexError, ValueError):
        return None


def record_process(paths: JobPaths, pid: int) -> None:
    # Lets a later host process tell a live engine from an orphaned workspace.
    try:
        publish_json_exclusive(paths.pid, {"pid": pid, "start_ticks": process_start_ticks(pid)})
    except OSError as exc:
        logger.warning("job %s: unable to record engine pid: %s", paths.job_id, exc)


def process_alive(pid: int, start_ticks: int | None = None) -> bool:
    """True when `pid` exists and, if known, started at `start_ticks` (guards pid reuse)."""

    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        pass
    if start_ticks is None:
        return True
    current = process_start_ticks(pid)
    return current is None or current == start_ticks


def stop_process_tree(process: subprocess.Popen[bytes], sig: int = signal.SIGTERM) -> None:
    """Signal the engine and everything it forked."""

    try:
        os.killpg(os.getpgid(process.pid), sig)
    except ProcessLookupError:
        return
    except OSError:
        try:
            process.send_signal(sig)
        except OSError:
            return


def wait_for_exit(
    handle: JobHandle,
    *,
    timeout_seconds: float,
    grace_seconds: float,
) -> job_status.WaitResult:
    process = handle.process
    timed_out = False
    try:
        process.wait(timeout=timeout_seconds if timeout_seconds > 0 else None)
    except subprocess.TimeoutExpired:
        timed_out = True
        logger.warning("job %s: exceeded %ss, stopping", handle.job_id, timeout_seconds)
        stop_process_tree(process)
        try:
            process.wait(timeout=grace_seconds)
        except subprocess.TimeoutExpired:
            stop_process_tree(process, signal.SIGKILL)
            process.wait()

    # A stop request only explains the outcome when a signal ended the process;
    # an engine that finished on its own keeps its real exit status.
    killed = process.returncode is not None and process.returncode < 0
    reason: job_status.ExitReason = "exited"
    if killed and handle.cancel_requested.is_set():
        reason = "cancelled"
    elif killed and timed_out:
        reason = "timeout"
    return job_status.WaitResult(exit_code=process.returncode, reason=reason)


def supervise(
    handle: JobHandle,
    *,
    timeout_seconds: float = 0,
    grace_seconds: float = 5.0,
    on_finished: Callable[[JobHandle], None] | None = None,
) -> None:
    # Background completion task: the only writer of terminal status for the job.
    record: job_status.JobStatusRecord | None = None
    error: Exception | None = None
    try:
        result = wait_for_exit(handle, timeout_seconds=timeout_seconds, grace_seconds=grace_seconds)
        record = job_status.record_status(paths=handle.paths, result=result)
        logger.info("job %s: %s", handle.job_id, record.message)
    except Exception as exc:
        logger.exception("job %s: supervision failed", handle.job_id)
        error = exc

    # Release host-side bookkeeping before waiters are woken.
    try:
        if on_finished is not None:
            on_finished(handle)
    finally:
        if error is not None:
            handle.future.set_exception(error)
        else:
            handle.future.set_result(record)


def start_supervision(
    handle: JobHandle,
    *,
    timeout_seconds: float = 0,
    grace_seconds: float = 5.0,
    on_finished: Callable[[JobHandle], None] | None = None,
) -> threading.Thread:
    t = threading.Thread(
        target=supervise,
        args=(handle,),
        kwargs={"timeout_seconds": timeout_seconds, "grace_seconds": grace_seconds, "on_finished": on_finished},
        name=f"job-{handle.job_id}",
        daemon=True,
    )
    handle.thread = t
    t.start()
    return t

#
# Terminal status helpers.
#
from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Literal

from ..utils.fs import publish_json_exclusive, read_json
from .job_paths import JobPaths

JobStatus = Literal["running", "succeeded", "failed"]
ExitReason = Literal["exited", "cancelled", "timeout", "supervision_lost"]


def now_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


@dataclass(frozen=True)
class WaitResult:
    exit_code: int | None
    reason: ExitReason = "exited"


@dataclass(frozen=True)
class JobStatusRecord:
    job_id: str
    status: JobStatus
    exit_code: int | None = None
    reason: str | None = None
    message: str | None = None
    finished_at: str | None = None

    @property
    def finished(self) -> bool:
        return self.status != "running"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def describe_exit(result: WaitResult) -> str:
    if result.reason == "supervision_lost":
        return "supervision lost before the process finished"
    if result.reason == "timeout":
        return "killed after exceeding the time limit"
    if result.reason == "cancelled":
        return "cancelled"
    code = result.exit_code
    if code is None:
        return "unknown exit status"
    if code < 0:
        return f"signal: {-code}"
    return f"exit status {code}"


def status_from_result(result: WaitResult) -> JobStatus:
    if result.reason == "exited" and result.exit_code == 0:
        return "succeeded"
    return "failed"


def record_status(*, paths: JobPaths, result: WaitResult) -> JobStatusRecord:
    """Persist the terminal status of a finished job.

    Called once per job after the process has exited. The artifact is
    create-only: a second call raises FileExistsError instead of overwriting.
    """

    status = status_from_result(result)
    if status == "succeeded":
        message = f"{paths.job_id} finished with no errors"
    else:
        message = f"{paths.job_id} finished with error status: {describe_exit(result)}"
    record = JobStatusRecord(
        job_id=paths.job_id,
        status=status,
        exit_code=result.exit_code,
        reason=result.reason,
        message=message,
        finished_at=now_iso(),
    )
    publish_json_exclusive(paths.exitstatus, record.to_dict())
    return record


def read_status(paths: JobPaths) -> JobStatusRecord:
    if not paths.exitstatus.exists():
        return JobStatusRecord(job_id=paths.job_id, status="running")
    obj = read_json(paths.exitstatus)
    status = obj.get("status")
    return JobStatusRecord(
        job_id=paths.job_id,
        status=status if status in ("succeeded", "failed") else "failed",
        exit_code=obj.get("exit_code"),
        reason=obj.get("reason"),
        message=obj.get("message"),
        finished_at=obj.get("finished_at"),
    )

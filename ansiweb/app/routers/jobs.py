from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from ..deps import JobManagerDep, SettingsDep
from ..services import job_registry
from ..services.sse import tail_log_sse
from ..utils.errors import http_error, job_not_found


router = APIRouter(prefix="/v1/jobs", tags=["jobs"])


class JobListItem(BaseModel):
    job: str
    link: str


class JobDetail(BaseModel):
    job: str
    link: str
    status: str
    exit_code: int | None = None
    reason: str | None = None
    message: str | None = None
    finished_at: str | None = None
    log_bytes: int = 0


class CancelResponse(BaseModel):
    job: str
    cancelled: bool


def job_link(request: Request, job_id: str) -> str:
    return f"{request.base_url}jobs/{job_id}/"


@router.get("", response_model=list[JobListItem])
def list_jobs(request: Request, jm: JobManagerDep):
    return [JobListItem(job=j, link=job_link(request, j)) for j in job_registry.list_jobs(jm.jobs_root)]


@router.get("/{job_id}", response_model=JobDetail)
def get_job(request: Request, job_id: str, jm: JobManagerDep):
    try:
        paths = job_registry.resolve_job(jm.jobs_root, job_id)
    except FileNotFoundError:
        job_not_found()
    summary: dict[str, Any] = job_registry.describe_job(paths).to_dict()
    return JobDetail(link=job_link(request, job_id), **summary)


@router.post("/{job_id}/cancel", response_model=CancelResponse)
def cancel_job(job_id: str, jm: JobManagerDep):
    try:
        cancelled = jm.cancel_job(job_id=job_id)
    except FileNotFoundError:
        job_not_found()
    except RuntimeError as e:
        if str(e) == "not_supervised":
            http_error(409, "not_supervised", "Job is not supervised by this server")
        raise
    return CancelResponse(job=job_id, cancelled=cancelled)


@router.get("/{job_id}/log.sse")
def log_sse(job_id: str, jm: JobManagerDep, settings: SettingsDep, offset: int = 0):
    try:
        paths = job_registry.resolve_job(jm.jobs_root, job_id)
    except FileNotFoundError:
        job_not_found()
    generator = tail_log_sse(
        paths=paths,
        offset=max(0, offset),
        heartbeat_seconds=settings.sse_heartbeat_seconds,
        poll_interval_seconds=settings.sse_poll_interval_ms / 1000,
    )
    return StreamingResponse(generator, media_type="text/event-stream")

from __future__ import annotations

import os

from fastapi import APIRouter, Query
from fastapi.responses import Response

from ..deps import JobManagerDep
from ..services import job_registry
from ..utils.errors import http_error, job_not_found

router = APIRouter(prefix="/jobs", tags=["artifacts"])

# Largest slice returned by one request; clients page with offset.
MAX_READ_BYTES = 1024 * 1024

MEDIA_TYPES = {
    "exitstatus": "application/json",
}


@router.get("/{job_id}/")
def list_job_artifacts(job_id: str, jm: JobManagerDep):
    try:
        paths = job_registry.resolve_job(jm.jobs_root, job_id)
    except FileNotFoundError:
        job_not_found()
    return {"job": job_id, "artifacts": job_registry.list_artifacts(paths)}


@router.get("/{job_id}/{name}")
def get_artifact(
    job_id: str,
    name: str,
    jm: JobManagerDep,
    offset: int = 0,
    limit: int = Query(MAX_READ_BYTES, ge=1, le=MAX_READ_BYTES),
):
    # Served as a snapshot: the log may still be growing.
    try:
        paths = job_registry.resolve_job(jm.jobs_root, job_id)
    except FileNotFoundError:
        job_not_found()
    if not job_registry.is_plain_name(name) or name.startswith("."):
        http_error(404, "not_found", "Artifact not found")
    file_path = paths.root / name
    if not file_path.is_file():
        http_error(404, "not_found", "Artifact not found")
    with file_path.open("rb") as f:
        size = os.fstat(f.fileno()).st_size
        start = min(max(0, offset), size)
        f.seek(start)
        data = f.read(min(limit, size - start))
    media = MEDIA_TYPES.get(name, "text/plain; charset=utf-8")
    headers = {"X-Artifact-Size": str(size), "X-Next-Offset": str(start + len(data))}
    return Response(content=data, media_type=media, headers=headers)

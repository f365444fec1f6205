from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from .services.job_manager import JobManager
from .settings import Settings


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


SettingsDep = Annotated[Settings, Depends(get_settings)]


def get_job_manager(request: Request) -> JobManager:
    jm = getattr(request.app.state, "job_manager", None)
    if jm is None:
        raise RuntimeError("job_manager_not_ready")
    return jm


JobManagerDep = Annotated[JobManager, Depends(get_job_manager)]

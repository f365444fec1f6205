from __future__ import annotations

import logging
from pathlib import Path

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, PlainTextResponse
from fastapi.templating import Jinja2Templates

from ..deps import JobManagerDep, SettingsDep
from ..services import catalog
from ..services.job_manager import JobLimitReached
from ..services.supervisor import LaunchError
from ..services.workspace import AllocationError

logger = logging.getLogger(__name__)

TEMPLATES = Jinja2Templates(directory=str(Path(__file__).resolve().parents[1] / "templates"))

router = APIRouter(tags=["ui"])


def submitter_of(request: Request) -> str:
    if request.client is None:
        return "unknown"
    return f"{request.client.host}:{request.client.port}"


@router.get("/", response_class=HTMLResponse)
def submission_form(request: Request, settings: SettingsDep):
    context = {
        "machines": catalog.read_lines(settings.resolve_path(settings.machines_file)),
        "playbooks": catalog.read_dir(settings.resolve_path(settings.playbooks_dir), kind="file", suffix=".yml"),
        "roles": catalog.read_dir(settings.roles_path, kind="dir"),
    }
    return TEMPLATES.TemplateResponse(request, "ansible.html", context)


@router.post("/", response_class=HTMLResponse)
def submit_job(
    request: Request,
    jm: JobManagerDep,
    inventory: str = Form(""),
    playbook: str = Form(""),
    playbook_selection: str = Form(""),
):
    try:
        handle = jm.submit(inventory=inventory, playbook=playbook, submitter=submitter_of(request))
    except JobLimitReached:
        return PlainTextResponse("too many running jobs", status_code=429)
    except (AllocationError, LaunchError) as exc:
        logger.error("job submission failed: %s", exc)
        return PlainTextResponse("internal error", status_code=500)

    logfile = f"jobs/{handle.job_id}/log"
    context = {"playbook": playbook_selection, "logfile": logfile, "job_id": handle.job_id}
    return TEMPLATES.TemplateResponse(request, "logfile.html", context)


@router.get("/status", response_class=HTMLResponse)
def status_page(request: Request):
    return TEMPLATES.TemplateResponse(request, "status.html", {})

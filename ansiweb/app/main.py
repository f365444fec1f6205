from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from .exceptions import install_exception_handlers
from .routers import artifacts, jobs, ui
from .services.job_manager import JobManager
from .services.supervisor import LaunchConfig
from .settings import SETTINGS, Settings

logger = logging.getLogger(__name__)


def build_job_manager(settings: Settings) -> JobManager:
    return JobManager(
        jobs_root=settings.jobs_path,
        roles_dir=settings.roles_path,
        launch_config=LaunchConfig(
            engine_command=tuple(settings.engine_command),
            cwd=settings.base_path,
            extra_env=dict(settings.engine_env),
        ),
        max_running_jobs=settings.max_running_jobs,
        job_timeout_seconds=settings.job_timeout_seconds,
        terminate_grace_seconds=settings.terminate_grace_seconds,
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or SETTINGS
    settings.ensure_dirs()

    job_manager = build_job_manager(settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        # Supervision threads are daemons; without this they die with the
        # interpreter and leave jobs with no status record.
        await asyncio.to_thread(
            job_manager.close,
            cancel_running=settings.cancel_jobs_on_shutdown,
            timeout=settings.shutdown_timeout_seconds,
        )

    app = FastAPI(title="ansiweb", version="0.1.0", lifespan=lifespan)
    install_exception_handlers(app)

    if settings.reconcile_orphans:
        marked = job_manager.reconcile()
        if marked:
            logger.warning("marked %d orphaned job(s) failed", len(marked))
    app.state.settings = settings
    app.state.job_manager = job_manager

    app.include_router(jobs.router, prefix="/api")
    app.include_router(artifacts.router)
    app.include_router(ui.router)

    app.mount(
        "/assets",
        StaticFiles(directory=settings.resolve_path(settings.assets_dir), check_dir=False),
        name="assets",
    )
    app.mount(
        "/playbooks",
        StaticFiles(directory=settings.resolve_path(settings.playbooks_dir), check_dir=False),
        name="playbooks",
    )

    return app

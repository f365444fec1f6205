from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="ANSIWEB_", extra="ignore")

    # Paths (relative ones resolve against base_dir)
    base_dir: str = "."
    jobs_root: str = "jobs"
    roles_dir: str = "roles"
    playbooks_dir: str = "playbooks"
    machines_file: str = "machines"
    assets_dir: str = "assets"

    # Automation engine
    engine_command: tuple[str, ...] = ("ansible-playbook",)
    # Extra environment for the engine, on top of the host environment.
    # Example: {"ANSIBLE_FORCE_COLOR":"1"}
    engine_env: dict[str, str] = Field(default_factory=dict)

    # Supervision (0 disables the limit)
    max_running_jobs: int = 0
    job_timeout_seconds: float = 0
    terminate_grace_seconds: float = 5.0
    reconcile_orphans: bool = True
    # On server shutdown: stop running engines (recorded as cancelled) and wait
    # up to shutdown_timeout_seconds for their status records.
    cancel_jobs_on_shutdown: bool = True
    shutdown_timeout_seconds: float = 10.0

    # Log tailing
    sse_heartbeat_seconds: int = 15
    sse_poll_interval_ms: int = 250

    log_level: str = "INFO"

    def resolve_path(self, value: str) -> Path:
        path = Path(value)
        if path.is_absolute():
            return path
        return Path(self.base_dir).resolve() / path

    @property
    def base_path(self) -> Path:
        return Path(self.base_dir).resolve()

    @property
    def jobs_path(self) -> Path:
        return self.resolve_path(self.jobs_root)

    @property
    def roles_path(self) -> Path:
        return self.resolve_path(self.roles_dir)

    def ensure_dirs(self) -> None:
        # Workspaces hold inventories and logs; keep them private to the service user.
        self.jobs_path.mkdir(mode=0o700, parents=True, exist_ok=True)


SETTINGS = Settings()

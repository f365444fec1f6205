#
# Job path helpers (filesystem layout).
#
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class JobPaths:
    root: Path
    inventory: Path
    playbook: Path
    remote: Path
    roles: Path
    log: Path
    pid: Path
    exitstatus: Path

    @property
    def job_id(self) -> str:
        return self.root.name


def get_job_paths(*, jobs_root: Path, job_id: str) -> JobPaths:
    root = jobs_root / job_id
    return JobPaths(
        root=root,
        inventory=root / "inventory",
        playbook=root / "playbook.yml",
        remote=root / "remote",
        roles=root / "roles",
        log=root / "log",
        pid=root / "pid",
        exitstatus=root / "exitstatus",
    )

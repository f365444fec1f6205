from __future__ import annotations

import sys
import textwrap
from pathlib import Path

import pytest
from fastapi.testclient import TestClient


FAKE_ENGINE = textwrap.dedent(
    """
    import os
    import sys
    import time

    args = sys.argv[1:]
    inventory = args[args.index("-i") + 1]
    playbook = args[-1]
    with open(playbook, encoding="utf-8") as f:
        body = f.read()

    print("PLAY [fake]")
    print("cwd=" + os.getcwd())
    print("unbuffered=" + os.environ.get("PYTHONUNBUFFERED", ""))
    print("inventory=" + inventory)
    print("playbook=" + playbook)
    print("warning on stderr", file=sys.stderr)
    if "SLEEP" in body:
        time.sleep(60)
    if "FAIL" in body:
        sys.exit(3)
    print("PLAY RECAP ok")
    """
)


def _write_fake_engine(root: Path) -> Path:
    """
    Write a stand-in for ansible-playbook.

    The fake prints a few lines to stdout and stderr, sleeps when the playbook
    contains SLEEP and exits 3 when it contains FAIL.
    """

    script = root / "fake_ansible_playbook.py"
    script.write_text(FAKE_ENGINE, encoding="utf-8")
    return script


@pytest.fixture
def base_dir(tmp_path: Path) -> Path:
    base = tmp_path / "base"
    (base / "roles" / "common").mkdir(parents=True)
    (base / "roles" / "web").mkdir()
    (base / "playbooks").mkdir()
    (base / "playbooks" / "site.yml").write_text("- hosts: all\n", encoding="utf-8")
    (base / "playbooks" / "notes.txt").write_text("skip me\n", encoding="utf-8")
    (base / "machines").write_text("host1\nhost2\n", encoding="utf-8")
    return base


@pytest.fixture
def engine_command(tmp_path: Path) -> tuple[str, ...]:
    return (sys.executable, str(_write_fake_engine(tmp_path)))


@pytest.fixture
def settings(base_dir: Path, engine_command: tuple[str, ...]):
    from ansiweb.app.settings import Settings  # noqa: WPS433

    return Settings(base_dir=str(base_dir), engine_command=engine_command, terminate_grace_seconds=2.0)


@pytest.fixture
def job_manager(settings):
    from ansiweb.app.main import build_job_manager  # noqa: WPS433

    jm = build_job_manager(settings)
    yield jm
    for job_id in jm.running_job_ids():
        jm.cancel_job(job_id=job_id)
    jm.shutdown(timeout=10)


@pytest.fixture
def client(settings):
    from ansiweb.app.main import create_app  # noqa: WPS433

    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client
    jm = app.state.job_manager
    for job_id in jm.running_job_ids():
        jm.cancel_job(job_id=job_id)
    jm.shutdown(timeout=10)

from __future__ import annotations

from ansiweb.app import cli


def test_cli_requires_port(capsys):
    assert cli.main([]) == 2
    assert "usage:" in capsys.readouterr().err


def test_cli_serves_app(monkeypatch, base_dir, engine_command):
    from ansiweb.app.settings import SETTINGS  # noqa: WPS433

    calls = {}

    def fake_run(app, **kwargs):
        calls["app"] = app
        calls.update(kwargs)

    monkeypatch.setattr(cli.uvicorn, "run", fake_run)
    monkeypatch.setattr(SETTINGS, "engine_command", engine_command)
    monkeypatch.setattr(SETTINGS, "base_dir", SETTINGS.base_dir)

    assert cli.main(["--port", "8080", "--base-dir", str(base_dir)]) == 0
    assert calls["port"] == 8080
    assert calls["host"] == "0.0.0.0"
    assert calls["app"].state.settings.jobs_path == base_dir.resolve() / "jobs"
    assert (base_dir / "jobs").is_dir()

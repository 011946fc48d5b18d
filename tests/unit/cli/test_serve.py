"""Tests for mindstack serve (uvicorn is patched out)."""

from __future__ import annotations

from unittest.mock import patch

from typer.testing import CliRunner

from mindstack.cli.main import app

runner = CliRunner()


def test_serve_runs_uvicorn(db_path, monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    with patch("mindstack.cli.serve.uvicorn.run") as run:
        result = runner.invoke(
            app, ["serve", "--db", str(db_path), "--host", "0.0.0.0", "--port", "9001"]
        )
    assert result.exit_code == 0, result.output
    application = run.call_args.args[0]
    assert application.title == "MindStack"
    assert run.call_args.kwargs["host"] == "0.0.0.0"
    assert run.call_args.kwargs["port"] == 9001


def test_serve_defaults_from_config(db_path, monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    with patch("mindstack.cli.serve.uvicorn.run") as run:
        runner.invoke(app, ["serve", "--db", str(db_path)])
    assert run.call_args.kwargs["host"] == "127.0.0.1"
    assert run.call_args.kwargs["port"] == 8000


def test_serve_without_api_key(db_path, monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with patch("mindstack.cli.serve.uvicorn.run") as run:
        result = runner.invoke(app, ["serve", "--db", str(db_path)])
    assert result.exit_code == 1
    assert "OPENAI_API_KEY" in result.output
    run.assert_not_called()


def test_serve_without_db(tmp_path, monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    result = runner.invoke(app, ["serve", "--db", str(tmp_path / "missing.db")])
    assert result.exit_code == 1
    assert "mindstack init" in result.output

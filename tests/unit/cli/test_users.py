"""Tests for mindstack user / project commands."""

from __future__ import annotations

import re

from typer.testing import CliRunner

from mindstack.auth import hash_token
from mindstack.cli.main import app
from mindstack.db.connection import Database
from mindstack.db.repository import Repository

runner = CliRunner()


def test_user_add_prints_token_once_and_stores_hash(db_path):
    result = runner.invoke(app, ["user", "add", "ada", "--db", str(db_path)])

    assert result.exit_code == 0, result.output
    token = re.search(r"token:\s+(\S+)", result.output).group(1)
    user_id = re.search(r"id:\s+(\S+)", result.output).group(1)
    with Database(db_path) as conn:
        user = Repository(conn).get_user_by_token_hash(hash_token(token))
    assert user is not None
    assert user.id == user_id


def test_project_add_for_user(db_path):
    with Database(db_path) as conn:
        user = Repository(conn).add_user("ada", "h")

    result = runner.invoke(
        app,
        ["project", "add", "notes", "--user", user.id, "--description", "d", "--db", str(db_path)],
    )

    assert result.exit_code == 0, result.output
    with Database(db_path) as conn:
        projects = Repository(conn).scoped(user.id).list_projects()
    assert [(p.name, p.description) for p in projects] == [("notes", "d")]


def test_project_add_unknown_user(db_path):
    result = runner.invoke(app, ["project", "add", "notes", "--user", "ghost", "--db", str(db_path)])
    assert result.exit_code == 1
    assert "ghost" in result.output


def test_user_add_without_db(tmp_path):
    result = runner.invoke(app, ["user", "add", "ada", "--db", str(tmp_path / "missing.db")])
    assert result.exit_code == 1
    assert "mindstack init" in result.output

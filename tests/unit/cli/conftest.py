"""Fixtures for CLI tests: isolated working directory and config."""

from __future__ import annotations

import pytest

from mindstack.db.connection import Database
from mindstack.db.schema import initialize


@pytest.fixture(autouse=True)
def isolated_cli(tmp_path, monkeypatch):
    """Run every CLI test in tmp_path with no global config or env overrides."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("mindstack.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    for name in (
        "MINDSTACK_GENERATION_MODEL",
        "MINDSTACK_EMBEDDING_MODEL",
        "MINDSTACK_ENRICHMENT_MODEL",
        "MINDSTACK_DB",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def db_path(tmp_path):
    """An initialized, closed database file."""
    path = tmp_path / "kb.db"
    conn = Database(path).connect()
    initialize(conn)
    conn.close()
    return path

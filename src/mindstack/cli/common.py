"""Helpers shared by CLI commands: config loading and database access."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import typer
from rich.console import Console

from mindstack.cli.errors import err_config, err_no_db
from mindstack.config import ConfigError, MindstackConfig, load_config
from mindstack.db.connection import Database
from mindstack.db.schema import initialize

console = Console()


def load_cli_config(db: Path | None = None) -> MindstackConfig:
    """Load config and apply the ``--db`` flag (highest priority layer)."""
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)
    if db is not None:
        cfg.storage.db_path = str(db)
    return cfg


def open_db(db_path: Path | str) -> sqlite3.Connection:
    """Open an existing database (exit 1 with guidance if it is missing)."""
    path = Path(db_path)
    if not path.exists():
        console.print(err_no_db(str(path)))
        raise typer.Exit(1)
    conn = Database(path).connect()
    initialize(conn)
    return conn

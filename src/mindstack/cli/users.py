"""mindstack user / project — manage identities and projects.

Tokens are printed once at creation; only their SHA-256 hash is stored.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from mindstack.auth import Authenticator
from mindstack.cli.common import load_cli_config, open_db
from mindstack.cli.errors import err_user_not_found
from mindstack.db.repository import Repository

console = Console()

user_app = typer.Typer(help="Manage users.", add_completion=False)
project_app = typer.Typer(help="Manage projects.", add_completion=False)

_DbOption = Annotated[
    Path | None,
    typer.Option("--db", help="Path to .mindstack.db (defaults to config)."),
]


@user_app.command("add")
def user_add_cmd(
    name: Annotated[str, typer.Argument(help="Display name for the user.")],
    db: _DbOption = None,
) -> None:
    """Create a user and print their bearer token (shown once)."""
    cfg = load_cli_config(db)
    conn = open_db(cfg.storage.db_path)
    try:
        user_id, token = Authenticator(conn).register_user(name)
    finally:
        conn.close()
    console.print(f"[green]✓[/] User '{name}' created.")
    console.print(f"  id:    {user_id}")
    console.print(f"  token: [bold]{token}[/]")
    console.print("[dim]  Store the token now — it cannot be shown again.[/]")


@project_app.command("add")
def project_add_cmd(
    name: Annotated[str, typer.Argument(help="Project name.")],
    user: Annotated[str, typer.Option("--user", help="Owning user id.")],
    description: Annotated[
        str | None, typer.Option("--description", help="Optional description.")
    ] = None,
    db: _DbOption = None,
) -> None:
    """Create a project owned by --user."""
    cfg = load_cli_config(db)
    conn = open_db(cfg.storage.db_path)
    try:
        repo = Repository(conn)
        if user not in {u.id for u in repo.list_users()}:
            console.print(err_user_not_found(user))
            raise typer.Exit(1)
        project = repo.add_project(name, description, user_id=user)
    finally:
        conn.close()
    console.print(f"[green]✓[/] Project '{name}' created.")
    console.print(f"  id: {project.id}")

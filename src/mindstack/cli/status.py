"""mindstack status — database and knowledge-base overview."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from mindstack.cli.common import load_cli_config
from mindstack.config import MindstackConfig
from mindstack.db.connection import Database
from mindstack.db.repository import Repository
from mindstack.db.schema import initialize

console = Console()


def status_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to .mindstack.db (defaults to config)."),
    ] = None,
) -> None:
    """Show database, models and knowledge-base counts."""
    cfg = load_cli_config(db)
    db_path = Path(cfg.storage.db_path)

    _show_config_panel(db_path, cfg)

    if not db_path.exists():
        console.print(
            Panel(
                "[yellow]No database found.[/]\n"
                "  Run:  mindstack init",
                title="[bold]Knowledge Base[/]",
                expand=False,
            )
        )
        return

    conn = Database(db_path).connect()
    try:
        initialize(conn)
        _show_knowledge_panel(Repository(conn))
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Panel renderers
# ---------------------------------------------------------------------------


def _show_config_panel(db_path: Path, cfg: MindstackConfig) -> None:
    db_info = f"{db_path}"
    if db_path.exists():
        size_mb = db_path.stat().st_size / (1024 * 1024)
        db_info = f"{db_path} ({size_mb:.1f} MB)"

    lines = [
        f"Database:    {db_info}",
        f"Embedding:   {cfg.embedding.model} ({cfg.embedding.dimensions} dims)",
        f"Enrichment:  {cfg.enrichment.model}",
        f"Generation:  {cfg.generation.model}",
    ]
    console.print(Panel("\n".join(lines), title="[bold]MindStack[/]", expand=False))


def _show_knowledge_panel(repo: Repository) -> None:
    users = repo.list_users()
    projects = repo.list_projects()
    lines = [
        f"Users: [bold]{len(users)}[/]  |  "
        f"Projects: [bold]{len(projects)}[/]  |  "
        f"Captures: [bold]{repo.count_captures():,}[/]  |  "
        f"Chunks: [bold]{repo.count_chunks():,}[/]"
    ]
    if not projects:
        lines.append("[dim]No projects yet.[/]")
        console.print(Panel("\n".join(lines), title="[bold]Knowledge Base[/]", expand=False))
        return

    table = Table(show_header=True, box=None, padding=(0, 1))
    table.add_column("Project", style="bold")
    table.add_column("Id", style="dim")
    table.add_column("Chunks", justify="right")
    for project in projects:
        table.add_row(project.name, project.id, f"{repo.count_chunks(project.id):,}")

    console.print(Panel("\n".join(lines), title="[bold]Knowledge Base[/]", expand=False))
    console.print(table)

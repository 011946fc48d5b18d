"""mindstack init — create a MindStack workspace.

Creates:
  .mindstack.db              — empty database with schema
  mindstack.yaml             — per-project config template
  .mindstack/blobs/          — local attachment store
  ~/.mindstack/config.yaml   — global model config (created once, mode 0o600)
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from mindstack.config import ensure_global_config
from mindstack.db.connection import Database
from mindstack.db.schema import initialize

console = Console()

_DEFAULT_PROJECT_DIR = Path(".")

_PROJECT_YAML = """\
# MindStack project configuration. Values shown are the defaults.
# API keys never belong here — use environment variables.

# embedding:
#   model: openai/text-embedding-3-small
#   dimensions: 1024
#   concurrency: 4

# enrichment:
#   model: openai/gpt-4o-mini

# generation:
#   model: openai/gpt-4o
#   history_turns: 10

# chunking:
#   max_words: 500

# retrieval:
#   top_k: 5
#   max_context_blocks: 15
#   max_media_payloads: 10

storage:
  db_path: .mindstack.db
  blob_dir: .mindstack/blobs

server:
  host: 127.0.0.1
  port: 8000
"""


def init_cmd(
    project_dir: Annotated[
        Path,
        typer.Argument(help="Directory to initialize. Defaults to current directory."),
    ] = _DEFAULT_PROJECT_DIR,
    global_config: Annotated[
        Path | None,
        typer.Option("--global-config", hidden=True, help="Override global config path (for testing)."),
    ] = None,
) -> None:
    """Initialize a MindStack workspace (database, config, blob store)."""
    project_dir = project_dir.resolve()
    project_dir.mkdir(parents=True, exist_ok=True)

    db_path = project_dir / ".mindstack.db"
    if db_path.exists():
        console.print(f"[yellow]⚠[/]  {db_path} already exists — schema brought up to date.")

    conn = Database(db_path).connect()
    try:
        initialize(conn)
    finally:
        conn.close()
    console.print("  [green]✓[/] .mindstack.db")

    yaml_path = project_dir / "mindstack.yaml"
    if not yaml_path.exists():
        yaml_path.write_text(_PROJECT_YAML, encoding="utf-8")
        console.print("  [green]✓[/] mindstack.yaml")

    (project_dir / ".mindstack" / "blobs").mkdir(parents=True, exist_ok=True)
    console.print("  [green]✓[/] .mindstack/blobs/")

    cfg_path = ensure_global_config(global_config)
    console.print(f"  [green]✓[/] {cfg_path} (global config)")

    console.print("\n[bold green]✓ MindStack initialized.[/]")
    console.print("\nNext steps:")
    console.print("  1. mindstack user add <name>                 (prints a bearer token)")
    console.print("  2. mindstack project add <name> --user <id>  (create a project)")
    console.print("  3. mindstack serve                           (start the API)")

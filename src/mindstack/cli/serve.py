"""mindstack serve — run the HTTP API with uvicorn."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
import uvicorn
from rich.console import Console

from mindstack.api.app import create_app
from mindstack.cli.common import load_cli_config, open_db
from mindstack.cli.errors import err_no_api_key
from mindstack.rag.llm_client import validate_api_key

console = Console()


def serve_cmd(
    host: Annotated[str | None, typer.Option("--host", help="Bind address.")] = None,
    port: Annotated[int | None, typer.Option("--port", help="Bind port.")] = None,
    db: Annotated[
        Path | None, typer.Option("--db", help="Path to .mindstack.db (defaults to config).")
    ] = None,
) -> None:
    """Serve the capture, session and chat API."""
    cfg = load_cli_config(db)
    for model in (cfg.embedding.model, cfg.enrichment.model, cfg.generation.model):
        try:
            validate_api_key(model)
        except EnvironmentError:
            console.print(err_no_api_key(model.split("/")[0]))
            raise typer.Exit(1)

    conn = open_db(cfg.storage.db_path)
    app = create_app(cfg, conn=conn)
    bind_host = host or cfg.server.host
    bind_port = port or cfg.server.port
    console.print(f"[bold]MindStack[/] listening on http://{bind_host}:{bind_port}")
    try:
        uvicorn.run(app, host=bind_host, port=bind_port, log_config=None)
    finally:
        conn.close()

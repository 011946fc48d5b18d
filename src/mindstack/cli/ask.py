"""mindstack ask — retrieval + streaming answer from the terminal.

Runs the same coordinator as ``POST /api/chat`` against the local database
with the privileged repository, printing deltas as they arrive.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from mindstack.cli.common import load_cli_config, open_db
from mindstack.cli.errors import err_answer_failed, err_project_not_found
from mindstack.config import MindstackConfig
from mindstack.db.repository import Repository
from mindstack.rag.answer import AnswerCoordinator, DeltaEvent, ErrorEvent, SourcesEvent
from mindstack.rag.llm_client import LLMClient
from mindstack.storage.objects import LocalObjectStore

console = Console()


def ask_cmd(
    project_id: Annotated[str, typer.Argument(help="Project to search.")],
    query: Annotated[str, typer.Argument(help="Question to answer.")],
    db: Annotated[
        Path | None, typer.Option("--db", help="Path to .mindstack.db (defaults to config).")
    ] = None,
) -> None:
    """Answer QUERY from PROJECT_ID's captures."""
    cfg = load_cli_config(db)
    conn = open_db(cfg.storage.db_path)
    try:
        repo = Repository(conn)
        if repo.get_project(project_id) is None:
            console.print(err_project_not_found(project_id))
            raise typer.Exit(1)
        error = asyncio.run(_run(cfg, repo, project_id, query))
    finally:
        conn.close()

    if error:
        console.print(err_answer_failed(error))
        raise typer.Exit(1)


async def _run(cfg: MindstackConfig, repo: Repository, project_id: str, query: str) -> str | None:
    coordinator = AnswerCoordinator(
        LLMClient(cfg), repo, LocalObjectStore(Path(cfg.storage.blob_dir)), cfg
    )
    sources: list[str] = []
    async for event in coordinator.answer(project_id, query):
        if isinstance(event, SourcesEvent):
            sources = event.sources
        elif isinstance(event, DeltaEvent):
            console.print(event.text, end="", markup=False, highlight=False)
        elif isinstance(event, ErrorEvent):
            console.print()
            return event.reason
    console.print()
    if sources:
        console.print(f"\n[bold]Sources[/] ({len(sources)})")
        for url in sources:
            console.print(f"  [dim]{url}[/]")
    return None

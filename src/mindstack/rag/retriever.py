"""Dense retrieval: embed the query, then top-k similarity over a project.

The similarity procedure itself lives in the store
(``Repository.match_chunks``); its result order is passed through as-is.
"""

from __future__ import annotations

import sqlite3

from mindstack.db.models import ChunkMatch
from mindstack.db.repository import Repository
from mindstack.errors import PersistenceError
from mindstack.rag.llm_client import LLMClient


async def embed_query(llm: LLMClient, query: str) -> list[float]:
    """Embed *query* with the same model used at ingest time."""
    return await llm.embed(query)


def search(
    repo: Repository, query_embedding: list[float], project_id: str, top_k: int = 5
) -> list[ChunkMatch]:
    """Return up to *top_k* matches within *project_id*, best first.

    Raises:
        PersistenceError: The similarity call failed.
    """
    try:
        return repo.match_chunks(query_embedding, project_id, top_k)
    except sqlite3.Error as exc:
        raise PersistenceError(f"Vector search failed: {exc}") from exc

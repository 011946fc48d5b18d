"""Embedding stage: one embedding call per chunk, isolated per chunk.

Chunks are fanned out concurrently (bounded by ``embedding.concurrency``).
Each unit either yields a Chunk or is omitted after logging; one failing
chunk never aborts its siblings. Survivors keep the ordinal they were
assigned before embedding, so a failure leaves a gap, not a renumbering.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from mindstack.db.models import Chunk, ChunkOrigin
from mindstack.errors import UpstreamError
from mindstack.rag.llm_client import LLMClient

logger = logging.getLogger(__name__)


@dataclass
class PendingChunk:
    """Chunk text awaiting its embedding."""

    text: str
    origin: ChunkOrigin = ChunkOrigin.TEXT


class EmbeddingStage:
    """Embed chunk texts into Chunk records.

    Args:
        llm:         Model client used for ``embed``.
        concurrency: Maximum embedding calls in flight for one capture.
    """

    def __init__(self, llm: LLMClient, concurrency: int = 4) -> None:
        self._llm = llm
        self._concurrency = max(1, concurrency)

    async def embed(
        self,
        capture_id: str,
        pending: list[PendingChunk],
        *,
        project_id: str | None = None,
    ) -> list[Chunk]:
        """Return the chunks that embedded successfully, in ordinal order."""
        if not pending:
            return []
        semaphore = asyncio.Semaphore(self._concurrency)

        async def _one(index: int, item: PendingChunk) -> Chunk | None:
            async with semaphore:
                try:
                    vector = await self._llm.embed(item.text)
                except UpstreamError as exc:
                    logger.error(
                        "Embedding failed for chunk %d of %s: %s", index, capture_id, exc
                    )
                    return None
            return Chunk(
                capture_id=capture_id,
                project_id=project_id,
                chunk_index=index,
                chunk_text=item.text,
                embedding=vector,
                origin=item.origin,
            )

        results = await asyncio.gather(
            *(_one(i, item) for i, item in enumerate(pending))
        )
        return [chunk for chunk in results if chunk is not None]

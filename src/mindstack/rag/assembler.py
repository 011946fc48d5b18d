"""Retrieval context builder.

Pipeline:
  1. Top-k similarity search scoped to the project (order passed through).
  2. Distinct parent capture ids, first-seen order.
  3. Fetch parents with session active file and attachments (oldest first).
  4. Cap the parents at the block limit (silent truncation).
  5. Resolve IMAGE/PDF attachments of the kept parents into inline media,
     concurrently, up to the media cap.
  6. Render one block per kept parent with its matched fragments.

Sources list the attachments of every parent, including truncated ones.

Zero parent captures means the empty-state condition: the caller answers
with the fixed empty-state message instead of calling generation.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field

from mindstack.config import RetrievalCfg
from mindstack.db.models import CaptureContext, ChunkMatch
from mindstack.db.repository import Repository
from mindstack.errors import PersistenceError
from mindstack.rag.media import MediaPayload, resolve_media
from mindstack.rag.prompts import CONTEXT_SEPARATOR
from mindstack.rag.retriever import search
from mindstack.storage.objects import ObjectStore

logger = logging.getLogger(__name__)


@dataclass
class RetrievedContext:
    source_references: list[str] = field(default_factory=list)
    prompt_context_text: str = ""
    media_payloads: list[MediaPayload] = field(default_factory=list)
    empty: bool = True


def render_capture_block(index: int, ctx: CaptureContext, matches: list[ChunkMatch]) -> str:
    """Render one parent capture and its matched fragments as prompt text."""
    capture = ctx.capture
    lines = [f"[DOCUMENT {index}]", f"Source Type: {capture.capture_type.value}"]
    if capture.page_title:
        lines.append(f"Title: {capture.page_title}")
    if capture.source_url:
        lines.append(f"Source URL: {capture.source_url}")
    if capture.ai_markdown_summary:
        lines.append(f"[Summary]\n{capture.ai_markdown_summary}")
    if capture.ide_code_diff:
        lines.append(f"[Code Diff]\n```diff\n{capture.ide_code_diff}\n```")
    if ctx.active_file_context:
        lines.append(f"[Active File]\n{ctx.active_file_context}")
    if capture.attachments:
        listing = "\n".join(
            f"- [{a.file_type.value}] {a.file_name} (URL: {a.url})" for a in capture.attachments
        )
        lines.append(f"[Attachments]\n{listing}")
    related = [m for m in matches if m.capture_id == capture.id]
    if related:
        lines.append("Content:")
        lines.extend(f"--- Fragment ---\n{m.chunk_text}" for m in related)
    return "\n".join(lines)


class ContextBuilder:
    """Build the bounded multimodal prompt context for one query.

    Args:
        repo:      Caller-scoped repository.
        objects:   Object store for attachment media.
        retrieval: Limits (top_k, block cap, media cap).
    """

    def __init__(
        self,
        repo: Repository,
        objects: ObjectStore,
        retrieval: RetrievalCfg | None = None,
    ) -> None:
        self._repo = repo
        self._objects = objects
        self._cfg = retrieval or RetrievalCfg()

    async def build(
        self, project_id: str, query_embedding: list[float], k: int | None = None
    ) -> RetrievedContext:
        """Return the rendered context for *project_id*.

        Raises:
            PersistenceError: The similarity call or the parent fetch failed.
        """
        matches = search(self._repo, query_embedding, project_id, k or self._cfg.top_k)
        capture_ids = list(dict.fromkeys(m.capture_id for m in matches))
        contexts = self._fetch_parents(capture_ids)
        if not contexts:
            return RetrievedContext()

        attachments = [a for ctx in contexts for a in ctx.capture.attachments]
        kept = contexts[: self._cfg.max_context_blocks]
        if len(kept) < len(contexts):
            logger.debug("Truncating context from %d to %d blocks", len(contexts), len(kept))
        media = await resolve_media(
            self._objects,
            [a for ctx in kept for a in ctx.capture.attachments],
            limit=self._cfg.max_media_payloads,
        )
        blocks = [render_capture_block(i + 1, ctx, matches) for i, ctx in enumerate(kept)]
        return RetrievedContext(
            source_references=[a.url for a in attachments],
            prompt_context_text=CONTEXT_SEPARATOR.join(blocks),
            media_payloads=media,
            empty=False,
        )

    def _fetch_parents(self, capture_ids: list[str]) -> list[CaptureContext]:
        try:
            return self._repo.get_capture_contexts(capture_ids)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Capture fetch failed: {exc}") from exc

"""Ingestion orchestrator: normalize → enrich → chunk → embed → persist.

One run handles one capture and never rolls the capture back. Each stage
is best-effort:

- empty normalized text halts the run (normal terminal state)
- a failed enrichment is logged; raw text is chunked instead
- a failed chunk embedding drops that chunk only
- zero surviving chunks persists nothing
- a failed batch insert is logged, not retried
- batches append after the capture's stored chunks; the starting
  ordinal is assigned at insert time

Runs use the privileged repository: they execute after the request that
created the capture has returned.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from dataclasses import dataclass, field, replace
from enum import Enum

from mindstack.db.models import Capture, ChunkOrigin
from mindstack.db.repository import Repository
from mindstack.errors import MindstackError, PersistenceError
from mindstack.ingest.chunker import ChunkOptions, chunk_text
from mindstack.ingest.embedding_writer import EmbeddingStage, PendingChunk
from mindstack.ingest.normalizer import CaptureNormalizer, ide_sections
from mindstack.ingest.summarizer import Enricher

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    CREATED = "created"
    NORMALIZED = "normalized"
    ENRICHED = "enriched"
    ENRICHMENT_FAILED = "enrichment_failed"
    CHUNKED = "chunked"
    EMBEDDED = "embedded"
    PERSISTED = "persisted"


@dataclass
class PipelineResult:
    """What one run reached. ``stages`` lists the states passed, in order."""

    capture_id: str
    stages: list[Stage] = field(default_factory=lambda: [Stage.CREATED])
    chunks_total: int = 0
    chunks_persisted: int = 0

    @property
    def final_stage(self) -> Stage:
        return self.stages[-1]

    def advance(self, stage: Stage) -> None:
        self.stages.append(stage)


class IngestionPipeline:
    """Sequence the ingestion stages for browser, IDE and document captures.

    Args:
        repo:       Privileged repository.
        normalizer: Source-specific text assembly.
        enricher:   Summary / explanation generation.
        embedder:   Per-chunk embedding stage.
        chunking:   Chunker options (word cap, ignore threshold).
    """

    def __init__(
        self,
        repo: Repository,
        normalizer: CaptureNormalizer,
        enricher: Enricher,
        embedder: EmbeddingStage,
        chunking: ChunkOptions | None = None,
    ) -> None:
        self._repo = repo
        self._normalizer = normalizer
        self._enricher = enricher
        self._embedder = embedder
        self._chunking = chunking or ChunkOptions()

    # ------------------------------------------------------------------
    # Browser captures
    # ------------------------------------------------------------------

    async def run_browser(self, capture_id: str) -> PipelineResult:
        result = PipelineResult(capture_id)
        capture = self._load(capture_id)
        if capture is None:
            return result

        text = await self._normalizer.normalize_browser(capture)
        if not text.strip():
            logger.info("No text content for capture %s, skipping embed", capture_id)
            return result
        result.advance(Stage.NORMALIZED)

        if text != (capture.text_content or ""):
            self._save_text(capture_id, text)

        summary = await self._enrich(result, self._enricher.summarize(text, capture_id=capture_id))
        origin = ChunkOrigin.SUMMARY if summary else ChunkOrigin.TEXT
        pieces = chunk_text(summary or text, self._chunking)
        pending = [PendingChunk(piece, origin) for piece in pieces]
        return await self._embed_and_persist(result, capture, pending)

    # ------------------------------------------------------------------
    # IDE captures
    # ------------------------------------------------------------------

    async def run_ide(self, capture_id: str, repo_tree: str | None = None) -> PipelineResult:
        """Chunk both the raw IDE material and its explanation.

        Raw chunks come first as ``[RAW]`` (with the capture's file path as
        the auto-generated-file hint), then ``[EXPLANATION]`` chunks.
        """
        result = PipelineResult(capture_id)
        capture = self._load(capture_id)
        if capture is None:
            return result

        raw = ide_sections(capture.ide_error_log, capture.ide_code_diff, repo_tree)
        if not raw.strip():
            logger.info("No content to process for capture %s", capture_id)
            return result
        result.advance(Stage.NORMALIZED)

        explanation = await self._enrich(
            result, self._enricher.explain_ide(raw, capture_id=capture_id)
        )

        raw_options = replace(self._chunking, file_name=capture.ide_file_path or None)
        pending = [
            PendingChunk(f"[RAW]\n{piece}", ChunkOrigin.RAW)
            for piece in chunk_text(raw, raw_options)
        ]
        if explanation:
            pending += [
                PendingChunk(f"[EXPLANATION]\n{piece}", ChunkOrigin.EXPLANATION)
                for piece in chunk_text(explanation, self._chunking)
            ]
        return await self._embed_and_persist(result, capture, pending)

    # ------------------------------------------------------------------
    # Uploaded documents
    # ------------------------------------------------------------------

    async def run_document(self, capture_id: str, project_id: str, url: str) -> PipelineResult:
        """Fetch a stored PDF, extract its text, and append its chunks to the capture."""
        result = PipelineResult(capture_id)
        try:
            text = await self._normalizer.normalize_document(url)
        except MindstackError as exc:
            logger.error("Document fetch/parse failed for capture %s (%s): %s", capture_id, url, exc)
            return result
        if not text.strip():
            logger.info("No extractable text in document for capture %s", capture_id)
            return result
        result.advance(Stage.NORMALIZED)

        pending = [
            PendingChunk(piece, ChunkOrigin.DOCUMENT) for piece in chunk_text(text, self._chunking)
        ]
        return await self._embed_and_persist(result, None, pending, project_id=project_id)

    # ------------------------------------------------------------------
    # Shared stages
    # ------------------------------------------------------------------

    def _load(self, capture_id: str) -> Capture | None:
        capture = self._repo.get_capture(capture_id)
        if capture is None:
            logger.warning("Capture %s vanished before ingestion ran", capture_id)
        return capture

    def _save_text(self, capture_id: str, text: str) -> None:
        try:
            self._repo.update_capture_text(capture_id, text)
        except MindstackError as exc:
            logger.warning("text_content update failed for %s: %s", capture_id, exc)

    async def _enrich(self, result: PipelineResult, call: Awaitable[str]) -> str:
        artifact = await call
        if not artifact:
            result.advance(Stage.ENRICHMENT_FAILED)
            return ""
        try:
            self._repo.update_capture_summary(result.capture_id, artifact)
        except MindstackError as exc:
            logger.warning("Summary update failed for %s: %s", result.capture_id, exc)
        result.advance(Stage.ENRICHED)
        return artifact

    async def _embed_and_persist(
        self,
        result: PipelineResult,
        capture: Capture | None,
        pending: list[PendingChunk],
        *,
        project_id: str | None = None,
    ) -> PipelineResult:
        result.chunks_total = len(pending)
        if not pending:
            return result
        result.advance(Stage.CHUNKED)

        chunks = await self._embedder.embed(
            result.capture_id,
            pending,
            project_id=project_id or (capture.project_id if capture else None),
        )
        if not chunks:
            logger.warning("No chunks survived embedding for capture %s", result.capture_id)
            return result
        result.advance(Stage.EMBEDDED)

        try:
            result.chunks_persisted = self._repo.add_chunks(chunks, append=True)
        except PersistenceError as exc:
            logger.error("Chunk insert failed for %s: %s", result.capture_id, exc)
            return result
        result.advance(Stage.PERSISTED)
        logger.info(
            "Saved %d/%d chunks for capture %s",
            result.chunks_persisted,
            result.chunks_total,
            result.capture_id,
        )
        return result

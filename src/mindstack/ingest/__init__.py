"""MindStack ingest pipeline: chunker, normalizer, enrichment, embedding stage, orchestrator."""

from mindstack.ingest.chunker import ChunkOptions, chunk_text
from mindstack.ingest.embedding_writer import EmbeddingStage, PendingChunk
from mindstack.ingest.normalizer import CaptureNormalizer
from mindstack.ingest.pipeline import IngestionPipeline, PipelineResult, Stage
from mindstack.ingest.summarizer import Enricher
from mindstack.ingest.tasks import TaskRunner

__all__ = [
    "CaptureNormalizer",
    "ChunkOptions",
    "EmbeddingStage",
    "Enricher",
    "IngestionPipeline",
    "PendingChunk",
    "PipelineResult",
    "Stage",
    "TaskRunner",
    "chunk_text",
]

"""FastAPI application factory.

Collaborators default to the real ones built from the config; tests pass
fakes (model client, object store, transcript fetcher, task runner).
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from mindstack.api.deps import Services
from mindstack.api.routes import router
from mindstack.auth import Authenticator
from mindstack.config import MindstackConfig
from mindstack.db.connection import Database
from mindstack.db.repository import Repository
from mindstack.db.schema import initialize
from mindstack.errors import MindstackError
from mindstack.ingest.chunker import ChunkOptions
from mindstack.ingest.embedding_writer import EmbeddingStage
from mindstack.ingest.normalizer import CaptureNormalizer
from mindstack.ingest.pipeline import IngestionPipeline
from mindstack.ingest.summarizer import Enricher
from mindstack.ingest.tasks import TaskRunner
from mindstack.ingest.transcripts import TranscriptFetcher, YouTubeTranscriptFetcher
from mindstack.rag.llm_client import LLMClient
from mindstack.sessions import SessionService
from mindstack.storage.objects import LocalObjectStore, ObjectStore

logger = logging.getLogger(__name__)


def build_services(
    config: MindstackConfig,
    conn: sqlite3.Connection,
    *,
    llm: LLMClient | None = None,
    objects: ObjectStore | None = None,
    transcripts: TranscriptFetcher | None = None,
    tasks: TaskRunner | None = None,
) -> Services:
    """Wire every collaborator for one database connection."""
    llm = llm or LLMClient(config)
    objects = objects or LocalObjectStore(Path(config.storage.blob_dir))
    transcripts = transcripts or YouTubeTranscriptFetcher()
    privileged = Repository(conn)
    enricher = Enricher(llm, max_input_chars=config.enrichment.max_input_chars)
    pipeline = IngestionPipeline(
        repo=privileged,
        normalizer=CaptureNormalizer(transcripts=transcripts, objects=objects),
        enricher=enricher,
        embedder=EmbeddingStage(llm, concurrency=config.embedding.concurrency),
        chunking=ChunkOptions(
            max_words=config.chunking.max_words,
            ignore_size_threshold=config.chunking.ignore_size_threshold,
        ),
    )
    return Services(
        config=config,
        conn=conn,
        authenticator=Authenticator(conn),
        llm=llm,
        objects=objects,
        pipeline=pipeline,
        sessions=SessionService(privileged, enricher),
        tasks=tasks or TaskRunner(config.tasks.max_concurrent),
    )


def create_app(
    config: MindstackConfig,
    *,
    conn: sqlite3.Connection | None = None,
    llm: LLMClient | None = None,
    objects: ObjectStore | None = None,
    transcripts: TranscriptFetcher | None = None,
    tasks: TaskRunner | None = None,
) -> FastAPI:
    """Build the MindStack API.

    When *conn* is None the database at ``storage.db_path`` is opened (and
    migrated) here and closed on shutdown.
    """
    owns_conn = conn is None
    if conn is None:
        conn = Database(config.storage.db_path).connect()
        initialize(conn)

    services = build_services(
        config, conn, llm=llm, objects=objects, transcripts=transcripts, tasks=tasks
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await services.tasks.drain()
        if owns_conn:
            conn.close()

    app = FastAPI(title="MindStack", lifespan=lifespan)
    app.state.services = services
    app.include_router(router)
    _register_error_handlers(app)
    return app


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(MindstackError)
    async def _mindstack_error(request: Request, exc: MindstackError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse({"error": _describe(exc)}, status_code=400)

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("%s %s raised", request.method, request.url.path)
        return JSONResponse({"error": "Internal server error"}, status_code=500)


def _describe(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"`{loc}`: {err.get('msg', 'invalid')}" if loc else err.get("msg", "invalid"))
    return "; ".join(parts) or "Invalid request"

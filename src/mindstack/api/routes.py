"""HTTP routes.

Ingest and session-end routes answer as soon as the synchronous write is
done; the pipeline or debrief runs afterwards on the TaskRunner.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import aclosing
from pathlib import PurePath

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse

from mindstack.api.deps import Services, get_repo, get_services
from mindstack.api.schemas import (
    BrowserCaptureIn,
    ChatIn,
    HeartbeatIn,
    IdeCaptureIn,
    ProcessDocumentIn,
    ProjectIn,
    SessionEndIn,
    SessionStartIn,
    capture_out,
    project_out,
)
from mindstack.db.models import BROWSER_CAPTURE_TYPES, IDE_CAPTURE_TYPES, Capture
from mindstack.db.repository import Repository
from mindstack.errors import MindstackError, NotFoundError, ValidationError
from mindstack.ingest.normalizer import ide_preview
from mindstack.rag.answer import AnswerCoordinator, to_sse
from mindstack.storage.objects import infer_mime_type

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


# ------------------------------------------------------------------
# Ingest
# ------------------------------------------------------------------


@router.post("/ingest/browser")
async def ingest_browser(
    body: BrowserCaptureIn,
    repo: Repository = Depends(get_repo),
    services: Services = Depends(get_services),
) -> dict:
    if body.capture_type not in BROWSER_CAPTURE_TYPES:
        raise ValidationError(f"Invalid capture_type: {body.capture_type.value}")

    capture = repo.add_capture(
        Capture(
            id="",
            session_id=body.session_id,
            project_id=body.project_id,
            capture_type=body.capture_type,
            text_content=body.text_content,
            source_url=body.source_url,
            page_title=body.page_title,
            video_start_time=body.video_start_time,
            video_end_time=body.video_end_time,
            priority=body.priority,
        )
    )
    if body.attachments:
        try:
            repo.add_attachments(capture.id, [a.to_model() for a in body.attachments])
        except MindstackError as exc:
            logger.error("Attachment insert failed for capture %s: %s", capture.id, exc)

    services.tasks.submit(
        services.pipeline.run_browser(capture.id), name=f"ingest-browser-{capture.id}"
    )
    return {"capture_id": capture.id}


@router.post("/ingest/ide")
async def ingest_ide(
    body: IdeCaptureIn,
    repo: Repository = Depends(get_repo),
    services: Services = Depends(get_services),
) -> dict:
    if body.capture_type not in IDE_CAPTURE_TYPES:
        raise ValidationError(f"Invalid capture_type: {body.capture_type.value}")

    capture = repo.add_capture(
        Capture(
            id="",
            session_id=body.session_id,
            project_id=body.project_id,
            capture_type=body.capture_type,
            text_content=ide_preview(body.ide_error_log, body.ide_code_diff),
            ide_error_log=body.ide_error_log,
            ide_code_diff=body.ide_code_diff,
            ide_file_path=body.ide_file_path,
            priority=body.priority,
        )
    )
    services.tasks.submit(
        services.pipeline.run_ide(capture.id, body.repo_tree), name=f"ingest-ide-{capture.id}"
    )
    return {"capture_id": capture.id}


@router.post("/ingest/process-document")
async def process_document(
    body: ProcessDocumentIn,
    repo: Repository = Depends(get_repo),
    services: Services = Depends(get_services),
) -> dict:
    capture = repo.get_capture(body.capture_id)
    if capture is None or capture.project_id != body.project_id:
        raise NotFoundError(f"Capture '{body.capture_id}' not found")

    services.tasks.submit(
        services.pipeline.run_document(capture.id, body.project_id, body.url),
        name=f"ingest-document-{capture.id}",
    )
    return {"success": True, "capture_id": capture.id}


# ------------------------------------------------------------------
# Chat
# ------------------------------------------------------------------


@router.post("/chat")
async def chat(
    body: ChatIn,
    repo: Repository = Depends(get_repo),
    services: Services = Depends(get_services),
) -> StreamingResponse:
    if repo.get_project(body.project_id) is None:
        raise NotFoundError(f"Project '{body.project_id}' not found")

    coordinator = AnswerCoordinator(services.llm, repo, services.objects, services.config)
    history = [m.model_dump() for m in body.messages]

    async def _frames():
        async with aclosing(
            coordinator.answer(body.project_id, body.current_query, history)
        ) as events:
            async for event in events:
                yield to_sse(event)

    return StreamingResponse(_frames(), media_type="text/event-stream", headers=_SSE_HEADERS)


# ------------------------------------------------------------------
# Sessions
# ------------------------------------------------------------------


@router.post("/sessions/start", status_code=201)
async def start_session(
    body: SessionStartIn,
    repo: Repository = Depends(get_repo),
    services: Services = Depends(get_services),
) -> dict:
    session = services.sessions.start(repo, body.project_id)
    return {"session_id": session.id}


@router.post("/sessions/heartbeat")
async def heartbeat(
    body: HeartbeatIn,
    repo: Repository = Depends(get_repo),
    services: Services = Depends(get_services),
) -> dict:
    services.sessions.heartbeat(repo, body.session_id, body.active_file_context)
    return {"success": True}


@router.post("/sessions/end")
async def end_session(
    body: SessionEndIn,
    repo: Repository = Depends(get_repo),
    services: Services = Depends(get_services),
) -> dict:
    services.sessions.end(repo, body.session_id)
    services.tasks.submit(
        services.sessions.write_debrief(body.session_id), name=f"debrief-{body.session_id}"
    )
    return {"success": True}


# ------------------------------------------------------------------
# Projects and captures
# ------------------------------------------------------------------


@router.get("/projects")
async def list_projects(repo: Repository = Depends(get_repo)) -> dict:
    return {"projects": [project_out(p) for p in repo.list_projects()]}


@router.post("/projects")
async def create_project(body: ProjectIn, repo: Repository = Depends(get_repo)) -> JSONResponse:
    name = body.name.strip()
    if not name:
        raise ValidationError("`name` is required")
    description = body.description.strip() if body.description else None
    project = repo.add_project(name, description)
    return JSONResponse({"project_id": project.id}, status_code=201)


@router.get("/projects/{project_id}/captures")
async def list_captures(project_id: str, repo: Repository = Depends(get_repo)) -> dict:
    return {"captures": [capture_out(c) for c in repo.list_captures(project_id)]}


@router.delete("/captures/{capture_id}")
async def delete_capture(
    capture_id: str,
    repo: Repository = Depends(get_repo),
    services: Services = Depends(get_services),
) -> dict:
    capture = repo.get_capture(capture_id)
    if capture is None:
        raise NotFoundError(f"Capture '{capture_id}' not found")

    urls = [a.url for a in capture.attachments]
    results = await asyncio.gather(
        *(services.objects.delete(url) for url in urls), return_exceptions=True
    )
    for url, outcome in zip(urls, results):
        if isinstance(outcome, Exception):
            logger.warning("Blob cleanup failed for %s: %s", url, outcome)

    repo.delete_capture(capture_id)
    return {"success": True}


# ------------------------------------------------------------------
# Vault
# ------------------------------------------------------------------


@router.post("/vault/upload")
async def vault_upload(
    request: Request,
    file_name: str = Query(min_length=1),
    file_type: str | None = Query(default=None),
    repo: Repository = Depends(get_repo),
    services: Services = Depends(get_services),
) -> dict:
    safe_name = PurePath(file_name).name
    if not safe_name or safe_name in (".", ".."):
        raise ValidationError(f"Invalid file_name: {file_name}")
    data = await request.body()
    if not data:
        raise ValidationError("Upload body is empty")

    key = f"uploads/{int(time.time() * 1000)}-{safe_name}"
    url = await services.objects.put(key, data, file_type or infer_mime_type(safe_name))
    logger.info("Stored upload %s (%d bytes) for user %s", url, len(data), repo.user_id)
    return {"url": url}

"""Request and response bodies for the HTTP surface."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from mindstack.db.models import Attachment, AttachmentKind, Capture, CaptureType, Project


class AttachmentIn(BaseModel):
    url: str = Field(min_length=1)
    file_type: AttachmentKind
    file_name: str = Field(min_length=1)

    def to_model(self) -> Attachment:
        return Attachment(url=self.url, file_type=self.file_type, file_name=self.file_name)


class BrowserCaptureIn(BaseModel):
    session_id: str = Field(min_length=1)
    project_id: str = Field(min_length=1)
    capture_type: CaptureType
    text_content: str | None = None
    source_url: str | None = None
    page_title: str | None = None
    video_start_time: float | None = None
    video_end_time: float | None = None
    priority: int = 0
    attachments: list[AttachmentIn] = Field(default_factory=list)


class IdeCaptureIn(BaseModel):
    session_id: str = Field(min_length=1)
    project_id: str = Field(min_length=1)
    capture_type: CaptureType
    ide_error_log: str | None = None
    ide_code_diff: str | None = None
    repo_tree: str | None = None
    ide_file_path: str | None = None
    priority: int = 0


class ProcessDocumentIn(BaseModel):
    capture_id: str = Field(min_length=1)
    project_id: str = Field(min_length=1)
    url: str = Field(min_length=1)


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatIn(BaseModel):
    project_id: str = Field(min_length=1)
    current_query: str = Field(min_length=1)
    messages: list[ChatMessage] = Field(default_factory=list)


class SessionStartIn(BaseModel):
    project_id: str = Field(min_length=1)


class HeartbeatIn(BaseModel):
    session_id: str = Field(min_length=1)
    active_file_context: str | None = None


class SessionEndIn(BaseModel):
    session_id: str = Field(min_length=1)


class ProjectIn(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None


# ------------------------------------------------------------------
# Response rendering
# ------------------------------------------------------------------


def project_out(project: Project) -> dict:
    return {
        "id": project.id,
        "name": project.name,
        "description": project.description,
        "created_at": project.created_at,
    }


def capture_out(capture: Capture) -> dict:
    return {
        "id": capture.id,
        "session_id": capture.session_id,
        "project_id": capture.project_id,
        "capture_type": capture.capture_type.value,
        "priority": capture.priority,
        "source_url": capture.source_url,
        "page_title": capture.page_title,
        "text_content": capture.text_content,
        "video_start_time": capture.video_start_time,
        "video_end_time": capture.video_end_time,
        "ide_error_log": capture.ide_error_log,
        "ide_code_diff": capture.ide_code_diff,
        "ide_file_path": capture.ide_file_path,
        "ai_markdown_summary": capture.ai_markdown_summary,
        "created_at": capture.created_at,
        "capture_attachments": [
            {"id": a.id, "url": a.url, "file_type": a.file_type.value, "file_name": a.file_name}
            for a in capture.attachments
        ],
    }

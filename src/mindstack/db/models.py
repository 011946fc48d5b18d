"""Domain models for the MindStack database layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class CaptureType(str, Enum):
    WEB_TEXT = "WEB_TEXT"
    VIDEO_SEGMENT = "VIDEO_SEGMENT"
    USER_NOTE = "USER_NOTE"
    RESOURCE_UPLOAD = "RESOURCE_UPLOAD"
    IDE_BUG_FIX = "IDE_BUG_FIX"
    IDE_PROGRESS_SNAPSHOT = "IDE_PROGRESS_SNAPSHOT"

    @property
    def is_ide(self) -> bool:
        return self in (CaptureType.IDE_BUG_FIX, CaptureType.IDE_PROGRESS_SNAPSHOT)


BROWSER_CAPTURE_TYPES = frozenset(
    {
        CaptureType.WEB_TEXT,
        CaptureType.VIDEO_SEGMENT,
        CaptureType.USER_NOTE,
        CaptureType.RESOURCE_UPLOAD,
    }
)
IDE_CAPTURE_TYPES = frozenset({CaptureType.IDE_BUG_FIX, CaptureType.IDE_PROGRESS_SNAPSHOT})


class AttachmentKind(str, Enum):
    PDF = "PDF"
    IMAGE = "IMAGE"
    VIDEO_KEYFRAME = "VIDEO_KEYFRAME"
    RAW_TRANSCRIPT_JSON = "RAW_TRANSCRIPT_JSON"
    DOC = "DOC"

    @property
    def is_inlineable(self) -> bool:
        """Images and PDFs are resolved into the multimodal payload."""
        return self in (AttachmentKind.IMAGE, AttachmentKind.PDF)


class ChunkOrigin(str, Enum):
    TEXT = "text"              # raw normalized text (no summary available)
    SUMMARY = "summary"        # enrichment artifact
    RAW = "raw"                # verbatim IDE material
    EXPLANATION = "explanation"  # enrichment artifact for IDE material
    DOCUMENT = "document"      # extracted document text


@dataclass
class User:
    id: str
    name: str
    created_at: str | None = None


@dataclass
class Project:
    id: str
    user_id: str
    name: str
    description: str | None = None
    created_at: str | None = None


@dataclass
class Session:
    id: str
    project_id: str
    start_time: str
    end_time: str | None = None
    last_active_at: str | None = None
    active_file_context: str | None = None
    ai_debrief: str | None = None


@dataclass
class Attachment:
    url: str
    file_type: AttachmentKind
    file_name: str
    capture_id: str | None = None
    id: int | None = None  # set after insert


@dataclass
class Capture:
    id: str
    session_id: str
    project_id: str
    capture_type: CaptureType
    text_content: str | None = None
    ai_markdown_summary: str | None = None
    source_url: str | None = None
    page_title: str | None = None
    video_start_time: float | None = None
    video_end_time: float | None = None
    ide_error_log: str | None = None
    ide_code_diff: str | None = None
    ide_file_path: str | None = None
    priority: int = 0
    created_at: str | None = None
    attachments: list[Attachment] = field(default_factory=list)


@dataclass
class Chunk:
    capture_id: str
    chunk_index: int
    chunk_text: str
    embedding: list[float]
    project_id: str | None = None
    origin: ChunkOrigin = ChunkOrigin.TEXT
    created_at: str | None = None
    rowid: int | None = None  # set after insert; None for unsaved chunks


@dataclass
class ChunkMatch:
    """One row returned by the similarity procedure."""

    capture_id: str
    chunk_text: str
    similarity: float


@dataclass
class CaptureContext:
    """A parent capture joined with its session's active file for retrieval."""

    capture: Capture
    active_file_context: str | None = None

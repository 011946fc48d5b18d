"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from mindstack.config import MindstackConfig
from mindstack.db.connection import Database
from mindstack.db.models import Capture, CaptureType
from mindstack.db.repository import Repository
from mindstack.db.schema import initialize
from mindstack.db.vectors import normalize
from mindstack.errors import NotFoundError, UpstreamError
from mindstack.ingest.transcripts import TranscriptSegment
from mindstack.storage.objects import BLOB_SCHEME, StoredObject, infer_mime_type

DIMS = 4


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".mindstack.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def repo(tmp_db):
    """Privileged repository."""
    return Repository(tmp_db)


@pytest.fixture
def user(repo):
    return repo.add_user("ada", "hash-ada")


@pytest.fixture
def project(repo, user):
    return repo.add_project("kb", "notes", user_id=user.id)


@pytest.fixture
def session(repo, project):
    return repo.start_session(project.id)


@pytest.fixture
def make_capture(repo, project, session):
    """Insert a capture into the default project/session and return it."""

    def _make(capture_type: CaptureType = CaptureType.WEB_TEXT, **fields) -> Capture:
        return repo.add_capture(
            Capture(
                id=fields.pop("id", ""),
                session_id=fields.pop("session_id", session.id),
                project_id=fields.pop("project_id", project.id),
                capture_type=capture_type,
                **fields,
            )
        )

    return _make


@pytest.fixture
def config():
    cfg = MindstackConfig()
    cfg.embedding.dimensions = DIMS
    return cfg


# ------------------------------------------------------------------
# Fakes
# ------------------------------------------------------------------


class FakeLLM:
    """In-memory stand-in for LLMClient.

    ``embed`` returns a deterministic unit vector; texts containing any of
    ``fail_on`` raise UpstreamError. ``stream`` yields ``deltas`` then
    raises ``stream_error`` if set.
    """

    def __init__(self) -> None:
        self.completion = "## Summary\nKey points."
        self.complete_error: Exception | None = None
        self.fail_on: set[str] = set()
        self.embed_error: Exception | None = None
        self.deltas = ["Hello", ", ", "world"]
        self.stream_error: Exception | None = None
        self.prompts: list[str] = []
        self.embedded: list[str] = []
        self.streamed: list[tuple[list[dict], str | None]] = []
        self.stream_closed = False

    async def complete(self, prompt: str, *, max_tokens: int | None = None) -> str:
        self.prompts.append(prompt)
        if self.complete_error is not None:
            raise self.complete_error
        return self.completion

    async def embed(self, text: str) -> list[float]:
        self.embedded.append(text)
        if self.embed_error is not None:
            raise self.embed_error
        if any(marker in text for marker in self.fail_on):
            raise UpstreamError(f"embedding rejected: {text[:20]}")
        return normalize([1.0, float(len(text) % 7) + 1.0, 0.5, 0.25])

    async def stream(self, messages: list[dict], system: str | None = None):
        self.streamed.append((messages, system))
        try:
            for delta in self.deltas:
                yield delta
            if self.stream_error is not None:
                raise self.stream_error
        finally:
            self.stream_closed = True


class MemoryObjectStore:
    """Dict-backed ObjectStore."""

    def __init__(self) -> None:
        self.blobs: dict[str, StoredObject] = {}
        self.deleted: list[str] = []
        self.broken: set[str] = set()
        self.fetched: list[str] = []

    async def put(self, key: str, data: bytes, content_type: str | None = None) -> str:
        url = f"{BLOB_SCHEME}{key}"
        self.blobs[url] = StoredObject(data, content_type or infer_mime_type(key))
        return url

    async def get(self, url: str) -> StoredObject:
        self.fetched.append(url)
        if url in self.broken:
            raise UpstreamError(f"read failed for {url}")
        if url not in self.blobs:
            raise NotFoundError(f"Object '{url}' not found")
        return self.blobs[url]

    async def delete(self, url: str) -> None:
        if url in self.broken:
            raise UpstreamError(f"delete failed for {url}")
        self.deleted.append(url)
        self.blobs.pop(url, None)


class FakeTranscripts:
    def __init__(self, segments: list[TranscriptSegment] | None = None) -> None:
        self.segments = segments or []
        self.error: Exception | None = None
        self.requested: list[str] = []

    async def fetch(self, video_id: str) -> list[TranscriptSegment]:
        self.requested.append(video_id)
        if self.error is not None:
            raise self.error
        return list(self.segments)


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def objects():
    return MemoryObjectStore()


@pytest.fixture
def transcripts():
    return FakeTranscripts()

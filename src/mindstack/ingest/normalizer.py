"""Capture normalizer: one canonical text body per capture source.

- Browser captures: supplied text, plus the video transcript for
  VIDEO_SEGMENT captures with a source URL (time-range filtered).
- IDE captures: labelled error log, code diff and repo tree sections.
- Documents: text extracted from the stored PDF.

Transcript failures are logged and ignored. Document fetch/parse failures
raise MindstackError subclasses for the orchestrator to log.
"""

from __future__ import annotations

import asyncio
import logging

from mindstack.db.models import Capture, CaptureType
from mindstack.errors import UpstreamError
from mindstack.ingest.documents import extract_pdf_text
from mindstack.ingest.transcripts import (
    TranscriptFetcher,
    extract_youtube_video_id,
    filter_segments,
    join_segments,
)
from mindstack.storage.objects import ObjectStore

logger = logging.getLogger(__name__)


def merge_transcript(text: str, transcript: str) -> str:
    if not text:
        return transcript
    return f"{text}\n\n[Transcript]\n{transcript}"


def ide_sections(
    error_log: str | None = None,
    code_diff: str | None = None,
    repo_tree: str | None = None,
) -> str:
    """Join the non-empty IDE fields under ``## Error Log``/``## Code Diff``/``## Repo Structure``."""
    parts = []
    if error_log:
        parts.append(f"## Error Log\n{error_log}")
    if code_diff:
        parts.append(f"## Code Diff\n{code_diff}")
    if repo_tree:
        parts.append(f"## Repo Structure\n{repo_tree}")
    return "\n\n".join(parts)


def ide_preview(error_log: str | None, code_diff: str | None) -> str | None:
    """Initial text for an IDE capture so it reads well before enrichment."""
    return ide_sections(error_log, code_diff) or None


class CaptureNormalizer:
    """Assemble normalized text from capture payloads.

    Args:
        transcripts: Video transcript collaborator (None disables transcripts).
        objects:     Object store holding uploaded documents.
    """

    def __init__(
        self,
        transcripts: TranscriptFetcher | None = None,
        objects: ObjectStore | None = None,
    ) -> None:
        self._transcripts = transcripts
        self._objects = objects

    async def normalize_browser(self, capture: Capture) -> str:
        """Return the capture text, with the transcript appended for videos."""
        text = capture.text_content or ""
        if capture.capture_type is not CaptureType.VIDEO_SEGMENT or not capture.source_url:
            return text
        if self._transcripts is None:
            return text

        video_id = extract_youtube_video_id(capture.source_url)
        if video_id is None:
            logger.info("No video id in %s for capture %s", capture.source_url, capture.id)
            return text
        try:
            segments = await self._transcripts.fetch(video_id)
        except UpstreamError as exc:
            logger.warning("Transcript fetch failed for %s: %s", capture.source_url, exc)
            return text

        kept = filter_segments(segments, capture.video_start_time, capture.video_end_time)
        return merge_transcript(text, join_segments(kept))

    async def normalize_document(self, url: str) -> str:
        """Fetch the PDF at *url* and return its text.

        Raises:
            MindstackError: The object could not be fetched or parsed.
        """
        if self._objects is None:
            raise UpstreamError("No object store configured")
        stored = await self._objects.get(url)
        try:
            return await asyncio.to_thread(extract_pdf_text, stored.data)
        except Exception as exc:
            raise UpstreamError(f"PDF parse failed for {url}: {exc}") from exc

"""Video transcript fetching for VIDEO_SEGMENT captures.

The fetcher is a collaborator: the normalizer depends only on the
TranscriptFetcher protocol so tests inject a fake. Any fetch failure
surfaces as UpstreamError and the caller carries on without a transcript.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import parse_qs, urlparse

from youtube_transcript_api import YouTubeTranscriptApi

from mindstack.errors import UpstreamError

# Segments may end this many seconds past the requested end time.
END_TOLERANCE_SECONDS = 5.0


@dataclass(frozen=True)
class TranscriptSegment:
    """One transcript line. Times are in seconds."""

    offset: float
    duration: float
    text: str

    @property
    def end(self) -> float:
        return self.offset + self.duration


class TranscriptFetcher(Protocol):
    async def fetch(self, video_id: str) -> list[TranscriptSegment]: ...


class YouTubeTranscriptFetcher:
    """TranscriptFetcher backed by youtube-transcript-api (run in a worker thread)."""

    def __init__(self, languages: tuple[str, ...] = ("en",)) -> None:
        self._languages = languages
        self._api = YouTubeTranscriptApi()

    async def fetch(self, video_id: str) -> list[TranscriptSegment]:
        try:
            raw = await asyncio.to_thread(self._fetch_raw, video_id)
        except Exception as exc:
            raise UpstreamError(f"Transcript fetch failed for video '{video_id}': {exc}") from exc
        return [
            TranscriptSegment(
                offset=float(item["start"]),
                duration=float(item.get("duration", 0.0)),
                text=str(item["text"]),
            )
            for item in raw
        ]

    def _fetch_raw(self, video_id: str) -> list[dict]:
        return self._api.fetch(video_id, languages=list(self._languages)).to_raw_data()


def extract_youtube_video_id(url: str) -> str | None:
    """Return the video id from a youtube.com/watch or youtu.be URL, else None."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    host = (parsed.hostname or "").lower()
    if host == "youtu.be":
        return parsed.path.lstrip("/").split("/")[0] or None
    if host == "youtube.com" or host.endswith(".youtube.com"):
        values = parse_qs(parsed.query).get("v")
        return values[0] if values else None
    return None


def filter_segments(
    segments: list[TranscriptSegment],
    start: float | None,
    end: float | None,
) -> list[TranscriptSegment]:
    """Keep segments inside ``[start, end + 5s]``.

    Only applied when both bounds are given. The tolerance applies to the
    end boundary only.
    """
    if start is None or end is None:
        return list(segments)
    return [
        s for s in segments if s.offset >= start and s.end <= end + END_TOLERANCE_SECONDS
    ]


def join_segments(segments: list[TranscriptSegment]) -> str:
    return " ".join(s.text for s in segments)

"""Session lifecycle and the end-of-session debrief.

start/heartbeat/end run synchronously against the caller's repository.
The debrief runs afterwards as a background task against the privileged
repository and overwrites any earlier debrief.
"""

from __future__ import annotations

import logging

from mindstack.db.models import CaptureType, Session
from mindstack.db.repository import Repository
from mindstack.ingest.summarizer import Enricher

logger = logging.getLogger(__name__)


def render_summaries(summaries: list[tuple[CaptureType, str]]) -> str:
    """Render summaries as numbered ``### Capture N (TYPE)`` sections."""
    return "\n\n---\n\n".join(
        f"### Capture {i} ({capture_type.value})\n{summary}"
        for i, (capture_type, summary) in enumerate(summaries, start=1)
    )


class SessionService:
    """Session operations.

    Args:
        privileged: Unscoped repository, used only by the debrief task.
        enricher:   Enrichment stage used to write the debrief.
    """

    def __init__(self, privileged: Repository, enricher: Enricher) -> None:
        self._privileged = privileged
        self._enricher = enricher

    def start(self, repo: Repository, project_id: str) -> Session:
        return repo.start_session(project_id)

    def heartbeat(
        self, repo: Repository, session_id: str, active_file_context: str | None = None
    ) -> None:
        repo.touch_session(session_id, active_file_context)

    def end(self, repo: Repository, session_id: str) -> None:
        repo.end_session(session_id)

    async def write_debrief(self, session_id: str) -> str | None:
        """Generate and store the debrief. Returns it, or None when nothing was written."""
        summaries = self._privileged.list_session_summaries(session_id)
        if not summaries:
            logger.info("No summaries to debrief for session %s", session_id)
            return None

        debrief = await self._enricher.debrief(render_summaries(summaries), session_id=session_id)
        if not debrief:
            return None
        self._privileged.set_session_debrief(session_id, debrief)
        logger.info("Saved debrief for session %s", session_id)
        return debrief

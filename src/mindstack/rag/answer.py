"""Streaming answer coordinator.

Event order for every run:

    sources → delta* → done
    sources? → error

All events leave through one generator; it stops right after the first
terminal event. Failures before generation yield no deltas. Abandoning the
stream closes the generation call.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Union

from mindstack.config import MindstackConfig
from mindstack.db.repository import Repository
from mindstack.errors import MindstackError
from mindstack.rag.assembler import ContextBuilder
from mindstack.rag.llm_client import LLMClient
from mindstack.rag.prompts import EMPTY_STATE_MESSAGE, SYSTEM_PROMPT, build_messages
from mindstack.rag.retriever import embed_query
from mindstack.storage.objects import ObjectStore

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Events
# ------------------------------------------------------------------


@dataclass(frozen=True)
class SourcesEvent:
    sources: list[str] = field(default_factory=list)
    terminal = False

    def payload(self) -> dict:
        return {"type": "sources", "data": list(self.sources)}


@dataclass(frozen=True)
class DeltaEvent:
    text: str
    terminal = False

    def payload(self) -> dict:
        return {"type": "delta", "data": self.text}


@dataclass(frozen=True)
class DoneEvent:
    terminal = True

    def payload(self) -> dict:
        return {"type": "done"}


@dataclass(frozen=True)
class ErrorEvent:
    reason: str
    terminal = True

    def payload(self) -> dict:
        return {"type": "error", "data": self.reason}


AnswerEvent = Union[SourcesEvent, DeltaEvent, DoneEvent, ErrorEvent]


def to_sse(event: AnswerEvent) -> str:
    """Frame *event* as one server-sent-events ``data:`` record."""
    return f"data: {json.dumps(event.payload(), ensure_ascii=False)}\n\n"


# ------------------------------------------------------------------
# Coordinator
# ------------------------------------------------------------------


class AnswerCoordinator:
    """Drive retrieval and generation for one chat request.

    Args:
        llm:     Model client (query embedding + streaming generation).
        repo:    Caller-scoped repository.
        objects: Object store for attachment media.
        config:  Loaded configuration (retrieval caps, history turns).
    """

    def __init__(
        self,
        llm: LLMClient,
        repo: Repository,
        objects: ObjectStore,
        config: MindstackConfig,
    ) -> None:
        self._llm = llm
        self._config = config
        self._builder = ContextBuilder(repo, objects, config.retrieval)

    async def answer(
        self, project_id: str, query: str, history: list[dict] | None = None
    ) -> AsyncIterator[AnswerEvent]:
        """Yield the ordered event stream; nothing follows the terminal event."""
        async with aclosing(self._events(project_id, query, history or [])) as events:
            try:
                async for event in events:
                    yield event
                    if event.terminal:
                        return
            except Exception:
                logger.exception("Stream error for project %s", project_id)
                yield ErrorEvent("An unexpected error occurred")

    async def _events(
        self, project_id: str, query: str, history: list[dict]
    ) -> AsyncIterator[AnswerEvent]:
        try:
            embedding = await embed_query(self._llm, query)
        except MindstackError as exc:
            logger.error("Query embedding failed: %s", exc)
            yield ErrorEvent("Failed to embed query")
            return

        try:
            context = await self._builder.build(project_id, embedding)
        except MindstackError as exc:
            logger.error("Vector search failed for project %s: %s", project_id, exc)
            yield ErrorEvent("Vector search failed")
            return

        yield SourcesEvent(context.source_references)

        if context.empty:
            yield DeltaEvent(EMPTY_STATE_MESSAGE)
            yield DoneEvent()
            return

        messages = build_messages(
            history,
            context.prompt_context_text,
            query,
            context.media_payloads,
            history_turns=self._config.generation.history_turns,
        )
        try:
            async with aclosing(self._llm.stream(messages, system=SYSTEM_PROMPT)) as deltas:
                async for text in deltas:
                    yield DeltaEvent(text)
        except MindstackError as exc:
            logger.error("Generation failed: %s", exc)
            yield ErrorEvent("Generation failed")
            return

        yield DoneEvent()

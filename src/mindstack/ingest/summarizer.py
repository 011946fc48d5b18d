"""Enrichment stage: condensed Markdown artifacts via the enrichment model.

Three single-shot prompts share one call path:
- summary of browser captures (web text, transcripts, notes, uploads)
- plain-English explanation of raw IDE material
- session debrief over the summaries of a session's captures

Input is truncated to ``enrichment.max_input_chars``. A failed call is
logged and yields "" so the pipeline continues with raw text.
"""

from __future__ import annotations

import logging

from mindstack.errors import UpstreamError
from mindstack.rag.llm_client import LLMClient

logger = logging.getLogger(__name__)

_SUMMARY_PROMPT = """\
Summarize the following developer/learning content in clear markdown. \
Be concise but thorough. Include key concepts, facts, and any code-related insights.

---

{text}"""

_IDE_PROMPT = """\
You are a senior developer assistant. Below is raw IDE output from a developer's coding session.

Convert this into two things, formatted in Markdown:
1. **Plain-English Explanation**: What problem occurred and how it was (or is being) resolved.
2. **Key Learning**: The underlying technical concept or pattern involved.

Be concise but precise. Use code blocks for any code references.

---

{text}"""

_DEBRIEF_PROMPT = """\
You are a developer's learning assistant. Below are AI-generated summaries of all \
knowledge captures from a single coding/research session.

Your task is to synthesize these into a concise, well-structured **Session Debrief** \
in Markdown. The debrief should:
- Summarize the key topics explored and problems solved
- Highlight important insights or learnings
- Note any unresolved questions or next steps

Keep it under 400 words.

---

{text}"""

_DEFAULT_MAX_INPUT_CHARS = 15_000


class Enricher:
    """Generate enrichment artifacts for captures and sessions.

    Args:
        llm:             Model client (its ``complete`` uses the enrichment model).
        max_input_chars: Character budget for the text sent to the model.
    """

    def __init__(self, llm: LLMClient, max_input_chars: int = _DEFAULT_MAX_INPUT_CHARS) -> None:
        self._llm = llm
        self._max_input_chars = max_input_chars

    async def summarize(self, text: str, *, capture_id: str | None = None) -> str:
        return await self._generate(_SUMMARY_PROMPT, text, capture_id)

    async def explain_ide(self, raw_content: str, *, capture_id: str | None = None) -> str:
        return await self._generate(_IDE_PROMPT, raw_content, capture_id)

    async def debrief(self, summaries_text: str, *, session_id: str | None = None) -> str:
        return await self._generate(_DEBRIEF_PROMPT, summaries_text, session_id)

    async def _generate(self, template: str, text: str, subject: str | None) -> str:
        prompt = template.format(text=text[: self._max_input_chars])
        try:
            return await self._llm.complete(prompt)
        except UpstreamError as exc:
            logger.error("Enrichment failed for %s: %s", subject or "<unknown>", exc)
            return ""

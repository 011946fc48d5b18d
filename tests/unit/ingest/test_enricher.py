"""Tests for the enrichment stage."""

from __future__ import annotations

import asyncio

from mindstack.errors import UpstreamError
from mindstack.ingest.summarizer import Enricher


def test_summarize_returns_model_output(fake_llm):
    fake_llm.completion = "## Summary"
    assert asyncio.run(Enricher(fake_llm).summarize("some text")) == "## Summary"
    assert "some text" in fake_llm.prompts[0]
    assert fake_llm.prompts[0].startswith("Summarize the following")


def test_input_truncated_to_budget(fake_llm):
    asyncio.run(Enricher(fake_llm, max_input_chars=10).summarize("0123456789ABCDEF"))
    assert "0123456789" in fake_llm.prompts[0]
    assert "ABCDEF" not in fake_llm.prompts[0]


def test_explain_ide_uses_ide_prompt(fake_llm):
    asyncio.run(Enricher(fake_llm).explain_ide("## Error Log\nboom"))
    assert "Plain-English Explanation" in fake_llm.prompts[0]
    assert "## Error Log\nboom" in fake_llm.prompts[0]


def test_debrief_uses_debrief_prompt(fake_llm):
    asyncio.run(Enricher(fake_llm).debrief("### Capture 1 (WEB_TEXT)\nx"))
    assert "Session Debrief" in fake_llm.prompts[0]


def test_failure_returns_empty_string(fake_llm, caplog):
    fake_llm.complete_error = UpstreamError("rate limited")
    assert asyncio.run(Enricher(fake_llm).summarize("text", capture_id="cap-9")) == ""
    assert "cap-9" in caplog.text

"""Tests for the retrieval context builder."""

from __future__ import annotations

import asyncio

import pytest

from mindstack.config import RetrievalCfg
from mindstack.db.models import (
    Attachment,
    AttachmentKind,
    Capture,
    CaptureContext,
    CaptureType,
    Chunk,
    ChunkMatch,
)
from mindstack.db.vectors import normalize
from mindstack.rag.assembler import ContextBuilder, render_capture_block
from mindstack.rag.prompts import CONTEXT_SEPARATOR

QUERY = normalize([1.0, 0.0, 0.0, 0.0])


def _store_chunks(repo, capture_id, texts):
    repo.add_chunks(
        [
            Chunk(capture_id, i, text, normalize([1.0, 0.1 * (i + 1), 0.0, 0.0]))
            for i, text in enumerate(texts)
        ]
    )


def _build(repo, objects, project_id, **limits):
    builder = ContextBuilder(repo, objects, RetrievalCfg(**limits))
    return asyncio.run(builder.build(project_id, QUERY))


# ------------------------------------------------------------------
# render_capture_block
# ------------------------------------------------------------------


def test_render_capture_block_full():
    capture = Capture(
        id="c1",
        session_id="s",
        project_id="p",
        capture_type=CaptureType.IDE_BUG_FIX,
        page_title="Fix",
        source_url="https://example.com",
        ai_markdown_summary="Summary here",
        ide_code_diff="+a",
        attachments=[Attachment("blob://x.png", AttachmentKind.IMAGE, "x.png")],
    )
    ctx = CaptureContext(capture=capture, active_file_context="app.py")
    matches = [ChunkMatch("c1", "frag one", 0.9), ChunkMatch("other", "nope", 0.8)]

    block = render_capture_block(2, ctx, matches)

    assert block == (
        "[DOCUMENT 2]\n"
        "Source Type: IDE_BUG_FIX\n"
        "Title: Fix\n"
        "Source URL: https://example.com\n"
        "[Summary]\nSummary here\n"
        "[Code Diff]\n```diff\n+a\n```\n"
        "[Active File]\napp.py\n"
        "[Attachments]\n- [IMAGE] x.png (URL: blob://x.png)\n"
        "Content:\n"
        "--- Fragment ---\nfrag one"
    )


def test_render_capture_block_minimal():
    capture = Capture(id="c1", session_id="s", project_id="p", capture_type=CaptureType.USER_NOTE)
    assert render_capture_block(1, CaptureContext(capture), []) == (
        "[DOCUMENT 1]\nSource Type: USER_NOTE"
    )


# ------------------------------------------------------------------
# ContextBuilder.build
# ------------------------------------------------------------------


def test_empty_project_is_empty_context(repo, objects, project):
    context = _build(repo, objects, project.id)
    assert context.empty
    assert context.source_references == []
    assert context.prompt_context_text == ""


def test_parent_deduplicated_with_all_fragments(repo, objects, make_capture, project):
    capture = make_capture(text_content="x", page_title="Notes")
    _store_chunks(repo, capture.id, ["first fragment", "second fragment"])

    context = _build(repo, objects, project.id)

    assert not context.empty
    assert context.prompt_context_text.count("[DOCUMENT") == 1
    assert "--- Fragment ---\nfirst fragment" in context.prompt_context_text
    assert "--- Fragment ---\nsecond fragment" in context.prompt_context_text


def test_sources_list_every_attachment_and_media_inlined(repo, objects, make_capture, project):
    capture = make_capture(text_content="x")
    png = asyncio.run(objects.put("shot.png", b"img", "image/png"))
    repo.add_attachments(
        capture.id,
        [
            Attachment(png, AttachmentKind.IMAGE, "shot.png"),
            Attachment("blob://raw.json", AttachmentKind.RAW_TRANSCRIPT_JSON, "raw.json"),
        ],
    )
    _store_chunks(repo, capture.id, ["body"])

    context = _build(repo, objects, project.id)

    assert context.source_references == [png, "blob://raw.json"]
    assert [m.file_name for m in context.media_payloads] == ["shot.png"]


def test_blocks_capped_and_separated(repo, objects, make_capture, project):
    for i in range(3):
        capture = make_capture(text_content=str(i))
        _store_chunks(repo, capture.id, [f"chunk {i}"])

    context = _build(repo, objects, project.id, max_context_blocks=2)

    assert context.prompt_context_text.count("[DOCUMENT") == 2
    assert CONTEXT_SEPARATOR in context.prompt_context_text


def test_media_capped(repo, objects, make_capture, project):
    capture = make_capture(text_content="x")
    attachments = []
    for i in range(4):
        url = asyncio.run(objects.put(f"img{i}.png", b"i", "image/png"))
        attachments.append(Attachment(url, AttachmentKind.IMAGE, f"img{i}.png"))
    repo.add_attachments(capture.id, attachments)
    _store_chunks(repo, capture.id, ["body"])

    context = _build(repo, objects, project.id, max_media_payloads=2)

    assert [m.file_name for m in context.media_payloads] == ["img0.png", "img1.png"]
    assert len(context.source_references) == 4


def test_media_only_from_captures_kept_by_block_cap(repo, objects, make_capture, project):
    urls = []
    for i in range(3):
        capture = make_capture(text_content=str(i))
        url = asyncio.run(objects.put(f"img{i}.png", b"i", "image/png"))
        repo.add_attachments(capture.id, [Attachment(url, AttachmentKind.IMAGE, f"img{i}.png")])
        _store_chunks(repo, capture.id, [f"chunk {i}"])
        urls.append(url)

    context = _build(repo, objects, project.id, max_context_blocks=2)

    assert [m.file_name for m in context.media_payloads] == ["img0.png", "img1.png"]
    assert urls[2] not in objects.fetched
    assert sorted(context.source_references) == sorted(urls)


def test_top_k_limits_matches(repo, objects, make_capture, project):
    for i in range(4):
        capture = make_capture(text_content=str(i))
        _store_chunks(repo, capture.id, [f"chunk {i}"])
    context = _build(repo, objects, project.id, top_k=2)
    assert context.prompt_context_text.count("[DOCUMENT") == 2


def test_scoped_caller_sees_nothing_in_foreign_project(repo, objects, make_capture, project):
    capture = make_capture(text_content="x")
    _store_chunks(repo, capture.id, ["secret"])
    stranger = repo.add_user("eve", "hash-eve")
    builder = ContextBuilder(repo.scoped(stranger.id), objects)
    assert asyncio.run(builder.build(project.id, QUERY)).empty


@pytest.mark.parametrize("k", [1, 3])
def test_explicit_k_overrides_config(repo, objects, make_capture, project, k):
    for i in range(3):
        capture = make_capture(text_content=str(i))
        _store_chunks(repo, capture.id, [f"chunk {i}"])
    builder = ContextBuilder(repo, objects, RetrievalCfg(top_k=5))
    context = asyncio.run(builder.build(project.id, QUERY, k=k))
    assert context.prompt_context_text.count("[DOCUMENT") == k

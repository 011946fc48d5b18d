"""Paragraph-first text chunker.

Strategy:
- Split on blank lines into paragraphs (trimmed, empties dropped).
- Pack paragraphs into chunks of at most ``max_words`` words, joined by a
  blank line.
- A paragraph that alone exceeds ``max_words`` is split on sentence
  boundaries and packed with single spaces. A sentence longer than the cap
  stays whole in its own chunk.
- Large auto-generated files (lockfiles, minified assets) yield no chunks.

Pure and deterministic: same text and options, same output.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

MAX_WORDS = 500
IGNORE_SIZE_THRESHOLD = 50_000

_IGNORE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"package-lock\.json$",
        r"yarn\.lock$",
        r"pnpm-lock\.yaml$",
        r"composer\.lock$",
        r"Gemfile\.lock$",
        r"\.min\.js$",
        r"\.min\.css$",
    )
)

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")


@dataclass(frozen=True)
class ChunkOptions:
    file_name: str | None = None
    max_words: int = MAX_WORDS
    ignore_size_threshold: int = IGNORE_SIZE_THRESHOLD


def count_words(text: str) -> int:
    return len(text.split())


def split_sentences(text: str) -> list[str]:
    """Split on ``.``/``!``/``?`` followed by whitespace."""
    return [s.strip() for s in _SENTENCE_BREAK.split(text) if s.strip()]


def is_auto_generated(file_name: str) -> bool:
    return any(p.search(file_name) for p in _IGNORE_PATTERNS)


def chunk_text(text: str, options: ChunkOptions | None = None) -> list[str]:
    """Split *text* into ordered chunks of at most ``options.max_words`` words.

    Returns an empty list for blank text, or when ``options.file_name`` names
    an auto-generated artifact and the text is larger than
    ``options.ignore_size_threshold`` bytes.
    """
    opts = options or ChunkOptions()

    if not text or not text.strip():
        return []

    if opts.file_name and len(text.encode("utf-8")) > opts.ignore_size_threshold:
        if is_auto_generated(opts.file_name):
            logger.info("Skipping auto-generated file: %s", opts.file_name)
            return []

    paragraphs = [p.strip() for p in _PARAGRAPH_BREAK.split(text) if p.strip()]

    chunks: list[str] = []
    current: list[str] = []
    word_count = 0

    for paragraph in paragraphs:
        para_words = count_words(paragraph)

        if para_words > opts.max_words:
            if current:
                chunks.append("\n\n".join(current))
                current = []
                word_count = 0
            chunks.extend(_pack_sentences(paragraph, opts.max_words))
        elif word_count + para_words > opts.max_words:
            chunks.append("\n\n".join(current))
            current = [paragraph]
            word_count = para_words
        else:
            current.append(paragraph)
            word_count += para_words

    if current:
        chunks.append("\n\n".join(current))

    return [c for c in chunks if c.strip()]


def _pack_sentences(paragraph: str, max_words: int) -> list[str]:
    packed: list[str] = []
    buf: list[str] = []
    buf_words = 0
    for sentence in split_sentences(paragraph):
        words = count_words(sentence)
        if buf and buf_words + words > max_words:
            packed.append(" ".join(buf))
            buf = []
            buf_words = 0
        buf.append(sentence)
        buf_words += words
    if buf:
        packed.append(" ".join(buf))
    return packed

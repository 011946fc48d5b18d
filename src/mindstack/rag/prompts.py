"""Prompt templates and message assembly for answer generation.

The retrieved context goes into the final user turn followed by the
question; inlined media follow as additional content blocks. Conversation
history is capped to the most recent turns.
"""

from __future__ import annotations

from mindstack.rag.media import MediaPayload

SYSTEM_PROMPT = """\
You are MindStack, an AI assistant with deep knowledge of a developer's learning history.
Answer questions accurately using the provided context. Reference specific captures, \
diffs, or file names when relevant.

Formatting Rules:

Always use markdown.
When writing code, use fenced code blocks with the correct language (e.g., ```python).
If a user asks about an image, diagram, or video frame, look in the retrieved context \
for its URL and embed it in your response using markdown syntax: ![Image Description](URL)."""

EMPTY_STATE_MESSAGE = """\
🧠
### No Progress Data Available
I don't have any captured activity or progress data available for your project yet. \
To start tracking your development journey, you'll need to:
* Install the MindStack browser extension or IDE plugin
* Begin capturing your coding sessions, web research, and other development activities

Once you start capturing data, I'll be able to provide insights about your progress, \
summarize what you've learned, and help you navigate your development history.

Would you like information on how to set up MindStack to start tracking your progress?"""

CONTEXT_SEPARATOR = "\n\n-------------------\n\n"

_USER_TEMPLATE = "## Retrieved Context\n\n{context}\n\n---\n\n## Question\n{query}"


def cap_history(history: list[dict], turns: int) -> list[dict]:
    """Keep the most recent *turns* messages, dropping the oldest first."""
    if turns <= 0:
        return []
    return [{"role": m["role"], "content": m["content"]} for m in history[-turns:]]


def build_messages(
    history: list[dict],
    context_text: str,
    query: str,
    media: list[MediaPayload],
    history_turns: int = 10,
) -> list[dict]:
    """Return the message list sent to the generation model."""
    content: list[dict] = [
        {"type": "text", "text": _USER_TEMPLATE.format(context=context_text, query=query)}
    ]
    content.extend(payload.to_content_block() for payload in media)
    return [*cap_history(history, history_turns), {"role": "user", "content": content}]

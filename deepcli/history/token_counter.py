"""
Heuristic token estimates for conversation budgeting.

The figures are approximate by construction: roughly four characters per
token, plus one per text segment. Image parts do not count against the text
budget. Use them to decide when to summarize, never as a hard limit.
"""

from __future__ import annotations

from collections.abc import Iterable

from deepcli.llm.models import ChatMessage, TextPart

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Estimate the token count of a text segment."""
    return len(text) // CHARS_PER_TOKEN + 1


def estimate_message_tokens(message: ChatMessage) -> int:
    """Estimate the token count of one message, skipping image parts."""
    if isinstance(message.content, str):
        return estimate_tokens(message.content)
    return sum(
        estimate_tokens(part.text)
        for part in message.content
        if isinstance(part, TextPart)
    )


def count_conversation_tokens(messages: Iterable[ChatMessage]) -> int:
    """Sum the estimates of all messages."""
    return sum(estimate_message_tokens(message) for message in messages)

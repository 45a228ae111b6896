"""
Conversation state for one chat session.

History is an ordered list of messages. The system prompt is kept apart and
prepended only when a request is built, so it is never duplicated in the
stored history.
"""

from __future__ import annotations

import logging

from deepcli.history.token_counter import count_conversation_tokens, estimate_tokens
from deepcli.llm.models import ChatMessage, MessageRole

logger = logging.getLogger(__name__)

SUMMARY_PREFIX = "[history summary] "


class Conversation:
    """Ordered message history with a heuristic token estimate."""

    def __init__(self, system_prompt: str, summary_prefix: str = SUMMARY_PREFIX):
        self.system_prompt = system_prompt
        self.summary_prefix = summary_prefix
        self._messages: list[ChatMessage] = []

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def append(self, message: ChatMessage) -> None:
        """Add a message to the end of the history."""
        if not isinstance(message, ChatMessage):
            raise TypeError(
                f"Conversation history only holds ChatMessage, got {type(message)}"
            )
        self._messages.append(message)

    def clear(self) -> None:
        """Drop every stored message."""
        self._messages.clear()

    def replace_with_summary(self, summary: str) -> ChatMessage:
        """
        Replace the whole history with a single synthetic summary message.

        Returns:
            The user message now holding the summary.
        """
        dropped = len(self._messages)
        self.clear()
        message = ChatMessage.user(self.summary_prefix + summary)
        self._messages.append(message)
        logger.info(f"Replaced {dropped} messages with a history summary")
        return message

    def estimate_tokens(self) -> int:
        """Estimate tokens for the system prompt plus every stored message."""
        return estimate_tokens(self.system_prompt) + count_conversation_tokens(
            self._messages
        )

    def build_messages(self) -> list[ChatMessage]:
        """Messages for the next request, system prompt first."""
        return [ChatMessage.system(self.system_prompt), *self._messages]

    def transcript(self) -> str:
        """User and assistant turns rendered as plain text for summarization."""
        turns = [
            f"{message.role.value}: {message.text}"
            for message in self._messages
            if message.role in (MessageRole.USER, MessageRole.ASSISTANT)
        ]
        return "\n\n".join(turns)

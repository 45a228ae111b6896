"""
Core LLM dataclasses for chat-completion requests.

This module provides the foundational dataclasses for LLM interactions:
- Message roles and finish reasons
- Message structures with plain or multimodal content
- Request models serialized to the OpenAI-compatible wire shape
- Per-model limits
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal


class MessageRole(Enum):
    """OpenAI-compatible message roles."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class FinishReason(Enum):
    """OpenAI-compatible finish reasons."""
    STOP = "stop"
    LENGTH = "length"
    CONTENT_FILTER = "content_filter"


@dataclass(frozen=True)
class TextPart:
    """Text segment of a multimodal message."""
    text: str
    type: Literal["text"] = "text"

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.type, "text": self.text}


@dataclass(frozen=True)
class ImageUrl:
    """Inline image reference, usually a ``data:<mime>;base64,...`` URL."""
    url: str

    @classmethod
    def from_base64(cls, mime_type: str, data: str) -> ImageUrl:
        return cls(url=f"data:{mime_type};base64,{data}")


@dataclass(frozen=True)
class ImagePart:
    """Image segment of a multimodal message."""
    image_url: ImageUrl
    type: Literal["image_url"] = "image_url"

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.type, "image_url": {"url": self.image_url.url}}


ContentPart = TextPart | ImagePart


@dataclass(frozen=True)
class ChatMessage:
    """
    OpenAI-compatible message structure.

    ``content`` is either a plain string or a tuple of parts. The variant is
    fixed when the message is created.
    """
    role: MessageRole
    content: str | tuple[ContentPart, ...]

    @classmethod
    def system(cls, text: str) -> ChatMessage:
        return cls(MessageRole.SYSTEM, text)

    @classmethod
    def user(cls, text: str) -> ChatMessage:
        return cls(MessageRole.USER, text)

    @classmethod
    def assistant(cls, text: str) -> ChatMessage:
        return cls(MessageRole.ASSISTANT, text)

    @classmethod
    def multimodal(
        cls, role: MessageRole, parts: list[ContentPart] | tuple[ContentPart, ...]
    ) -> ChatMessage:
        return cls(role, tuple(parts))

    @property
    def is_multimodal(self) -> bool:
        return not isinstance(self.content, str)

    @property
    def text(self) -> str:
        """Text of the message; image parts are left out."""
        if isinstance(self.content, str):
            return self.content
        return "\n".join(
            part.text for part in self.content if isinstance(part, TextPart)
        )

    def to_payload(self) -> dict[str, Any]:
        if isinstance(self.content, str):
            content: str | list[dict[str, Any]] = self.content
        else:
            content = [part.to_payload() for part in self.content]
        return {"role": self.role.value, "content": content}


@dataclass
class ChatRequest:
    """Complete chat-completion request structure."""
    model: str
    messages: list[ChatMessage]
    temperature: float | None = None
    max_tokens: int | None = None
    stream: bool = False
    response_format: dict[str, str] | None = None

    def to_payload(self) -> dict[str, Any]:
        """Render the JSON body, leaving out unset optional fields."""
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [message.to_payload() for message in self.messages],
            "stream": self.stream,
        }
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        if self.max_tokens is not None:
            payload["max_tokens"] = self.max_tokens
        if self.response_format is not None:
            payload["response_format"] = self.response_format
        return payload


@dataclass(frozen=True)
class ModelSpec:
    """Model alias with its input budget and default output size."""
    alias: str
    name: str
    max_input_tokens: int
    default_max_tokens: int

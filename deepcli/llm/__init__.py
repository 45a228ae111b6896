"""
LLM integration for the chat client.

This package provides:
- Type-safe dataclass models for messages and requests
- A streaming HTTP client for OpenAI-compatible chat completions
- SSE decoding into text deltas and finish reasons
- The error taxonomy shared with the chat loop
"""

from __future__ import annotations

from .client import LLMClient
from .exceptions import APIStatusError, LLMError, StreamingError, SummarizationError
from .models import (
    ChatMessage,
    ChatRequest,
    ContentPart,
    FinishReason,
    ImagePart,
    ImageUrl,
    MessageRole,
    ModelSpec,
    TextPart,
)

__all__ = [
    "APIStatusError",
    # Core models
    "ChatMessage",
    "ChatRequest",
    "ContentPart",
    "FinishReason",
    "ImagePart",
    "ImageUrl",
    # Client
    "LLMClient",
    # Exceptions
    "LLMError",
    "MessageRole",
    "ModelSpec",
    "StreamingError",
    "SummarizationError",
    "TextPart",
]

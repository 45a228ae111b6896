"""
Error types for chat-completion requests.

This module provides the error taxonomy used by the client and the chat loop:
- API errors carrying the HTTP status and body text verbatim
- Transport errors raised or surfaced while a stream is in flight
- Summarization failures, which the chat loop treats as non-fatal
"""

from __future__ import annotations


class LLMError(Exception):
    """Base LLM error with rich context."""

    def __init__(
        self,
        message: str,
        provider: str,
        model: str,
        status_code: int | None = None,
        response_data: dict | None = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.model = model
        self.status_code = status_code
        self.response_data = response_data or {}


class APIStatusError(LLMError):
    """Non-success HTTP status returned by the chat-completions endpoint."""

    def __init__(
        self,
        status_code: int,
        body: str,
        provider: str = "unknown",
        model: str = "unknown",
    ):
        super().__init__(
            f"API Error {status_code}: {body}",
            provider,
            model,
            status_code=status_code,
        )
        self.body = body


class StreamingError(LLMError):
    """Streaming-specific errors."""

    def __init__(
        self,
        message: str,
        provider: str = "unknown",
        model: str = "unknown",
        **kwargs,
    ):
        super().__init__(message, provider, model, **kwargs)


class SummarizationError(LLMError):
    """The history summary request failed; the conversation keeps its history."""

    def __init__(
        self,
        message: str,
        provider: str = "unknown",
        model: str = "unknown",
        **kwargs,
    ):
        super().__init__(message, provider, model, **kwargs)

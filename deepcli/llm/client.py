"""
HTTP client for streaming chat-completion requests.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import aclosing
from typing import Any

import httpx

from .exceptions import APIStatusError, StreamingError
from .models import ChatRequest
from .streaming.adapter import iter_stream_events
from .streaming.models import StreamEvent

logger = logging.getLogger(__name__)

CHAT_COMPLETIONS_PATH = "/chat/completions"


class LLMClient:
    """HTTP client for streaming chat-completion requests."""

    def __init__(
        self,
        config: dict[str, Any],
        api_key: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        # Validate required configuration parameters
        required_keys = ["base_url", "http_client"]
        for key in required_keys:
            if key not in config:
                raise ValueError(
                    f"Required LLM configuration parameter '{key}' not found. "
                    "All LLM parameters must be explicitly configured."
                )

        http_config = config["http_client"]
        self.config: dict[str, Any] = config
        self.provider: str = config.get("name", "unknown")
        self.client: httpx.AsyncClient = httpx.AsyncClient(
            base_url=config["base_url"],
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(
                connect=http_config.get("connect_timeout", 10.0),
                read=http_config.get("read_timeout"),
                write=http_config.get("write_timeout", 10.0),
                pool=http_config.get("pool_timeout", 10.0),
            ),
            transport=transport,
        )

    async def stream_chat(
        self, request: ChatRequest
    ) -> AsyncGenerator[StreamEvent]:
        """
        Issue a streaming chat-completion request and yield its events.

        Raises:
            APIStatusError: The endpoint answered with a non-success status.
            StreamingError: The request could not be sent.

        Transport failures after the body has started arrive as a final
        error event instead of an exception. Closing the generator early
        releases the connection.
        """
        payload = request.to_payload()
        payload["stream"] = True

        try:
            async with self.client.stream(
                "POST", CHAT_COMPLETIONS_PATH, json=payload
            ) as response:
                if not response.is_success:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    logger.error(
                        f"Streaming API error {response.status_code} "
                        f"for model {request.model}"
                    )
                    raise APIStatusError(
                        response.status_code,
                        body,
                        provider=self.provider,
                        model=request.model,
                    )

                events = iter_stream_events(
                    response.aiter_bytes(),
                    provider=self.provider,
                    model=request.model,
                )
                async with aclosing(events):
                    async for event in events:
                        yield event

        except httpx.HTTPError as e:
            logger.error(f"HTTP error during streaming: {e}")
            raise StreamingError(
                f"API request failed: {e}",
                provider=self.provider,
                model=request.model,
            ) from e

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> LLMClient:
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

"""
Lazy event stream over an HTTP response body.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, AsyncIterable

import httpx

from ..exceptions import StreamingError
from .models import StreamEvent
from .parser import ChunkDecoder

logger = logging.getLogger(__name__)


async def iter_stream_events(
    chunks: AsyncIterable[bytes],
    decoder: ChunkDecoder | None = None,
    *,
    provider: str = "unknown",
    model: str = "unknown",
) -> AsyncGenerator[StreamEvent]:
    """
    Decode raw body chunks into stream events, one consumer, one pass.

    The generator ends after the ``[DONE]`` event, when the body is
    exhausted, or right after yielding a single error event for the first
    transport failure. Closing it early stops pulling from ``chunks`` and
    closes that iterator when it supports ``aclose()``.
    """
    decoder = decoder or ChunkDecoder()

    try:
        async for chunk in chunks:
            for event in decoder.feed(chunk):
                yield event
            if decoder.finished:
                return

    except (httpx.TransportError, httpx.StreamError, OSError) as e:
        logger.warning(f"Stream transport error: {e!r}")
        yield StreamEvent(
            error=StreamingError(
                f"Stream error: {e}", provider=provider, model=model
            )
        )

    finally:
        decoder.close()
        aclose = getattr(chunks, "aclose", None)
        if aclose is not None:
            await aclose()

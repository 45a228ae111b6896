"""
Streaming functionality for LLM clients.

This package contains:
- SSE chunk decoding into text deltas and finish reasons
- The lazy, cancellable event stream over an HTTP response body
"""

from __future__ import annotations

from .adapter import iter_stream_events
from .models import DecoderStats, StreamEvent
from .parser import ChunkDecoder

__all__ = [
    "ChunkDecoder",
    "DecoderStats",
    "StreamEvent",
    "iter_stream_events",
]

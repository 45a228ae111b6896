"""
SSE chunk decoder for chat-completion streams.

Raw byte chunks from the HTTP body are collected in a growable byte arena,
split into newline-terminated ``data:`` records, and turned into
``(text_delta, finish_reason)`` events.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from ..models import FinishReason
from .models import DecoderStats, StreamEvent

logger = logging.getLogger(__name__)

# Constants
DATA_PREFIX = "data: "
DONE_MARKER = "[DONE]"
DONE_FINISH_REASON = FinishReason.LENGTH.value
COMPACT_THRESHOLD = 64 * 1024


class ChunkDecoder:
    """
    Incremental decoder for one SSE response body.

    Framing from the transport may split or merge lines arbitrarily; decoding
    only ever happens on a fully isolated line, so the produced events do not
    depend on where the chunk boundaries fall.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._cursor = 0
        self.finished = False
        self.stats = DecoderStats()

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet consumed as a full line."""
        return len(self._buffer) - self._cursor

    def feed(self, chunk: bytes) -> list[StreamEvent]:
        """
        Append a chunk and drain every complete line it makes available.

        Returns the events decoded from those lines, in order. After the
        ``[DONE]`` sentinel has been seen, nothing more is produced.
        """
        if self.finished:
            return []

        self._buffer.extend(chunk)
        events: list[StreamEvent] = []

        while not self.finished:
            newline = self._buffer.find(b"\n", self._cursor)
            if newline == -1:
                break

            raw_line = bytes(self._buffer[self._cursor:newline + 1])
            self._cursor = newline + 1

            event = self._decode_line(raw_line)
            if event is not None:
                self.stats.events += 1
                events.append(event)

        self._compact()
        return events

    def close(self) -> None:
        """Drop the arena at end of stream; an unterminated tail is discarded."""
        if self.pending and not self.finished:
            logger.debug(
                "Discarding %d bytes of unterminated stream data", self.pending
            )
        self._release()

    def _decode_line(self, raw_line: bytes) -> StreamEvent | None:
        line = raw_line.decode("utf-8", errors="replace").strip()
        if not line:
            return None

        self.stats.lines += 1
        if not line.startswith(DATA_PREFIX):
            self.stats.ignored_lines += 1
            return None

        payload = line[len(DATA_PREFIX):]
        if payload == DONE_MARKER:
            self.finished = True
            self._release()
            return StreamEvent("", DONE_FINISH_REASON, done=True)

        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            self.stats.malformed_lines += 1
            logger.debug(f"Skipping malformed stream line: {e}")
            return None

        return self._extract_event(data)

    def _extract_event(self, data: Any) -> StreamEvent | None:
        """Map one parsed chunk to an event, preferring ``delta`` over ``message``."""
        if not isinstance(data, dict):
            self.stats.ignored_lines += 1
            return None

        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            self.stats.ignored_lines += 1
            return None

        choice = choices[0]
        if not isinstance(choice, dict):
            self.stats.ignored_lines += 1
            return None

        finish_reason = choice.get("finish_reason")
        if not isinstance(finish_reason, str):
            finish_reason = None

        # Incremental shape first, whole-message shape as fallback
        text = _content_of(choice.get("delta"))
        if text is None:
            text = _content_of(choice.get("message"))

        if text is not None:
            return StreamEvent(text, finish_reason)
        if finish_reason is not None:
            return StreamEvent("", finish_reason)
        return None

    def _compact(self) -> None:
        if self._cursor == len(self._buffer):
            self._buffer.clear()
            self._cursor = 0
        elif self._cursor > COMPACT_THRESHOLD:
            del self._buffer[:self._cursor]
            self._cursor = 0

    def _release(self) -> None:
        self._buffer = bytearray()
        self._cursor = 0

    def get_stats(self) -> dict[str, int]:
        """Get decoding statistics for monitoring."""
        return self.stats.as_dict()

    def reset_stats(self) -> None:
        """Reset statistics counters."""
        self.stats = DecoderStats()


def _content_of(container: Any) -> str | None:
    if isinstance(container, dict):
        content = container.get("content")
        if isinstance(content, str):
            return content
    return None

"""
Streaming-specific dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..exceptions import LLMError


@dataclass(frozen=True)
class StreamEvent:
    """
    One decoded item of a chat-completion stream.

    Either field may be empty. ``done`` marks the event produced for the
    ``[DONE]`` sentinel; ``error`` is only set on the terminal item of a stream
    that failed in transport.
    """
    text_delta: str = ""
    finish_reason: str | None = None
    done: bool = False
    error: LLMError | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def is_terminal(self) -> bool:
        """True for events after which the stream yields nothing more."""
        return self.done or self.error is not None


@dataclass
class DecoderStats:
    """Counters kept by the chunk decoder for one stream."""
    lines: int = 0
    events: int = 0
    ignored_lines: int = 0
    malformed_lines: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "lines": self.lines,
            "events": self.events,
            "ignored_lines": self.ignored_lines,
            "malformed_lines": self.malformed_lines,
        }

"""
Truncation detection for automatic continuation.

When the provider reports a finish reason, it decides. Without one, the
reply's trailing characters are checked: a dangling connector or a long reply
with no sentence-final mark is taken as cut off. The default character sets
are tuned for Chinese replies and can be replaced through configuration.
"""

from __future__ import annotations

from dataclasses import dataclass

from deepcli.llm.models import FinishReason

DEFAULT_OPEN_ENDINGS: tuple[str, ...] = (
    "(", "（", "、", "，", ",", "：", ":", "；", "-", "**", "…",
)
DEFAULT_SENTENCE_ENDINGS: tuple[str, ...] = ("。", "！", "？")
DEFAULT_LENGTH_THRESHOLD = 100


@dataclass(frozen=True)
class TruncationPolicy:
    """Decides whether a reply looks truncated and should be continued."""
    open_endings: tuple[str, ...] = DEFAULT_OPEN_ENDINGS
    sentence_endings: tuple[str, ...] = DEFAULT_SENTENCE_ENDINGS
    length_threshold: int = DEFAULT_LENGTH_THRESHOLD
    truncation_reason: str = FinishReason.LENGTH.value

    def is_truncated(self, reply: str, finish_reason: str | None = None) -> bool:
        if finish_reason:
            return finish_reason == self.truncation_reason
        return self.looks_unfinished(reply)

    def looks_unfinished(self, reply: str) -> bool:
        text = reply.strip()
        if not text:
            return False
        if text.endswith(self.open_endings):
            return True
        return (
            len(text) > self.length_threshold
            and not text.endswith(self.sentence_endings)
        )

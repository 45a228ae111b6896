"""
Chat Service for the command-line client.

This module drives one conversation turn by turn:
- Conversation history with a heuristic input budget
- Summarization of the history once the budget is exceeded
- Streaming of the assistant reply, delta by delta
- Automatic "please continue" follow-ups when a reply looks truncated

Only one request is in flight at a time. Summarization, the main reply and
every continuation run strictly one after another, and each request is built
from the history left by the previous exchange.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from deepcli.config import Configuration
from deepcli.continuation import TruncationPolicy
from deepcli.history.conversation import SUMMARY_PREFIX, Conversation
from deepcli.llm.exceptions import LLMError, SummarizationError
from deepcli.llm.models import ChatMessage, ChatRequest, ModelSpec
from deepcli.logging_utils import ContextualLogger, LLMErrorHandler, operation_context

DEFAULT_MAX_CONTINUATIONS = 5
DEFAULT_CONTINUE_PROMPT = "please continue"
DEFAULT_SUMMARY_PROMPT = "Summarize this conversation, preserving key information:"
JSON_RESPONSE_FORMAT = {"type": "json_object"}


class ControllerState(Enum):
    """Where the chat loop is within the current user turn."""
    IDLE = "idle"
    AWAITING_BUDGET_CHECK = "awaiting_budget_check"
    SUMMARIZING = "summarizing"
    STREAMING = "streaming"
    AWAITING_CONTINUATION_DECISION = "awaiting_continuation_decision"


class ChatReply(BaseModel):
    """
    One item produced for display while a turn is processed.

    ``text`` items are reply deltas, ``notice`` items report summarization
    and continuation, ``error`` items report a failed request.
    """
    type: Literal["text", "notice", "error"]
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)


@dataclass
class _StreamOutcome:
    """What one streamed request left behind."""
    chunks: list[str] = field(default_factory=list)
    provider_reason: str | None = None
    sentinel_reason: str | None = None
    error: LLMError | None = None

    @property
    def text(self) -> str:
        return "".join(self.chunks)

    @property
    def finish_reason(self) -> str | None:
        # The [DONE] sentinel's reason only stands in when the provider sent none
        return self.provider_reason or self.sentinel_reason


class ChatService:
    """
    Conversation orchestrator for one interactive session.

    1. Records your message
    2. Summarizes the history if it has grown past the model's input budget
    3. Streams the reply back to you
    4. Asks the model to continue while the reply looks cut off
    """

    class ChatServiceConfig(BaseModel):
        model_config = ConfigDict(arbitrary_types_allowed=True)

        llm_client: Any  # LLMClient
        model: ModelSpec
        system_prompt: str
        temperature: float | None = None
        max_tokens: int | None = None
        json_mode: bool = False
        max_continuations: int = DEFAULT_MAX_CONTINUATIONS
        continue_prompt: str = DEFAULT_CONTINUE_PROMPT
        summary_prompt: str = DEFAULT_SUMMARY_PROMPT
        summary_prefix: str = SUMMARY_PREFIX
        truncation_policy: TruncationPolicy = Field(default_factory=TruncationPolicy)

    def __init__(self, service_config: ChatService.ChatServiceConfig):
        self.llm_client = service_config.llm_client
        self.model = service_config.model
        self.temperature = service_config.temperature
        self.max_tokens = service_config.max_tokens
        self.json_mode = service_config.json_mode
        self.max_continuations = service_config.max_continuations
        self.continue_prompt = service_config.continue_prompt
        self.summary_prompt = service_config.summary_prompt
        self.truncation_policy = service_config.truncation_policy

        self.conversation = Conversation(
            service_config.system_prompt, service_config.summary_prefix
        )
        self.state = ControllerState.IDLE
        self.last_finish_reason: str | None = None
        self._logger = ContextualLogger({"model": self.model.name})

    @classmethod
    def from_configuration(
        cls,
        configuration: Configuration,
        llm_client: Any,
        model_alias: str,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> ChatService:
        """Build a service from the YAML configuration and CLI choices."""
        continuation_config = configuration.get_continuation_config()
        return cls(
            cls.ChatServiceConfig(
                llm_client=llm_client,
                model=configuration.get_model_spec(model_alias),
                system_prompt=configuration.get_system_prompt(json_mode),
                temperature=temperature,
                max_tokens=max_tokens,
                json_mode=json_mode,
                max_continuations=continuation_config["max_iterations"],
                continue_prompt=continuation_config["continue_prompt"],
                summary_prompt=continuation_config["summary_prompt"],
                summary_prefix=continuation_config["summary_prefix"],
                truncation_policy=configuration.get_truncation_policy(),
            )
        )

    def clear_history(self) -> None:
        """Forget the whole conversation."""
        self.conversation.clear()
        self.last_finish_reason = None
        self._logger.info("Conversation history cleared")

    async def process_message(self, user_input: str) -> AsyncGenerator[ChatReply]:
        """
        Run one user turn, yielding reply deltas and notices as they happen.

        Request failures are yielded as ``error`` items; the turn then ends
        and the service waits for the next message.
        """
        try:
            self.state = ControllerState.AWAITING_BUDGET_CHECK
            self.conversation.append(ChatMessage.user(user_input))

            async for reply in self._summarize_if_over_budget():
                yield reply

            continuations = 0
            while True:
                self.state = ControllerState.STREAMING
                outcome = _StreamOutcome()
                async for reply in self._stream_reply(outcome, continuations):
                    yield reply

                # Partial replies are kept so a later continuation has context.
                # An empty reply adds no message, so after a request that failed
                # before any text the history ends on the user message.
                if outcome.text:
                    self.conversation.append(ChatMessage.assistant(outcome.text))
                self.last_finish_reason = outcome.finish_reason

                if outcome.error is not None:
                    category, message = LLMErrorHandler.report(
                        outcome.error,
                        "Chat completion",
                        {"model": self.model.name, "continuation": continuations},
                    )
                    yield ChatReply(
                        type="error",
                        content=message,
                        metadata={"category": category, "partial": bool(outcome.text)},
                    )
                    break

                self.state = ControllerState.AWAITING_CONTINUATION_DECISION
                if not self.truncation_policy.is_truncated(
                    outcome.text, outcome.finish_reason
                ):
                    break

                if continuations >= self.max_continuations:
                    self._logger.warning(
                        "Continuation limit reached",
                        max_continuations=self.max_continuations,
                    )
                    yield ChatReply(
                        type="notice",
                        content=(
                            f"Reply still looks truncated after "
                            f"{self.max_continuations} automatic continuations."
                        ),
                        metadata={"continuation_limit": self.max_continuations},
                    )
                    break

                continuations += 1
                self.conversation.append(ChatMessage.user(self.continue_prompt))
                self._logger.info(
                    "Continuing truncated reply",
                    continuation=continuations,
                    finish_reason=outcome.finish_reason,
                )
                yield ChatReply(
                    type="notice",
                    content=(
                        f"Reply looks truncated, continuing "
                        f"({continuations}/{self.max_continuations})..."
                    ),
                    metadata={"continuation": continuations},
                )
        finally:
            self.state = ControllerState.IDLE

    async def _summarize_if_over_budget(self) -> AsyncGenerator[ChatReply]:
        estimated = self.conversation.estimate_tokens()
        if estimated <= self.model.max_input_tokens:
            return

        self.state = ControllerState.SUMMARIZING
        self._logger.info(
            "History over input budget, summarizing",
            estimated_tokens=estimated,
            max_input_tokens=self.model.max_input_tokens,
        )

        try:
            summary = await self._summarize()
        except SummarizationError as e:
            category, message = LLMErrorHandler.report(
                e, "History summarization", {"estimated_tokens": estimated}
            )
            yield ChatReply(
                type="error", content=message, metadata={"category": category}
            )
            return

        self.conversation.replace_with_summary(summary)
        yield ChatReply(
            type="notice",
            content="Conversation history was summarized to fit the input budget.",
            metadata={
                "estimated_tokens": estimated,
                "summary_tokens": self.conversation.estimate_tokens(),
            },
        )

    async def _summarize(self) -> str:
        """
        Ask the model for a summary of the user/assistant turns so far.

        Raises:
            SummarizationError: The request failed or returned no text.
        """
        prompt = f"{self.summary_prompt}\n\n{self.conversation.transcript()}"
        request = ChatRequest(
            model=self.model.name,
            messages=[
                ChatMessage.system(self.conversation.system_prompt),
                ChatMessage.user(prompt),
            ],
            temperature=self.temperature,
            max_tokens=self.model.default_max_tokens,
            stream=True,
        )

        chunks: list[str] = []
        try:
            async with operation_context(
                "history_summarization", context={"model": self.model.name}
            ):
                events = self.llm_client.stream_chat(request)
                async with aclosing(events):
                    async for event in events:
                        if event.error is not None:
                            raise event.error
                        if event.text_delta:
                            chunks.append(event.text_delta)
        except LLMError as e:
            raise SummarizationError(
                f"Summary request failed: {e}",
                provider=e.provider,
                model=self.model.name,
                status_code=e.status_code,
            ) from e

        summary = "".join(chunks).strip()
        if not summary:
            raise SummarizationError(
                "Summary request returned no text", model=self.model.name
            )
        return summary

    async def _stream_reply(
        self, outcome: _StreamOutcome, continuation: int
    ) -> AsyncGenerator[ChatReply]:
        request = ChatRequest(
            model=self.model.name,
            messages=self.conversation.build_messages(),
            temperature=self.temperature,
            max_tokens=self.max_tokens or self.model.default_max_tokens,
            stream=True,
            response_format=JSON_RESPONSE_FORMAT if self.json_mode else None,
        )

        try:
            async with operation_context(
                "chat_completion",
                context={"model": self.model.name, "continuation": continuation},
            ):
                events = self.llm_client.stream_chat(request)
                async with aclosing(events):
                    async for event in events:
                        if event.error is not None:
                            outcome.error = event.error
                            break

                        if event.text_delta:
                            outcome.chunks.append(event.text_delta)
                            yield ChatReply(
                                type="text",
                                content=event.text_delta,
                                metadata={"continuation": continuation},
                            )

                        # No early exit: trailing events may still carry a reason
                        if event.finish_reason:
                            if event.done:
                                outcome.sentinel_reason = event.finish_reason
                            else:
                                outcome.provider_reason = event.finish_reason
        except LLMError as e:
            outcome.error = e

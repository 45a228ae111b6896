"""
Centralized logging and error handling utilities for the chat client.

This module standardizes how the client logs its request/response work and
how failures are classified before they are shown to the user.

Features:
- Structured logging over the stdlib logging tree, always on stderr
- Error classification matching the client's error taxonomy
- Timing of request/response operations
"""

from __future__ import annotations

import logging
import sys
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from deepcli.llm.exceptions import (
    APIStatusError,
    LLMError,
    StreamingError,
    SummarizationError,
)

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(colors=True),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)


def configure_logging(level: str = "WARNING") -> None:
    """
    Route stdlib and structlog output to stderr at the given level.

    Streamed replies go to stdout, so log lines never interleave with them.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown logging level '{level}'")

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
        force=True,
    )


class LLMErrorHandler:
    """Centralized error classification with structured logging."""

    @staticmethod
    def classify_error(error: Exception) -> str:
        """
        Classify an error into a reporting category.

        Args:
            error: The exception to classify

        Returns:
            Category name such as ``api_error`` or ``transport_error``
        """
        if isinstance(error, APIStatusError):
            return "api_error"
        if isinstance(error, SummarizationError):
            return "summarization_error"
        if isinstance(error, TimeoutError | httpx.TimeoutException):
            return "timeout_error"
        if isinstance(error, StreamingError | httpx.TransportError | OSError):
            return "transport_error"
        if isinstance(error, LLMError):
            return "llm_error"
        if isinstance(error, ValidationError):
            return "validation_error"
        if isinstance(error, ValueError | TypeError):
            return "parameter_error"
        return "unknown_error"

    @staticmethod
    def report(
        error: Exception,
        operation: str,
        context: dict[str, Any] | None = None,
    ) -> tuple[str, str]:
        """
        Log a failed operation and phrase it for the terminal.

        Returns:
            ``(category, message)``, where message reads
            ``"<operation> failed: <error>"``.
        """
        category = LLMErrorHandler.classify_error(error)
        logger.error(
            f"{operation} failed",
            category=category,
            exc_type=type(error).__name__,
            detail=str(error),
            **(context or {}),
        )
        return category, f"{operation} failed: {error!s}"


@asynccontextmanager
async def operation_context(
    operation: str,
    *,
    context: dict[str, Any] | None = None,
) -> AsyncIterator[structlog.stdlib.BoundLogger]:
    """
    Time one request/response exchange and log how it ended.

    Exceptions are logged at warning level and re-raised unchanged; callers
    decide whether they are fatal.
    """
    bound = logger.bind(operation=operation, **(context or {}))
    bound.debug("Operation started")
    started = time.perf_counter()

    def elapsed_ms() -> float:
        return round((time.perf_counter() - started) * 1000, 2)

    try:
        yield bound
    except Exception as e:
        bound.warning(
            "Operation aborted",
            exc_type=type(e).__name__,
            detail=str(e),
            duration_ms=elapsed_ms(),
        )
        raise

    bound.info("Operation completed", duration_ms=elapsed_ms())


class ContextualLogger:
    """Structured logger carrying a fixed set of context fields."""

    def __init__(self, base_context: dict[str, Any] | None = None):
        self.base_context = dict(base_context or {})
        self._bound = logger.bind(**self.base_context)

    def bind(self, **context: Any) -> ContextualLogger:
        """Return a child logger with extra context; this one is unchanged."""
        return ContextualLogger({**self.base_context, **context})

    def _log(self, level: str, message: str, context: dict[str, Any]) -> None:
        getattr(self._bound, level)(message, **context)

    def debug(self, message: str, **context: Any) -> None:
        self._log("debug", message, context)

    def info(self, message: str, **context: Any) -> None:
        self._log("info", message, context)

    def warning(self, message: str, **context: Any) -> None:
        self._log("warning", message, context)

    def error(self, message: str, **context: Any) -> None:
        self._log("error", message, context)

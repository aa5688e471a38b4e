"""
Base LLM Provider

Abstract base class for LLM provider implementations.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod

import structlog

from cadence.llm.gateway import LLMResponse, Message

logger = structlog.get_logger(__name__)


class BaseLLMProvider(ABC):
    """
    Base class for LLM providers.

    Subclasses list the SDK exceptions that retrying cannot fix (bad key,
    bad request) in fatal_errors; every other failure is retryable.
    """

    name: str = "base"
    fatal_errors: tuple[type[Exception], ...] = ()

    def __init__(self, api_key: str, model: str):
        """
        Initialize provider.

        Args:
            api_key: API key for the provider
            model: Model identifier
        """
        self.api_key = api_key
        self.model = model

    @abstractmethod
    async def generate(
        self,
        messages: list[Message],
        system_prompt: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.7,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Generate a response from the LLM."""
        pass

    def failure(self, error: Exception, started: float) -> LLMResponse:
        """Error response for a failed call started at perf_counter() value started."""
        retryable = not isinstance(error, self.fatal_errors)
        logger.error(
            f"{self.name}_error",
            error=str(error),
            error_type=type(error).__name__,
            retryable=retryable,
        )
        return LLMResponse(
            content="",
            model=self.model,
            provider=self.name,
            latency_ms=(time.perf_counter() - started) * 1000,
            error=str(error),
            retryable=retryable,
        )

"""
LLM Gateway

Provider-agnostic interface for the interpretation backend.
Supports Claude (Anthropic) and GPT (OpenAI) with automatic fallback.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

import structlog

logger = structlog.get_logger(__name__)


class Role(str, Enum):
    """Message roles in a conversation."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class Message:
    """A single message in a conversation."""
    role: Role
    content: str
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        """Convert to provider-compatible dict."""
        return {"role": self.role.value, "content": self.content}


@dataclass
class LLMResponse:
    """
    Response from an LLM provider.

    error is set on failure; retryable tells the gateway whether another
    attempt against the same provider can help.
    """
    content: str
    model: str
    provider: str
    input_tokens: int = 0
    output_tokens: int = 0
    latency_ms: float = 0
    finish_reason: str = "stop"
    error: str | None = None
    retryable: bool = True

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class LLMProvider(Protocol):
    """Protocol for LLM providers."""

    name: str

    async def generate(
        self,
        messages: list[Message],
        system_prompt: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.7,
        json_mode: bool = False,
    ) -> LLMResponse:
        ...


class LLMGateway:
    """
    Gateway for the interpretation backend.

    Providers are tried in order (primary, then fallback). Each provider
    gets max_retries extra attempts with exponential backoff, except when
    it reports a non-retryable error, which moves straight to the next
    provider. Every attempt is bounded by timeout.
    """

    def __init__(
        self,
        primary_provider: LLMProvider,
        fallback_provider: LLMProvider | None = None,
        max_retries: int = 2,
        retry_delay: float = 1.0,
        timeout: float = 30.0,
    ):
        self.primary = primary_provider
        self.fallback = fallback_provider
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout

        self._running = False
        self.request_count = 0
        self.failure_count = 0

    @property
    def providers(self) -> list[LLMProvider]:
        return [p for p in (self.primary, self.fallback) if p is not None]

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        self._running = True
        logger.info("llm_gateway_started", providers=[p.name for p in self.providers])

    async def stop(self) -> None:
        self._running = False
        logger.info(
            "llm_gateway_stopped",
            requests=self.request_count,
            failures=self.failure_count,
        )

    async def generate(
        self,
        messages: list[Message],
        system_prompt: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.7,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Generate a reply, falling back to the next provider on failure."""
        if not self._running:
            return LLMResponse(content="", model="", provider="", error="LLM gateway not running")

        self.request_count += 1
        request = {
            "messages": messages,
            "system_prompt": system_prompt,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "json_mode": json_mode,
        }
        logger.debug(
            "llm_request",
            message_count=len(messages),
            has_system=system_prompt is not None,
            json_mode=json_mode,
        )

        response = None
        for index, provider in enumerate(self.providers):
            if index:
                logger.warning("llm_falling_back", provider=provider.name, error=response.error)
            response = await self._try_provider(provider, request)
            if not response.error:
                logger.info(
                    "llm_response",
                    provider=response.provider,
                    model=response.model,
                    tokens=response.total_tokens,
                    latency_ms=round(response.latency_ms, 1),
                )
                return response

        self.failure_count += 1
        logger.error("llm_all_providers_failed", error=response.error)
        return response

    async def _attempt(self, provider: LLMProvider, request: dict) -> LLMResponse:
        """One bounded call; timeouts and stray exceptions become error responses."""
        try:
            return await asyncio.wait_for(provider.generate(**request), timeout=self.timeout)
        except asyncio.TimeoutError:
            error = f"Request timed out after {self.timeout}s"
        except Exception as e:
            error = str(e) or type(e).__name__
        return LLMResponse(content="", model="", provider=provider.name, error=error)

    async def _try_provider(self, provider: LLMProvider, request: dict) -> LLMResponse:
        """Try a provider with retries."""
        response = None
        for attempt in range(1, self.max_retries + 2):
            response = await self._attempt(provider, request)
            if not response.error:
                return response

            logger.warning(
                "llm_provider_error",
                provider=provider.name,
                attempt=attempt,
                retryable=response.retryable,
                error=response.error,
            )
            if not response.retryable or attempt > self.max_retries:
                break
            await asyncio.sleep(self.retry_delay * 2 ** (attempt - 1))

        return response

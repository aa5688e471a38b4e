"""
Claude (Anthropic) LLM Provider
"""

from __future__ import annotations

import time

import anthropic

from cadence.llm.gateway import LLMResponse, Message, Role
from cadence.llm.providers.base import BaseLLMProvider

# Claude has no response_format switch; JSON is requested in the system prompt
JSON_INSTRUCTION = "Respond with a single JSON object and nothing else."


class ClaudeProvider(BaseLLMProvider):
    """Anthropic Claude provider."""

    name = "claude"
    fatal_errors = (
        anthropic.AuthenticationError,
        anthropic.PermissionDeniedError,
        anthropic.BadRequestError,
        anthropic.NotFoundError,
    )

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
    ):
        super().__init__(api_key=api_key, model=model)
        self._client: anthropic.AsyncAnthropic | None = None

    @property
    def client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key)
        return self._client

    async def generate(
        self,
        messages: list[Message],
        system_prompt: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.7,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Generate a response using Claude."""
        started = time.perf_counter()

        # System turns travel in the separate system parameter
        system_parts = [m.content for m in messages if m.role == Role.SYSTEM]
        if system_prompt:
            system_parts.insert(0, system_prompt)
        if json_mode:
            system_parts.append(JSON_INSTRUCTION)

        kwargs = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [m.to_dict() for m in messages if m.role != Role.SYSTEM],
        }
        if system_parts:
            kwargs["system"] = "\n\n".join(system_parts)

        try:
            response = await self.client.messages.create(**kwargs)
        except anthropic.APIError as e:
            return self.failure(e, started)

        text = "".join(block.text for block in response.content if block.type == "text")
        return LLMResponse(
            content=text,
            model=response.model,
            provider=self.name,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            latency_ms=(time.perf_counter() - started) * 1000,
            finish_reason=response.stop_reason or "stop",
        )

"""
OpenAI LLM Provider
"""

from __future__ import annotations

import time

import openai

from cadence.llm.gateway import LLMResponse, Message
from cadence.llm.providers.base import BaseLLMProvider


class OpenAIProvider(BaseLLMProvider):
    """OpenAI GPT provider. JSON mode maps onto response_format."""

    name = "openai"
    fatal_errors = (
        openai.AuthenticationError,
        openai.PermissionDeniedError,
        openai.BadRequestError,
        openai.NotFoundError,
    )

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
    ):
        super().__init__(api_key=api_key, model=model)
        self._client: openai.AsyncOpenAI | None = None

    @property
    def client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            self._client = openai.AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def generate(
        self,
        messages: list[Message],
        system_prompt: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.7,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Generate a response using GPT."""
        started = time.perf_counter()

        chat = [{"role": "system", "content": system_prompt}] if system_prompt else []
        chat.extend(m.to_dict() for m in messages)

        kwargs = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": chat,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self.client.chat.completions.create(**kwargs)
        except openai.APIError as e:
            return self.failure(e, started)

        choice = response.choices[0]
        usage = response.usage
        return LLMResponse(
            content=choice.message.content or "",
            model=response.model,
            provider=self.name,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            latency_ms=(time.perf_counter() - started) * 1000,
            finish_reason=choice.finish_reason or "stop",
        )

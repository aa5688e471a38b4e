"""
Interpretation Backend

Turns a prompt plus a JSON payload into a validated, typed reply.
Every backend-calling pipeline stage goes through interpret_or_fallback(),
so timeouts, rate limits, provider errors and malformed JSON all end in
the stage's deterministic fallback.
"""

from __future__ import annotations

import asyncio
import json
import re
from typing import Any, Callable, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from cadence.config import LLMConfig
from cadence.llm.gateway import LLMGateway, Message, Role
from cadence.llm.providers import PROVIDERS, BaseLLMProvider, canonical_name, provider_from_env

logger = structlog.get_logger(__name__)

ReplyT = TypeVar("ReplyT", bound=BaseModel)
ResultT = TypeVar("ResultT")

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class InterpretationError(Exception):
    """The backend produced no usable reply."""


def parse_json_reply(content: str, schema: type[ReplyT]) -> ReplyT:
    """Strip code fences and validate a JSON reply against a pydantic model."""
    text = _FENCE.sub("", content.strip())
    if not text:
        raise InterpretationError("empty reply")
    try:
        return schema.model_validate_json(text)
    except ValidationError as e:
        raise InterpretationError(f"reply failed validation: {e.error_count()} errors") from e


class InterpretationBackend:
    """
    Typed JSON interpretation on top of the LLM gateway.

    The gateway already retries each attempt under its own timeout;
    this layer adds one overall deadline per stage.
    """

    def __init__(
        self,
        gateway: LLMGateway | None,
        timeout: float = 45.0,
        max_tokens: int = 1500,
        temperature: float = 0.2,
    ):
        self.gateway = gateway
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.temperature = temperature

    @property
    def available(self) -> bool:
        return self.gateway is not None and self.gateway.is_running

    async def interpret(
        self,
        system_prompt: str,
        payload: dict[str, Any],
        schema: type[ReplyT],
    ) -> ReplyT:
        """Send payload as JSON and validate the reply. Raises InterpretationError."""
        if not self.available:
            raise InterpretationError("no interpretation backend available")

        message = Message(role=Role.USER, content=json.dumps(payload, default=str))
        try:
            response = await asyncio.wait_for(
                self.gateway.generate(
                    messages=[message],
                    system_prompt=system_prompt,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                    json_mode=True,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise InterpretationError(f"stage timed out after {self.timeout}s") from e

        if response.error:
            raise InterpretationError(response.error)

        return parse_json_reply(response.content, schema)

    async def interpret_or_fallback(
        self,
        *,
        stage: str,
        system_prompt: str,
        payload: dict[str, Any],
        schema: type[ReplyT],
        parse: Callable[[ReplyT], ResultT],
        fallback: Callable[[], ResultT],
    ) -> ResultT:
        """
        Run one backend stage, substituting the fallback on any failure.

        Args:
            stage: Stage name for logging
            system_prompt: Instructions for the backend
            payload: JSON-serializable request body
            schema: Pydantic model the reply must satisfy
            parse: Converts a validated reply into the stage result
            fallback: Produces the deterministic stage result

        Returns:
            The parsed reply, or the fallback result
        """
        try:
            reply = await self.interpret(system_prompt, payload, schema)
            result = parse(reply)
        except InterpretationError as e:
            logger.warning("stage_fallback", stage=stage, error=str(e))
            return fallback()
        except (ValueError, TypeError, KeyError) as e:
            # A reply that validated but could not be mapped is treated as malformed
            logger.warning("stage_fallback", stage=stage, error=f"malformed reply: {e}")
            return fallback()

        logger.debug("stage_interpreted", stage=stage)
        return result


def create_gateway(config: LLMConfig) -> LLMGateway | None:
    """
    Create an LLM gateway from whichever API keys are present.

    The configured primary and fallback are used when their keys are set.
    Without a primary key, any other registered provider with a key
    becomes the sole provider.
    """
    models = {"claude": config.claude_model, "openai": config.openai_model}

    def build(name: str) -> BaseLLMProvider | None:
        return provider_from_env(name, models.get(name))

    primary_name = canonical_name(config.primary_provider)
    primary = build(primary_name)
    fallback = None
    if primary is not None and config.fallback_provider:
        fallback_name = canonical_name(config.fallback_provider)
        if fallback_name != primary_name:
            fallback = build(fallback_name)
    elif primary is None:
        others = (build(name) for name in PROVIDERS if name != primary_name)
        primary = next((p for p in others if p is not None), None)

    if primary is None:
        logger.warning("no_llm_api_keys", message="Set ANTHROPIC_API_KEY or OPENAI_API_KEY")
        return None

    logger.info(
        "llm_provider_configured",
        primary=primary.name,
        fallback=fallback.name if fallback else None,
    )
    return LLMGateway(
        primary_provider=primary,
        fallback_provider=fallback,
        max_retries=config.max_retries,
        retry_delay=config.retry_delay,
        timeout=config.timeout,
    )

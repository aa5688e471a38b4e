"""
Interpretation Backend Module

Provider-agnostic interface for language model interactions.
"""

from cadence.llm.gateway import LLMGateway, LLMResponse, Message, Role
from cadence.llm.interpret import (
    InterpretationBackend,
    InterpretationError,
    create_gateway,
    parse_json_reply,
)
from cadence.llm.providers import get_provider, ClaudeProvider, OpenAIProvider

__all__ = [
    "LLMGateway",
    "LLMResponse",
    "Message",
    "Role",
    "InterpretationBackend",
    "InterpretationError",
    "create_gateway",
    "parse_json_reply",
    "get_provider",
    "ClaudeProvider",
    "OpenAIProvider",
]

"""
Shared fixtures: a fixed clock, a scripted LLM provider and a temp store.
"""

import json
from datetime import datetime

import pytest

from cadence.llm.gateway import LLMGateway, LLMResponse
from cadence.pipeline.store import TaskStore

# Wednesday, mid-month: no seasonal pattern applies
NOW = datetime(2026, 10, 14, 10, 0)


class ScriptedProvider:
    """LLM provider that answers from a queue of canned replies."""

    name = "scripted"

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    async def generate(
        self,
        messages,
        system_prompt=None,
        max_tokens=1024,
        temperature=0.7,
        json_mode=False,
    ):
        self.calls.append({"messages": messages, "system_prompt": system_prompt})
        if not self.replies:
            return LLMResponse(content="", model="fake", provider=self.name, error="no reply scripted")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, LLMResponse):
            return reply
        content = reply if isinstance(reply, str) else json.dumps(reply)
        return LLMResponse(content=content, model="fake", provider=self.name)

    @property
    def payloads(self):
        return [json.loads(call["messages"][0].content) for call in self.calls]


async def started_gateway(provider) -> LLMGateway:
    gateway = LLMGateway(primary_provider=provider, max_retries=0, retry_delay=0, timeout=5)
    await gateway.start()
    return gateway


@pytest.fixture
def store(tmp_path):
    db_path = str(tmp_path / "test.db")
    store = TaskStore(db_path=db_path)
    yield store
    store.close()

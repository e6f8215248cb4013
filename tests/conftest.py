"""
Shared fakes for chat service and API tests.
"""

import asyncio
import json
from contextlib import asynccontextmanager

import pytest
from unittest.mock import MagicMock

from ragrelay.core.chat_service import ChatService
from ragrelay.core.knowledge import KnowledgeService
from ragrelay.vector import DeterministicHashEmbedding, SimpleInMemoryVectorStore


def sse_frame(content: str) -> bytes:
    return ("data: " + json.dumps({"choices": [{"delta": {"content": content}}]}) + "\n\n").encode("utf-8")


class FakeStreamResponse:
    def __init__(self, chunks):
        self.chunks = chunks

    async def aiter_bytes(self):
        for chunk in self.chunks:
            yield chunk


class FakeProviderClient:
    """Stands in for OpenRouterClient; records what was dispatched."""

    def __init__(self, chunks=(), completion=None, error=None, configured=True):
        self.chunks = list(chunks)
        self.completion = completion
        self.error = error
        self.configured = configured
        self.calls = []

    async def create_chat_completion(self, messages, model, **kwargs):
        self.calls.append({"messages": messages, "model": model, "stream": False})
        if self.error is not None:
            raise self.error
        return self.completion

    @asynccontextmanager
    async def stream_chat_completion(self, messages, model, **kwargs):
        self.calls.append({"messages": messages, "model": model, "stream": True})
        if self.error is not None:
            raise self.error
        yield FakeStreamResponse(self.chunks)


@pytest.fixture
def telemetry():
    return MagicMock()


@pytest.fixture
def knowledge(telemetry):
    service = KnowledgeService(
        DeterministicHashEmbedding(dimension=32),
        SimpleInMemoryVectorStore(),
        collection="knowledge_base",
        telemetry=telemetry,
    )
    asyncio.run(service.ensure_collection())
    return service


@pytest.fixture
def make_chat_service(knowledge, telemetry):
    def make(client, **kwargs):
        kwargs.setdefault("knowledge", knowledge)
        return ChatService(client, telemetry=telemetry, default_model="test/default-model", **kwargs)

    return make

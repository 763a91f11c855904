"""Shared fixtures: mocked completion server and in-memory stores."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable

import httpx
import pytest

from chat_playground.config import PlaygroundConfig, ServerConfig
from chat_playground.errors import PersistenceError
from chat_playground.llm.client import CompletionClient
from chat_playground.storage.base import ConversationStore
from chat_playground.types import Conversation


def sse_body(*deltas: str, done: bool = True) -> str:
    """Build a ``data:``-framed completion stream carrying *deltas*."""
    lines = [
        "data: " + json.dumps({"choices": [{"delta": {"content": d}}]})
        for d in deltas
    ]
    if done:
        lines.append("data: [DONE]")
    return "\n\n".join(lines) + "\n\n"


def chunked(text: str, size: int) -> list[bytes]:
    raw = text.encode("utf-8")
    return [raw[i:i + size] for i in range(0, len(raw), size)]


def stream_response(chunks: list[bytes], delay: float = 0.0, status: int = 200) -> httpx.Response:
    async def gen():
        for c in chunks:
            if delay:
                await asyncio.sleep(delay)
            yield c

    return httpx.Response(status, content=gen())


class RecordingStore(ConversationStore):
    """Keeps snapshots of every save in memory."""

    def __init__(self, conversations: list[Conversation] | None = None,
                 fail_load: bool = False, fail_save: bool = False):
        self.saved: list[list[dict]] = []
        self._initial = conversations or []
        self.fail_load = fail_load
        self.fail_save = fail_save

    async def load(self) -> list[Conversation]:
        if self.fail_load:
            raise PersistenceError("store unavailable")
        return list(self._initial)

    async def save(self, conversations: list[Conversation]) -> bool:
        if self.fail_save:
            return False
        self.saved.append([c.to_document() for c in conversations])
        return True


@pytest.fixture
def config() -> PlaygroundConfig:
    return PlaygroundConfig(server=ServerConfig(base_url="http://test", api_key="test-key"))


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def make_client(config: PlaygroundConfig) -> Callable[..., CompletionClient]:
    """Build a CompletionClient served by *handler* through MockTransport."""

    def factory(handler, **overrides) -> CompletionClient:
        server = config.server.model_copy(update=overrides)
        return CompletionClient(server, transport=httpx.MockTransport(handler))

    return factory

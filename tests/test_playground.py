"""Tests for Playground conversation management."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from chat_playground.core.playground import Playground
from chat_playground.types import Conversation, EventType, Message, MessageRole

from conftest import RecordingStore, sse_body, stream_response


class SlowStore(RecordingStore):
    """Yields to the event loop on every save."""

    def __init__(self, error: Exception | None = None):
        super().__init__()
        self.error = error
        self.error_armed = False

    async def save(self, conversations):
        await asyncio.sleep(0.01)
        if self.error_armed:
            raise self.error
        return await super().save(conversations)


@pytest.fixture
def playground(config, make_client, store):
    client = make_client(lambda r: stream_response([sse_body("Hello").encode()]))
    return Playground(config, client, store)


class TestLoad:
    @pytest.mark.asyncio
    async def test_empty_store_creates_conversation(self, playground, store):
        conv = await playground.load()
        assert playground.conversations == [conv]
        assert playground.active is conv
        assert conv.model == "grok-4"
        assert len(store.saved) == 1

    @pytest.mark.asyncio
    async def test_selects_first(self, config, make_client):
        convs = [Conversation(title="one"), Conversation(title="two")]
        pg = Playground(config, make_client(lambda r: httpx.Response(200)), RecordingStore(convs))
        assert (await pg.load()).title == "one"
        assert len(pg.conversations) == 2

    @pytest.mark.asyncio
    async def test_load_failure_notifies(self, config, make_client):
        store = RecordingStore(fail_load=True)
        pg = Playground(config, make_client(lambda r: httpx.Response(200)), store)
        conv = await pg.load()

        notes = [e.data for e in pg.bus.history if e.type == EventType.NOTIFICATION]
        assert notes == [{"level": "error", "message": "Failed to load conversations"}]
        assert pg.conversations == [conv]


class TestSend:
    @pytest.mark.asyncio
    async def test_first_message_sets_title(self, playground):
        conv = await playground.load()
        reply = await playground.send("  Tell me something about the weather today please  ")

        assert conv.title == "Tell me something about the we..."
        assert [m.role for m in conv.messages] == [MessageRole.USER, MessageRole.ASSISTANT]
        assert conv.messages[0].content == "Tell me something about the weather today please"
        assert reply.content == "Hello"
        assert playground.busy is False

    @pytest.mark.asyncio
    async def test_short_title_kept(self, playground):
        conv = await playground.load()
        await playground.send("Hi")
        assert conv.title == "Hi"

    @pytest.mark.asyncio
    async def test_later_messages_keep_title(self, playground):
        conv = await playground.load()
        await playground.send("first")
        await playground.send("second")
        assert conv.title == "first"
        assert len(conv.messages) == 4

    @pytest.mark.asyncio
    async def test_blank_message_ignored(self, playground, store):
        conv = await playground.load()
        saves = len(store.saved)
        assert await playground.send("   ") is None
        assert conv.messages == []
        assert len(store.saved) == saves

    @pytest.mark.asyncio
    async def test_busy_ignored(self, playground):
        conv = await playground.load()
        playground.context.busy = True
        assert await playground.send("hello") is None
        assert conv.messages == []

    @pytest.mark.asyncio
    async def test_concurrent_send_during_save_is_ignored(self, config, make_client):
        requests = []

        def handler(request):
            requests.append(request)
            return stream_response([sse_body("ok").encode()])

        pg = Playground(config, make_client(handler), SlowStore())
        conv = await pg.load()
        first, second = await asyncio.gather(pg.send("first"), pg.send("second"))

        assert first.content == "ok"
        assert second is None
        assert [(m.role, m.content) for m in conv.messages] == [
            (MessageRole.USER, "first"),
            (MessageRole.ASSISTANT, "ok"),
        ]
        assert len(requests) == 1
        assert pg.busy is False

    @pytest.mark.asyncio
    async def test_busy_released_when_save_raises(self, config, make_client):
        store = SlowStore(error=RuntimeError("disk gone"))
        pg = Playground(config, make_client(lambda r: httpx.Response(200)), store)
        await pg.load()
        store.error_armed = True
        with pytest.raises(RuntimeError):
            await pg.send("hello")
        assert pg.busy is False

    @pytest.mark.asyncio
    async def test_updated_at_not_before_created_at(self, playground):
        conv = await playground.load()
        await playground.send("hello")
        assert conv.updated_at >= conv.created_at


class TestManage:
    @pytest.mark.asyncio
    async def test_new_conversation_first(self, playground):
        first = await playground.load()
        second = await playground.new_conversation()
        assert playground.conversations == [second, first]
        assert playground.active is second

    @pytest.mark.asyncio
    async def test_delete_active_reselects_first(self, playground):
        a = await playground.load()
        b = await playground.new_conversation()
        assert await playground.delete(b.id)
        assert playground.active is a

    @pytest.mark.asyncio
    async def test_delete_last_creates_new(self, playground):
        a = await playground.load()
        await playground.delete(a.id)
        assert len(playground.conversations) == 1
        assert playground.active.id != a.id

    @pytest.mark.asyncio
    async def test_delete_unknown(self, playground):
        await playground.load()
        assert await playground.delete("missing") is False

    @pytest.mark.asyncio
    async def test_rename(self, playground):
        conv = await playground.load()
        assert await playground.rename(conv.id, "  Renamed ")
        assert conv.title == "Renamed"
        assert await playground.rename(conv.id, "   ") is False

    @pytest.mark.asyncio
    async def test_clear(self, playground):
        conv = await playground.load()
        conv.messages.append(Message(role=MessageRole.USER, content="x"))
        assert await playground.clear(conv.id)
        assert conv.messages == []

    @pytest.mark.asyncio
    async def test_clear_refused_while_busy(self, playground):
        conv = await playground.load()
        conv.messages.append(Message(role=MessageRole.USER, content="x"))
        playground.context.busy = True
        assert await playground.clear(conv.id) is False
        assert len(conv.messages) == 1

    @pytest.mark.asyncio
    async def test_settings(self, playground, store):
        conv = await playground.load()
        await playground.set_model("grok-3")
        await playground.set_stream(False)
        await playground.set_reasoning_effort("low")
        assert (conv.model, conv.stream_enabled, conv.reasoning_effort) == ("grok-3", False, "low")
        saved = store.saved[-1][0]
        assert saved["model"] == "grok-3"
        assert saved["stream"] is False
        assert saved["thinking"] == "low"

    @pytest.mark.asyncio
    async def test_render(self, playground):
        html = playground.render(Message(role=MessageRole.ASSISTANT, content="<think>r</think>**ok**"))
        assert "<strong>ok</strong>" in html
        assert "thinking-block" in html

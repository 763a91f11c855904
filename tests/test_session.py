"""Tests for StreamSession exchanges against a mocked completion server."""

from __future__ import annotations

import json

import httpx
import pytest

from chat_playground.core.session import (
    STREAM_INCOMPLETE,
    TIMEOUT_ANNOTATION,
    SessionContext,
    StreamSession,
)
from chat_playground.events.bus import EventBus
from chat_playground.types import (
    Conversation,
    EventType,
    Message,
    MessageRole,
    SessionState,
)

from conftest import RecordingStore, chunked, sse_body, stream_response


def _context(stream: bool = True, effort: str = "") -> SessionContext:
    conv = Conversation(stream_enabled=stream, reasoning_effort=effort)
    conv.messages.append(Message(role=MessageRole.USER, content="Say hello"))
    return SessionContext(conversations=[conv], active_id=conv.id)


def _session(ctx, client, store, bus=None, **kw) -> StreamSession:
    return StreamSession(ctx, ctx.active, client, store, bus=bus or EventBus(), **kw)


def _fragments(bus: EventBus) -> list[dict]:
    return [e.data for e in bus.history if e.type == EventType.RENDER_FRAGMENT]


class TestStreaming:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("size", [1, 2, 5, 13, 64, 4096])
    async def test_hello_any_chunking(self, make_client, size):
        body = sse_body("Hel", "lo")
        client = make_client(lambda r: stream_response(chunked(body, size)))
        ctx, store, bus = _context(), RecordingStore(), EventBus()
        session = _session(ctx, client, store, bus)

        message = await session.run()

        assert message.content == "Hello"
        assert message.role is MessageRole.ASSISTANT
        assert session.state is SessionState.COMPLETED
        assert ctx.busy is False
        assert len(store.saved) == 1
        assert store.saved[0][0]["messages"][-1]["content"] == "Hello"

        frags = _fragments(bus)
        assert [f["content"] for f in frags if not f["final"]] == ["Hel", "Hello"]
        assert frags[-1]["final"] is True
        assert frags[-1]["html"] == "<p>Hello</p>"

    @pytest.mark.asyncio
    async def test_state_sequence(self, make_client):
        client = make_client(lambda r: stream_response([sse_body("a").encode()]))
        ctx, bus = _context(), EventBus()
        await _session(ctx, client, RecordingStore(), bus).run()

        states = [e.data["state"] for e in bus.history if e.type == EventType.SESSION_STATE]
        assert states == [SessionState.SENDING, SessionState.STREAMING, SessionState.COMPLETED]

    @pytest.mark.asyncio
    async def test_payload(self, make_client):
        seen = {}

        def handler(request):
            seen.update(json.loads(request.content))
            return stream_response([sse_body("ok").encode()])

        ctx = _context(effort="high")
        await _session(ctx, make_client(handler), RecordingStore()).run()

        assert seen["model"] == "grok-4"
        assert seen["stream"] is True
        assert seen["thinking"] == "high"
        # the empty assistant placeholder is not sent
        assert seen["messages"] == [{"role": "user", "content": "Say hello"}]

    @pytest.mark.asyncio
    async def test_reasoning_rendered_progressively(self, make_client):
        body = sse_body("<think>plan", " more</think>", "Answer")
        client = make_client(lambda r: stream_response([body.encode()]))
        ctx, bus = _context(), EventBus()
        await _session(ctx, client, RecordingStore(), bus).run()

        frags = _fragments(bus)
        assert "thinking-block pending" in frags[0]["html"]
        assert "pending" not in frags[-1]["html"]
        assert frags[-1]["html"].endswith("<p>Answer</p>")

    @pytest.mark.asyncio
    async def test_tag_split_across_deltas(self, make_client):
        body = sse_body("Answer", "<thi", "nk>why</think>", " done", " <th")
        client = make_client(lambda r: stream_response([body.encode()]))
        ctx, bus = _context(), EventBus()
        await _session(ctx, client, RecordingStore(), bus).run()

        frags = _fragments(bus)
        assert frags[1]["content"] == "Answer<thi"
        assert frags[1]["html"] == "<p>Answer</p>"
        assert "&lt;th" not in frags[-2]["html"]
        # the finished message shows its literal tail
        assert frags[-1]["final"] is True
        assert frags[-1]["html"].endswith("<p>done &lt;th</p>")

    @pytest.mark.asyncio
    async def test_malformed_event_skipped(self, make_client):
        body = (
            sse_body("A", done=False)
            + "data: {broken\n\n"
            + sse_body("B")
        )
        client = make_client(lambda r: stream_response([body.encode()]))
        ctx = _context()
        session = _session(ctx, client, RecordingStore())
        message = await session.run()

        assert message.content == "AB"
        assert session.state is SessionState.COMPLETED

    @pytest.mark.asyncio
    async def test_stream_closed_early(self, make_client):
        body = sse_body("partial", done=False)
        client = make_client(lambda r: stream_response([body.encode()]))
        ctx, store, bus = _context(), RecordingStore(), EventBus()
        session = _session(ctx, client, store, bus)
        message = await session.run()

        assert session.state is SessionState.FAILED
        assert message.content == f"❌ Error: {STREAM_INCOMPLETE}"
        assert ctx.busy is False
        assert len(store.saved) == 1
        notes = [e.data for e in bus.history if e.type == EventType.NOTIFICATION]
        assert notes == [{"level": "error", "message": STREAM_INCOMPLETE}]


class TestTimeout:
    @pytest.mark.asyncio
    async def test_stalled_stream_times_out(self, make_client):
        chunks = [b'data: {"choices": [{"delta": {"content": "slow"}}]}\n\n', b"data: [DONE]\n\n"]
        client = make_client(lambda r: stream_response(chunks, delay=0.5))
        ctx, store = _context(), RecordingStore()
        session = _session(ctx, client, store, timeout=0.05)
        message = await session.run()

        assert session.state is SessionState.FAILED
        assert message.content == TIMEOUT_ANNOTATION
        assert ctx.busy is False
        assert len(store.saved) == 1


class TestBuffered:
    @pytest.mark.asyncio
    async def test_single_fragment(self, make_client):
        client = make_client(lambda r: httpx.Response(
            200, json={"choices": [{"message": {"role": "assistant", "content": "Hi"}}]}
        ))
        ctx, bus = _context(stream=False), EventBus()
        session = _session(ctx, client, RecordingStore(), bus)
        message = await session.run()

        assert message.content == "Hi"
        frags = _fragments(bus)
        assert len(frags) == 1
        assert frags[0]["final"] is True
        assert frags[0]["html"] == "<p>Hi</p>"
        states = [e.data["state"] for e in bus.history if e.type == EventType.SESSION_STATE]
        assert SessionState.STREAMING not in states

    @pytest.mark.asyncio
    async def test_http_error_annotated(self, make_client):
        client = make_client(lambda r: httpx.Response(
            400, json={"error": {"message": "context too long"}}
        ))
        ctx = _context(stream=False)
        session = _session(ctx, client, RecordingStore())
        message = await session.run()

        assert session.state is SessionState.FAILED
        assert message.content == "❌ Error: context too long"
        assert session.error.status_code == 400

    @pytest.mark.asyncio
    async def test_malformed_response(self, make_client):
        client = make_client(lambda r: httpx.Response(200, json={"choices": []}))
        session = _session(_context(stream=False), client, RecordingStore())
        message = await session.run()
        assert session.state is SessionState.FAILED
        assert message.content == "❌ Error: Malformed completion response"


class TestBusy:
    @pytest.mark.asyncio
    async def test_send_while_busy_is_noop(self, make_client):
        calls = []

        def handler(request):
            calls.append(request)
            return stream_response([sse_body("x").encode()])

        ctx, store = _context(), RecordingStore()
        ctx.busy = True
        session = _session(ctx, make_client(handler), store)

        assert await session.run() is None
        assert calls == []
        assert store.saved == []
        assert len(ctx.active.messages) == 1
        assert session.state is SessionState.IDLE

    @pytest.mark.asyncio
    async def test_run_once(self, make_client):
        client = make_client(lambda r: stream_response([sse_body("x").encode()]))
        session = _session(_context(), client, RecordingStore())
        await session.run()
        with pytest.raises(RuntimeError):
            await session.run()

    @pytest.mark.asyncio
    async def test_save_failure_keeps_state(self, make_client):
        client = make_client(lambda r: stream_response([sse_body("kept").encode()]))
        ctx = _context()
        store = RecordingStore(fail_save=True)
        message = await _session(ctx, client, store).run()
        assert message.content == "kept"
        assert ctx.active.messages[-1] is message

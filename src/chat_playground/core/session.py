"""StreamSession — one request/response exchange for a conversation.

    idle → sending → streaming → completed
                   ↘           ↘ failed

The session appends an empty assistant message, grows it delta by delta
while the response streams in, re-renders the whole message after each
delta and persists the conversation once the exchange is over.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from chat_playground.errors import MalformedEvent, RequestTimeout, TransportError
from chat_playground.events.bus import EventBus
from chat_playground.llm.client import CompletionClient
from chat_playground.llm.decoder import iter_events, parse_delta
from chat_playground.render.formatter import ContentFormatter
from chat_playground.storage.base import ConversationStore
from chat_playground.types import (
    Conversation,
    DataEvent,
    EventType,
    Message,
    MessageRole,
    SessionState,
    StreamClosed,
)

_logger = logging.getLogger(__name__)

ERROR_PREFIX = "❌ Error: "
TIMEOUT_ANNOTATION = ERROR_PREFIX + "Request timed out"
STREAM_INCOMPLETE = "Stream ended before completion"


@dataclass
class SessionContext:
    """Mutable UI session state shared by all exchanges.

    ``busy`` is set while an exchange is sending or streaming; at most one
    exchange runs at a time and a send while busy is ignored.
    """

    conversations: list[Conversation] = field(default_factory=list)
    active_id: str | None = None
    busy: bool = False

    def find(self, conversation_id: str) -> Conversation | None:
        for conv in self.conversations:
            if conv.id == conversation_id:
                return conv
        return None

    @property
    def active(self) -> Conversation | None:
        if self.active_id is None:
            return None
        return self.find(self.active_id)


def annotate_error(error: TransportError) -> str:
    """Inline message content for a failed exchange."""
    if isinstance(error, RequestTimeout):
        return TIMEOUT_ANNOTATION
    return f"{ERROR_PREFIX}{error}"


class StreamSession:
    """Drive one exchange and keep the conversation up to date.

    Parameters
    ----------
    context:
        Shared session state holding the busy flag and conversation list.
    conversation:
        Conversation receiving the assistant message.
    client:
        Completion transport.
    store:
        Conversation store used to persist the list after the exchange.
    formatter:
        Formatter run over the whole message after every delta.
    bus:
        Receives state changes, render fragments and notifications.
    timeout:
        Bound in seconds for the whole exchange, streaming included.
    reasoning_field:
        Request key carrying the conversation's reasoning effort.
    """

    def __init__(
        self,
        context: SessionContext,
        conversation: Conversation,
        client: CompletionClient,
        store: ConversationStore,
        formatter: ContentFormatter | None = None,
        bus: EventBus | None = None,
        timeout: float = 120.0,
        reasoning_field: str = "thinking",
    ) -> None:
        self.context = context
        self.conversation = conversation
        self._client = client
        self._store = store
        self._formatter = formatter or ContentFormatter()
        self._bus = bus or EventBus()
        self._timeout = timeout
        self._reasoning_field = reasoning_field
        self.state = SessionState.IDLE
        self.message: Message | None = None
        self.error: TransportError | None = None

    async def run(self, claimed: bool = False) -> Message | None:
        """Run the exchange; returns the assistant message.

        Returns ``None`` without doing anything when another exchange
        holds the busy flag.  With *claimed* the caller has already set
        the flag for this exchange and the session takes it over.
        """
        if self.context.busy and not claimed:
            _logger.debug("Send ignored: an exchange is already in flight")
            return None
        if self.state is not SessionState.IDLE:
            raise RuntimeError("StreamSession.run() can only be called once")

        self.context.busy = True
        try:
            await self._send()
        finally:
            self.context.busy = False

        await self._publish_outcome()
        await self._persist()
        return self.message

    def build_payload(self) -> dict[str, Any]:
        conv = self.conversation
        payload: dict[str, Any] = {
            "model": conv.model,
            "messages": conv.request_messages(),
            "stream": conv.stream_enabled,
        }
        if conv.reasoning_effort:
            payload[self._reasoning_field] = conv.reasoning_effort
        return payload

    # ------------------------------------------------------------------
    # Exchange
    # ------------------------------------------------------------------

    async def _send(self) -> None:
        self.message = Message(role=MessageRole.ASSISTANT, content="")
        self.conversation.messages.append(self.message)
        payload = self.build_payload()
        await self._transition(SessionState.SENDING)

        try:
            await asyncio.wait_for(self._exchange(payload), timeout=self._timeout)
        except asyncio.TimeoutError:
            self.error = RequestTimeout()
        except TransportError as e:
            self.error = e
        except Exception as e:
            _logger.exception("Unexpected error during exchange")
            self.error = TransportError(f"{type(e).__name__}: {e}")

        if self.error is None:
            self.conversation.touch()
            self.state = SessionState.COMPLETED
        else:
            _logger.warning("Exchange failed: %s", self.error)
            self.message.content = annotate_error(self.error)
            self.state = SessionState.FAILED

    async def _exchange(self, payload: dict[str, Any]) -> None:
        if not payload["stream"]:
            data = await self._client.complete(payload)
            self.message.content = _completion_content(data)
            return

        async with self._client.open_stream(payload) as chunks:
            await self._transition(SessionState.STREAMING)
            async for event in iter_events(chunks):
                if isinstance(event, DataEvent):
                    await self._apply(event)
                elif isinstance(event, StreamClosed):
                    raise TransportError(STREAM_INCOMPLETE)

    async def _apply(self, event: DataEvent) -> None:
        try:
            delta = parse_delta(event.payload)
        except MalformedEvent as e:
            _logger.warning("Skipping %s", e)
            return
        if not delta:
            return
        self.message.content += delta
        await self._emit_fragment(final=False)

    # ------------------------------------------------------------------
    # Outcome
    # ------------------------------------------------------------------

    async def _publish_outcome(self) -> None:
        await self._bus.publish(
            EventType.SESSION_STATE,
            conversation_id=self.conversation.id,
            state=self.state,
            error=str(self.error) if self.error else "",
        )
        await self._emit_fragment(final=True)
        if self.error is not None:
            await self._bus.publish(
                EventType.NOTIFICATION,
                level="error",
                message=str(self.error),
            )

    async def _persist(self) -> None:
        if not await self._store.save(self.context.conversations):
            _logger.warning(
                "Conversation %s was not persisted; keeping in-memory state",
                self.conversation.id,
            )

    async def _transition(self, state: SessionState) -> None:
        _logger.debug("Session %s: %s -> %s", self.conversation.id, self.state.value, state.value)
        self.state = state
        await self._bus.publish(
            EventType.SESSION_STATE,
            conversation_id=self.conversation.id,
            state=state,
            error="",
        )

    async def _emit_fragment(self, final: bool) -> None:
        content = self.message.content
        await self._bus.publish(
            EventType.RENDER_FRAGMENT,
            conversation_id=self.conversation.id,
            content=content,
            html=self._formatter.format(content, streaming=not final),
            final=final,
        )


def _completion_content(data: dict[str, Any]) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise TransportError("Malformed completion response") from e
    return content or ""

"""Playground — conversation management around StreamSession.

Owns the session context and wires the client, store, formatter and
event bus together.  Every mutation refreshes ``updated_at`` and
persists the conversation list.
"""

from __future__ import annotations

import logging

from chat_playground.config import PlaygroundConfig
from chat_playground.core.session import SessionContext, StreamSession
from chat_playground.errors import PersistenceError
from chat_playground.events.bus import EventBus
from chat_playground.llm.client import CompletionClient
from chat_playground.render.formatter import ContentFormatter
from chat_playground.storage.base import ConversationStore
from chat_playground.types import (
    Conversation,
    EventType,
    Message,
    MessageRole,
    title_from,
)

_logger = logging.getLogger(__name__)


class Playground:
    """Multi-conversation chat controller.

    Parameters
    ----------
    config:
        Playground configuration (chat defaults, server bounds, rendering).
    client:
        Completion transport.
    store:
        Conversation store.
    bus:
        Event bus for UI subscribers (optional).
    formatter:
        Content formatter; built from ``config.render`` when omitted.
    context:
        Pre-built session context (optional).
    """

    def __init__(
        self,
        config: PlaygroundConfig,
        client: CompletionClient,
        store: ConversationStore,
        bus: EventBus | None = None,
        formatter: ContentFormatter | None = None,
        context: SessionContext | None = None,
    ) -> None:
        self.config = config
        self.client = client
        self.store = store
        self.bus = bus or EventBus()
        self.formatter = formatter or ContentFormatter.from_config(config.render)
        self.context = context or SessionContext()

    # ------------------------------------------------------------------
    # Conversation list
    # ------------------------------------------------------------------

    @property
    def conversations(self) -> list[Conversation]:
        return self.context.conversations

    @property
    def active(self) -> Conversation | None:
        return self.context.active

    @property
    def busy(self) -> bool:
        return self.context.busy

    async def load(self) -> Conversation:
        """Load conversations from the store and select the first one.

        A load failure leaves an empty list and emits an error
        notification.  A new conversation is created when none exist.
        """
        try:
            self.context.conversations = await self.store.load()
        except PersistenceError as e:
            _logger.warning("Loading conversations failed: %s", e)
            self.context.conversations = []
            await self._notify("error", "Failed to load conversations")

        if not self.context.conversations:
            return await self.new_conversation()
        first = self.context.conversations[0]
        self.context.active_id = first.id
        return first

    async def new_conversation(self) -> Conversation:
        chat = self.config.chat
        conv = Conversation(
            model=chat.model,
            stream_enabled=chat.stream,
            reasoning_effort=chat.reasoning_effort,
        )
        self.context.conversations.insert(0, conv)
        self.context.active_id = conv.id
        await self._changed(conv)
        return conv

    def select(self, conversation_id: str) -> Conversation | None:
        conv = self.context.find(conversation_id)
        if conv is not None:
            self.context.active_id = conv.id
        return conv

    async def rename(self, conversation_id: str, title: str) -> bool:
        conv = self.context.find(conversation_id)
        title = title.strip()
        if conv is None or not title:
            return False
        conv.title = title
        conv.touch()
        await self._changed(conv)
        return True

    async def delete(self, conversation_id: str) -> bool:
        conv = self.context.find(conversation_id)
        if conv is None:
            return False
        self.context.conversations.remove(conv)
        if conversation_id == self.context.active_id:
            if self.context.conversations:
                self.context.active_id = self.context.conversations[0].id
            else:
                self.context.active_id = None
                await self.new_conversation()
                return True
        await self._changed(None)
        return True

    async def clear(self, conversation_id: str) -> bool:
        conv = self.context.find(conversation_id)
        if conv is None or self.context.busy:
            return False
        conv.messages = []
        conv.touch()
        await self._changed(conv)
        return True

    async def set_model(self, model: str) -> None:
        await self._update_active(model=model)

    async def set_stream(self, enabled: bool) -> None:
        await self._update_active(stream_enabled=enabled)

    async def set_reasoning_effort(self, value: str) -> None:
        await self._update_active(reasoning_effort=value)

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------

    async def send(self, content: str) -> Message | None:
        """Append a user message to the active conversation and run an exchange.

        Returns the assistant message, or ``None`` when *content* is blank,
        no conversation is active, or an exchange is already running.
        """
        content = content.strip()
        conv = self.active
        if not content or conv is None or self.context.busy:
            return None

        # claimed before the first await; the session releases it
        self.context.busy = True
        try:
            conv.messages.append(Message(role=MessageRole.USER, content=content))
            conv.touch()
            if len(conv.messages) == 1:
                conv.title = title_from(content, self.config.chat.title_length)
            await self._changed(conv)
        except BaseException:
            self.context.busy = False
            raise

        session = StreamSession(
            self.context,
            conv,
            self.client,
            self.store,
            formatter=self.formatter,
            bus=self.bus,
            timeout=self.config.server.timeout,
            reasoning_field=self.config.chat.reasoning_field,
        )
        return await session.run(claimed=True)

    def render(self, message: Message) -> str:
        return self.formatter.format(message.content)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _update_active(self, **changes) -> None:
        conv = self.active
        if conv is None:
            return
        for name, value in changes.items():
            setattr(conv, name, value)
        conv.touch()
        await self._changed(conv)

    async def _changed(self, conv: Conversation | None) -> None:
        await self.bus.publish(
            EventType.CONVERSATION_UPDATED,
            conversation_id=conv.id if conv else None,
        )
        if not await self.store.save(self.context.conversations):
            _logger.warning("Conversation list was not persisted")

    async def _notify(self, level: str, message: str) -> None:
        await self.bus.publish(EventType.NOTIFICATION, level=level, message=message)

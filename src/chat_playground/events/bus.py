"""Async pub/sub EventBus connecting the response pipeline to UI sinks."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable

from chat_playground.types import EventType, PlaygroundEvent

_logger = logging.getLogger(__name__)

# Sentinel used for wildcard subscriptions (receive all events)
_WILDCARD = "*"

Handler = Callable[[PlaygroundEvent], Any]


class EventBus:
    """Lightweight async pub/sub event bus.

    - Subscribe to a specific EventType or wildcard ``"*"`` for all events.
    - Handlers can be sync or async.
    - ``emit()`` awaits every matching handler before returning, so
      subscribers observe events in emission order.
    - A failing handler is logged and never breaks the pipeline.
    """

    def __init__(self, max_history: int = 200) -> None:
        self._handlers: dict[str, list[Handler]] = {}
        self._history: list[PlaygroundEvent] = []
        self._max_history = max_history

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def subscribe(self, event_type: EventType | str, handler: Handler) -> None:
        """Register *handler* for *event_type* (or ``"*"`` for all)."""
        key = self._key(event_type)
        self._handlers.setdefault(key, []).append(handler)

    def unsubscribe(self, event_type: EventType | str, handler: Handler) -> None:
        """Remove *handler* from *event_type*."""
        handlers = self._handlers.get(self._key(event_type), [])
        try:
            handlers.remove(handler)
        except ValueError:
            pass

    async def emit(self, event: PlaygroundEvent) -> None:
        """Emit an event to all matching handlers."""
        self._history.append(event)
        if len(self._history) > self._max_history:
            self._history = self._history[-self._max_history:]

        handlers = list(self._handlers.get(self._key(event.type), []))
        handlers.extend(self._handlers.get(_WILDCARD, []))
        if not handlers:
            return
        await asyncio.gather(
            *(self._call_handler(h, event) for h in handlers),
            return_exceptions=True,
        )

    async def publish(self, event_type: EventType, **data: Any) -> None:
        """Shorthand for ``emit(PlaygroundEvent(event_type, data))``."""
        await self.emit(PlaygroundEvent(type=event_type, data=data))

    @property
    def history(self) -> list[PlaygroundEvent]:
        """Return a copy of the event history."""
        return list(self._history)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _key(event_type: EventType | str) -> str:
        if isinstance(event_type, EventType):
            return event_type.value
        return str(event_type)

    @staticmethod
    async def _call_handler(handler: Handler, event: PlaygroundEvent) -> None:
        try:
            result = handler(event)
            if inspect.isawaitable(result):
                await result
        except Exception:
            _logger.exception(
                "EventBus handler %s raised for event %s",
                getattr(handler, "__name__", handler),
                event.type,
            )

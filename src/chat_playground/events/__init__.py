"""Event delivery for Chat Playground."""

from chat_playground.events.bus import EventBus

__all__ = ["EventBus"]

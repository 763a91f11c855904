"""Core exchange logic for Chat Playground."""

from chat_playground.core.playground import Playground
from chat_playground.core.session import SessionContext, StreamSession

__all__ = [
    "Playground",
    "SessionContext",
    "StreamSession",
]

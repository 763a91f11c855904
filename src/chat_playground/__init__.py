"""Chat Playground — multi-turn chat client with streamed, reasoning-aware rendering."""

from chat_playground.config import PlaygroundConfig, load_config
from chat_playground.core import Playground, SessionContext, StreamSession
from chat_playground.render import ContentFormatter, TagSplitter
from chat_playground.types import Conversation, Message, MessageRole, SessionState

__all__ = [
    "ContentFormatter",
    "Conversation",
    "Message",
    "MessageRole",
    "Playground",
    "PlaygroundConfig",
    "SessionContext",
    "SessionState",
    "StreamSession",
    "TagSplitter",
    "load_config",
]

"""Conversation persistence for Chat Playground."""

from chat_playground.storage.base import ConversationStore
from chat_playground.storage.remote import RemoteConversationStore
from chat_playground.storage.sqlite_store import SQLiteConversationStore

__all__ = [
    "ConversationStore",
    "RemoteConversationStore",
    "SQLiteConversationStore",
]

"""Conversation store contract."""

from __future__ import annotations

from abc import ABC, abstractmethod

from chat_playground.types import Conversation


class ConversationStore(ABC):
    """Loads and persists the ordered conversation list.

    ``load()`` raises ``PersistenceError`` so the caller can notify the
    user; ``save()`` never raises and reports failure by returning
    ``False`` after logging it.
    """

    @abstractmethod
    async def load(self) -> list[Conversation]:
        ...

    @abstractmethod
    async def save(self, conversations: list[Conversation]) -> bool:
        ...

    async def close(self) -> None:
        """Release store resources."""

"""Conversation store backed by the playground server's admin API."""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from chat_playground.errors import PersistenceError
from chat_playground.types import Conversation

from .base import ConversationStore

_logger = logging.getLogger(__name__)


class RemoteConversationStore(ConversationStore):
    """Reads and writes ``{"conversations": [...]}`` documents over HTTP.

    Parameters
    ----------
    http:
        Client carrying the base URL and ``Authorization`` header.
    path:
        Conversations endpoint, relative to the client's base URL.
    """

    def __init__(self, http: httpx.AsyncClient, path: str = "/api/v1/admin/conversations") -> None:
        self._http = http
        self._path = path

    async def load(self) -> list[Conversation]:
        try:
            resp = await self._http.get(self._path)
        except httpx.HTTPError as e:
            raise PersistenceError(f"loading conversations failed: {e}") from e
        if resp.is_error:
            raise PersistenceError(f"loading conversations failed: HTTP {resp.status_code}")
        try:
            items = resp.json().get("conversations") or []
            return [Conversation.model_validate(item) for item in items]
        except (ValueError, AttributeError, ValidationError) as e:
            raise PersistenceError(f"invalid conversations document: {e}") from e

    async def save(self, conversations: list[Conversation]) -> bool:
        body = {"conversations": [c.to_document() for c in conversations]}
        try:
            resp = await self._http.post(self._path, json=body)
        except httpx.HTTPError as e:
            _logger.warning("Saving conversations failed: %s", e)
            return False
        if resp.is_error:
            _logger.warning("Saving conversations failed: HTTP %d", resp.status_code)
            return False
        return True

"""Async client for OpenAI-compatible chat completion servers.

Uses ``httpx.AsyncClient`` and exposes ``complete()`` for buffered
responses and ``open_stream()`` for incrementally delivered ones.
httpx exceptions are translated to ``TransportError`` /
``RequestTimeout`` so callers only deal with the playground taxonomy.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from chat_playground.config import ServerConfig
from chat_playground.errors import RequestTimeout, TransportError

_logger = logging.getLogger(__name__)

_RETRYABLE_STATUSES = (429, 500, 502, 503, 504)
_BACKOFF_BASE = 1  # seconds -- exponential: 1, 2, 4


def error_message(body: bytes | str, status_code: int) -> str:
    """Message for a non-success response.

    Uses ``{"error": {"message": ...}}`` when the body has that shape,
    otherwise ``HTTP <status>``.
    """
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError):
        data = None
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
    return f"HTTP {status_code}"


class CompletionClient:
    """Client for the chat completion endpoint."""

    def __init__(
        self,
        server: ServerConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.server = server
        self._max_retries = max(0, server.max_retries)
        self._client = httpx.AsyncClient(
            base_url=server.base_url,
            headers={
                "Authorization": server.api_key,
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(server.timeout, connect=server.connect_timeout),
            transport=transport,
        )

    # ------------------------------------------------------------------
    # Buffered completion
    # ------------------------------------------------------------------

    async def complete(self, payload: dict[str, Any]) -> dict[str, Any]:
        """POST *payload* and return the decoded JSON response."""
        path = self.server.completions_path
        attempts = self._max_retries + 1
        for attempt in range(attempts):
            try:
                resp = await self._client.post(path, json=payload)
            except httpx.TimeoutException as e:
                raise RequestTimeout() from e
            except httpx.HTTPError as e:
                raise TransportError(str(e) or type(e).__name__) from e

            if resp.status_code in _RETRYABLE_STATUSES and attempt < attempts - 1:
                _logger.warning(
                    "Completion API returned %d (attempt %d/%d), retrying...",
                    resp.status_code, attempt + 1, attempts,
                )
                await asyncio.sleep(_BACKOFF_BASE * (2 ** attempt))
                continue
            if resp.is_error:
                raise TransportError(
                    error_message(resp.content, resp.status_code),
                    status_code=resp.status_code,
                )
            try:
                return resp.json()
            except json.JSONDecodeError as e:
                raise TransportError("invalid JSON response") from e

        raise TransportError("exhausted retries")  # pragma: no cover

    # ------------------------------------------------------------------
    # Streaming completion
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def open_stream(
        self, payload: dict[str, Any],
    ) -> AsyncIterator[AsyncIterator[str]]:
        """Open a streamed completion.

        Yields an async iterator over decoded text chunks.  Chunks carry
        no record alignment; multibyte characters split across network
        reads are reassembled by the incremental decoder.
        """
        path = self.server.completions_path
        attempts = self._max_retries + 1
        try:
            for attempt in range(attempts):
                async with self._client.stream("POST", path, json=payload) as resp:
                    if resp.status_code in _RETRYABLE_STATUSES and attempt < attempts - 1:
                        _logger.warning(
                            "Completion stream returned %d (attempt %d/%d), retrying...",
                            resp.status_code, attempt + 1, attempts,
                        )
                        await asyncio.sleep(_BACKOFF_BASE * (2 ** attempt))
                        continue
                    if resp.is_error:
                        body = await resp.aread()
                        raise TransportError(
                            error_message(body, resp.status_code),
                            status_code=resp.status_code,
                        )
                    yield resp.aiter_text()
                    return
        except httpx.TimeoutException as e:
            raise RequestTimeout() from e
        except httpx.HTTPError as e:
            raise TransportError(str(e) or type(e).__name__) from e

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def http(self) -> httpx.AsyncClient:
        """Underlying httpx client (shared with the remote store)."""
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

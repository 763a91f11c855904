"""Incremental decoding of ``data:``-framed completion streams.

Chunks arrive in order but with no alignment to record boundaries, so
the decoder keeps the trailing undelimited piece of text buffered until
its newline shows up.  Partial lines are never emitted as records.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterable, AsyncIterator

from chat_playground.errors import MalformedEvent
from chat_playground.types import DataEvent, DecodedEvent, DoneEvent, StreamClosed

_logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_MARKER = "[DONE]"


class FrameDecoder:
    """Turns raw text chunks into complete stream events.

    ``feed()`` returns the events completed by a chunk; ``close()`` is
    called once the input is exhausted and returns the terminal event.
    After ``[DONE]`` the decoder is finished and ignores further input.
    """

    def __init__(self, prefix: str = DATA_PREFIX, done_marker: str = DONE_MARKER) -> None:
        self.prefix = prefix
        self.done_marker = done_marker
        self.buffer = ""
        self.done = False

    def feed(self, chunk: str) -> list[DecodedEvent]:
        if self.done:
            return []
        self.buffer += chunk
        *lines, self.buffer = self.buffer.split("\n")

        events: list[DecodedEvent] = []
        for line in lines:
            event = self._decode_line(line)
            if event is None:
                continue
            events.append(event)
            if isinstance(event, DoneEvent):
                self._finish()
                break
        return events

    def close(self) -> DecodedEvent:
        """Signal end of input and return the terminal event."""
        if self.done:
            return DoneEvent()
        trailing = self.buffer
        self.buffer = ""
        self.done = True
        if isinstance(self._decode_line(trailing), DoneEvent):
            # undelimited [DONE] as the very last bytes is still a valid end
            return DoneEvent()
        if trailing.strip():
            _logger.warning(
                "Stream ended with a partial record (%d chars), dropping it: %r",
                len(trailing), trailing[:80],
            )
        return StreamClosed(trailing=trailing)

    def _decode_line(self, line: str) -> DecodedEvent | None:
        line = line.removesuffix("\r")
        if not line.startswith(self.prefix):
            return None
        payload = line[len(self.prefix):]
        if payload.strip() == self.done_marker:
            return DoneEvent()
        return DataEvent(payload=payload)

    def _finish(self) -> None:
        if self.buffer.strip():
            _logger.debug("Discarding %d buffered chars after end of stream", len(self.buffer))
        self.buffer = ""
        self.done = True


async def iter_events(
    chunks: AsyncIterable[str],
    decoder: FrameDecoder | None = None,
) -> AsyncIterator[DecodedEvent]:
    """Yield data events from *chunks*, then exactly one terminal event."""
    decoder = decoder or FrameDecoder()
    async for chunk in chunks:
        for event in decoder.feed(chunk):
            yield event
            if isinstance(event, DoneEvent):
                return
    yield decoder.close()


def parse_delta(payload: str) -> str | None:
    """Extract ``choices[0].delta.content`` from a data payload.

    Raises ``MalformedEvent`` when the payload is not a JSON object.
    Returns ``None`` for well-formed events that carry no text.
    """
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise MalformedEvent(payload, str(e)) from e
    if not isinstance(data, dict):
        raise MalformedEvent(payload, "not an object")

    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    choice = choices[0] if isinstance(choices[0], dict) else {}
    delta = choice.get("delta") or {}
    content = delta.get("content") if isinstance(delta, dict) else None
    if not isinstance(content, str) or not content:
        return None
    return content

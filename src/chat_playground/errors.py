"""Exception taxonomy for the response pipeline.

``MalformedEvent`` and ``RenderError`` are recovered where they occur and
never reach the user.  ``TransportError`` (and its ``RequestTimeout``
variant) ends the current exchange as failed.  ``PersistenceError`` is
logged by the stores.
"""

from __future__ import annotations


class PlaygroundError(Exception):
    """Base class for all Chat Playground errors."""


class MalformedEvent(PlaygroundError):
    """A single stream frame could not be decoded."""

    def __init__(self, payload: str, reason: str = "") -> None:
        self.payload = payload
        self.reason = reason
        super().__init__(f"malformed event ({reason}): {payload[:80]!r}")


class TransportError(PlaygroundError):
    """Network failure or non-success response status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class RequestTimeout(TransportError):
    """The request did not reach a terminal signal within its time bound."""

    def __init__(self, message: str = "Request timed out") -> None:
        super().__init__(message)


class RenderError(PlaygroundError):
    """The markdown engine failed on a piece of content."""


class PersistenceError(PlaygroundError):
    """Conversation store load or save failed."""

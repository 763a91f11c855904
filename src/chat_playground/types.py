"""Shared data types for Chat Playground."""

from __future__ import annotations

import enum
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Conversation types (persisted)
# ---------------------------------------------------------------------------

class MessageRole(str, enum.Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """One chat turn.

    Assistant messages created for a pending stream start empty and only
    grow until the stream terminates.
    """

    role: MessageRole
    content: str = ""
    timestamp: datetime = Field(default_factory=utcnow)

    def to_request(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


class Conversation(BaseModel):
    """A conversation as stored by the conversation store.

    Field aliases match the document keys used by the remote store
    (``stream``, ``thinking``, ``createdAt``, ``updatedAt``).
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex, frozen=True)
    title: str = "New conversation"
    messages: list[Message] = Field(default_factory=list)
    model: str = "grok-4"
    stream_enabled: bool = Field(default=True, alias="stream")
    reasoning_effort: str = Field(default="", alias="thinking")
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=utcnow, alias="updatedAt")

    def touch(self) -> None:
        """Refresh ``updated_at``, never moving it before ``created_at``."""
        self.updated_at = max(utcnow(), self.created_at)

    def request_messages(self) -> list[dict[str, str]]:
        """Messages for an outbound request; empty ones are left out."""
        return [m.to_request() for m in self.messages if m.content]

    def preview(self, length: int = 50) -> str:
        if not self.messages:
            return ""
        return self.messages[-1].content[:length]

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def title_from(content: str, length: int = 30) -> str:
    """Derive a conversation title from its first message."""
    if len(content) > length:
        return content[:length] + "..."
    return content


# ---------------------------------------------------------------------------
# Stream decoding types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DataEvent:
    """A complete ``data:`` record; ``payload`` is still undecoded JSON."""

    payload: str


@dataclass(frozen=True)
class DoneEvent:
    """Terminal ``[DONE]`` sentinel."""


@dataclass(frozen=True)
class StreamClosed:
    """The byte stream ended without a ``[DONE]`` sentinel."""

    trailing: str = ""


DecodedEvent = Union[DataEvent, DoneEvent, StreamClosed]


# ---------------------------------------------------------------------------
# Rendering types
# ---------------------------------------------------------------------------

class SegmentKind(enum.Enum):
    PLAIN = "plain"
    REASONING = "reasoning"


@dataclass(frozen=True)
class Segment:
    kind: SegmentKind
    text: str


@dataclass(frozen=True)
class SplitResult:
    """Ordered segments plus any reasoning region that is still open.

    ``held`` is a trailing piece of a tag that may still be completing
    while the message streams; it belongs after ``pending`` (or after the
    last segment when nothing is pending).
    """

    segments: tuple[Segment, ...] = ()
    pending: str | None = None
    held: str = ""

    @property
    def reasoning_in_progress(self) -> bool:
        return self.pending is not None


# ---------------------------------------------------------------------------
# Session / event types
# ---------------------------------------------------------------------------

class SessionState(enum.Enum):
    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


class EventType(enum.Enum):
    """Event types emitted to UI subscribers."""

    SESSION_STATE = "session.state"
    RENDER_FRAGMENT = "render.fragment"
    NOTIFICATION = "notification"
    CONVERSATION_UPDATED = "conversation.updated"


@dataclass
class PlaygroundEvent:
    """Event emitted via the EventBus."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

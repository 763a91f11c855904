"""Completion transport and stream decoding for Chat Playground."""

from chat_playground.llm.client import CompletionClient
from chat_playground.llm.decoder import FrameDecoder, iter_events, parse_delta

__all__ = [
    "CompletionClient",
    "FrameDecoder",
    "iter_events",
    "parse_delta",
]

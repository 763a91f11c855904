"""Message content rendering for Chat Playground."""

from chat_playground.render.base import Renderer
from chat_playground.render.fallback import FallbackRenderer
from chat_playground.render.formatter import ContentFormatter
from chat_playground.render.markdown_renderer import MarkdownRenderer
from chat_playground.render.splitter import TagSplitter

__all__ = [
    "ContentFormatter",
    "FallbackRenderer",
    "MarkdownRenderer",
    "Renderer",
    "TagSplitter",
]

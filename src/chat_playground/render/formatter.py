"""ContentFormatter — whole-message rendering with a fallback strategy.

    text → TagSplitter → primary renderer (markdown)
                       ↘ fallback renderer, if the primary one fails

The formatter is recomputed from the full message on every delta rather
than patched: a reasoning region can only be told apart from visible text
once its closing tag has arrived.
"""

from __future__ import annotations

import logging

from chat_playground.config import RenderConfig
from chat_playground.errors import RenderError
from chat_playground.types import SegmentKind, SplitResult

from .base import Renderer
from .fallback import FallbackRenderer
from .markdown_renderer import MarkdownRenderer
from .splitter import TagSplitter

_logger = logging.getLogger(__name__)


class ContentFormatter:
    """Convert accumulated message text into one HTML fragment.

    Parameters
    ----------
    primary:
        Strategy used first (markdown by default).
    fallback:
        Strategy used for the whole pass when *primary* raises
        ``RenderError``.
    splitter:
        Reasoning tag splitter.
    show_pending:
        Render an unclosed reasoning region as a provisional disclosure.
    """

    def __init__(
        self,
        primary: Renderer | None = None,
        fallback: Renderer | None = None,
        splitter: TagSplitter | None = None,
        show_pending: bool = True,
    ) -> None:
        self.primary = primary or MarkdownRenderer()
        self.fallback = fallback or FallbackRenderer()
        self.splitter = splitter or TagSplitter()
        self.show_pending = show_pending

    @classmethod
    def from_config(cls, config: RenderConfig) -> ContentFormatter:
        return cls(
            primary=MarkdownRenderer(
                summary_label=config.summary_label,
                placeholder_suffixes=config.placeholder_suffixes,
                extensions=config.markdown_extensions,
            ),
            fallback=FallbackRenderer(
                summary_label=config.summary_label,
                placeholder_suffixes=config.placeholder_suffixes,
            ),
            splitter=TagSplitter(config.reasoning_tag),
            show_pending=config.show_pending_reasoning,
        )

    def split(self, text: str, streaming: bool = False) -> SplitResult:
        return self.splitter.split(text, streaming)

    def format(self, text: str, streaming: bool = False) -> str:
        """Render *text*; *streaming* holds back a half-arrived tag at the end."""
        result = self.splitter.split(text, streaming)
        try:
            return self.render(self.primary, result)
        except RenderError as e:
            _logger.warning("%s renderer failed, using %s: %s",
                            self.primary.name, self.fallback.name, e)
            return self.render(self.fallback, result)

    def render(self, renderer: Renderer, result: SplitResult) -> str:
        """Render a split message with one strategy."""
        parts: list[str] = []
        for segment in result.segments:
            if segment.kind is SegmentKind.REASONING:
                parts.append(renderer.render_reasoning(segment.text))
            else:
                parts.append(renderer.render_plain(segment.text))
        if result.pending is not None and self.show_pending:
            parts.append(renderer.render_pending(result.pending))
        return "\n".join(p for p in parts if p)

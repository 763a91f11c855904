"""Renderer strategy interface shared by the markdown and fallback paths."""

from __future__ import annotations

import html
from abc import ABC, abstractmethod
from collections.abc import Iterable

DEFAULT_SUMMARY_LABEL = "💭 Thinking process"
DEFAULT_PLACEHOLDER_SUFFIXES = ("/image/", "/video/")

LINK_TARGET = "_blank"
LINK_REL = "noopener noreferrer"


def escape(text: str) -> str:
    return html.escape(text, quote=True)


def is_placeholder(url: str, suffixes: Iterable[str]) -> bool:
    """True for media URLs that point at a not-yet-resolved endpoint."""
    return url.strip().endswith(tuple(suffixes))


class Renderer(ABC):
    """One way of turning split message content into markup.

    Reasoning disclosures are built here so every strategy produces the
    same markup for them.
    """

    name = "renderer"

    def __init__(
        self,
        summary_label: str = DEFAULT_SUMMARY_LABEL,
        placeholder_suffixes: Iterable[str] = DEFAULT_PLACEHOLDER_SUFFIXES,
    ) -> None:
        self.summary_label = summary_label
        self.placeholder_suffixes = tuple(placeholder_suffixes)

    @abstractmethod
    def render_plain(self, text: str) -> str:
        """Render visible content."""

    def render_reasoning(self, text: str) -> str:
        """Collapsible disclosure holding closed reasoning as literal text."""
        return self._disclosure(text, "thinking-block")

    def render_pending(self, text: str) -> str:
        """Provisional, expanded disclosure for reasoning still streaming."""
        return self._disclosure(text, "thinking-block pending", opened=True)

    def _disclosure(self, text: str, css_class: str, opened: bool = False) -> str:
        body = escape(text.strip()).replace("\n", "<br>")
        open_attr = " open" if opened else ""
        return (
            f'<details class="{css_class}"{open_attr}>\n'
            f"<summary>{escape(self.summary_label)}</summary>\n"
            f'<div class="thinking-content">{body}</div>\n'
            f"</details>"
        )

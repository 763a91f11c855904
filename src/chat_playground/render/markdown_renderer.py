"""Primary renderer: Python-Markdown with link and image rewrite rules."""

from __future__ import annotations

import logging
import xml.etree.ElementTree as etree
from collections.abc import Iterable

import markdown
from markdown.extensions import Extension
from markdown.treeprocessors import Treeprocessor

from chat_playground.errors import RenderError

from .base import (
    DEFAULT_PLACEHOLDER_SUFFIXES,
    DEFAULT_SUMMARY_LABEL,
    LINK_REL,
    LINK_TARGET,
    Renderer,
    is_placeholder,
)

_logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = ("extra", "nl2br", "sane_lists")


class LinkRewriteProcessor(Treeprocessor):
    """Drops placeholder images, lazy-loads the rest, opens links in a new tab."""

    def __init__(self, md: markdown.Markdown, suffixes: Iterable[str]) -> None:
        super().__init__(md)
        self.suffixes = tuple(suffixes)

    def run(self, root: etree.Element) -> None:
        for parent in list(root.iter()):
            for child in list(parent):
                if child.tag == "img":
                    if is_placeholder(child.get("src", ""), self.suffixes):
                        self._remove(parent, child)
                    else:
                        child.set("loading", "lazy")
                elif child.tag == "a":
                    child.set("target", LINK_TARGET)
                    child.set("rel", LINK_REL)

    @staticmethod
    def _remove(parent: etree.Element, child: etree.Element) -> None:
        # keep the text that followed the element
        if child.tail:
            idx = list(parent).index(child)
            if idx > 0:
                prev = parent[idx - 1]
                prev.tail = (prev.tail or "") + child.tail
            else:
                parent.text = (parent.text or "") + child.tail
        parent.remove(child)


class LinkRewriteExtension(Extension):
    def __init__(self, **kwargs) -> None:
        self.config = {
            "placeholder_suffixes": [
                list(DEFAULT_PLACEHOLDER_SUFFIXES),
                "Image URL suffixes that are suppressed",
            ],
        }
        super().__init__(**kwargs)

    def extendMarkdown(self, md: markdown.Markdown) -> None:
        md.registerExtension(self)
        # after the inline processor (20) has built <a>/<img> elements
        md.treeprocessors.register(
            LinkRewriteProcessor(md, self.getConfig("placeholder_suffixes")),
            "playground_links",
            5,
        )


class MarkdownRenderer(Renderer):
    """Markdown to HTML with significant soft breaks and raw HTML passthrough."""

    name = "markdown"

    def __init__(
        self,
        summary_label: str = DEFAULT_SUMMARY_LABEL,
        placeholder_suffixes: Iterable[str] = DEFAULT_PLACEHOLDER_SUFFIXES,
        extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    ) -> None:
        super().__init__(summary_label, placeholder_suffixes)
        self._md = markdown.Markdown(
            extensions=[
                *extensions,
                LinkRewriteExtension(placeholder_suffixes=list(self.placeholder_suffixes)),
            ],
            output_format="html",
        )

    def render_plain(self, text: str) -> str:
        if not text.strip():
            return ""
        self._md.reset()
        try:
            return self._md.convert(text)
        except Exception as e:
            raise RenderError(f"markdown conversion failed: {e}") from e

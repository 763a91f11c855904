"""Reduced renderer used when the markdown engine fails.

Works on escaped text with plain pattern matching: images and links are
rebuilt with the same rewrite rules as the markdown path and newlines
become ``<br>``.  Nothing else of markdown is interpreted.
"""

from __future__ import annotations

import re

from .base import LINK_REL, LINK_TARGET, Renderer, escape, is_placeholder

_IMAGE_RE = re.compile(r"!\[([^\]]*)\]\(([^)]+)\)")
_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")


class FallbackRenderer(Renderer):
    name = "fallback"

    def render_plain(self, text: str) -> str:
        if not text.strip():
            return ""
        out = escape(text)
        out = _IMAGE_RE.sub(self._image, out)
        out = _LINK_RE.sub(self._link, out)
        return out.replace("\n", "<br>")

    def _image(self, m: re.Match[str]) -> str:
        alt, url = m.group(1), m.group(2)
        if is_placeholder(url, self.placeholder_suffixes):
            return ""
        return f'<img src="{url}" alt="{alt}" loading="lazy">'

    @staticmethod
    def _link(m: re.Match[str]) -> str:
        text, url = m.group(1), m.group(2)
        return f'<a href="{url}" target="{LINK_TARGET}" rel="{LINK_REL}">{text}</a>'

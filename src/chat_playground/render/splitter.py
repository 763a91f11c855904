"""Separation of ``<think>...</think>`` reasoning regions from visible text.

The splitter always works on the whole accumulated message: a region may
have opened several deltas ago and still be waiting for its closing tag,
so only the full text tells whether a start tag is closed yet.
"""

from __future__ import annotations

from chat_playground.types import Segment, SegmentKind, SplitResult


class TagSplitter:
    """Split text into ordered plain and reasoning segments.

    Regions do not nest: a start tag inside an open region is literal
    reasoning text and the first end tag closes the region.  An end tag
    with no open region is literal plain text.
    """

    def __init__(self, tag: str = "think") -> None:
        self.tag = tag
        self.start_marker = f"<{tag}>"
        self.end_marker = f"</{tag}>"

    def split(self, text: str, streaming: bool = False) -> SplitResult:
        """Split *text*.

        With *streaming* set, a trailing fragment that could still grow
        into a marker (``"<thi"``, ``"</th"``) is returned as ``held``
        instead of being shown as plain or pending text.
        """
        segments: list[Segment] = []
        pos = 0
        while True:
            start = text.find(self.start_marker, pos)
            if start < 0:
                rest, held = self._hold(text[pos:], self.start_marker, streaming)
                self._append(segments, SegmentKind.PLAIN, rest)
                return SplitResult(segments=tuple(segments), held=held)

            self._append(segments, SegmentKind.PLAIN, text[pos:start])
            body_start = start + len(self.start_marker)
            end = text.find(self.end_marker, body_start)
            if end < 0:
                # still open: withhold it from the plain text
                pending, held = self._hold(text[body_start:], self.end_marker, streaming)
                return SplitResult(segments=tuple(segments), pending=pending, held=held)

            self._append(segments, SegmentKind.REASONING, text[body_start:end])
            pos = end + len(self.end_marker)

    @staticmethod
    def _hold(text: str, marker: str, streaming: bool) -> tuple[str, str]:
        if streaming:
            for size in range(min(len(marker) - 1, len(text)), 0, -1):
                if text.endswith(marker[:size]):
                    return text[:-size], text[-size:]
        return text, ""

    @staticmethod
    def _append(segments: list[Segment], kind: SegmentKind, text: str) -> None:
        if not text:
            return
        if segments and segments[-1].kind == kind == SegmentKind.PLAIN:
            # plain text on both sides of an empty region reads as one run
            segments[-1] = Segment(kind, segments[-1].text + text)
            return
        segments.append(Segment(kind, text))

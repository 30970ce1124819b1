"""Offset helpers shared by every scanner: line/column lookup and brace matching."""

from __future__ import annotations

from bisect import bisect_right
from typing import List, Tuple

from .models import Location, Span

_PAIRS = {"{": "}", "[": "]", "(": ")"}


def line_column(text: str, offset: int) -> Tuple[int, int]:
    """Return the 1-based ``(line, column)`` of *offset* in *text*."""
    offset = max(0, min(offset, len(text)))
    preceding = text[:offset]
    line = preceding.count("\n") + 1
    column = offset - (preceding.rfind("\n") + 1) + 1
    return line, column


class LineIndex:
    """Precomputed line starts for repeated offset lookups on one text."""

    def __init__(self, text: str) -> None:
        self.text = text
        self._starts: List[int] = [0]
        for i, ch in enumerate(text):
            if ch == "\n":
                self._starts.append(i + 1)

    def locate(self, offset: int) -> Tuple[int, int]:
        offset = max(0, min(offset, len(self.text)))
        line = bisect_right(self._starts, offset)
        return line, offset - self._starts[line - 1] + 1

    def location(self, offset: int) -> Location:
        line, column = self.locate(offset)
        return Location(position=offset, line=line, column=column)

    def span(self, start: int, end: int) -> Span:
        return Span(start=self.location(start), end=self.location(end))


def matching_close(text: str, open_offset: int, lexical: bool = True) -> int:
    """Find the bracket closing the one at *open_offset*.

    Works for ``{``, ``[`` and ``(``. Returns ``-1`` when the character at
    *open_offset* is not an opening bracket or the text runs out before the
    depth returns to zero.

    With *lexical* set (the default) string literals (single, double and
    backtick quotes) and ``//`` / ``/* */`` comments are skipped, so brackets
    inside them do not count.
    """
    if open_offset < 0 or open_offset >= len(text):
        return -1
    opener = text[open_offset]
    closer = _PAIRS.get(opener)
    if closer is None:
        return -1

    depth = 1
    pos = open_offset + 1
    length = len(text)
    while pos < length:
        ch = text[pos]
        if lexical:
            if ch in ("'", '"', "`"):
                pos = skip_string(text, pos)
                continue
            if ch == "/" and pos + 1 < length:
                nxt = text[pos + 1]
                if nxt == "/":
                    newline = text.find("\n", pos)
                    pos = length if newline == -1 else newline + 1
                    continue
                if nxt == "*":
                    end = text.find("*/", pos + 2)
                    pos = length if end == -1 else end + 2
                    continue
        if ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return pos
        pos += 1
    return -1


def skip_string(text: str, start: int) -> int:
    """Return the offset just past the string literal opening at *start*."""
    quote = text[start]
    pos = start + 1
    length = len(text)
    while pos < length:
        ch = text[pos]
        if ch == "\\":
            pos += 2
            continue
        if ch == quote:
            return pos + 1
        # Plain quotes do not span lines; an unterminated one ends at the newline.
        if ch == "\n" and quote != "`":
            return pos + 1
        pos += 1
    return length


def literal_ranges(text: str) -> List[Tuple[int, int]]:
    """``(start, end)`` of every string literal and comment in *text*, in order."""
    ranges: List[Tuple[int, int]] = []
    pos = 0
    length = len(text)
    while pos < length:
        ch = text[pos]
        if ch in ("'", '"', "`"):
            end = skip_string(text, pos)
        elif text.startswith("//", pos):
            newline = text.find("\n", pos)
            end = length if newline == -1 else newline + 1
        elif text.startswith("/*", pos):
            close = text.find("*/", pos + 2)
            end = length if close == -1 else close + 2
        else:
            pos += 1
            continue
        ranges.append((pos, end))
        pos = end
    return ranges


def in_ranges(ranges: List[Tuple[int, int]], offset: int) -> bool:
    """True when *offset* falls inside one of the sorted, disjoint *ranges*."""
    i = bisect_right(ranges, (offset, float("inf"))) - 1
    return i >= 0 and ranges[i][0] <= offset < ranges[i][1]

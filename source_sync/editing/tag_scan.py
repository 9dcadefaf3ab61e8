"""
Tag-balance scanning primitives.

Every operation that needs "where does this tag's content end" or "which
direct children does this element have" goes through the three functions
here, so the depth / comment / void-tag rules live in exactly one place.

In *jsx* mode tag names are compared case-sensitively, ``{…}`` expression
blocks are skipped wholesale, and only an explicit ``/>`` self-closes.
"""

from __future__ import annotations

import re
from typing import Optional

from ..errors import MalformedSpan
from ..parsing.markup import VOID_TAGS

_OPEN_NAME = re.compile(r"<([A-Za-z][\w.:-]*)")
_CLOSE_TAG = re.compile(r"</\s*([A-Za-z][\w.:-]*)?\s*>")

# Markup elements whose content is raw text, never tags.
_RAW_TEXT_TAGS = frozenset({"script", "style"})


def _skip_quoted(text: str, i: int) -> int:
    """Return the index just past the string literal that starts at *i*."""
    quote = text[i]
    i += 1
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "\\" and quote == "`":
            i += 2
            continue
        if ch == quote:
            return i + 1
        i += 1
    return n


def _skip_braces(text: str, i: int) -> int:
    """Return the index just past the ``{…}`` block that starts at *i*."""
    depth = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch in ("'", '"', "`"):
            i = _skip_quoted(text, i)
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i + 1
        i += 1
    return n


def _open_tag_end(text: str, start: int, jsx: bool) -> Optional[int]:
    i = start + 1
    n = len(text)
    while i < n:
        ch = text[i]
        if ch in ('"', "'"):
            i = _skip_quoted(text, i)
            continue
        if jsx and ch == "{":
            i = _skip_braces(text, i)
            continue
        if ch == ">":
            return i + 1
        i += 1
    return None


def find_open_tag_end(text: str, start: int, jsx: bool = False) -> int:
    """Return the offset just past the ``>`` of the open tag at *start*.

    Quoted attribute values (and, in *jsx* mode, ``{…}`` expressions) may
    contain ``>`` without ending the tag.

    Raises
    ------
    MalformedSpan
        If the tag never terminates.
    """
    end = _open_tag_end(text, start, jsx)
    if end is None:
        raise MalformedSpan(f"Open tag at offset {start} never terminates", offset=start)
    return end


def tag_name_at(text: str, start: int) -> str:
    """Tag name exactly as written in the open tag at *start*."""
    m = _OPEN_NAME.match(text, start)
    if m is None:
        raise MalformedSpan(f"No open tag at offset {start}", offset=start)
    return m.group(1)


def is_self_closing(text: str, open_end: int) -> bool:
    """True when the open tag ending at *open_end* is written ``<x … />``."""
    return open_end >= 2 and text[open_end - 2] == "/"


def _same_name(a: str, b: str, jsx: bool) -> bool:
    return a == b if jsx else a.lower() == b.lower()


def _closes_itself(text: str, name: str, tag_end: int, jsx: bool) -> bool:
    if is_self_closing(text, tag_end):
        return True
    return not jsx and name.lower() in VOID_TAGS


def _skip_raw_text(text: str, name: str, tag_end: int) -> int:
    """Jump past a script/style body to the start of its close tag."""
    close = re.compile(rf"</\s*{re.escape(name)}\s*>", re.IGNORECASE).search(text, tag_end)
    return close.start() if close else len(text)


class _Scanner:
    """Forward walk over tags, comments and expression blocks."""

    def __init__(self, text: str, pos: int, jsx: bool) -> None:
        self.text = text
        self.pos = pos
        self.jsx = jsx

    def next_token(self, limit: int):
        """Return ``("open", name, start, end)``, ``("close", name, start, end)``
        or None when nothing tag-like remains before *limit*."""
        text = self.text
        while self.pos < limit:
            i = self.pos
            ch = text[i]
            if self.jsx and ch == "{":
                self.pos = _skip_braces(text, i)
                continue
            if ch != "<":
                self.pos = i + 1
                continue
            if text.startswith("<!--", i):
                close = text.find("-->", i + 4)
                if close == -1:
                    raise MalformedSpan(f"Unterminated comment at offset {i}", offset=i)
                self.pos = close + 3
                continue
            if text.startswith("</", i):
                m = _CLOSE_TAG.match(text, i)
                if m is None:
                    self.pos = i + 2
                    continue
                self.pos = m.end()
                return "close", m.group(1) or "", i, m.end()
            m = _OPEN_NAME.match(text, i)
            if m is None:
                self.pos = i + 1
                continue
            end = _open_tag_end(text, i, self.jsx)
            if end is None:
                raise MalformedSpan(
                    f"<{m.group(1)}> at offset {i} never terminates",
                    tag_name=m.group(1), offset=i,
                )
            self.pos = end
            return "open", m.group(1), i, end
        return None


def find_matching_close(
    text: str,
    open_end: int,
    tag_name: str,
    jsx: bool = False,
) -> tuple[int, int]:
    """Find the close tag balancing an open *tag_name* ending at *open_end*.

    Depth goes up on every non-self-closing open tag of the same name and
    down on every matching close tag; comments are skipped whole.

    Returns
    -------
    tuple[int, int]
        ``(close_start, close_end)`` of the matching close tag.

    Raises
    ------
    MalformedSpan
        If the input ends before the tag is balanced.
    """
    if not jsx and tag_name.lower() in _RAW_TEXT_TAGS:
        close_start = _skip_raw_text(text, tag_name, open_end)
        m = _CLOSE_TAG.match(text, close_start)
        if m is not None:
            return close_start, m.end()
        raise MalformedSpan(
            f"No matching </{tag_name}> after offset {open_end}",
            tag_name=tag_name, offset=open_end,
        )

    scanner = _Scanner(text, open_end, jsx)
    depth = 1
    while True:
        token = scanner.next_token(len(text))
        if token is None:
            break
        kind, name, start, end = token
        if kind == "close":
            if _same_name(name, tag_name, jsx):
                depth -= 1
                if depth == 0:
                    return start, end
            continue
        if _closes_itself(text, name, end, jsx):
            continue
        if not jsx and name.lower() in _RAW_TEXT_TAGS:
            scanner.pos = _skip_raw_text(text, name, end)
        if _same_name(name, tag_name, jsx):
            depth += 1

    raise MalformedSpan(
        f"No matching </{tag_name}> after offset {open_end}",
        tag_name=tag_name, offset=open_end,
    )


def scan_children(
    text: str,
    open_end: int,
    close_start: int,
    jsx: bool = False,
) -> list[tuple[int, int]]:
    """Return the spans of the direct structural children in a content range.

    Text, comments and (in *jsx* mode) ``{…}`` expression blocks are not
    children.  Each child span runs from its ``<`` to just past its close
    tag, or past its open tag when it closes itself.
    """
    scanner = _Scanner(text, open_end, jsx)
    spans: list[tuple[int, int]] = []
    while True:
        token = scanner.next_token(close_start)
        if token is None:
            break
        kind, name, start, end = token
        if kind == "close":
            # Stray close tag at depth zero: not a child.
            continue
        if _closes_itself(text, name, end, jsx):
            spans.append((start, end))
            continue
        _, child_end = find_matching_close(text, end, name, jsx)
        spans.append((start, child_end))
        scanner.pos = child_end
    return spans

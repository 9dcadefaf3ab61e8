"""
Tag-stream parser for markup documents (HTML and friends).

Built on the standard library's event-driven :class:`html.parser.HTMLParser`:
open tags push onto a traversal stack, close tags pop it, and every element
records the exact character span it occupies in the original text.
"""

from __future__ import annotations

import logging
import re
from html.parser import HTMLParser
from typing import Callable

from ..errors import ParseError
from .elements import (
    DocumentKind,
    Element,
    IdentityFactory,
    LineIndex,
    ParseResult,
    attach_root,
    set_positions,
)

logger = logging.getLogger(__name__)

# Elements that never have a close tag.
VOID_TAGS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input", "link",
    "meta", "param", "source", "track", "wbr",
})

# A tag with attributes, or a comment, left open at end of input. A bare
# trailing "<word" is text.
_UNTERMINATED = re.compile(r"<(?:[A-Za-z][^\s/>]*[\s/][^>]*|!--(?:(?!-->).)*)\Z", re.DOTALL)


class _TagStream(HTMLParser):
    """Collect an element tree while HTMLParser walks the text."""

    def __init__(self, text: str, new_identity: Callable[[], str]) -> None:
        super().__init__(convert_charrefs=True)
        self._text = text
        self._index = LineIndex(text)
        self._new_identity = new_identity
        self._stack: list[Element] = []
        self.roots: list[Element] = []
        self.identity_map: dict[str, Element] = {}

    # ------------------------------------------------------------------
    # HTMLParser callbacks
    # ------------------------------------------------------------------

    def handle_starttag(self, tag, attrs):
        element = self._open(tag, attrs)
        if tag in VOID_TAGS:
            self._finish(element, element.open_tag_end)
        else:
            self._stack.append(element)

    def handle_startendtag(self, tag, attrs):
        element = self._open(tag, attrs)
        self._finish(element, element.open_tag_end)

    def handle_endtag(self, tag):
        close_start = self._offset()
        gt = self._text.find(">", close_start)
        close_end = gt + 1 if gt != -1 else len(self._text)

        for depth in range(len(self._stack) - 1, -1, -1):
            if self._stack[depth].tag_name == tag:
                break
        else:
            logger.debug("[Parser] Ignoring stray </%s> at offset %d", tag, close_start)
            return

        # Anything opened after the match is closed implicitly.
        while len(self._stack) > depth + 1:
            self._finish(self._stack.pop(), close_start)
        element = self._stack.pop()
        element.close_tag_start = close_start
        self._finish(element, close_end)

    def handle_data(self, data):
        if self._stack and data.strip():
            top = self._stack[-1]
            if top.text is None:
                top.text = data.strip()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _offset(self) -> int:
        line, column = self.getpos()
        return self._index.offset(line, column)

    def _open(self, tag: str, attrs) -> Element:
        start = self._offset()
        raw = self.get_starttag_text() or ""
        attributes: dict[str, str] = {}
        for name, value in attrs:
            attributes.setdefault(name, value if value is not None else "")

        element = Element(
            identity=self._new_identity(),
            tag_name=tag,
            source_start=start,
            source_end=start + len(raw),
            open_tag_end=start + len(raw),
            attributes=attributes,
        )
        # Ordinal is fixed before the node joins its parent.
        if self._stack:
            self._stack[-1].attach(element)
        else:
            attach_root(self.roots, element)
        self.identity_map[element.identity] = element
        return element

    def _finish(self, element: Element, end: int) -> None:
        element.source_end = max(end, element.open_tag_end)
        set_positions(element, self._index)

    def drain(self) -> None:
        """Close whatever is still open at end of input."""
        while self._stack:
            element = self._stack.pop()
            logger.debug(
                "[Parser] <%s> at line %d never closed; extending to end of input",
                element.tag_name, self._index.line_col(element.source_start)[0],
            )
            self._finish(element, len(self._text))


class MarkupParser:
    """Structural parser for markup text."""

    kind = DocumentKind.MARKUP

    def parse(self, text: str) -> ParseResult:
        """Parse *text* into an element tree.

        Raises
        ------
        ParseError
            If a tag or comment is left unterminated, or the tokenizer fails.
        """
        dangling = _UNTERMINATED.search(text)
        if dangling:
            line = LineIndex(text).line_col(dangling.start())[0]
            raise ParseError(f"Unterminated tag at line {line}", line=line)

        stream = _TagStream(text, IdentityFactory())
        try:
            stream.feed(text)
            stream.close()
        except (AssertionError, ValueError) as exc:
            raise ParseError(f"Markup tokenizer failed: {exc}") from exc
        stream.drain()

        logger.debug("[Parser] Parsed %d markup elements", len(stream.identity_map))
        return ParseResult(
            text=text,
            kind=self.kind,
            roots=stream.roots,
            identity_map=stream.identity_map,
        )


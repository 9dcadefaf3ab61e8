"""
Element tree model shared by both structural parsers.

An :class:`Element` describes one tag (or component instance) together with
the exact character span it occupies in the source text.  Trees are rebuilt
on every parse and discarded on the next one; nothing here is persistent.
"""

from __future__ import annotations

import bisect
import enum
import uuid
from dataclasses import dataclass, field
from typing import Iterator, Optional


class DocumentKind(str, enum.Enum):
    """Which parser a document needs."""
    MARKUP = "markup"
    COMPONENT = "component"


@dataclass(eq=False)
class Element:
    """A parsed tag or component instance with its source span."""
    identity: str
    tag_name: str
    source_start: int
    source_end: int
    open_tag_end: int
    attributes: dict[str, str] = field(default_factory=dict)
    close_tag_start: Optional[int] = None   # None for void / self-closing
    start_line: int = 1
    start_column: int = 0
    end_line: int = 1
    end_column: int = 0
    ordinal: int = 1
    text: Optional[str] = None
    is_component: bool = False
    children: list["Element"] = field(default_factory=list)
    parent: Optional["Element"] = field(default=None, repr=False)

    @property
    def span(self) -> tuple[int, int]:
        return self.source_start, self.source_end

    @property
    def class_tokens(self) -> list[str]:
        """Whitespace-separated tokens of ``class`` / ``className``."""
        raw = self.attributes.get("class")
        if raw is None:
            raw = self.attributes.get("className", "")
        if raw == EXPRESSION_PLACEHOLDER:
            return []
        return raw.split()

    def attach(self, child: "Element") -> None:
        """Append *child*, assigning its ordinal first."""
        child.ordinal = len(self.children) + 1
        child.parent = self
        self.children.append(child)

    def selector(self) -> str:
        """Return a selector path segment that identifies this element."""
        segment = self.tag_name
        element_id = self.attributes.get("id")
        if element_id and element_id != EXPRESSION_PLACEHOLDER:
            segment += f"#{element_id}"
        tokens = self.class_tokens
        if tokens:
            segment += f".{tokens[0]}"
        return f"{segment}:nth-child({self.ordinal})"

    def selector_path(self) -> str:
        """Full ``a > b > c`` path from the root down to this element."""
        parts: list[str] = []
        node: Optional[Element] = self
        while node is not None:
            parts.append(node.selector())
            node = node.parent
        return " > ".join(reversed(parts))


# Placeholder recorded for attribute values that are code, not literals.
EXPRESSION_PLACEHOLDER = "[expression]"


@dataclass
class ParseResult:
    """Roots and identity map produced by one parse call."""
    text: str
    kind: DocumentKind
    roots: list[Element] = field(default_factory=list)
    identity_map: dict[str, Element] = field(default_factory=dict)
    parse_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.parse_error is None

    def walk(self) -> Iterator[Element]:
        return walk(self.roots)

    def find_by_start(self, start: int, tag_name: str | None = None) -> Optional[Element]:
        """Return the element whose span begins at *start*, or None."""
        for element in self.walk():
            if element.source_start != start:
                continue
            if tag_name is None or element.tag_name.lower() == tag_name.lower():
                return element
        return None

    def body(self) -> Optional[Element]:
        for element in self.walk():
            if element.tag_name == "body":
                return element
        return None


def walk(roots: list[Element]) -> Iterator[Element]:
    """Pre-order traversal over *roots* and all their descendants."""
    stack = list(reversed(roots))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


class IdentityFactory:
    """Mint identities that are unique within one parse.

    Each factory draws a random prefix, so identities from an earlier parse
    can never collide with (and therefore never resolve in) a later one.
    """

    def __init__(self, prefix: str = "sx") -> None:
        self._token = uuid.uuid4().hex[:8]
        self._prefix = prefix
        self._counter = 0

    def __call__(self) -> str:
        self._counter += 1
        return f"{self._prefix}-{self._token}-{self._counter}"


class LineIndex:
    """Convert character offsets into 1-based lines and 0-based columns."""

    def __init__(self, text: str) -> None:
        self._starts = [0]
        pos = text.find("\n")
        while pos != -1:
            self._starts.append(pos + 1)
            pos = text.find("\n", pos + 1)

    def line_col(self, offset: int) -> tuple[int, int]:
        line = bisect.bisect_right(self._starts, offset) - 1
        return line + 1, offset - self._starts[line]

    def line_start(self, line: int) -> int:
        """Offset of the first character of 1-based *line*."""
        return self._starts[min(max(line, 1), len(self._starts)) - 1]

    def offset(self, line: int, column: int) -> int:
        return self.line_start(line) + column

    @property
    def line_count(self) -> int:
        return len(self._starts)


def set_positions(element: Element, index: LineIndex) -> None:
    """Fill in the line/column fields from the element's offsets."""
    element.start_line, element.start_column = index.line_col(element.source_start)
    element.end_line, element.end_column = index.line_col(element.source_end)


def attach_root(roots: list[Element], element: Element) -> None:
    """Append a top-level element, assigning its ordinal first."""
    element.ordinal = len(roots) + 1
    element.parent = None
    roots.append(element)

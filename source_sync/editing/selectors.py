"""
Selector-path parsing.

A selector path is the ancestor chain the live preview reports for a
selection, e.g. ``div#app > ul.menu > li:nth-child(2)``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional

from ..errors import ElementNotFound

_SEGMENT_RE = re.compile(
    r"""^
    (?P<tag>\*|[A-Za-z][\w:-]*)?
    (?:\#(?P<id>[\w-]+))?
    (?P<classes>(?:\.[\w-]+)*)
    (?::nth-child\(\s*(?P<ordinal>\d+)\s*\))?
    $""",
    re.VERBOSE,
)


@dataclass(frozen=True)
class SelectorSegment:
    """One ``tag#id.class:nth-child(n)`` step of a selector path."""
    tag_name: Optional[str] = None
    id: Optional[str] = None
    class_name: Optional[str] = None
    ordinal: Optional[int] = None

    @property
    def is_wildcard(self) -> bool:
        """True when the segment places no constraint on the tag name."""
        return self.tag_name is None or self.tag_name == "*"

    def __str__(self) -> str:
        out = self.tag_name or ""
        if self.id:
            out += f"#{self.id}"
        if self.class_name:
            out += f".{self.class_name}"
        if self.ordinal is not None:
            out += f":nth-child({self.ordinal})"
        return out or "*"


def parse_segment(raw: str) -> SelectorSegment:
    """Parse a single segment; raises ElementNotFound when it is malformed."""
    text = raw.strip()
    m = _SEGMENT_RE.match(text)
    if not text or m is None:
        raise ElementNotFound(f"Malformed selector segment: {raw!r}", selector_path=raw)
    classes = [c for c in m.group("classes").split(".") if c]
    ordinal = m.group("ordinal")
    return SelectorSegment(
        tag_name=m.group("tag"),
        id=m.group("id"),
        class_name=classes[0] if classes else None,
        ordinal=int(ordinal) if ordinal is not None else None,
    )


def _split(path: str) -> list[str]:
    return [part.strip() for part in path.split(">") if part.strip()]


def parse_selector_path(
    path: str,
    strip_prefixes: Iterable[str] = (),
) -> list[SelectorSegment]:
    """Turn ``a > b > c`` into segments.

    Any prefix from *strip_prefixes* (the preview's own wrapper, such as
    ``#preview-content >``) is removed first.
    """
    parts = _split(path)
    for prefix in strip_prefixes:
        prefix_parts = _split(prefix)
        if prefix_parts and parts[:len(prefix_parts)] == prefix_parts:
            parts = parts[len(prefix_parts):]
            break
    return [parse_segment(part) for part in parts]

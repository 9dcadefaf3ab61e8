"""
Path resolver — maps a selector path onto an element of a parsed tree.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, Sequence, Union

from ..errors import AmbiguousPath, ElementNotFound
from ..parsing.elements import DocumentKind, Element, ParseResult
from .selectors import SelectorSegment, parse_selector_path

logger = logging.getLogger(__name__)

AMBIGUOUS_FIRST = "first"
AMBIGUOUS_ERROR = "error"

# Wrappers the preview renders around every page; paths are body-relative.
_IMPLICIT_ANCHORS = ("html", "body")


def match_segment(element: Element, segment: SelectorSegment) -> bool:
    """Return True if *element* satisfies every constraint in *segment*.

    A segment without a tag (or with ``*``) matches any tag, so an id-only
    segment finds its element even when the preview and the source disagree
    about the tag name.
    """
    if not segment.is_wildcard and element.tag_name.lower() != segment.tag_name.lower():
        return False
    if segment.id is not None and element.attributes.get("id") != segment.id:
        return False
    if segment.class_name is not None and segment.class_name not in element.class_tokens:
        return False
    if segment.ordinal is not None and element.ordinal != segment.ordinal:
        return False
    return True


def _initial_level(
    tree: ParseResult,
    segments: list[SelectorSegment],
) -> tuple[list[Element], list[SelectorSegment]]:
    if tree.kind == DocumentKind.MARKUP:
        body = tree.body()
        if body is not None:
            while (segments and segments[0].tag_name
                   and segments[0].tag_name.lower() in _IMPLICIT_ANCHORS):
                segments = segments[1:]
            return body.children, segments
    return tree.roots, segments


def resolve(
    tree: ParseResult,
    path: Union[str, Sequence[SelectorSegment]],
    *,
    ambiguous: str = AMBIGUOUS_FIRST,
    strip_prefixes: Iterable[str] = (),
) -> Element:
    """Resolve *path* against *tree*.

    If the first segment carries an id the whole tree is searched for it
    and the walk continues from there; otherwise the walk descends level by
    level, continuing into the one match at each level.  There is no
    backtracking.

    Parameters
    ----------
    tree:
        A successful parse result.
    path:
        Selector path string, or already parsed segments.
    ambiguous:
        ``"first"`` picks the first of several matching siblings (and logs a
        warning); ``"error"`` raises :class:`AmbiguousPath`.
    strip_prefixes:
        Preview wrapper prefixes to drop from a string path.

    Raises
    ------
    ElementNotFound
        When any segment matches nothing.
    AmbiguousPath
        When ``ambiguous="error"`` and a segment matches several siblings.
    """
    if isinstance(path, str):
        raw = path
        segments = parse_selector_path(path, strip_prefixes)
    else:
        segments = list(path)
        raw = " > ".join(str(s) for s in segments)
    if not segments:
        raise ElementNotFound("Empty selector path", selector_path=raw)

    candidates, segments = _initial_level(tree, segments)
    if not segments:
        # Only the implicit html/body anchors were given.
        return tree.body()

    first = segments[0]
    if first.id is not None:
        anchor_segment = replace(first, ordinal=None)
        anchor = next(
            (e for e in tree.walk()
             if e.attributes.get("id") == first.id and match_segment(e, anchor_segment)),
            None,
        )
        if anchor is not None:
            logger.debug("[Resolve] Anchored on #%s (<%s>)", first.id, anchor.tag_name)
            if len(segments) == 1:
                return anchor
            candidates, segments = anchor.children, segments[1:]

    current = None
    for depth, segment in enumerate(segments):
        matches = [e for e in candidates if match_segment(e, segment)]
        if not matches:
            raise ElementNotFound(
                f"No element matches {segment} (depth {depth}) of {raw!r}",
                selector_path=raw,
            )
        if len(matches) > 1 and segment.ordinal is None:
            if ambiguous == AMBIGUOUS_ERROR:
                raise AmbiguousPath(
                    f"{segment} matches {len(matches)} siblings in {raw!r}; "
                    f"add :nth-child() to disambiguate",
                    candidates=len(matches),
                )
            logger.warning(
                "[Resolve] %s matches %d siblings; using the first", segment, len(matches),
            )
        current = matches[0]
        candidates = current.children
    return current

"""
Mutation engine — structural edits on markup and component source text.

Every operation takes the current text and a locator, re-parses the text
once, resolves the locator to an element span and returns the new text.
Nothing is cached between calls: offsets from one call are never trusted
by the next.
"""

from __future__ import annotations

import html
import json
import logging
import re
from typing import TYPE_CHECKING, Iterable, Mapping, Optional

from ..errors import ElementNotFound, InvalidEdit, MalformedSpan
from ..parsing.elements import DocumentKind, Element, ParseResult
from ..parsing.markup import VOID_TAGS
from .identity import DEFAULT_ATTRIBUTE, find_by_identity, strip_identity_markers
from .path_resolver import AMBIGUOUS_FIRST, resolve
from .tag_scan import (
    find_matching_close,
    find_open_tag_end,
    is_self_closing,
    scan_children,
    tag_name_at,
)

if TYPE_CHECKING:
    from ..parsing import StructuralParser
    from ..requests import Locator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Attribute patterns (applied to a single open tag)
# ---------------------------------------------------------------------------

_TAG_TAIL = re.compile(r"\s*/?>\Z")
_STYLE_ATTR = re.compile(r"""(\sstyle\s*=\s*)(["'])(.*?)\2""", re.IGNORECASE | re.DOTALL)
_JSX_STYLE_OBJECT = re.compile(r"(\sstyle\s*=\s*)\{\{(.*?)\}\}", re.DOTALL)
_JSX_STYLE_ANY = re.compile(r"\sstyle\s*=")
_TEXT_OR_TAG = re.compile(r"<[^>]*>?|[^<]+")


def camel_to_kebab(name: str) -> str:
    """``backgroundColor`` → ``background-color``; custom properties untouched."""
    if name.startswith("--"):
        return name
    return re.sub(r"[A-Z]", lambda m: "-" + m.group(0).lower(), name)


def kebab_to_camel(name: str) -> str:
    """``background-color`` → ``backgroundColor``."""
    return re.sub(r"-([a-z])", lambda m: m.group(1).upper(), name)


def _insert_attribute(open_tag: str, attribute: str) -> str:
    """Add *attribute* just before the tag's closing ``>`` or ``/>``."""
    tail = _TAG_TAIL.search(open_tag)
    at = tail.start() if tail else len(open_tag)
    return f"{open_tag[:at]} {attribute}{open_tag[at:]}"


def _js_string(value: str) -> str:
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


def _split_top_level(body: str, sep: str = ",") -> list[str]:
    """Split on *sep* outside quotes and brackets."""
    parts: list[str] = []
    depth = 0
    quote = ""
    current = ""
    for ch in body:
        if quote:
            if ch == quote:
                quote = ""
        elif ch in ("'", '"', "`"):
            quote = ch
        elif ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
        elif ch == sep and depth == 0:
            parts.append(current)
            current = ""
            continue
        current += ch
    parts.append(current)
    return parts


def merge_declaration(body: str, name: str, value: str) -> str:
    """Set ``name: value`` in a ``;``-separated declaration list.

    An existing declaration is replaced in place; otherwise it is appended.
    An empty *value* removes the declaration.
    """
    parts = body.split(";")
    out: list[str] = []
    found = False
    for part in parts:
        if ":" in part and part.split(":", 1)[0].strip().lower() == name.lower():
            found = True
            if value:
                lead = part[:len(part) - len(part.lstrip())]
                out.append(f"{lead}{name}: {value}")
            continue
        out.append(part)

    if found:
        merged = ";".join(out)
        return merged if value else merged.strip()
    if not value:
        return body
    stripped = body.rstrip()
    if not stripped:
        return f"{name}: {value};"
    if not stripped.endswith(";"):
        stripped += ";"
    return f"{stripped} {name}: {value};"


def merge_object_property(body: str, key: str, value: str) -> str:
    """Set ``key: 'value'`` in the body of a JS object literal."""
    entries = _split_top_level(body)
    out: list[str] = []
    found = False
    for entry in entries:
        if ":" in entry:
            raw_key = entry.split(":", 1)[0].strip().strip("'\"")
            if kebab_to_camel(raw_key) == key:
                found = True
                if value:
                    lead = entry[:len(entry) - len(entry.lstrip())]
                    trail = entry[len(entry.rstrip()):]
                    out.append(f"{lead}{key}: {_js_string(value)}{trail}")
                continue
        out.append(entry)

    if found:
        merged = ",".join(out)
        return merged if merged.strip() else " "
    if not value:
        return body
    stripped = body.rstrip()
    if stripped.endswith(","):
        stripped = stripped[:-1]
    if not stripped.strip():
        return f" {key}: {_js_string(value)} "
    return f"{stripped}, {key}: {_js_string(value)} "


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class MutationEngine:
    """Apply structural edits to document text.

    Parameters
    ----------
    parser:
        The structural parser for this document's kind.
    identity_attribute:
        Marker attribute stripped from duplicated copies.
    ambiguous_paths:
        ``"first"`` or ``"error"``, see :func:`.path_resolver.resolve`.
    preview_prefixes:
        Wrapper selectors the preview prepends to every path.
    """

    def __init__(
        self,
        parser: "StructuralParser",
        identity_attribute: str = DEFAULT_ATTRIBUTE,
        ambiguous_paths: str = AMBIGUOUS_FIRST,
        preview_prefixes: Iterable[str] = (),
    ) -> None:
        self.parser = parser
        self.identity_attribute = identity_attribute
        self.ambiguous_paths = ambiguous_paths
        self.preview_prefixes = tuple(preview_prefixes)

    @property
    def jsx(self) -> bool:
        return self.parser.kind == DocumentKind.COMPONENT

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def parse(self, text: str) -> ParseResult:
        return self.parser.parse(text)

    def _by_identity(self, tree: ParseResult, locator: "Locator") -> Optional[Element]:
        if not locator.identity or locator.session is None:
            return None
        session = locator.session
        if not session.is_current(tree.text):
            logger.info(
                "[Mutation] Identity session is stale for %s; falling back to path",
                locator.identity,
            )
            return None
        location = find_by_identity(session, locator.identity)
        if location is None:
            return None
        return tree.find_by_start(location.start, location.tag_name)

    def resolve(self, tree: ParseResult, locator: "Locator") -> Element:
        """Identity first, selector path second; never a silent miss."""
        element = self._by_identity(tree, locator)
        if element is not None:
            return element
        if locator.selector_path:
            return resolve(
                tree,
                locator.selector_path,
                ambiguous=self.ambiguous_paths,
                strip_prefixes=self.preview_prefixes,
            )
        raise ElementNotFound(
            f"No element for {locator.describe()}",
            identity=locator.identity,
            selector_path=locator.selector_path,
        )

    def _target(self, text: str, locator: "Locator") -> tuple[ParseResult, Element]:
        tree = self.parse(text)
        return tree, self.resolve(tree, locator)

    def _refind(self, text: str, start: int, tag_name: str) -> Element:
        element = self.parse(text).find_by_start(start, tag_name)
        if element is None:
            raise ElementNotFound(f"<{tag_name}> at offset {start} vanished mid-edit")
        return element

    def locate(self, text: str, locator: "Locator") -> Element:
        """Resolve *locator* for jump-to-source (line/column live on the element)."""
        return self._target(text, locator)[1]

    # ------------------------------------------------------------------
    # Delete / duplicate
    # ------------------------------------------------------------------

    def delete_element(self, text: str, locator: "Locator") -> str:
        _, element = self._target(text, locator)
        start, end = element.span
        logger.info("[Mutation] Deleting <%s> at line %d", element.tag_name, element.start_line)
        return text[:start] + text[end:]

    def duplicate_element(self, text: str, locator: "Locator") -> str:
        """Insert a copy of the element right after it, markers stripped."""
        _, element = self._target(text, locator)
        start, end = element.span
        copy = strip_identity_markers(text[start:end], self.identity_attribute)
        logger.info("[Mutation] Duplicating <%s> at line %d", element.tag_name, element.start_line)
        return text[:end] + "\n" + copy + text[end:]

    # ------------------------------------------------------------------
    # Text
    # ------------------------------------------------------------------

    def edit_text(self, text: str, locator: "Locator", new_text: str) -> str:
        _, element = self._target(text, locator)
        return self._edit_text(text, element, new_text)

    def _encode_text(self, new_text: str) -> str:
        if self.jsx:
            if any(ch in new_text for ch in "{}<>"):
                return "{" + json.dumps(new_text) + "}"
            return new_text
        return html.escape(new_text, quote=False)

    def _edit_text(self, text: str, element: Element, new_text: str) -> str:
        if not self.jsx and element.tag_name.lower() in VOID_TAGS:
            raise InvalidEdit(f"<{element.tag_name}> is a void element and cannot hold text")

        encoded = self._encode_text(new_text)
        start = element.source_start
        open_end = find_open_tag_end(text, start, self.jsx)
        name = tag_name_at(text, start)

        if is_self_closing(text, open_end):
            head = text[start:open_end - 2].rstrip()
            logger.info("[Mutation] Expanding self-closing <%s/> to hold text", name)
            return f"{text[:start]}{head}>{encoded}</{name}>{text[open_end:]}"

        try:
            close_start, _ = find_matching_close(text, open_end, name, self.jsx)
        except MalformedSpan as exc:
            logger.warning(
                "[Mutation] %s; editing the text on line %d instead", exc, element.start_line,
            )
            return self._edit_text_on_line(text, open_end, encoded)
        return text[:open_end] + encoded + text[close_start:]

    @staticmethod
    def _edit_text_on_line(text: str, open_end: int, new_text: str) -> str:
        """Replace the first bare text run after *open_end* on the same line."""
        line_end = text.find("\n", open_end)
        if line_end == -1:
            line_end = len(text)
        for m in _TEXT_OR_TAG.finditer(text, open_end, line_end):
            token = m.group(0)
            if token.startswith("<") or not token.strip():
                continue
            a = m.start() + len(token) - len(token.lstrip())
            b = m.start() + len(token.rstrip())
            return text[:a] + new_text + text[b:]
        return text[:open_end] + new_text + text[open_end:]

    # ------------------------------------------------------------------
    # Style / class
    # ------------------------------------------------------------------

    def edit_style_property(self, text: str, locator: "Locator", prop: str, value: str) -> str:
        _, element = self._target(text, locator)
        return self._edit_style(text, element, prop, value)

    def _edit_style(self, text: str, element: Element, prop: str, value: str) -> str:
        prop = prop.strip()
        value = value.strip()
        if not prop:
            raise InvalidEdit("Style property name is empty")
        start = element.source_start
        open_end = find_open_tag_end(text, start, self.jsx)
        open_tag = text[start:open_end]
        if self.jsx:
            new_tag = self._style_object(open_tag, kebab_to_camel(prop), value)
        else:
            new_tag = self._style_attribute(open_tag, camel_to_kebab(prop), value)
        return text[:start] + new_tag + text[open_end:]

    @staticmethod
    def _style_attribute(open_tag: str, name: str, value: str) -> str:
        m = _STYLE_ATTR.search(open_tag)
        if m:
            body = merge_declaration(m.group(3), name, value)
            if m.group(2) == '"':
                body = body.replace('"', "'")
            return open_tag[:m.start(3)] + body + open_tag[m.end(3):]
        if not value:
            return open_tag
        value = value.replace('"', "'")
        return _insert_attribute(open_tag, f'style="{name}: {value};"')

    @staticmethod
    def _style_object(open_tag: str, key: str, value: str) -> str:
        m = _JSX_STYLE_OBJECT.search(open_tag)
        if m:
            body = merge_object_property(m.group(2), key, value)
            return open_tag[:m.start(2)] + body + open_tag[m.end(2):]
        if _JSX_STYLE_ANY.search(open_tag):
            raise InvalidEdit("style is not an object literal; edit it in the source")
        if not value:
            return open_tag
        return _insert_attribute(open_tag, f"style={{{{ {key}: {_js_string(value)} }}}}")

    def edit_class_name(
        self,
        text: str,
        locator: "Locator",
        class_name: str,
        add: bool = True,
    ) -> str:
        """Add or remove one ``class`` / ``className`` token."""
        class_name = class_name.strip()
        if not class_name or any(ch.isspace() for ch in class_name):
            raise InvalidEdit(f"Invalid class name: {class_name!r}")

        _, element = self._target(text, locator)
        attr = "className" if self.jsx else "class"
        flags = re.DOTALL if self.jsx else re.DOTALL | re.IGNORECASE
        start = element.source_start
        open_end = find_open_tag_end(text, start, self.jsx)
        open_tag = text[start:open_end]

        m = re.compile(rf"""(\s{attr}\s*=\s*)(["'])(.*?)\2""", flags).search(open_tag)
        if m:
            tokens = m.group(3).split()
            if add == (class_name in tokens):
                return text
            if add:
                tokens.append(class_name)
            else:
                tokens = [t for t in tokens if t != class_name]
            if tokens:
                new_tag = open_tag[:m.start(3)] + " ".join(tokens) + open_tag[m.end(3):]
            else:
                new_tag = open_tag[:m.start()] + open_tag[m.end():]
        elif re.search(rf"\s{attr}\s*=", open_tag, flags):
            raise InvalidEdit(f"{attr} is an expression; edit it in the source")
        elif add:
            new_tag = _insert_attribute(open_tag, f'{attr}="{class_name}"')
        else:
            return text
        return text[:start] + new_tag + text[open_end:]

    def batch_edit(
        self,
        text: str,
        locator: "Locator",
        styles: Optional[Mapping[str, str]] = None,
        text_content: Optional[str] = None,
    ) -> str:
        """Apply *styles* in order, then *text_content*, to one element.

        The element is re-found by its start offset after every step; open
        tag edits never move it.
        """
        _, element = self._target(text, locator)
        start, tag_name = element.source_start, element.tag_name
        current = text
        for prop, value in dict(styles or {}).items():
            current = self._edit_style(current, element, prop, value)
            element = self._refind(current, start, tag_name)
        if text_content is not None:
            current = self._edit_text(current, element, text_content)
        return current

    # ------------------------------------------------------------------
    # Move
    # ------------------------------------------------------------------

    @staticmethod
    def _excision(text: str, tree: ParseResult, element: Element) -> tuple[int, int, str]:
        """Span to cut for a move, plus the whitespace gap it takes along.

        The gap before the element is preferred; the first child takes the
        gap after it instead.
        """
        siblings = element.parent.children if element.parent is not None else tree.roots
        pos = siblings.index(element)
        start, end = element.span
        if pos > 0:
            before = siblings[pos - 1].source_end
            if text[before:start].isspace():
                return before, end, text[before:start]
        if pos + 1 < len(siblings):
            after = siblings[pos + 1].source_start
            if text[end:after].isspace():
                return start, after, text[end:after]
        return start, end, ""

    def move_element(
        self,
        text: str,
        locator: "Locator",
        new_parent: "Locator",
        new_index: int,
    ) -> str:
        """Move the element to be child *new_index* of *new_parent*.

        The element is excised first and the destination parent resolved
        afterwards, in the modified text.  Moving an element back to its old
        index reproduces the original text exactly.
        """
        if new_index < 0:
            raise InvalidEdit(f"Negative child index: {new_index}")
        if new_parent is None or new_parent.is_empty:
            raise InvalidEdit("Move needs a destination parent")

        tree, element = self._target(text, locator)
        start, end = element.span
        unit = text[start:end]
        cut_start, cut_end, gap = self._excision(text, tree, element)

        # An identity anchor is only valid against the original text, so
        # resolve it there and shift it past the cut.
        anchor = self._by_identity(tree, new_parent)
        parent_start = None
        if anchor is not None:
            if start <= anchor.source_start < end:
                raise InvalidEdit("Cannot move an element into itself")
            parent_start = anchor.source_start
            if parent_start >= cut_end:
                parent_start -= cut_end - cut_start

        excised = text[:cut_start] + text[cut_end:]
        moved_tree = self.parse(excised)
        if parent_start is not None:
            parent = moved_tree.find_by_start(parent_start, anchor.tag_name)
            if parent is None:
                raise ElementNotFound(
                    f"Destination {new_parent.describe()} vanished after excision",
                    identity=new_parent.identity,
                )
        elif new_parent.selector_path:
            parent = resolve(
                moved_tree,
                new_parent.selector_path,
                ambiguous=self.ambiguous_paths,
                strip_prefixes=self.preview_prefixes,
            )
        else:
            raise ElementNotFound(
                f"No destination for {new_parent.describe()}", identity=new_parent.identity,
            )

        if not self.jsx and parent.tag_name.lower() in VOID_TAGS:
            raise InvalidEdit(f"<{parent.tag_name}> is a void element and cannot have children")
        name = tag_name_at(excised, parent.source_start)
        open_end = find_open_tag_end(excised, parent.source_start, self.jsx)
        if is_self_closing(excised, open_end):
            raise InvalidEdit(f"<{name}/> is self-closing and cannot have children")
        close_start, _ = find_matching_close(excised, open_end, name, self.jsx)
        children = scan_children(excised, open_end, close_start, self.jsx)

        index = min(new_index, len(children))
        if not children:
            at, piece = open_end, unit
        elif index < len(children):
            at, piece = children[index][0], unit + gap
        else:
            at, piece = children[-1][1], gap + unit

        logger.info(
            "[Mutation] Moving <%s> to child %d of <%s> (line %d)",
            element.tag_name, index, parent.tag_name, parent.start_line,
        )
        return excised[:at] + piece + excised[at:]

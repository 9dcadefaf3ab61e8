"""
Tree-sitter parser for component sources (JSX / TSX).

Walks the whole syntax tree, not only a component's ``return`` expression,
and turns every JSX element into an :class:`~.elements.Element`.

Uses tree-sitter >= 0.22 API with individual language packages.
"""

from __future__ import annotations

import logging
import os
import threading
from typing import Optional

import tree_sitter as ts
import tree_sitter_javascript
import tree_sitter_typescript

from ..errors import ParseError
from .elements import (
    EXPRESSION_PLACEHOLDER,
    DocumentKind,
    Element,
    IdentityFactory,
    LineIndex,
    ParseResult,
    attach_root,
    set_positions,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Grammar mapping
# ---------------------------------------------------------------------------

EXTENSION_TO_GRAMMAR: dict[str, str] = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "tsx",
}


def grammar_for_path(file_path: str) -> str:
    """Return the grammar name for *file_path*, defaulting to ``javascript``."""
    ext = os.path.splitext(file_path)[1].lower()
    return EXTENSION_TO_GRAMMAR.get(ext, "javascript")


def _get_lang_func(grammar: str):
    """Return the tree-sitter language() function for *grammar*."""
    if grammar == "javascript":
        return tree_sitter_javascript.language
    elif grammar == "typescript":
        return tree_sitter_typescript.language_typescript
    elif grammar == "tsx":
        return tree_sitter_typescript.language_tsx
    raise ValueError(f"Unknown component grammar: {grammar}")


# Cache Language/Parser objects; a Parser is not safe to share across threads
# mid-parse, so parse calls are serialized on _PARSE_LOCK.
_LANG_CACHE: dict[str, ts.Language] = {}
_PARSER_CACHE: dict[str, ts.Parser] = {}
_PARSE_LOCK = threading.Lock()


def _get_ts_parser(grammar: str) -> ts.Parser:
    if grammar not in _PARSER_CACHE:
        lang_obj = _LANG_CACHE.get(grammar)
        if lang_obj is None:
            lang_obj = ts.Language(_get_lang_func(grammar)())
            _LANG_CACHE[grammar] = lang_obj
        _PARSER_CACHE[grammar] = ts.Parser(lang_obj)
    return _PARSER_CACHE[grammar]


# ---------------------------------------------------------------------------
# Offset helpers
# ---------------------------------------------------------------------------

class _ByteOffsets:
    """Translate tree-sitter byte offsets into ``str`` indices."""

    def __init__(self, text: str, data: bytes) -> None:
        self._ascii = len(data) == len(text)
        self._map: dict[int, int] = {}
        if not self._ascii:
            pos = 0
            for i, ch in enumerate(text):
                self._map[pos] = i
                pos += len(ch.encode("utf-8"))
            self._map[pos] = len(text)

    def __call__(self, byte_offset: int) -> int:
        if self._ascii:
            return byte_offset
        return self._map[byte_offset]


def _first_error_line(root) -> Optional[int]:
    """Return the 1-based line of the first ERROR/missing node, if any."""
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return node.start_point[0] + 1
        if node.has_error:
            stack.extend(reversed(node.children))
    return None


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

class ComponentParser:
    """Structural parser for JSX/TSX component sources."""

    kind = DocumentKind.COMPONENT

    def __init__(self, grammar: str = "javascript") -> None:
        _get_lang_func(grammar)  # validate early
        self.grammar = grammar

    def parse(self, text: str) -> ParseResult:
        """Parse *text* and collect every JSX element in the file.

        Raises
        ------
        ParseError
            If the syntax tree contains error or missing nodes.
        """
        try:
            data = text.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise ParseError(f"Source is not valid UTF-8 text: {exc}") from exc

        with _PARSE_LOCK:
            tree = _get_ts_parser(self.grammar).parse(data)

        root = tree.root_node
        if root.has_error:
            line = _first_error_line(root)
            raise ParseError(
                f"Syntax error near line {line}" if line else "Syntax error",
                line=line,
            )

        walker = _JSXCollector(text, data)
        walker.collect(root)
        logger.debug(
            "[Parser] Parsed %d JSX elements (%s)", len(walker.identity_map), self.grammar,
        )
        return ParseResult(
            text=text,
            kind=self.kind,
            roots=walker.roots,
            identity_map=walker.identity_map,
        )


class _JSXCollector:
    """Turn JSX syntax nodes into an Element tree."""

    def __init__(self, text: str, data: bytes) -> None:
        self._text = text
        self._char = _ByteOffsets(text, data)
        self._index = LineIndex(text)
        self._new_identity = IdentityFactory()
        self.roots: list[Element] = []
        self.identity_map: dict[str, Element] = {}

    def collect(self, root) -> None:
        # Explicit stack keeps deep component files clear of the recursion limit;
        # pushing children reversed preserves source order.
        stack: list[tuple[object, Optional[Element]]] = [(root, None)]
        while stack:
            node, parent = stack.pop()
            element = None
            if node.type == "jsx_element":
                element = self._from_element(node)
            elif node.type == "jsx_self_closing_element":
                element = self._from_self_closing(node)

            if element is not None:
                if parent is not None:
                    parent.attach(element)
                else:
                    attach_root(self.roots, element)
                self.identity_map[element.identity] = element
                parent = element

            for child in reversed(node.children):
                stack.append((child, parent))

    # ------------------------------------------------------------------

    def _slice(self, node) -> str:
        return self._text[self._char(node.start_byte):self._char(node.end_byte)]

    def _from_element(self, node) -> Optional[Element]:
        open_tag = node.child_by_field_name("open_tag")
        if open_tag is None:
            return None
        name_node = open_tag.child_by_field_name("name")
        if name_node is None:
            return None  # fragment: transparent
        close_tag = node.child_by_field_name("close_tag")

        element = self._make(node, name_node, open_tag)
        element.open_tag_end = self._char(open_tag.end_byte)
        if close_tag is not None:
            element.close_tag_start = self._char(close_tag.start_byte)
        for child in node.children:
            if child.type == "jsx_text":
                value = self._slice(child).strip()
                if value:
                    element.text = value
                    break
        return element

    def _from_self_closing(self, node) -> Optional[Element]:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return None
        return self._make(node, name_node, node)

    def _make(self, node, name_node, attr_owner) -> Element:
        tag_name = self._slice(name_node)
        start = self._char(node.start_byte)
        end = self._char(node.end_byte)
        element = Element(
            identity=self._new_identity(),
            tag_name=tag_name,
            source_start=start,
            source_end=end,
            open_tag_end=end,
            attributes=self._attributes(attr_owner),
            is_component=tag_name[:1].isupper() or "." in tag_name,
        )
        set_positions(element, self._index)
        return element

    def _attributes(self, owner) -> dict[str, str]:
        result: dict[str, str] = {}
        for child in owner.named_children:
            if child.type != "jsx_attribute" or not child.named_children:
                continue
            parts = child.named_children
            name = self._slice(parts[0])
            if len(parts) == 1:
                value = ""
            elif parts[1].type == "string":
                value = self._slice(parts[1])[1:-1]
            else:
                value = EXPRESSION_PLACEHOLDER
            result.setdefault(name, value)
        return result

"""Structural parsing — one interface, a markup and a component implementation."""

from __future__ import annotations

import logging
import os
from typing import Protocol

from ..errors import ParseError
from .component import EXTENSION_TO_GRAMMAR, ComponentParser, grammar_for_path
from .elements import (
    EXPRESSION_PLACEHOLDER,
    DocumentKind,
    Element,
    LineIndex,
    ParseResult,
    walk,
)
from .markup import VOID_TAGS, MarkupParser

logger = logging.getLogger(__name__)


class StructuralParser(Protocol):
    """Anything that turns document text into an element tree."""

    kind: DocumentKind

    def parse(self, text: str) -> ParseResult:
        ...


_MARKUP_EXTENSIONS = {".html", ".htm", ".xhtml", ".svg", ".vue", ".svelte"}


def detect_document_kind(file_path: str) -> DocumentKind:
    """Pick the parser kind from a file extension.

    Script extensions are component sources; everything else is markup.
    """
    ext = os.path.splitext(file_path)[1].lower()
    if ext in EXTENSION_TO_GRAMMAR:
        return DocumentKind.COMPONENT
    if ext not in _MARKUP_EXTENSIONS:
        logger.debug("[Parser] Unknown extension %r, treating as markup", ext)
    return DocumentKind.MARKUP


def get_parser(kind: DocumentKind, file_path: str | None = None) -> StructuralParser:
    """Return the parser implementation for *kind*.

    For component sources *file_path* selects the grammar (``.tsx`` needs
    the TSX grammar, ``.ts`` plain TypeScript).
    """
    if kind == DocumentKind.COMPONENT:
        grammar = grammar_for_path(file_path) if file_path else "javascript"
        return ComponentParser(grammar)
    return MarkupParser()


def parse_document(text: str, parser: StructuralParser) -> ParseResult:
    """Parse without raising: a failure yields an empty tree plus the error."""
    try:
        return parser.parse(text)
    except ParseError as exc:
        logger.warning("[Parser] %s", exc)
        return ParseResult(text=text, kind=parser.kind, parse_error=str(exc))


__all__ = [
    "StructuralParser", "DocumentKind", "Element", "ParseResult", "LineIndex",
    "MarkupParser", "ComponentParser", "VOID_TAGS", "EXPRESSION_PLACEHOLDER",
    "detect_document_kind", "get_parser", "parse_document", "walk",
]

"""
Error taxonomy for the source-synchronization core.

Every failure a caller can act on has its own type so the host can show a
precise message instead of a generic "edit failed".
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for all source-sync failures."""

    #: Short machine-readable kind, mirrored in ``EditOutcome.status``.
    kind = "error"


class ParseError(SyncError):
    """The document text could not be parsed into an element tree."""

    kind = "parse_error"

    def __init__(self, message: str, line: int | None = None) -> None:
        super().__init__(message)
        self.line = line


class ElementNotFound(SyncError):
    """A locator (identity or selector path) resolved to nothing."""

    kind = "not_found"

    def __init__(self, message: str, identity: str | None = None,
                 selector_path: str | None = None) -> None:
        super().__init__(message)
        self.identity = identity
        self.selector_path = selector_path


class AmbiguousPath(SyncError):
    """A selector segment matched several siblings and no ordinal was given."""

    kind = "ambiguous"

    def __init__(self, message: str, candidates: int = 0) -> None:
        super().__init__(message)
        self.candidates = candidates


class MalformedSpan(SyncError):
    """No matching close tag exists for an element (truncated input)."""

    kind = "malformed"

    def __init__(self, message: str, tag_name: str = "", offset: int = -1) -> None:
        super().__init__(message)
        self.tag_name = tag_name
        self.offset = offset


class InvalidEdit(SyncError):
    """The requested edit cannot be expressed on the located element."""

    kind = "invalid"


class ConcurrentMutationConflict(SyncError):
    """A mutation could not be serialized behind the one in flight."""

    kind = "conflict"


class ReadinessTimeout(SyncError):
    """A companion process never signalled readiness within the timeout."""

    kind = "readiness_timeout"


class DocumentError(SyncError):
    """A document could not be read from or written to disk."""

    kind = "document_error"

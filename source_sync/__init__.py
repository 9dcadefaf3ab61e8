"""
source_sync — map preview selections back to markup/component source and
edit that source structurally, with a reviewable diff.

Public API for library usage::

    from source_sync import SourceSync, Locator, TextEdit

    sync = SourceSync()
    sync.open_document("index.html")
    outcome = sync.apply("index.html", TextEdit(Locator(selector_path="h1"), "Hi"))
    sync.accept("index.html")
"""

from .config import Config
from .errors import SyncError
from .requests import (
    BatchEdit, ClassEdit, DeleteRequest, DuplicateRequest, Locator, MoveEdit,
    SelectionEvent, StyleEdit, TextEdit, request_from_message,
)
from .sync import DragSession, EditOutcome, SourceSync

__version__ = "0.1.0"

__all__ = [
    "Config", "SyncError", "SourceSync", "DragSession", "EditOutcome",
    "Locator", "SelectionEvent", "TextEdit", "StyleEdit", "BatchEdit",
    "MoveEdit", "DeleteRequest", "DuplicateRequest", "ClassEdit",
    "request_from_message",
]

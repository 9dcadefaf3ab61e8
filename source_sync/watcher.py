"""
Document watcher — notices when an open document is changed on disk by
someone else (an editor, a formatter, git) and reloads it.

Uses watchdog to monitor the directories holding open documents.  The
coordinator's own atomic writes are recognized by content hash and never
reported.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from typing import TYPE_CHECKING, Callable, Optional

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .errors import SyncError

if TYPE_CHECKING:
    from .sync import SourceSync

logger = logging.getLogger(__name__)


class DocumentChangeHandler:
    """
    Watchdog-compatible event handler that reloads changed documents.

    Parameters
    ----------
    sync:
        The :class:`~source_sync.sync.SourceSync` owning the documents.
    debounce_seconds:
        Minimum delay between processing the same file (editors often
        write a file several times per save).
    on_reload:
        Optional callback receiving the document name after a reload.
    """

    def __init__(
        self,
        sync: "SourceSync",
        debounce_seconds: float = 0.2,
        on_reload: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._sync = sync
        self._debounce = debounce_seconds
        self._on_reload = on_reload
        self._last_event: dict[str, float] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Watchdog event dispatch
    # ------------------------------------------------------------------

    def on_modified(self, event) -> None:  # type: ignore[override]
        if not event.is_directory:
            self._handle_change(event.src_path)

    def on_created(self, event) -> None:  # type: ignore[override]
        if not event.is_directory:
            self._handle_change(event.src_path)

    def on_moved(self, event) -> None:  # type: ignore[override]
        # Atomic saves land as a rename onto the document.
        if not event.is_directory:
            self._handle_change(event.dest_path)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _document_for(self, abs_path: str) -> Optional[str]:
        abs_path = os.path.abspath(abs_path)
        for state in self._sync.documents():
            if state.path and os.path.abspath(state.path) == abs_path:
                return state.name
        return None

    def _is_debounced(self, abs_path: str) -> bool:
        """Return True if this file was recently processed (debounce)."""
        now = time.time()
        with self._lock:
            last = self._last_event.get(abs_path, 0.0)
            if now - last < self._debounce:
                return True
            self._last_event[abs_path] = now
        return False

    def _handle_change(self, abs_path: str) -> None:
        name = self._document_for(abs_path)
        if name is None or self._is_debounced(abs_path):
            return
        try:
            reloaded = self._sync.reload_from_disk(name)
        except SyncError as exc:
            logger.warning("[Watcher] Could not reload %s: %s", name, exc)
            return
        if reloaded:
            logger.info("[Watcher] %s changed on disk", name)
            if self._on_reload is not None:
                self._on_reload(name)


class _WatchdogAdapter(FileSystemEventHandler):
    """Adapt DocumentChangeHandler to watchdog's interface."""

    def __init__(self, handler: DocumentChangeHandler) -> None:
        self._h = handler

    def on_modified(self, event):
        self._h.on_modified(event)

    def on_created(self, event):
        self._h.on_created(event)

    def on_moved(self, event):
        self._h.on_moved(event)


class DocumentWatcher:
    """
    Watch the directories of every on-disk document a coordinator holds.

    Usage::

        watcher = DocumentWatcher(sync)
        watcher.start()    # non-blocking
        ...
        watcher.stop()
    """

    def __init__(
        self,
        sync: "SourceSync",
        debounce_seconds: float = 0.2,
        on_reload: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._sync = sync
        self._handler = DocumentChangeHandler(sync, debounce_seconds, on_reload)
        self._observer: Optional[Observer] = None

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        if self._observer is not None:
            return
        directories = sorted({
            os.path.dirname(os.path.abspath(state.path))
            for state in self._sync.documents() if state.path
        })
        if not directories:
            logger.info("[Watcher] No on-disk documents to watch")
            return

        observer = Observer()
        adapter = _WatchdogAdapter(self._handler)
        for directory in directories:
            observer.schedule(adapter, directory, recursive=False)
        observer.daemon = True
        observer.start()
        self._observer = observer
        logger.info("[Watcher] Watching %s", ", ".join(directories))

    def stop(self) -> None:
        """Stop the observer and wait for its thread."""
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5)
        self._observer = None
        logger.info("[Watcher] Stopped")

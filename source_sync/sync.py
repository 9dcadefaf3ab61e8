"""
Coordinator — owns open documents and runs the resolve → mutate → stage
pipeline for each request.

Mutations on one document are serialized behind that document's lock
(a second request waits, bounded by ``queue_timeout``); documents never
wait on each other.
"""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
import threading
import time
from dataclasses import dataclass
from typing import Iterator, Optional

from .config import Config
from .editing.identity import IdentitySession, assign_identities, document_version
from .editing.metrics import log_mutation_metric
from .editing.mutations import MutationEngine
from .editing.staging import ChangeNotification, ChangeStager, StageState
from .errors import (
    ConcurrentMutationConflict,
    DocumentError,
    InvalidEdit,
    ParseError,
    SyncError,
)
from .parsing import (
    DocumentKind,
    Element,
    ParseResult,
    StructuralParser,
    detect_document_kind,
    get_parser,
    parse_document,
)
from .requests import (
    BatchEdit,
    ClassEdit,
    DeleteRequest,
    DuplicateRequest,
    EditRequest,
    Locator,
    MoveEdit,
    SelectionEvent,
    StyleEdit,
    TextEdit,
    request_from_message,
)

logger = logging.getLogger(__name__)

APPLIED = "applied"
NO_CHANGE = "no_change"


@dataclass
class EditOutcome:
    """Result of one request, as reported to the host."""
    status: str
    message: str = ""
    notification: Optional[ChangeNotification] = None

    @property
    def ok(self) -> bool:
        return self.status in (APPLIED, NO_CHANGE)


class DocumentState:
    """One open document: its working text, parse, lock and identity session."""

    def __init__(
        self,
        name: str,
        text: str,
        parser: StructuralParser,
        engine: MutationEngine,
        path: Optional[str] = None,
    ) -> None:
        self.name = name
        self.path = path
        self.parser = parser
        self.engine = engine
        self.lock = threading.Lock()
        self.owner: Optional[int] = None
        self.session: Optional[IdentitySession] = None
        # Hash of what is on disk as far as we know (loaded or last written).
        self.disk_version: Optional[str] = document_version(text) if path else None
        self.text = text
        self.tree: ParseResult = parse_document(text, parser)

    @property
    def kind(self) -> DocumentKind:
        return self.parser.kind

    @property
    def editable(self) -> bool:
        return self.tree.ok

    def update(self, text: str) -> None:
        self.text = text
        self.tree = parse_document(text, self.parser)
        if not self.tree.ok:
            logger.warning("[Sync] %s no longer parses; editing disabled", self.name)


def _safe_write(file_path: str, content: str) -> None:
    """Write content to file atomically via temp file + rename."""
    abs_path = os.path.abspath(file_path)
    tmp_path = abs_path + ".sourcesync_tmp"

    try:
        with open(tmp_path, "w", encoding="utf-8", newline="") as f:
            f.write(content)

        # On Windows, os.rename fails if destination exists
        if os.path.exists(abs_path):
            shutil.move(tmp_path, abs_path)
        else:
            os.rename(tmp_path, abs_path)
    except Exception:
        # Clean up temp file on failure
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def _shorten(text: str, limit: int = 30) -> str:
    text = " ".join(text.split())
    return text if len(text) <= limit else text[:limit - 1] + "…"


def describe_request(request: EditRequest) -> str:
    """Short human description used for the pending-change record."""
    if isinstance(request, TextEdit):
        return f"Text → {_shorten(request.new_text)!r}"
    if isinstance(request, StyleEdit):
        return f"Style {request.property}: {request.value}"
    if isinstance(request, BatchEdit):
        parts = [f"{k}: {v}" for k, v in request.styles.items()]
        if request.text_content is not None:
            parts.append(f"text → {_shorten(request.text_content)!r}")
        return "Batch " + ", ".join(parts) if parts else "Batch (empty)"
    if isinstance(request, MoveEdit):
        return f"Move to index {request.new_index}"
    if isinstance(request, DeleteRequest):
        return "Delete element"
    if isinstance(request, DuplicateRequest):
        return "Duplicate element"
    if isinstance(request, ClassEdit):
        verb = "Add" if request.add else "Remove"
        return f"{verb} class {request.class_name}"
    raise InvalidEdit(f"Unsupported request: {type(request).__name__}")


def _operation_name(request: EditRequest) -> str:
    return type(request).__name__


def _bind_session(request: EditRequest, session: Optional[IdentitySession]) -> None:
    """Let identity-only locators resolve against the document's own session."""
    locators = [getattr(request, "locator", None)]
    if isinstance(request, MoveEdit):
        locators.append(request.new_parent)
    for locator in locators:
        if locator is not None and locator.session is None:
            locator.session = session


class SourceSync:
    """Keeps documents, serializes their mutations and stages the results."""

    def __init__(
        self,
        config: Optional[Config] = None,
        stager: Optional[ChangeStager] = None,
    ) -> None:
        self.config = config or Config.load()
        self.stager = stager or ChangeStager()
        self._documents: dict[str, DocumentState] = {}
        self._documents_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def _engine(self, parser: StructuralParser) -> MutationEngine:
        return MutationEngine(
            parser,
            identity_attribute=self.config.IDENTITY_ATTRIBUTE,
            ambiguous_paths=self.config.AMBIGUOUS_PATHS,
            preview_prefixes=self.config.PREVIEW_PREFIXES,
        )

    def add_document(
        self,
        name: str,
        text: str,
        kind: Optional[DocumentKind] = None,
        path: Optional[str] = None,
    ) -> DocumentState:
        """Register a document held in memory (and, with *path*, on disk)."""
        kind = kind or detect_document_kind(path or name)
        parser = get_parser(kind, path or name)
        state = DocumentState(name, text, parser, self._engine(parser), path=path)
        with self._documents_lock:
            self._documents[name] = state
        logger.info(
            "[Sync] Opened %s (%s, %s)", name, kind.value,
            "ok" if state.editable else f"parse error: {state.tree.parse_error}",
        )
        return state

    def open_document(self, path: str, name: Optional[str] = None) -> DocumentState:
        """Read *path* from disk and register it."""
        try:
            with open(path, "r", encoding="utf-8", newline="") as f:
                text = f.read()
        except OSError as exc:
            raise DocumentError(f"Cannot read {path}: {exc}") from exc
        return self.add_document(name or os.path.abspath(path), text, path=os.path.abspath(path))

    def document(self, name: str) -> DocumentState:
        with self._documents_lock:
            state = self._documents.get(name)
        if state is None:
            raise DocumentError(f"Unknown document: {name}")
        return state

    def documents(self) -> list[DocumentState]:
        with self._documents_lock:
            return list(self._documents.values())

    def close_document(self, name: str) -> None:
        with self._documents_lock:
            self._documents.pop(name, None)

    @contextlib.contextmanager
    def _mutating(self, state: DocumentState) -> Iterator[None]:
        """Hold the document lock for one mutation, waiting at most queue_timeout."""
        me = threading.get_ident()
        if state.owner == me:
            raise ConcurrentMutationConflict(
                f"{state.name}: a mutation is already running on this thread"
            )
        if not state.lock.acquire(timeout=self.config.QUEUE_TIMEOUT):
            raise ConcurrentMutationConflict(
                f"{state.name}: timed out after {self.config.QUEUE_TIMEOUT:g}s "
                f"waiting for the previous mutation"
            )
        state.owner = me
        try:
            yield
        finally:
            state.owner = None
            state.lock.release()

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def instrument(self, name: str) -> IdentitySession:
        """Issue identities for the document's current text."""
        state = self.document(name)
        if not state.editable:
            raise ParseError(f"{name} does not parse: {state.tree.parse_error}")
        state.session = assign_identities(
            state.tree,
            attribute=self.config.IDENTITY_ATTRIBUTE,
            exclude=self.config.EXCLUDED_TAGS,
        )
        return state.session

    def locate(self, name: str, locator: Locator) -> Element:
        """Jump-to-source: the element (with line/column) a locator points at."""
        state = self.document(name)
        if locator.session is None:
            locator.session = state.session
        return state.engine.locate(state.text, locator)

    def select(self, name: str, event: SelectionEvent) -> Element:
        return self.locate(name, event.locator(self.document(name).session))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    @staticmethod
    def _dispatch(engine: MutationEngine, text: str, request: EditRequest) -> str:
        if isinstance(request, TextEdit):
            return engine.edit_text(text, request.locator, request.new_text)
        if isinstance(request, StyleEdit):
            return engine.edit_style_property(text, request.locator, request.property, request.value)
        if isinstance(request, BatchEdit):
            return engine.batch_edit(text, request.locator, request.styles, request.text_content)
        if isinstance(request, MoveEdit):
            return engine.move_element(text, request.locator, request.new_parent, request.new_index)
        if isinstance(request, DeleteRequest):
            return engine.delete_element(text, request.locator)
        if isinstance(request, DuplicateRequest):
            return engine.duplicate_element(text, request.locator)
        if isinstance(request, ClassEdit):
            return engine.edit_class_name(text, request.locator, request.class_name, request.add)
        raise InvalidEdit(f"Unsupported request: {type(request).__name__}")

    def apply(self, name: str, request: EditRequest) -> EditOutcome:
        """Run one request through resolve → mutate → stage."""
        started = time.monotonic()
        try:
            description = describe_request(request)
            state = self.document(name)
            with self._mutating(state):
                if not state.editable:
                    raise ParseError(
                        f"{name} does not parse ({state.tree.parse_error}); "
                        f"fix the source before editing"
                    )
                _bind_session(request, state.session)
                new_text = self._dispatch(state.engine, state.text, request)
                if new_text == state.text:
                    outcome = EditOutcome(NO_CHANGE, f"{description}: nothing changed")
                else:
                    notification = self.stager.record(name, state.text, new_text, description)
                    state.update(new_text)
                    if state.session is not None and state.editable:
                        state.session = assign_identities(
                            state.tree,
                            attribute=self.config.IDENTITY_ATTRIBUTE,
                            exclude=self.config.EXCLUDED_TAGS,
                        )
                    outcome = EditOutcome(APPLIED, description, notification)
        except SyncError as exc:
            logger.warning("[Sync] %s on %s failed (%s): %s",
                           _operation_name(request), name, exc.kind, exc)
            outcome = EditOutcome(exc.kind, str(exc))

        if self.config.METRICS:
            log_mutation_metric(
                {
                    "document": name,
                    "operation": _operation_name(request),
                    "status": outcome.status,
                    "duration_ms": round((time.monotonic() - started) * 1000, 2),
                },
                metrics_dir=self.config.METRICS_DIR,
            )
        return outcome

    def handle_message(self, name: str, message: dict) -> EditOutcome:
        """Decode a preview host message and apply it."""
        try:
            session = self.document(name).session
            request = request_from_message(message, session=session)
        except SyncError as exc:
            logger.warning("[Sync] Rejected message %r: %s", message.get("type"), exc)
            return EditOutcome(exc.kind, str(exc))
        return self.apply(name, request)

    # ------------------------------------------------------------------
    # Accept / reject
    # ------------------------------------------------------------------

    def state(self, name: str) -> StageState:
        return self.stager.state(name)

    def accept(self, name: str) -> str:
        """Persist the pending change; returns the accepted text."""
        state = self.document(name)
        with self._mutating(state):
            if self.stager.state(name) is StageState.CLEAN:
                raise InvalidEdit(f"Nothing pending for {name}")
            text = self.stager.pending(name).current_text
            # The change stays pending until the file holds it.
            if state.path:
                try:
                    _safe_write(state.path, text)
                except OSError as exc:
                    logger.error("[Sync] Write failed for %s: %s", state.path, exc)
                    raise DocumentError(f"Cannot write {state.path}: {exc}") from exc
                state.disk_version = document_version(text)
            return self.stager.accept(name)

    def reject(self, name: str) -> str:
        """Discard the pending change; the document reverts to its original text."""
        state = self.document(name)
        with self._mutating(state):
            if self.stager.state(name) is StageState.CLEAN:
                raise InvalidEdit(f"Nothing pending for {name}")
            original = self.stager.reject(name)
            state.update(original)
            if state.session is not None:
                state.session = None
            return original

    # ------------------------------------------------------------------
    # External changes
    # ------------------------------------------------------------------

    def reload_from_disk(self, name: str) -> bool:
        """Pick up a change someone else made on disk.

        Returns False when the file matches what we last read or wrote.
        """
        state = self.document(name)
        if not state.path:
            return False
        try:
            with open(state.path, "r", encoding="utf-8", newline="") as f:
                text = f.read()
        except OSError as exc:
            raise DocumentError(f"Cannot read {state.path}: {exc}") from exc

        version = document_version(text)
        if version == state.disk_version:
            return False

        with self._mutating(state):
            if self.stager.state(name) is StageState.PENDING:
                logger.warning("[Sync] %s changed on disk; discarding the pending change", name)
                self.stager.reject(name)
            state.disk_version = version
            state.session = None
            state.update(text)
        logger.info("[Sync] Reloaded %s after an external change", name)
        return True

    # ------------------------------------------------------------------
    # Drag
    # ------------------------------------------------------------------

    def begin_drag(self, name: str, locator: Locator) -> "DragSession":
        self.document(name)
        return DragSession(self, name, locator)


class DragSession:
    """Live drag of one element.

    ``update`` only records where the element would land; the document is
    touched once, by ``release``.
    """

    def __init__(self, sync: SourceSync, document: str, locator: Locator) -> None:
        self._sync = sync
        self.document = document
        self.locator = locator
        self.parent: Optional[Locator] = None
        self.index: Optional[int] = None
        self.updates = 0
        self.finished = False

    def _check(self) -> None:
        if self.finished:
            raise InvalidEdit("Drag session already finished")

    def update(self, parent: Locator, index: int) -> None:
        self._check()
        self.parent, self.index = parent, index
        self.updates += 1

    def release(self) -> EditOutcome:
        self._check()
        self.finished = True
        if self.parent is None or self.index is None:
            logger.info("[Sync] Drag released without a drop position; nothing moved")
            return EditOutcome(NO_CHANGE, "Drag released without a drop position")
        logger.debug("[Sync] Drag released after %d updates", self.updates)
        return self._sync.apply(self.document, MoveEdit(self.locator, self.parent, self.index))

    def cancel(self) -> None:
        self._check()
        self.finished = True
        logger.debug("[Sync] Drag cancelled after %d updates", self.updates)

"""
Pending-change staging.

Each document is either CLEAN or has exactly one PENDING change.  Further
mutations while pending extend that change; accept hands back the text to
persist, reject hands back the text as it was before the first mutation.
"""

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Optional

from .line_diff import DeletedLine, compute_line_diff

logger = logging.getLogger(__name__)


class StageState(str, enum.Enum):
    CLEAN = "clean"
    PENDING = "pending"


@dataclass
class PendingChange:
    """Accumulated, not-yet-accepted edits to one document."""
    original_text: str
    current_text: str
    description: str
    added_lines: list[int] = field(default_factory=list)
    deleted_lines: list[DeletedLine] = field(default_factory=list)
    change_count: int = 1


@dataclass(frozen=True)
class ChangeNotification:
    """What the host is told after every staging transition."""
    document: str
    description: str
    added_count: int
    deleted_count: int
    state: StageState


Listener = Callable[[ChangeNotification], None]


class ChangeStager:
    """Per-document Clean/Pending state machine."""

    def __init__(self) -> None:
        self._pending: dict[str, PendingChange] = {}
        self._listeners: list[Listener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _notify(self, notification: ChangeNotification) -> None:
        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception:
                logger.exception("[Diff] Change listener failed")

    # ------------------------------------------------------------------

    def state(self, document: str) -> StageState:
        return StageState.PENDING if document in self._pending else StageState.CLEAN

    def pending(self, document: str) -> Optional[PendingChange]:
        return self._pending.get(document)

    def record(
        self,
        document: str,
        old_text: str,
        new_text: str,
        description: str,
    ) -> Optional[ChangeNotification]:
        """Stage *new_text* for *document*.

        Returns None (and changes nothing) when the text is unchanged.
        """
        if old_text == new_text:
            logger.debug("[Diff] %s: no change, nothing staged", document)
            return None

        with self._lock:
            change = self._pending.get(document)
            if change is None:
                change = PendingChange(
                    original_text=old_text,
                    current_text=new_text,
                    description=description,
                )
                self._pending[document] = change
            else:
                change.current_text = new_text
                change.description = f"{change.description} + {description}"
                change.change_count += 1

            diff = compute_line_diff(change.original_text, change.current_text)
            change.added_lines = diff.added_lines
            change.deleted_lines = diff.deleted_lines
            notification = ChangeNotification(
                document=document,
                description=change.description,
                added_count=len(diff.added_lines),
                deleted_count=len(diff.deleted_lines),
                state=StageState.PENDING,
            )

        logger.info(
            "[Diff] %s: %s (+%d -%d, %d change(s))",
            document, change.description, notification.added_count,
            notification.deleted_count, change.change_count,
        )
        self._notify(notification)
        return notification

    def _finish(self, document: str, verb: str) -> PendingChange:
        with self._lock:
            change = self._pending.pop(document, None)
        if change is None:
            raise KeyError(f"No pending change for {document}")
        logger.info("[Diff] %s: %s %s", document, verb, change.description)
        self._notify(ChangeNotification(
            document=document,
            description=change.description,
            added_count=len(change.added_lines),
            deleted_count=len(change.deleted_lines),
            state=StageState.CLEAN,
        ))
        return change

    def accept(self, document: str) -> str:
        """Finalize the pending change; returns the text to persist."""
        return self._finish(document, "accepted").current_text

    def reject(self, document: str) -> str:
        """Discard the pending change; returns the original text verbatim."""
        return self._finish(document, "rejected").original_text

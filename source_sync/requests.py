"""
Typed requests exchanged with the live preview host.

The preview posts ``{"type": ..., "data": {...}}`` messages with camelCase
keys; :func:`request_from_message` turns them into the dataclasses below,
which is all the coordinator ever sees.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Union

from .errors import InvalidEdit
from .editing.identity import IdentitySession


@dataclass
class Locator:
    """Identity-or-path reference to one element.

    The identity is tried first (it needs the session that issued it); the
    selector path is the fallback.
    """
    identity: Optional[str] = None
    selector_path: Optional[str] = None
    session: Optional[IdentitySession] = field(default=None, repr=False, compare=False)

    @property
    def is_empty(self) -> bool:
        return not self.identity and not self.selector_path

    def describe(self) -> str:
        if self.identity and self.selector_path:
            return f"{self.identity} ({self.selector_path})"
        return self.identity or self.selector_path or "<empty locator>"


@dataclass
class SelectionEvent:
    """What the preview reports when the user clicks an element."""
    tag_name: str
    selector_path: str
    id: Optional[str] = None
    class_name: Optional[str] = None
    identity: Optional[str] = None
    rect: dict[str, float] = field(default_factory=dict)
    computed_style: dict[str, str] = field(default_factory=dict)
    text_snippet: Optional[str] = None

    @classmethod
    def from_message(cls, data: dict) -> "SelectionEvent":
        return cls(
            tag_name=str(data.get("tagName", "")).lower(),
            selector_path=data.get("path") or data.get("selectorPath") or "",
            id=data.get("id") or None,
            class_name=data.get("className") or None,
            identity=data.get("agId") or data.get("identity") or None,
            rect=dict(data.get("rect") or {}),
            computed_style=dict(data.get("computedStyles") or data.get("styles") or {}),
            text_snippet=data.get("textContent") or data.get("textSnippet"),
        )

    def locator(self, session: Optional[IdentitySession] = None) -> Locator:
        return Locator(identity=self.identity, selector_path=self.selector_path, session=session)


# ---------------------------------------------------------------------------
# Edit requests
# ---------------------------------------------------------------------------

@dataclass
class TextEdit:
    locator: Locator
    new_text: str


@dataclass
class StyleEdit:
    locator: Locator
    property: str
    value: str


@dataclass
class BatchEdit:
    """Several style changes and an optional text change, recorded as one."""
    locator: Locator
    styles: dict[str, str] = field(default_factory=dict)
    text_content: Optional[str] = None


@dataclass
class MoveEdit:
    locator: Locator
    new_parent: Locator
    new_index: int


@dataclass
class DeleteRequest:
    locator: Locator


@dataclass
class DuplicateRequest:
    locator: Locator


@dataclass
class ClassEdit:
    locator: Locator
    class_name: str
    add: bool = True


EditRequest = Union[
    TextEdit, StyleEdit, BatchEdit, MoveEdit, DeleteRequest, DuplicateRequest, ClassEdit,
]


def _locator(data: dict, session: Optional[IdentitySession]) -> Locator:
    return Locator(
        identity=data.get("agId") or data.get("identity") or None,
        selector_path=data.get("path") or data.get("selectorPath") or None,
        session=session,
    )


def _require(data: dict, key: str) -> Any:
    if key not in data or data[key] is None:
        raise InvalidEdit(f"Message is missing '{key}'")
    return data[key]


def request_from_message(
    message: dict,
    session: Optional[IdentitySession] = None,
) -> EditRequest:
    """Decode one host message into an edit request.

    Raises
    ------
    InvalidEdit
        For unknown message types or missing fields.
    """
    kind = message.get("type")
    data = message.get("data") or {}
    locator = _locator(data, session)

    if kind == "textEdited":
        return TextEdit(locator, str(_require(data, "newText")))
    if kind == "styleChanged":
        return StyleEdit(locator, str(_require(data, "property")), str(_require(data, "value")))
    if kind == "stylesBatchChanged":
        batch = data.get("batch") or {}
        styles = {str(k): str(v) for k, v in (batch.get("styles") or {}).items()}
        return BatchEdit(locator, styles, batch.get("textContent"))
    if kind == "elementMoved":
        parent = Locator(
            identity=data.get("newParentAgId") or None,
            selector_path=data.get("newParentPath") or None,
            session=session,
        )
        try:
            index = int(_require(data, "newIndex"))
        except (TypeError, ValueError) as exc:
            raise InvalidEdit(f"Bad newIndex: {data.get('newIndex')!r}") from exc
        return MoveEdit(locator, parent, index)
    if kind == "elementDeleted":
        return DeleteRequest(locator)
    if kind == "elementDuplicated":
        return DuplicateRequest(locator)
    # Not sent by the stock preview script; hosts with a class editor use it.
    if kind == "classChanged":
        return ClassEdit(locator, str(_require(data, "className")), bool(data.get("add", True)))
    raise InvalidEdit(f"Unknown message type: {kind!r}")

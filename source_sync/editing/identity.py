"""
Identity tracker — instruments a document with per-element identity markers.

The preview renders the instrumented text, so every click reports the
identity of the element under the cursor.  The :class:`IdentitySession`
returned here is the only place those identities mean anything: it is
owned by the caller and handed back with each locator.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import re
from dataclasses import asdict, dataclass, field
from typing import Iterable, Optional

from ..errors import DocumentError
from ..parsing.elements import ParseResult

logger = logging.getLogger(__name__)

DEFAULT_ATTRIBUTE = "data-sync-id"

EXCLUDED_TAGS = frozenset({
    "!doctype", "html", "head", "body", "meta", "link", "script", "style", "title",
})


def document_version(text: str) -> str:
    """Content hash identifying one exact revision of a document."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class IdentityLocation:
    """Where an identified element sat in the un-instrumented text."""
    start: int
    end: int
    tag_name: str


@dataclass
class IdentitySession:
    """Identities issued for one document revision."""
    document_version: str
    identity_map: dict[str, IdentityLocation] = field(default_factory=dict)
    instrumented_text: str = ""
    attribute: str = DEFAULT_ATTRIBUTE

    def is_current(self, text: str) -> bool:
        """True if this session was built from exactly *text*."""
        return self.document_version == document_version(text)

    # -- persistence (the CLI keeps a session between invocations) -------

    def save(self, path: str) -> None:
        payload = {
            "document_version": self.document_version,
            "attribute": self.attribute,
            "identity_map": {k: asdict(v) for k, v in self.identity_map.items()},
            "instrumented_text": self.instrumented_text,
        }
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
        except OSError as exc:
            raise DocumentError(f"Cannot write identity session {path}: {exc}") from exc

    @classmethod
    def load(cls, path: str) -> "IdentitySession":
        if not os.path.isfile(path):
            raise DocumentError(f"Identity session not found: {path}")
        try:
            with open(path, "r", encoding="utf-8") as f:
                payload = json.load(f)
            return cls(
                document_version=payload["document_version"],
                identity_map={
                    k: IdentityLocation(**v) for k, v in payload["identity_map"].items()
                },
                instrumented_text=payload.get("instrumented_text", ""),
                attribute=payload.get("attribute", DEFAULT_ATTRIBUTE),
            )
        except (OSError, ValueError, KeyError, TypeError) as exc:
            raise DocumentError(f"Cannot read identity session {path}: {exc}") from exc


def assign_identities(
    tree: ParseResult,
    text: Optional[str] = None,
    attribute: str = DEFAULT_ATTRIBUTE,
    exclude: Iterable[str] = EXCLUDED_TAGS,
) -> IdentitySession:
    """Inject ``attribute="<identity>"`` after the tag name of every element.

    Excluded tags and component references are left alone.  Insertions run
    from the end of the text backwards so earlier offsets stay valid, and
    the returned map records the pre-injection spans.
    """
    source = tree.text if text is None else text
    excluded = {t.lower() for t in exclude}

    targets = [
        e for e in tree.walk()
        if not e.is_component and e.tag_name.lower() not in excluded
    ]
    identity_map = {
        e.identity: IdentityLocation(e.source_start, e.source_end, e.tag_name)
        for e in targets
    }

    instrumented = source
    for element in sorted(targets, key=lambda e: e.source_start, reverse=True):
        at = element.source_start + 1 + len(element.tag_name)
        marker = f' {attribute}="{element.identity}"'
        instrumented = instrumented[:at] + marker + instrumented[at:]

    logger.info("[Identity] Instrumented %d elements", len(identity_map))
    return IdentitySession(
        document_version=document_version(source),
        identity_map=identity_map,
        instrumented_text=instrumented,
        attribute=attribute,
    )


def find_by_identity(session: IdentitySession, identity: str) -> Optional[IdentityLocation]:
    return session.identity_map.get(identity)


def strip_identity_markers(text: str, attribute: str = DEFAULT_ATTRIBUTE) -> str:
    """Remove every ``attribute="…"`` marker from *text*."""
    pattern = re.compile(rf"\s+{re.escape(attribute)}=(?:\"[^\"]*\"|'[^']*')")
    return pattern.sub("", text)

"""
Line diff by positional similarity.

Mutations are small and local and keep most lines intact, so instead of a
full LCS the new lines are matched against the old ones by walking both
forward and preferring the nearest identical, unclaimed old line.  The
result is pure metadata (which lines were added, which old lines went
away and roughly where); rendering is someone else's job.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeletedLine:
    """An old line with no counterpart, shown near *anchor_line* of the new text."""
    anchor_line: int
    content: str


@dataclass
class LineDiff:
    added_lines: list[int] = field(default_factory=list)
    deleted_lines: list[DeletedLine] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.added_lines and not self.deleted_lines


def _match_lines(old_lines: list[str], new_lines: list[str]) -> dict[int, int]:
    """Return ``{old_index: new_index}`` for every claimed pair."""
    positions: dict[str, list[int]] = defaultdict(list)
    for i, line in enumerate(old_lines):
        positions[line].append(i)

    claimed: dict[int, int] = {}
    expected = 0
    for new_idx, line in enumerate(new_lines):
        if expected < len(old_lines) and expected not in claimed and old_lines[expected] == line:
            claimed[expected] = new_idx
            expected += 1
            continue

        best = -1
        best_distance = None
        for old_idx in positions.get(line, ()):
            if old_idx in claimed:
                continue
            distance = abs(old_idx - expected)
            if best_distance is None or distance < best_distance:
                best, best_distance = old_idx, distance
        if best != -1:
            claimed[best] = new_idx
            if best >= expected:
                expected = best + 1
    return claimed


def compute_line_diff(old_text: str, new_text: str) -> LineDiff:
    """Diff two texts line by line.

    Blank lines take part in matching but are never reported.  Deleted
    lines carry a display anchor: their old line number shifted by the
    insertions and deletions seen so far, clamped into the new text.
    """
    old_lines = old_text.split("\n")
    new_lines = new_text.split("\n")
    claimed = _match_lines(old_lines, new_lines)
    matched_new = set(claimed.values())

    diff = LineDiff()
    diff.added_lines = [
        i for i, line in enumerate(new_lines)
        if i not in matched_new and line.strip()
    ]

    shift = 0
    last = len(new_lines) - 1
    for old_idx, line in enumerate(old_lines):
        new_idx = claimed.get(old_idx)
        if new_idx is None:
            if line.strip():
                anchor = max(0, min(old_idx + shift, last))
                diff.deleted_lines.append(DeletedLine(anchor, line))
                shift -= 1
        elif new_idx > old_idx + shift:
            # Lines were inserted above this one.
            shift += new_idx - (old_idx + shift)

    logger.debug(
        "[Diff] +%d -%d lines", len(diff.added_lines), len(diff.deleted_lines),
    )
    return diff

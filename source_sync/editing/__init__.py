"""Structural editing — resolve a locator, mutate the text, stage the diff."""

from .selectors import SelectorSegment, parse_selector_path
from .path_resolver import match_segment, resolve
from .identity import (
    IdentityLocation, IdentitySession, assign_identities, find_by_identity,
    strip_identity_markers,
)
from .tag_scan import find_matching_close, find_open_tag_end, scan_children
from .mutations import MutationEngine
from .line_diff import DeletedLine, LineDiff, compute_line_diff
from .staging import ChangeNotification, ChangeStager, PendingChange, StageState
from .metrics import log_mutation_metric, read_mutation_stats

__all__ = [
    "SelectorSegment", "parse_selector_path",
    "match_segment", "resolve",
    "IdentityLocation", "IdentitySession", "assign_identities", "find_by_identity",
    "strip_identity_markers",
    "find_matching_close", "find_open_tag_end", "scan_children",
    "MutationEngine",
    "DeletedLine", "LineDiff", "compute_line_diff",
    "ChangeNotification", "ChangeStager", "PendingChange", "StageState",
    "log_mutation_metric", "read_mutation_stats",
]

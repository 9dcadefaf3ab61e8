"""
`source-sync` command line.

Commands
--------
source-sync tree FILE                                 -- print the element tree
source-sync locate FILE --path "ul > li:nth-child(2)" -- jump-to-source location
source-sync instrument FILE [-o OUT]                  -- inject identity markers, save session
source-sync delete FILE --path P                      -- delete an element
source-sync duplicate FILE --path P                   -- duplicate an element
source-sync edit-text FILE --path P "New text"
source-sync edit-style FILE --path P color red
source-sync edit-class FILE --path P active [--remove]
source-sync move FILE --path P --parent-path Q --index 0
source-sync diff OLD NEW                              -- positional line diff of two files
source-sync wait-ready URL [--timeout 30]
source-sync stats [--last-n 50]                       -- mutation metrics

Editing commands accept ``--identity ID --session FILE`` instead of (or
in addition to) ``--path``, stage the change, and open the review screen;
``--plain`` reviews on the console and ``--yes`` accepts without asking.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Callable, Optional

from .cli_display import describe_element, format_outcome, format_tree, setup_logger
from .config import Config
from .editing.identity import IdentitySession
from .editing.line_diff import compute_line_diff
from .editing.metrics import read_mutation_stats
from .errors import SyncError
from .parsing import get_parser, detect_document_kind, parse_document
from .readiness import wait_for_ready
from .requests import (
    ClassEdit,
    DeleteRequest,
    DuplicateRequest,
    EditRequest,
    Locator,
    MoveEdit,
    StyleEdit,
    TextEdit,
)
from .review import review_change
from .sync import APPLIED, NO_CHANGE, SourceSync

logger = logging.getLogger(__name__)

DEFAULT_SESSION_FILE = ".sourcesync/session.json"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _read(path: str) -> str:
    try:
        with open(path, "r", encoding="utf-8", newline="") as f:
            return f.read()
    except OSError as exc:
        print(f"Cannot read {path}: {exc}", file=sys.stderr)
        sys.exit(1)


def _load_session(args: argparse.Namespace) -> Optional[IdentitySession]:
    path = getattr(args, "session", None)
    if not path or not os.path.isfile(path):
        return None
    try:
        return IdentitySession.load(path)
    except SyncError as exc:
        print(f"Ignoring identity session: {exc}", file=sys.stderr)
        return None


def _locator(args: argparse.Namespace, session: Optional[IdentitySession]) -> Locator:
    locator = Locator(
        identity=getattr(args, "identity", None),
        selector_path=getattr(args, "path", None),
        session=session,
    )
    if locator.is_empty:
        print("Give --path and/or --identity to pick an element.", file=sys.stderr)
        sys.exit(2)
    return locator


def _open(args: argparse.Namespace) -> tuple[SourceSync, str]:
    sync = SourceSync(args.config_obj)
    try:
        state = sync.open_document(args.file)
    except SyncError as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(1)
    return sync, state.name


def _review_mode(args: argparse.Namespace) -> str:
    if getattr(args, "yes", False):
        return "auto-accept"
    if getattr(args, "plain", False):
        return "console"
    return args.config_obj.REVIEW


def _run_edit(
    args: argparse.Namespace,
    build: Callable[[Locator, Optional[IdentitySession]], EditRequest],
) -> None:
    """Apply one request, review the staged change, then write or revert."""
    sync, name = _open(args)
    session = _load_session(args)
    request = build(_locator(args, session), session)

    outcome = sync.apply(name, request)
    print(format_outcome(outcome.status, outcome.message))
    if outcome.status == NO_CHANGE:
        return
    if outcome.status != APPLIED:
        sys.exit(1)

    change = sync.stager.pending(name)
    if review_change(args.file, change, _review_mode(args)):
        try:
            sync.accept(name)
        except SyncError as exc:
            print(format_outcome(exc.kind, str(exc)))
            sys.exit(1)
        print(f"Written {args.file}")
    else:
        sync.reject(name)
        print(f"Rejected; {args.file} unchanged")


# ---------------------------------------------------------------------------
# Sub-command handlers
# ---------------------------------------------------------------------------

def _cmd_tree(args: argparse.Namespace) -> None:
    """Print the parsed element tree."""
    text = _read(args.file)
    parser = get_parser(detect_document_kind(args.file), args.file)
    result = parse_document(text, parser)
    print(format_tree(result, show_text=not args.no_text))
    if not result.ok:
        sys.exit(1)


def _cmd_locate(args: argparse.Namespace) -> None:
    """Resolve a locator to a source location."""
    sync, name = _open(args)
    locator = _locator(args, _load_session(args))
    try:
        element = sync.locate(name, locator)
    except SyncError as exc:
        print(format_outcome(exc.kind, str(exc)))
        sys.exit(1)
    print(f"{args.file}:{element.start_line}:{element.start_column + 1}")
    print(f"  {describe_element(element)}")
    print(f"  {element.selector_path()}")


def _cmd_instrument(args: argparse.Namespace) -> None:
    """Inject identity markers and save the identity session."""
    sync, name = _open(args)
    try:
        session = sync.instrument(name)
    except SyncError as exc:
        print(format_outcome(exc.kind, str(exc)))
        sys.exit(1)

    session_path = args.session or DEFAULT_SESSION_FILE
    os.makedirs(os.path.dirname(os.path.abspath(session_path)), exist_ok=True)
    session.save(session_path)

    if args.output:
        with open(args.output, "w", encoding="utf-8", newline="") as f:
            f.write(session.instrumented_text)
        print(f"Instrumented {len(session.identity_map)} elements → {args.output}")
    else:
        sys.stdout.write(session.instrumented_text)
    print(f"Session saved to {session_path}", file=sys.stderr)


def _cmd_delete(args: argparse.Namespace) -> None:
    _run_edit(args, lambda loc, _s: DeleteRequest(loc))


def _cmd_duplicate(args: argparse.Namespace) -> None:
    _run_edit(args, lambda loc, _s: DuplicateRequest(loc))


def _cmd_edit_text(args: argparse.Namespace) -> None:
    _run_edit(args, lambda loc, _s: TextEdit(loc, args.text))


def _cmd_edit_style(args: argparse.Namespace) -> None:
    _run_edit(args, lambda loc, _s: StyleEdit(loc, args.property, args.value))


def _cmd_edit_class(args: argparse.Namespace) -> None:
    _run_edit(args, lambda loc, _s: ClassEdit(loc, args.class_name, add=not args.remove))


def _cmd_move(args: argparse.Namespace) -> None:
    def build(loc: Locator, session: Optional[IdentitySession]) -> MoveEdit:
        parent = Locator(
            identity=args.parent_identity,
            selector_path=args.parent_path,
            session=session,
        )
        if parent.is_empty:
            print("Give --parent-path and/or --parent-identity.", file=sys.stderr)
            sys.exit(2)
        return MoveEdit(loc, parent, args.index)

    _run_edit(args, build)


def _cmd_diff(args: argparse.Namespace) -> None:
    """Positional line diff between two files."""
    old_text, new_text = _read(args.old), _read(args.new)
    diff = compute_line_diff(old_text, new_text)
    if diff.is_empty:
        print("No differences.")
        return
    new_lines = new_text.split("\n")
    for number in diff.added_lines:
        print(f"\033[32m+ {number + 1:>5}  {new_lines[number]}\033[0m")
    for line in diff.deleted_lines:
        print(f"\033[31m- {line.anchor_line + 1:>5}  {line.content}\033[0m")
    print(f"\n+{len(diff.added_lines)} -{len(diff.deleted_lines)}")


def _cmd_wait_ready(args: argparse.Namespace) -> None:
    """Block until a companion server answers, or fail after the timeout."""
    config: Config = args.config_obj
    url = args.url or config.READINESS_URL
    if not url:
        print("No URL given and readiness_url is not configured.", file=sys.stderr)
        sys.exit(2)
    timeout = args.timeout if args.timeout is not None else config.READINESS_TIMEOUT
    try:
        waited = wait_for_ready(url, timeout=timeout, interval=config.READINESS_INTERVAL)
    except SyncError as exc:
        print(format_outcome(exc.kind, str(exc)))
        sys.exit(1)
    print(f"{url} ready after {waited:.1f}s")


def _cmd_stats(args: argparse.Namespace) -> None:
    """Show rolling mutation statistics."""
    config: Config = args.config_obj
    stats = read_mutation_stats(last_n=args.last_n, metrics_dir=config.METRICS_DIR)

    if stats["total_mutations"] == 0:
        print("No mutation metrics found yet.")
        print("Set `metrics: true` in .sourcesync.yaml to record them.")
        return

    print(f"\nMutation stats (last {args.last_n})")
    print(f"  Total mutations : {stats['total_mutations']}")
    print(f"  Applied         : {stats['applied_rate']:.0f}%")
    print(f"  No change       : {stats['no_change_rate']:.0f}%")
    print(f"  Avg duration    : {stats['avg_duration_ms']:.1f}ms")
    for operation, count in stats["operations"].items():
        print(f"    {operation:<18}{count}")
    for status, pct in stats["failures"].items():
        print(f"  \033[31m{status:<16}: {pct:.0f}%\033[0m")


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------

def _add_locator_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("file", help="Markup or component source file")
    p.add_argument("--path", help='Selector path, e.g. "ul > li:nth-child(2)"')
    p.add_argument("--identity", help="Identity issued by `instrument`")
    p.add_argument(
        "--session", default=DEFAULT_SESSION_FILE,
        help=f"Identity session file (default: {DEFAULT_SESSION_FILE})",
    )


def _add_review_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--yes", "-y", action="store_true", help="Accept without review")
    p.add_argument("--plain", action="store_true", help="Review on the console")


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the `source-sync` argument parser."""
    parser = argparse.ArgumentParser(
        prog="source-sync",
        description="Map preview selections to source spans and edit them structurally",
    )
    parser.add_argument("--config", help="Path to a .sourcesync.yaml file")
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    # --- tree ---
    tree_p = subparsers.add_parser("tree", help="Print the element tree")
    tree_p.add_argument("file")
    tree_p.add_argument("--no-text", action="store_true", help="Hide text snippets")
    tree_p.set_defaults(func=_cmd_tree)

    # --- locate ---
    locate_p = subparsers.add_parser("locate", help="Show where a selection lives in the source")
    _add_locator_args(locate_p)
    locate_p.set_defaults(func=_cmd_locate)

    # --- instrument ---
    instr_p = subparsers.add_parser("instrument", help="Inject identity markers")
    instr_p.add_argument("file")
    instr_p.add_argument("-o", "--output", help="Write instrumented text here (default: stdout)")
    instr_p.add_argument(
        "--session", default=DEFAULT_SESSION_FILE,
        help=f"Where to save the identity session (default: {DEFAULT_SESSION_FILE})",
    )
    instr_p.set_defaults(func=_cmd_instrument)

    # --- structural edits ---
    delete_p = subparsers.add_parser("delete", help="Delete an element")
    _add_locator_args(delete_p)
    _add_review_args(delete_p)
    delete_p.set_defaults(func=_cmd_delete)

    dup_p = subparsers.add_parser("duplicate", help="Duplicate an element")
    _add_locator_args(dup_p)
    _add_review_args(dup_p)
    dup_p.set_defaults(func=_cmd_duplicate)

    text_p = subparsers.add_parser("edit-text", help="Replace an element's text")
    _add_locator_args(text_p)
    _add_review_args(text_p)
    text_p.add_argument("text", help="New text content")
    text_p.set_defaults(func=_cmd_edit_text)

    style_p = subparsers.add_parser("edit-style", help="Set one inline style property")
    _add_locator_args(style_p)
    _add_review_args(style_p)
    style_p.add_argument("property", help="CSS property (camelCase or kebab-case)")
    style_p.add_argument("value", help="New value (empty string removes the property)")
    style_p.set_defaults(func=_cmd_edit_style)

    class_p = subparsers.add_parser("edit-class", help="Add or remove a class token")
    _add_locator_args(class_p)
    _add_review_args(class_p)
    class_p.add_argument("class_name", help="Class token")
    class_p.add_argument("--remove", action="store_true", help="Remove instead of add")
    class_p.set_defaults(func=_cmd_edit_class)

    move_p = subparsers.add_parser("move", help="Move an element under a parent")
    _add_locator_args(move_p)
    _add_review_args(move_p)
    move_p.add_argument("--parent-path", help="Selector path of the destination parent")
    move_p.add_argument("--parent-identity", help="Identity of the destination parent")
    move_p.add_argument("--index", type=int, required=True, help="Child index (0-based)")
    move_p.set_defaults(func=_cmd_move)

    # --- diff ---
    diff_p = subparsers.add_parser("diff", help="Positional line diff of two files")
    diff_p.add_argument("old")
    diff_p.add_argument("new")
    diff_p.set_defaults(func=_cmd_diff)

    # --- wait-ready ---
    ready_p = subparsers.add_parser("wait-ready", help="Wait for a companion server")
    ready_p.add_argument("url", nargs="?", help="URL to poll (default: readiness_url)")
    ready_p.add_argument("--timeout", type=float, help="Seconds (default: readiness_timeout)")
    ready_p.set_defaults(func=_cmd_wait_ready)

    # --- stats ---
    stats_p = subparsers.add_parser("stats", help="Show rolling mutation statistics")
    stats_p.add_argument(
        "--last-n", dest="last_n", type=int, default=50,
        help="Number of recent mutations to include (default: 50)",
    )
    stats_p.set_defaults(func=_cmd_stats)

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: Optional[list[str]] = None) -> None:
    """
    Main entry point for `source-sync`.

    Parameters
    ----------
    argv:
        Argument list (without the program name). Defaults to sys.argv if None.
    """
    # Configure logging if not already configured
    if not logging.root.handlers:
        logging.basicConfig(
            level=logging.WARNING,
            format="%(levelname)s  %(name)s  %(message)s",
        )

    parser = _build_parser()
    args = parser.parse_args(argv)
    args.config_obj = Config.load(args.config)
    setup_logger(args.config_obj.LOG_DIR)

    args.func(args)


if __name__ == "__main__":
    main()

"""
Review — show a pending change and ask the user to accept or reject it.

Includes a Textual-based interactive viewer; the console prompt is used
with ``--plain`` or when the terminal cannot host Textual.  Deleted lines
are materialized here, next to their anchors, purely for display.
"""

from __future__ import annotations

import logging

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, VerticalScroll
from textual.widgets import Button, Footer, Static

from .editing.staging import PendingChange

logger = logging.getLogger(__name__)

CONTEXT_LINES = 2


def render_lines(change: PendingChange, context: int = CONTEXT_LINES) -> list[tuple[str, int, str]]:
    """Merge the new text with its deleted lines for display.

    Returns ``(kind, line_number, text)`` rows where kind is ``"added"``,
    ``"deleted"``, ``"context"`` or ``"gap"``.  Only lines within *context*
    of a change are kept.
    """
    new_lines = change.current_text.split("\n")
    added = set(change.added_lines)
    deleted_at: dict[int, list[str]] = {}
    for line in change.deleted_lines:
        deleted_at.setdefault(line.anchor_line, []).append(line.content)

    rows: list[tuple[str, int, str]] = []
    for number, text in enumerate(new_lines):
        for content in deleted_at.get(number, ()):
            rows.append(("deleted", number, content))
        rows.append(("added" if number in added else "context", number, text))

    changed = {i for i, row in enumerate(rows) if row[0] != "context"}
    if not changed:
        return []
    keep = {
        j for i in changed
        for j in range(max(0, i - context), min(len(rows), i + context + 1))
    }
    out: list[tuple[str, int, str]] = []
    previous = -1
    for i in sorted(keep):
        if previous != -1 and i != previous + 1:
            out.append(("gap", -1, "…"))
        out.append(rows[i])
        previous = i
    return out


def summary(change: PendingChange) -> str:
    return (
        f"{change.description}  "
        f"(+{len(change.added_lines)} -{len(change.deleted_lines)}, "
        f"{change.change_count} change(s))"
    )


def format_colored_change(change: PendingChange) -> str:
    """ANSI rendering: green for additions, red for deletions."""
    colored: list[str] = []
    for kind, number, text in render_lines(change):
        if kind == "added":
            colored.append(f"\033[32m{number + 1:>5} + {text}\033[0m")  # green
        elif kind == "deleted":
            colored.append(f"\033[31m{'':>5} - {text}\033[0m")  # red
        elif kind == "gap":
            colored.append(f"\033[36m{'':>5}   {text}\033[0m")  # cyan
        else:
            colored.append(f"{number + 1:>5}   {text}")
    return "\n".join(colored)


def _format_rich_change(change: PendingChange) -> str:
    """Convert a pending change to Rich markup for Textual display."""
    markup_lines: list[str] = []
    for kind, number, text in render_lines(change):
        # Escape Rich markup characters in the line content
        escaped = text.replace("[", "\\[")
        if kind == "added":
            markup_lines.append(f"[green]{number + 1:>5} + {escaped}[/green]")
        elif kind == "deleted":
            markup_lines.append(f"[red]{'':>5} - {escaped}[/red]")
        elif kind == "gap":
            markup_lines.append(f"[cyan]{'':>5}   {escaped}[/cyan]")
        else:
            markup_lines.append(f"{number + 1:>5}   {escaped}")
    return "\n".join(markup_lines)


# ══════════════════════════════════════════════════════════════════
#  Interactive review (Textual TUI)
# ══════════════════════════════════════════════════════════════════

class ChangeReviewApp(App):
    """Interactive pending-change viewer with accept/reject."""

    CSS = """
    Screen {
        background: $surface;
    }
    #title-bar {
        dock: top;
        height: 3;
        background: #1a1a2e;
        color: #e94560;
        text-align: center;
        padding: 1;
        text-style: bold;
    }
    #diff-scroll {
        height: 1fr;
        margin: 1 2;
        border: round #444;
        padding: 1;
    }
    #action-buttons {
        dock: bottom;
        height: 3;
        align: center middle;
        padding: 0 2;
    }
    #action-buttons Button {
        margin: 0 2;
        min-width: 20;
    }
    #summary {
        dock: bottom;
        height: 1;
        text-align: center;
        color: #888;
    }
    """

    BINDINGS = [
        Binding("a", "accept", "Accept"),
        Binding("ctrl+s", "accept", "Accept"),
        Binding("escape", "reject", "Reject"),
        Binding("r", "reject", "Reject"),
    ]

    def __init__(self, document: str, change: PendingChange) -> None:
        super().__init__()
        self._document = document
        self._change = change
        self.accepted: bool = False

    def compose(self) -> ComposeResult:
        yield Static(f" ━━  Pending change — {self._document}  ━━ ", id="title-bar")
        with VerticalScroll(id="diff-scroll"):
            yield Static(f"[bold yellow]{summary(self._change)}[/bold yellow]")
            yield Static(_format_rich_change(self._change) or "(whitespace only)")
        yield Static(
            "Press [bold]A[/bold] to accept, [bold]R[/bold] or Esc to reject",
            id="summary",
        )
        with Horizontal(id="action-buttons"):
            yield Button("✔ Accept", id="accept-btn", variant="success")
            yield Button("✕ Reject", id="reject-btn", variant="error")
        yield Footer()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.accepted = event.button.id == "accept-btn"
        self.exit()

    def action_accept(self) -> None:
        self.accepted = True
        self.exit()

    def action_reject(self) -> None:
        self.accepted = False
        self.exit()


def _console_review(document: str, change: PendingChange) -> bool:
    """Console accept/reject prompt."""
    print("\n" + "=" * 60)
    print(f"  PENDING CHANGE — {document}")
    print(f"  {summary(change)}")
    print("=" * 60)
    print(format_colored_change(change))
    print("\n" + "=" * 60)
    print("  [A]ccept  |  [R]eject")
    print()

    while True:
        try:
            choice = input("  Your choice: ").strip().lower()
        except (EOFError, KeyboardInterrupt):
            return False
        if choice in ("a", "accept"):
            return True
        elif choice in ("r", "reject"):
            return False
        else:
            print("  Invalid choice. Use A or R.")


def review_change(document: str, change: PendingChange, mode: str = "textual") -> bool:
    """Show *change* and return True if the user accepts it.

    *mode* is ``"textual"``, ``"console"`` or ``"auto-accept"``.
    """
    if mode == "auto-accept":
        logger.info("[Review] Auto-accepting %s: %s", document, summary(change))
        return True
    if mode == "textual":
        try:
            app = ChangeReviewApp(document, change)
            app.run()
            return app.accepted
        except Exception as exc:
            logger.warning("[Review] Textual viewer failed (%s); using the console", exc)
    return _console_review(document, change)

"""
Logger setup and terminal formatting for the ``source-sync`` CLI.
"""

import logging
import os
from datetime import datetime

from .parsing.elements import EXPRESSION_PLACEHOLDER, Element, ParseResult


def setup_logger(log_dir: str = ".sourcesync/logs") -> logging.Logger:
    """Creates a file logger. All verbose output goes here."""
    os.makedirs(log_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = os.path.join(log_dir, f"sync_{timestamp}.log")

    logger = logging.getLogger("source_sync")
    logger.setLevel(logging.DEBUG)

    # File handler: captures everything
    fh = logging.FileHandler(log_file, encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s %(message)s", datefmt="%H:%M:%S"
    ))
    logger.addHandler(fh)

    return logger


def describe_element(element: Element) -> str:
    """One-line summary: ``<li class="a"> 3:4-3:18``."""
    attrs = []
    for key in ("id", "class", "className"):
        value = element.attributes.get(key)
        if value and value != EXPRESSION_PLACEHOLDER:
            attrs.append(f'{key}="{value}"')
    head = " ".join([element.tag_name] + attrs)
    marker = " (component)" if element.is_component else ""
    return (
        f"<{head}>{marker} {element.start_line}:{element.start_column}"
        f"-{element.end_line}:{element.end_column}"
    )


def format_tree(result: ParseResult, show_text: bool = True) -> str:
    """Indented outline of a parse result."""
    if not result.ok:
        return f"\033[31mParse error: {result.parse_error}\033[0m"

    lines: list[str] = []
    stack = [(root, 0) for root in reversed(result.roots)]
    while stack:
        element, depth = stack.pop()
        line = f"{'  ' * depth}{describe_element(element)}"
        if show_text and element.text:
            snippet = element.text if len(element.text) <= 40 else element.text[:39] + "…"
            line += f"  \033[2m{snippet!r}\033[0m"
        lines.append(line)
        stack.extend((child, depth + 1) for child in reversed(element.children))
    return "\n".join(lines) if lines else "(no elements)"


def format_outcome(status: str, message: str) -> str:
    """Colour an outcome line: green when applied, yellow no-op, red failure."""
    if status == "applied":
        return f"\033[32m✔ {message}\033[0m"
    if status == "no_change":
        return f"\033[33m○ {message}\033[0m"
    return f"\033[31m✗ [{status}] {message}\033[0m"

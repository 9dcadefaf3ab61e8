"""
Bounded waits on a companion live-reload process.

Nothing here spawns or manages that process; it only answers "is it up
yet?" within a fixed timeout, either by polling its URL or by watching the
lines it prints.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from typing import Callable, Iterable, Optional

import requests

from .errors import ReadinessTimeout

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

_READY_MARKERS = ("ready in", "compiled successfully")
_LOCAL_URL = re.compile(r"Local:\s+(https?://[^\s/]+(?::\d+)?)", re.IGNORECASE)
_LOCALHOST_PORT = re.compile(r"localhost:(\d+)", re.IGNORECASE)


def wait_for_ready(
    url: str,
    timeout: float = DEFAULT_TIMEOUT,
    interval: float = 0.5,
    session: Optional[requests.Session] = None,
) -> float:
    """Poll *url* until it answers with a non-5xx status.

    Returns
    -------
    float
        Seconds waited.

    Raises
    ------
    ReadinessTimeout
        If *url* is still not answering after *timeout* seconds.
    """
    http = session or requests
    started = time.monotonic()
    deadline = started + timeout
    last_error = "no response"
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break
        try:
            response = http.get(url, timeout=(min(2.0, remaining), min(5.0, remaining)))
            if response.status_code < 500:
                waited = time.monotonic() - started
                logger.info("[Ready] %s answered %d after %.1fs", url, response.status_code, waited)
                return waited
            last_error = f"HTTP {response.status_code}"
        except requests.exceptions.RequestException as exc:
            last_error = str(exc)
        time.sleep(max(0.0, min(interval, deadline - time.monotonic())))

    raise ReadinessTimeout(f"{url} not ready after {timeout:g}s ({last_error})")


def parse_ready_line(line: str) -> Optional[str]:
    """Return the announced URL (or ``""``) if *line* signals readiness, else None."""
    m = _LOCAL_URL.search(line)
    if m:
        return m.group(1)
    lowered = line.lower()
    if any(marker in lowered for marker in _READY_MARKERS):
        port = _LOCALHOST_PORT.search(line)
        return f"http://localhost:{port.group(1)}" if port else ""
    return None


def wait_for_ready_line(
    lines: Iterable[str],
    timeout: float = DEFAULT_TIMEOUT,
) -> str:
    """Consume a companion's output until it announces readiness.

    *lines* is read on a helper thread so a silent process cannot hold the
    caller past *timeout*.  Returns the announced URL, or ``""`` when the
    process said it was ready without naming one.
    """
    found: dict[str, str] = {}
    done = threading.Event()

    def _scan() -> None:
        try:
            for line in lines:
                url = parse_ready_line(line)
                if url is not None:
                    found["url"] = url
                    break
        finally:
            done.set()

    threading.Thread(target=_scan, daemon=True, name="ready-line-scan").start()
    done.wait(timeout)
    if "url" not in found:
        reason = "output ended" if done.is_set() else f"no signal within {timeout:g}s"
        raise ReadinessTimeout(f"Companion never reported ready ({reason})")
    logger.info("[Ready] Companion reported ready%s", f" at {found['url']}" if found["url"] else "")
    return found["url"]


class ReadinessMonitor:
    """Runs :func:`wait_for_ready` on a daemon thread.

    The mutation pipeline never waits on this; callers check ``is_ready``
    or pass callbacks.
    """

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_TIMEOUT,
        interval: float = 0.5,
        on_ready: Optional[Callable[[str], None]] = None,
        on_timeout: Optional[Callable[[ReadinessTimeout], None]] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.interval = interval
        self._on_ready = on_ready
        self._on_timeout = on_timeout
        self._done = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.ready = False
        self.error: Optional[ReadinessTimeout] = None

    def start(self) -> "ReadinessMonitor":
        self._thread = threading.Thread(target=self._run, daemon=True, name="readiness-monitor")
        self._thread.start()
        return self

    def _run(self) -> None:
        try:
            wait_for_ready(self.url, self.timeout, self.interval)
            self.ready = True
            if self._on_ready is not None:
                self._on_ready(self.url)
        except ReadinessTimeout as exc:
            self.error = exc
            logger.error("[Ready] %s", exc)
            if self._on_timeout is not None:
                self._on_timeout(exc)
        finally:
            self._done.set()

    @property
    def is_ready(self) -> bool:
        return self.ready

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the monitor finishes; True if the companion came up."""
        self._done.wait(timeout)
        return self.ready

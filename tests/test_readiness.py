"""Tests for readiness waits. HTTP is mocked throughout."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock, patch

import pytest
import requests

from source_sync.errors import ReadinessTimeout
from source_sync.readiness import (
    ReadinessMonitor,
    parse_ready_line,
    wait_for_ready,
    wait_for_ready_line,
)


def _response(status):
    resp = MagicMock()
    resp.status_code = status
    return resp


class TestWaitForReady:
    def test_ready_immediately(self):
        with patch("source_sync.readiness.requests.get", return_value=_response(200)) as get:
            waited = wait_for_ready("http://localhost:5173", timeout=1, interval=0.01)

        assert waited >= 0
        get.assert_called_once()
        assert get.call_args[0][0] == "http://localhost:5173"

    def test_retries_connection_errors(self):
        side_effect = [requests.exceptions.ConnectionError("refused"), _response(200)]
        with patch("source_sync.readiness.requests.get", side_effect=side_effect) as get:
            wait_for_ready("http://localhost:5173", timeout=2, interval=0.01)

        assert get.call_count == 2

    def test_client_errors_count_as_up(self):
        session = MagicMock()
        session.get.return_value = _response(404)

        wait_for_ready("http://localhost:3000", timeout=1, interval=0.01, session=session)
        session.get.assert_called_once()

    def test_times_out(self):
        with patch("source_sync.readiness.requests.get", return_value=_response(503)):
            with pytest.raises(ReadinessTimeout, match="HTTP 503"):
                wait_for_ready("http://localhost:5173", timeout=0.05, interval=0.01)


class TestReadyLines:
    @pytest.mark.parametrize("line,expected", [
        ("  ➜  Local:   http://localhost:5173/", "http://localhost:5173"),
        ("  VITE v5.0.0  ready in 312 ms", ""),
        ("webpack 5.88.0 compiled successfully in 1200 ms", ""),
        ("Compiled successfully! You can now view app at localhost:3000", "http://localhost:3000"),
        ("Starting the development server...", None),
    ])
    def test_parse_ready_line(self, line, expected):
        assert parse_ready_line(line) == expected

    def test_wait_for_ready_line(self):
        lines = iter(["> vite", "", "  ➜  Local:   http://127.0.0.1:4000/", "never read"])
        assert wait_for_ready_line(lines, timeout=1) == "http://127.0.0.1:4000"

    def test_output_ends_without_signal(self):
        with pytest.raises(ReadinessTimeout, match="output ended"):
            wait_for_ready_line(iter(["building...", "error"]), timeout=1)

    def test_silent_process_times_out(self):
        release = threading.Event()

        def silent():
            release.wait(5)
            yield "ready in 1 ms"

        try:
            with pytest.raises(ReadinessTimeout, match="no signal"):
                wait_for_ready_line(silent(), timeout=0.05)
        finally:
            release.set()


class TestReadinessMonitor:
    def test_ready_callback(self):
        on_ready = MagicMock()
        with patch("source_sync.readiness.wait_for_ready", return_value=0.1):
            monitor = ReadinessMonitor("http://localhost:5173", on_ready=on_ready).start()
            assert monitor.wait(2)

        assert monitor.is_ready
        on_ready.assert_called_once_with("http://localhost:5173")

    def test_timeout_callback(self):
        on_timeout = MagicMock()
        error = ReadinessTimeout("not ready")
        with patch("source_sync.readiness.wait_for_ready", side_effect=error):
            monitor = ReadinessMonitor("http://localhost:5173", on_timeout=on_timeout).start()
            assert not monitor.wait(2)

        assert monitor.error is error
        on_timeout.assert_called_once_with(error)

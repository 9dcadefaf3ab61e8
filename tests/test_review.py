"""Tests for pending-change rendering and the review prompt."""

from unittest.mock import patch

import pytest

from source_sync.editing.staging import ChangeStager, PendingChange
from source_sync.review import (
    ChangeReviewApp,
    format_colored_change,
    render_lines,
    review_change,
    summary,
)


@pytest.fixture
def change():
    stager = ChangeStager()
    stager.record("doc", "A\nB\nC", "A\nX\nC", "Text → 'X'")
    return stager.pending("doc")


class TestRenderLines:
    def test_deleted_lines_sit_before_their_anchor(self, change):
        assert render_lines(change) == [
            ("context", 0, "A"),
            ("deleted", 1, "B"),
            ("added", 1, "X"),
            ("context", 2, "C"),
        ]

    def test_distant_context_is_collapsed(self):
        old = "\n".join(f"line {i}" for i in range(20))
        new = old.replace("line 10", "changed")
        stager = ChangeStager()
        stager.record("doc", old, new, "edit")

        rows = render_lines(stager.pending("doc"), context=1)

        assert [r[0] for r in rows] == ["context", "deleted", "added", "context"]
        assert rows[0] == ("context", 9, "line 9")

    def test_gap_between_separate_changes(self):
        old = "\n".join(f"line {i}" for i in range(20))
        new = old.replace("line 2", "two").replace("line 15", "fifteen")
        stager = ChangeStager()
        stager.record("doc", old, new, "edit")

        rows = render_lines(stager.pending("doc"), context=1)

        assert ("gap", -1, "…") in rows

    def test_whitespace_only_change_renders_nothing(self):
        change = PendingChange(original_text="A\nB", current_text="A\n\nB", description="blank")
        assert render_lines(change) == []

    def test_summary_and_colors(self, change):
        assert summary(change) == "Text → 'X'  (+1 -1, 1 change(s))"
        colored = format_colored_change(change)
        assert "\033[32m" in colored and "X" in colored
        assert "\033[31m" in colored and "B" in colored


class TestReviewChange:
    def test_auto_accept(self, change):
        assert review_change("doc", change, mode="auto-accept") is True

    def test_console_accept_after_invalid_input(self, change, capsys):
        with patch("builtins.input", side_effect=["x", "a"]):
            assert review_change("doc", change, mode="console") is True
        assert "Invalid choice" in capsys.readouterr().out

    def test_console_reject(self, change):
        with patch("builtins.input", return_value="r"):
            assert review_change("doc", change, mode="console") is False

    def test_console_eof_rejects(self, change):
        with patch("builtins.input", side_effect=EOFError):
            assert review_change("doc", change, mode="console") is False

    def test_textual_failure_falls_back_to_console(self, change):
        with patch.object(ChangeReviewApp, "run", side_effect=RuntimeError("no tty")), \
             patch("builtins.input", return_value="a"):
            assert review_change("doc", change, mode="textual") is True

    def test_textual_result(self, change):
        def fake_run(app):
            app.accepted = True

        with patch.object(ChangeReviewApp, "run", autospec=True, side_effect=fake_run):
            assert review_change("doc", change, mode="textual") is True

"""Tests for the per-document pending-change state machine."""

import logging

import pytest

from source_sync.editing.line_diff import DeletedLine
from source_sync.editing.staging import ChangeStager, StageState


@pytest.fixture
def stager():
    return ChangeStager()


class TestRecord:
    def test_identical_text_is_a_noop(self, stager):
        assert stager.record("doc", "A", "A", "nothing") is None
        assert stager.state("doc") is StageState.CLEAN
        assert stager.pending("doc") is None

    def test_first_record_opens_pending(self, stager):
        note = stager.record("doc", "A\nB\nC", "A\nX\nC", "Text → 'X'")

        assert stager.state("doc") is StageState.PENDING
        assert note.document == "doc"
        assert note.description == "Text → 'X'"
        assert (note.added_count, note.deleted_count) == (1, 1)
        change = stager.pending("doc")
        assert change.original_text == "A\nB\nC"
        assert change.added_lines == [1]
        assert change.deleted_lines == [DeletedLine(1, "B")]

    def test_second_record_extends(self, stager):
        stager.record("doc", "A\nB", "A\nX", "first")
        note = stager.record("doc", "A\nX", "A\nX\nY", "second")

        change = stager.pending("doc")
        assert change.description == "first + second"
        assert change.change_count == 2
        assert change.original_text == "A\nB"
        assert change.current_text == "A\nX\nY"
        assert change.added_lines == [1, 2]
        assert note.added_count == 2

    def test_identical_record_does_not_extend(self, stager):
        stager.record("doc", "A", "B", "first")
        stager.record("doc", "B", "B", "again")
        assert stager.pending("doc").change_count == 1

    def test_documents_are_independent(self, stager):
        stager.record("one", "A", "B", "edit")
        assert stager.state("two") is StageState.CLEAN


class TestFinish:
    def test_accept_returns_current_text(self, stager):
        stager.record("doc", "A", "B", "edit")
        stager.record("doc", "B", "C", "edit")

        assert stager.accept("doc") == "C"
        assert stager.state("doc") is StageState.CLEAN

    def test_reject_returns_original_verbatim(self, stager):
        original = "A\r\n  B\n"
        stager.record("doc", original, "X", "edit")
        stager.record("doc", "X", "Y", "edit")

        assert stager.reject("doc") == original
        assert stager.state("doc") is StageState.CLEAN

    def test_finish_when_clean(self, stager):
        with pytest.raises(KeyError):
            stager.accept("doc")
        with pytest.raises(KeyError):
            stager.reject("doc")


class TestListeners:
    def test_every_transition_is_reported(self, stager):
        seen = []
        stager.subscribe(seen.append)

        stager.record("doc", "A", "B", "edit")
        stager.accept("doc")

        assert [n.state for n in seen] == [StageState.PENDING, StageState.CLEAN]
        assert seen[-1].description == "edit"

    def test_failing_listener_is_logged(self, stager, caplog):
        def broken(_note):
            raise RuntimeError("boom")

        seen = []
        stager.subscribe(broken)
        stager.subscribe(seen.append)

        with caplog.at_level(logging.ERROR, logger="source_sync.editing.staging"):
            stager.record("doc", "A", "B", "edit")

        assert len(seen) == 1
        assert "Change listener failed" in caplog.text

"""Tests for host-message decoding and the request types."""

import pytest

from source_sync.errors import InvalidEdit
from source_sync.requests import (
    BatchEdit,
    ClassEdit,
    DeleteRequest,
    DuplicateRequest,
    Locator,
    MoveEdit,
    SelectionEvent,
    StyleEdit,
    TextEdit,
    request_from_message,
)


class TestLocator:
    def test_empty(self):
        assert Locator().is_empty
        assert not Locator(selector_path="p").is_empty

    def test_describe(self):
        assert Locator(identity="sx-1").describe() == "sx-1"
        assert Locator(identity="sx-1", selector_path="p").describe() == "sx-1 (p)"
        assert Locator().describe() == "<empty locator>"


class TestSelectionEvent:
    def test_from_preview_message(self):
        event = SelectionEvent.from_message({
            "tagName": "LI",
            "path": "ul > li:nth-child(2)",
            "className": "item",
            "agId": "sx-ab12cd34-5",
            "rect": {"x": 1, "y": 2, "width": 30, "height": 10},
            "computedStyles": {"color": "red"},
            "textContent": "Second",
        })

        assert event.tag_name == "li"
        assert event.selector_path == "ul > li:nth-child(2)"
        assert event.id is None
        assert event.class_name == "item"
        assert event.identity == "sx-ab12cd34-5"
        assert event.rect["width"] == 30
        assert event.computed_style == {"color": "red"}
        assert event.text_snippet == "Second"

        locator = event.locator()
        assert locator.identity == "sx-ab12cd34-5"
        assert locator.selector_path == "ul > li:nth-child(2)"


class TestRequestFromMessage:
    def test_text_edit(self):
        request = request_from_message(
            {"type": "textEdited", "data": {"path": "p", "newText": "Hi"}},
        )
        assert request == TextEdit(Locator(selector_path="p"), "Hi")

    def test_style_and_batch(self):
        style = request_from_message(
            {"type": "styleChanged", "data": {"agId": "sx-1", "property": "color", "value": "red"}},
        )
        batch = request_from_message({
            "type": "stylesBatchChanged",
            "data": {"path": "p", "batch": {"styles": {"color": "red", "margin": 0},
                                            "textContent": "x"}},
        })

        assert style == StyleEdit(Locator(identity="sx-1"), "color", "red")
        assert batch == BatchEdit(Locator(selector_path="p"), {"color": "red", "margin": "0"}, "x")

    def test_move(self):
        request = request_from_message({
            "type": "elementMoved",
            "data": {"path": "li", "newParentPath": "ul", "newIndex": "2"},
        })
        assert request == MoveEdit(Locator(selector_path="li"), Locator(selector_path="ul"), 2)

    def test_delete_duplicate_class(self):
        data = {"path": "p"}
        assert request_from_message({"type": "elementDeleted", "data": data}) == DeleteRequest(
            Locator(selector_path="p"))
        assert request_from_message({"type": "elementDuplicated", "data": data}) == (
            DuplicateRequest(Locator(selector_path="p")))
        assert request_from_message(
            {"type": "classChanged", "data": {"path": "p", "className": "x", "add": False}},
        ) == ClassEdit(Locator(selector_path="p"), "x", add=False)

    def test_session_is_attached(self):
        session = object()
        request = request_from_message(
            {"type": "elementMoved", "data": {"agId": "a", "newParentAgId": "b", "newIndex": 0}},
            session=session,
        )
        assert request.locator.session is session
        assert request.new_parent.session is session

    def test_missing_field(self):
        with pytest.raises(InvalidEdit, match="newText"):
            request_from_message({"type": "textEdited", "data": {"path": "p"}})

    def test_bad_index(self):
        with pytest.raises(InvalidEdit, match="newIndex"):
            request_from_message(
                {"type": "elementMoved", "data": {"path": "li", "newIndex": "last"}},
            )

    def test_unknown_type(self):
        with pytest.raises(InvalidEdit, match="Unknown message type"):
            request_from_message({"type": "elementExploded", "data": {}})

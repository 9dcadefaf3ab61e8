"""Tests for selector-path parsing."""

import pytest

from source_sync.editing.selectors import SelectorSegment, parse_segment, parse_selector_path
from source_sync.errors import ElementNotFound


class TestParseSelectorPath:
    def test_full_path(self):
        segments = parse_selector_path("div#app > ul.menu > li:nth-child(2)")
        assert segments == [
            SelectorSegment(tag_name="div", id="app"),
            SelectorSegment(tag_name="ul", class_name="menu"),
            SelectorSegment(tag_name="li", ordinal=2),
        ]

    def test_first_class_is_kept(self):
        assert parse_segment("li.a.b").class_name == "a"

    def test_id_only_segment_is_wildcard(self):
        segment = parse_segment("#main")
        assert segment.tag_name is None
        assert segment.id == "main"
        assert segment.is_wildcard

    def test_star_is_wildcard(self):
        assert parse_segment("*:nth-child(3)").is_wildcard
        assert not parse_segment("p").is_wildcard

    def test_preview_prefix_is_stripped(self):
        segments = parse_selector_path(
            "#preview-content > div > p", strip_prefixes=["#preview-content"],
        )
        assert [s.tag_name for s in segments] == ["div", "p"]

    def test_prefix_only_stripped_at_start(self):
        segments = parse_selector_path("div > #preview-content", ["#preview-content"])
        assert len(segments) == 2

    def test_malformed_segment(self):
        with pytest.raises(ElementNotFound):
            parse_selector_path("div > p[title]")

    def test_str_round_trips(self):
        for raw in ("li:nth-child(2)", "div#app", "ul.menu", "*"):
            assert str(parse_segment(raw)) == raw

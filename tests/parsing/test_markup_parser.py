"""Tests for the tag-stream markup parser."""

import pytest

from source_sync.errors import ParseError
from source_sync.parsing import MarkupParser, parse_document
from source_sync.parsing.elements import DocumentKind


@pytest.fixture
def parser():
    return MarkupParser()


class TestTreeShape:
    def test_children_and_ordinals(self, parser):
        text = '<div id="app"><p class="a b">Hello</p><br><img src="x.png"/></div>'
        result = parser.parse(text)

        assert result.ok
        assert result.kind == DocumentKind.MARKUP
        assert len(result.roots) == 1
        div = result.roots[0]
        assert div.tag_name == "div"
        assert [c.tag_name for c in div.children] == ["p", "br", "img"]
        assert [c.ordinal for c in div.children] == [1, 2, 3]
        assert all(c.parent is div for c in div.children)

    def test_text_and_attributes(self, parser):
        result = parser.parse('<div id="app"><p class="a b">Hello</p><input disabled></div>')
        div = result.roots[0]
        p, field = div.children

        assert div.attributes == {"id": "app"}
        assert p.text == "Hello"
        assert p.class_tokens == ["a", "b"]
        assert field.attributes["disabled"] == ""

    def test_text_children_do_not_count_as_siblings(self, parser):
        result = parser.parse("<div>intro<span>a</span>more<b>b</b></div>")
        div = result.roots[0]

        assert [(c.tag_name, c.ordinal) for c in div.children] == [("span", 1), ("b", 2)]
        assert div.text == "intro"

    def test_multiple_roots(self, parser):
        result = parser.parse("<header></header>\n<main></main>")
        assert [(r.tag_name, r.ordinal) for r in result.roots] == [("header", 1), ("main", 2)]


class TestSpans:
    def test_exact_spans(self, parser):
        text = '<div id="app"><p class="a b">Hello</p><br><img src="x.png"/></div>'
        result = parser.parse(text)
        div = result.roots[0]
        p, br, img = div.children

        assert div.span == (0, len(text))
        assert text[p.source_start:p.source_end] == '<p class="a b">Hello</p>'
        assert p.close_tag_start == text.index("</p>")
        assert text[p.source_start:p.open_tag_end] == '<p class="a b">'
        assert text[br.source_start:br.source_end] == "<br>"
        assert br.close_tag_start is None
        assert text[img.source_start:img.source_end] == '<img src="x.png"/>'

    def test_line_and_column(self, parser):
        text = "<ul>\n  <li>A</li>\n</ul>"
        li = parser.parse(text).roots[0].children[0]

        assert (li.start_line, li.start_column) == (2, 2)
        assert (li.end_line, li.end_column) == (2, 12)

    def test_implicitly_closed_element_ends_at_enclosing_close(self, parser):
        text = "<div><span>x</div>"
        div = parser.parse(text).roots[0]
        span = div.children[0]

        assert span.source_end == text.index("</div>")
        assert div.source_end == len(text)

    def test_unclosed_elements_extend_to_end(self, parser):
        text = "<div><p>Hi"
        div = parser.parse(text).roots[0]

        assert div.source_end == len(text)
        assert div.children[0].source_end == len(text)

    def test_stray_close_tag_is_ignored(self, parser):
        text = "<div></span><p>x</p></div>"
        div = parser.parse(text).roots[0]

        assert div.span == (0, len(text))
        assert [c.tag_name for c in div.children] == ["p"]


class TestIdentities:
    def test_unique_within_a_parse(self, parser):
        result = parser.parse("<ul><li>A</li><li>B</li><li>C</li></ul>")
        identities = [e.identity for e in result.walk()]

        assert len(identities) == len(set(identities)) == 4
        assert set(result.identity_map) == set(identities)

    def test_never_reused_by_a_later_parse(self, parser):
        text = "<ul><li>A</li><li>B</li></ul>"
        first = {e.identity for e in parser.parse(text).walk()}
        second = {e.identity for e in parser.parse(text).walk()}

        assert first.isdisjoint(second)


class TestParseErrors:
    def test_unterminated_tag_raises(self, parser):
        with pytest.raises(ParseError) as exc_info:
            parser.parse("<div>\n<p class='x'")
        assert exc_info.value.line == 2

    def test_unterminated_comment_raises(self, parser):
        with pytest.raises(ParseError):
            parser.parse("<div><!-- note")

    def test_trailing_less_than_is_text(self, parser):
        result = parser.parse("<p>a<b")

        assert result.ok
        assert result.roots[0].tag_name == "p"

    def test_unterminated_self_closing_tag_raises(self, parser):
        with pytest.raises(ParseError):
            parser.parse("<div><br/")

    def test_parse_document_reports_instead_of_raising(self, parser):
        result = parse_document("<div><p class='x'", parser)

        assert not result.ok
        assert result.roots == []
        assert "Unterminated" in result.parse_error

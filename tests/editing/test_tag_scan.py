"""Tests for the tag-balance scanning primitives."""

import pytest

from source_sync.editing.tag_scan import (
    find_matching_close,
    find_open_tag_end,
    is_self_closing,
    scan_children,
    tag_name_at,
)
from source_sync.errors import MalformedSpan


class TestFindOpenTagEnd:
    def test_quoted_gt_does_not_end_tag(self):
        text = '<a href="x>y">t</a>'
        assert find_open_tag_end(text, 0) == len('<a href="x>y">')

    def test_jsx_expression_may_contain_gt(self):
        text = "<div onClick={() => a > b}>x</div>"
        assert find_open_tag_end(text, 0, jsx=True) == text.index("}>") + 2

    def test_unterminated_raises(self):
        with pytest.raises(MalformedSpan) as exc_info:
            find_open_tag_end('<div class="x"', 0)
        assert exc_info.value.offset == 0

    def test_helpers(self):
        text = "<Card.Body x='1'/>"
        assert tag_name_at(text, 0) == "Card.Body"
        assert is_self_closing(text, len(text))
        assert not is_self_closing("<p>", 3)


class TestFindMatchingClose:
    def test_nested_same_name(self):
        text = "<div><div>a</div></div>"
        assert find_matching_close(text, 5, "div") == (17, 23)

    def test_comments_are_skipped(self):
        text = "<div><!-- </div> --></div>"
        start, end = find_matching_close(text, 5, "div")
        assert start == text.rindex("</div>")
        assert end == len(text)

    def test_void_and_self_closing_do_not_nest(self):
        text = "<div><br><div/><img src=a></div>"
        start, _ = find_matching_close(text, 5, "div")
        assert start == text.rindex("</div>")

    def test_case_insensitive_in_markup(self):
        text = "<DIV>x</div>"
        assert find_matching_close(text, 5, "DIV") == (6, len(text))

    def test_case_sensitive_in_jsx(self):
        text = "<Item><item>x</item></Item>"
        start, _ = find_matching_close(text, 6, "Item", jsx=True)
        assert start == text.index("</Item>")

    def test_jsx_expression_blocks_are_skipped(self):
        text = "<div>{a < b ? <div>x</div> : null}</div>"
        start, _ = find_matching_close(text, 5, "div", jsx=True)
        assert start == text.rindex("</div>")

    def test_raw_text_body(self):
        text = "<div><script>if (a<b) { x = '</div>'; }</script></div>"
        start, _ = find_matching_close(text, 5, "div")
        assert start == text.rindex("</div>")

        script_open = text.index("<script>") + len("<script>")
        start, _ = find_matching_close(text, script_open, "script")
        assert start == text.index("</script>")

    def test_missing_close_raises(self):
        with pytest.raises(MalformedSpan) as exc_info:
            find_matching_close("<div><p>x</p>", 5, "div")
        assert exc_info.value.tag_name == "div"


class TestScanChildren:
    def test_structural_children_only(self):
        text = "<ul><li>A</li> text <li>B</li><!-- <li>c</li> --><br></ul>"
        spans = scan_children(text, 4, text.index("</ul>"))
        assert [text[a:b] for a, b in spans] == ["<li>A</li>", "<li>B</li>", "<br>"]

    def test_nested_children_are_not_direct(self):
        text = "<div><p><b>x</b></p><p>y</p></div>"
        spans = scan_children(text, 5, text.index("</div>"))
        assert [text[a:b] for a, b in spans] == ["<p><b>x</b></p>", "<p>y</p>"]

    def test_jsx_expressions_are_not_children(self):
        text = "<ul>{items.map(i => <li>{i}</li>)}<li>x</li><Sep /></ul>"
        spans = scan_children(text, 4, text.index("</ul>"), jsx=True)
        assert [text[a:b] for a, b in spans] == ["<li>x</li>", "<Sep />"]

    def test_empty_content(self):
        assert scan_children("<ul>\n</ul>", 4, 5) == []

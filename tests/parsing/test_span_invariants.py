"""Span invariants that must hold for every successfully parsed document."""

import pytest

from source_sync.editing.path_resolver import resolve
from source_sync.parsing import ComponentParser, MarkupParser


DOCUMENTS = [
    (MarkupParser(), "<div><p>Hello</p></div>"),
    (MarkupParser(), "<!DOCTYPE html>\n<html><head><title>T</title></head>\n"
                     "<body>\n  <ul class=\"menu\">\n    <li>A</li>\n    <li>B<br></li>\n"
                     "  </ul>\n  <!-- note -->\n  <p>x<img src=\"a\"/></p>\n</body></html>\n"),
    (MarkupParser(), "<div><span>unclosed</div><p>tail"),
    (ComponentParser("javascript"),
     "const App = () => (\n  <main>\n    <Nav items={items} />\n"
     "    {list.map(i => <li key={i}>{i}</li>)}\n    <footer>f</footer>\n  </main>\n);\n"),
]


def _check_siblings(text, elements):
    previous_end = -1
    for element in elements:
        assert 0 <= element.source_start < element.source_end <= len(text)
        assert element.source_start >= previous_end
        previous_end = element.source_end
        for child in element.children:
            assert element.source_start <= child.source_start
            assert child.source_end <= element.source_end
        _check_siblings(text, element.children)


@pytest.mark.parametrize("parser,text", DOCUMENTS)
def test_spans_nest_and_never_overlap(parser, text):
    result = parser.parse(text)
    assert result.ok
    _check_siblings(text, result.roots)


@pytest.mark.parametrize("parser,text", DOCUMENTS)
def test_ordinals_follow_sibling_order(parser, text):
    result = parser.parse(text)
    for element in result.walk():
        assert [c.ordinal for c in element.children] == list(range(1, len(element.children) + 1))


def test_resolve_is_deterministic_for_an_unchanged_tree():
    tree = MarkupParser().parse(DOCUMENTS[1][1])
    first = resolve(tree, "ul.menu > li:nth-child(2)")
    second = resolve(tree, "ul.menu > li:nth-child(2)")

    assert first is second
    assert first.text == "B"

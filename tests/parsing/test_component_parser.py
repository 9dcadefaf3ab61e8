"""Tests for the tree-sitter JSX/TSX component parser."""

import pytest

from source_sync.errors import ParseError
from source_sync.parsing import (
    EXPRESSION_PLACEHOLDER,
    ComponentParser,
    detect_document_kind,
    get_parser,
    parse_document,
)
from source_sync.parsing.component import grammar_for_path
from source_sync.parsing.elements import DocumentKind


APP = """export function App({ name }) {
  return (
    <div className="app">
      <Header title={name} />
      <p>Hello</p>
      <>
        <span>a</span>
      </>
    </div>
  );
}
"""


@pytest.fixture
def parser():
    return ComponentParser("javascript")


class TestComponentTree:
    def test_fragment_is_transparent(self, parser):
        result = parser.parse(APP)

        assert result.ok
        assert len(result.roots) == 1
        div = result.roots[0]
        assert div.tag_name == "div"
        assert [c.tag_name for c in div.children] == ["Header", "p", "span"]
        assert [c.ordinal for c in div.children] == [1, 2, 3]

    def test_component_references_and_attributes(self, parser):
        div = parser.parse(APP).roots[0]
        header, p, span = div.children

        assert div.attributes["className"] == "app"
        assert div.class_tokens == ["app"]
        assert header.is_component
        assert not p.is_component
        assert header.attributes["title"] == EXPRESSION_PLACEHOLDER
        assert header.close_tag_start is None
        assert p.text == "Hello"

    def test_spans_are_character_offsets(self, parser):
        div = parser.parse(APP).roots[0]
        header, p, _ = div.children

        assert APP[p.source_start:p.source_end] == "<p>Hello</p>"
        assert APP[header.source_start:header.source_end] == "<Header title={name} />"
        assert APP[p.source_start:p.open_tag_end] == "<p>"
        assert p.close_tag_start == APP.index("</p>")
        assert (p.start_line, p.start_column) == (5, 6)

    def test_non_ascii_text_before_element(self, parser):
        text = 'const s = "héllo";\nconst x = <i>ü</i>;\n'
        element = parser.parse(text).roots[0]

        assert text[element.source_start:element.source_end] == "<i>ü</i>"

    def test_boolean_attribute(self, parser):
        element = parser.parse("const x = <input disabled />;").roots[0]
        assert element.attributes == {"disabled": ""}

    def test_elements_anywhere_in_the_file(self, parser):
        text = "const a = <b>1</b>;\nfunction f() { return <i>2</i>; }\n"
        assert [r.tag_name for r in parser.parse(text).roots] == ["b", "i"]


class TestGrammars:
    def test_tsx(self):
        parser = get_parser(DocumentKind.COMPONENT, "Card.tsx")
        result = parser.parse("const A = (p: Props) => <b>x</b>;\n")

        assert parser.grammar == "tsx"
        assert [r.tag_name for r in result.roots] == ["b"]

    def test_grammar_for_path(self):
        assert grammar_for_path("a.jsx") == "javascript"
        assert grammar_for_path("a.ts") == "typescript"
        assert grammar_for_path("a.tsx") == "tsx"
        assert grammar_for_path("a.weird") == "javascript"

    def test_unknown_grammar_rejected(self):
        with pytest.raises(ValueError):
            ComponentParser("cobol")

    def test_detect_document_kind(self):
        assert detect_document_kind("src/App.jsx") == DocumentKind.COMPONENT
        assert detect_document_kind("src/App.TSX") == DocumentKind.COMPONENT
        assert detect_document_kind("index.html") == DocumentKind.MARKUP
        assert detect_document_kind("notes.unknown") == DocumentKind.MARKUP


class TestComponentErrors:
    def test_syntax_error_raises(self, parser):
        with pytest.raises(ParseError) as exc_info:
            parser.parse("function broken( {\n  return <div>;\n")
        assert exc_info.value.line is not None

    def test_parse_document_reports_error(self, parser):
        result = parse_document("function broken( {\n", parser)
        assert not result.ok
        assert result.roots == []

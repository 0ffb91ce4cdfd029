"""Unit tests for the markup, script and markdown chunking strategies."""

from reposearch.config.schema import ChunkingConfig
from reposearch.core.chunking import chunk_file
from reposearch.core.markdown_chunking import MarkdownChunker, find_headings
from reposearch.core.markup_chunking import MarkupChunker, inner_text
from reposearch.core.script_chunking import ScriptChunker
from reposearch.entities import ChunkKind, SymbolKind

PAGE = """<html>
<head><title>Ben Tossell</title></head>
<body>
<header>
  <h1>Site</h1>
</header>
<script>
function go() {}
</script>
</body>
</html>
"""

SCRIPT = """import React from 'react';
const API_URL = '/api';

function renderHeader(title) {
  return title;
}

class Widget extends Base {
}
"""

README = """Intro line
# Title
text
```
# not a heading
```
## Usage C#
more
"""


class TestMarkupChunker:
    def test_elements_become_symbol_chunks(self):
        chunks = {c.id: c for c in MarkupChunker().chunk(PAGE, "p.html", "html")}

        assert set(chunks) == {
            "p.html:2-2:element",
            "p.html:5-5:element",
            "p.html:4-6:element",
            "p.html:7-9:block",
        }
        title = chunks["p.html:2-2:element"]
        assert title.kind == ChunkKind.SYMBOL
        assert title.content == "<title>Ben Tossell</title>"
        assert title.symbols[0].name == "Ben Tossell"
        assert title.symbols[0].kind == SymbolKind.ELEMENT

    def test_header_symbol_uses_inner_text(self):
        chunks = {c.id: c for c in MarkupChunker().chunk(PAGE, "p.html", "html")}
        header = chunks["p.html:4-6:element"]

        assert header.symbols[0].name == "Site"
        assert header.symbols[0].context.startswith("<header>")

    def test_script_is_block_with_function_symbol(self):
        chunks = {c.id: c for c in MarkupChunker().chunk(PAGE, "p.html", "html")}
        script = chunks["p.html:7-9:block"]

        assert script.kind == ChunkKind.BLOCK
        assert script.symbols[0].kind == SymbolKind.FUNCTION
        assert script.symbols[0].name == "function go() {}"

    def test_symbol_name_is_truncated(self):
        text = f"<h2>{'x' * 80}</h2>"
        chunks = MarkupChunker(ChunkingConfig(symbol_name_chars=50)).chunk(text, "a.html", "html")

        assert len(chunks[0].symbols[0].name) == 50

    def test_empty_element_has_no_symbol(self):
        chunks = MarkupChunker().chunk("<nav>  </nav>", "a.html", "html")

        assert len(chunks) == 1
        assert chunks[0].symbols == []

    def test_gap_fill_covers_remaining_lines(self):
        ids = {c.id for c in chunk_file(PAGE, "p.html")}

        assert {"p.html:1-1:block", "p.html:3-3:block", "p.html:10-11:block"} <= ids

    def test_inner_text(self):
        assert inner_text("<a href='/'>Home</a>\n  <a>About</a>") == "Home About"


class TestScriptChunker:
    def test_declarations_with_lookahead(self):
        chunks = {c.id: c for c in ScriptChunker().chunk(SCRIPT, "app.js", "javascript")}

        assert set(chunks) == {
            "app.js:4-9:function",
            "app.js:8-9:class",
            "app.js:2-9:variable",
            "app.js:1-9:import",
        }
        assert chunks["app.js:4-9:function"].symbols[0].name == "renderHeader"
        assert chunks["app.js:8-9:class"].symbols[0].name == "Widget"
        assert chunks["app.js:2-9:variable"].symbols[0].name == "API_URL"

    def test_import_chunk_names_module(self):
        chunks = {c.id: c for c in ScriptChunker().chunk(SCRIPT, "app.js", "javascript")}
        imported = chunks["app.js:1-9:import"]

        assert imported.kind == ChunkKind.IMPORT
        assert imported.symbols[0].name == "react"
        assert imported.symbols[0].kind == SymbolKind.IMPORT

    def test_lookahead_limits_span(self):
        text = "function a() {\n" + "  x();\n" * 30 + "}\n"
        chunks = ScriptChunker(ChunkingConfig(lookahead_lines=10)).chunk(text, "a.js", "javascript")

        assert (chunks[0].start_line, chunks[0].end_line) == (1, 11)

    def test_symbol_column(self):
        chunks = ScriptChunker().chunk("export function load() {\n}\n", "a.js", "javascript")

        assert chunks[0].symbols[0].location.column == len("export ")

    def test_identifiers_containing_keywords_are_not_declarations(self):
        assert ScriptChunker().chunk("myfunction(x);\nconstant = 1;\n", "a.js", "javascript") == []


class TestMarkdownChunker:
    def test_find_headings_skips_fenced_code(self):
        assert find_headings(README.splitlines()) == [(2, "Title"), (7, "Usage C#")]

    def test_sections_run_to_next_heading(self):
        chunks = MarkdownChunker().chunk(README, "r.md", "markdown")

        assert [c.id for c in chunks] == ["r.md:2-6:section", "r.md:7-8:section"]
        assert chunks[1].symbols[0].name == "Usage C#"
        assert chunks[1].symbols[0].kind == SymbolKind.ELEMENT

    def test_closing_hashes_are_stripped(self):
        assert find_headings(["## Setup ##"]) == [(1, "Setup")]

    def test_preamble_is_gap_filled(self):
        ids = [c.id for c in chunk_file(README, "r.md")]

        assert "r.md:1-1:block" in ids

    def test_section_context_is_bounded(self):
        text = "# Long\n" + "word " * 200 + "\n"
        chunks = MarkdownChunker(ChunkingConfig(section_context_chars=200)).chunk(text, "l.md", "markdown")

        assert len(chunks[0].symbols[0].context) == 200

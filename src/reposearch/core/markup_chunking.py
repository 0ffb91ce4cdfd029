"""Markup (HTML) chunking.

Titles, headings, headers and navigation blocks become element chunks; inline
scripts become block chunks. The matched markup is the chunk content, so
element chunks may overlap (a heading inside a header yields both).
"""

import re

from reposearch.core.chunking import ChunkingStrategy, line_at, split_lines
from reposearch.entities import Chunk, ChunkKind, Symbol, SymbolKind, SymbolLocation

_FLAGS = re.IGNORECASE | re.DOTALL

# (pattern, chunk kind, id label, symbol kind)
ELEMENT_PATTERNS = [
    (re.compile(r"<title[^>]*>(.*?)</title>", _FLAGS), ChunkKind.SYMBOL, "element", SymbolKind.ELEMENT),
    (re.compile(r"<h[1-6][^>]*>(.*?)</h[1-6]>", _FLAGS), ChunkKind.SYMBOL, "element", SymbolKind.ELEMENT),
    (re.compile(r"<header[^>]*>(.*?)</header>", _FLAGS), ChunkKind.SYMBOL, "element", SymbolKind.ELEMENT),
    (re.compile(r"<nav[^>]*>(.*?)</nav>", _FLAGS), ChunkKind.SYMBOL, "element", SymbolKind.ELEMENT),
    (re.compile(r"<script[^>]*>(.*?)</script>", _FLAGS), ChunkKind.BLOCK, "block", SymbolKind.FUNCTION),
]

_TAG = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")


def inner_text(markup: str) -> str:
    """Text content of a markup fragment: tags removed, whitespace collapsed."""
    return _WHITESPACE.sub(" ", _TAG.sub(" ", markup)).strip()


class MarkupChunker(ChunkingStrategy):
    """Pattern chunker for HTML files."""

    def chunk(self, text: str, path: str, language: str) -> list[Chunk]:
        lines = split_lines(text)
        chunks: list[Chunk] = []

        for pattern, kind, label, symbol_kind in ELEMENT_PATTERNS:
            for match in pattern.finditer(text):
                matched = match.group(0)
                start_line = line_at(text, match.start())
                end_line = start_line + matched.count("\n")

                chunk = self.make_chunk(
                    path, language, lines, start_line, end_line, label, kind=kind, content=matched
                )
                name = inner_text(match.group(1))[: self.config.symbol_name_chars]
                if name:
                    chunk.symbols.append(
                        Symbol(
                            name=name,
                            kind=symbol_kind,
                            location=SymbolLocation(line=start_line, end_line=end_line),
                            context=matched[: self.config.symbol_context_chars],
                        )
                    )
                chunks.append(chunk)

        return chunks

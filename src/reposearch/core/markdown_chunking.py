"""Markdown chunking by heading sections.

Each ATX heading (``#`` to ``######``) starts a section that runs up to the next
heading. Headings inside fenced code blocks are ignored. Text before the first
heading is left to the gap fill in ``chunk_file``.
"""

import re

from reposearch.core.chunking import ChunkingStrategy, split_lines
from reposearch.entities import Chunk, Symbol, SymbolKind, SymbolLocation

_HEADING = re.compile(r"^#{1,6}\s+(.+?)(?:\s+#+)?\s*$")
_FENCE = re.compile(r"^\s*(```|~~~)")


def find_headings(lines: list[str]) -> list[tuple[int, str]]:
    """Return (1-based line, heading text) for every heading outside code fences."""
    headings = []
    fence = None
    for number, line in enumerate(lines, start=1):
        fence_match = _FENCE.match(line)
        if fence_match:
            marker = fence_match.group(1)
            if fence is None:
                fence = marker
            elif fence == marker:
                fence = None
            continue
        if fence is not None:
            continue
        heading = _HEADING.match(line)
        if heading:
            headings.append((number, heading.group(1)))
    return headings


class MarkdownChunker(ChunkingStrategy):
    """Section chunker for Markdown documents."""

    def chunk(self, text: str, path: str, language: str) -> list[Chunk]:
        lines = split_lines(text)
        headings = find_headings(lines)
        chunks: list[Chunk] = []

        for index, (start_line, title) in enumerate(headings):
            if index + 1 < len(headings):
                end_line = headings[index + 1][0] - 1
            else:
                end_line = len(lines)

            chunk = self.make_chunk(path, language, lines, start_line, end_line, "section")
            chunk.symbols.append(
                Symbol(
                    name=title,
                    kind=SymbolKind.ELEMENT,
                    location=SymbolLocation(
                        line=start_line,
                        end_line=start_line,
                        end_column=len(lines[start_line - 1]),
                    ),
                    context=chunk.content[: self.config.section_context_chars],
                )
            )
            chunks.append(chunk)

        return chunks

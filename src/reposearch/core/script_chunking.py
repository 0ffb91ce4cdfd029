"""Script (JavaScript / TypeScript) chunking.

Declarations are found with patterns rather than a grammar. Each match becomes
a chunk made of the declaring line plus a fixed lookahead of following lines.
"""

import re

from reposearch.core.chunking import ChunkingStrategy, line_at, split_lines
from reposearch.entities import Chunk, ChunkKind, Symbol, SymbolKind, SymbolLocation

DECLARATION_PATTERNS = [
    (re.compile(r"\bfunction\s+(\w+)\s*\([^)]*\)\s*\{"), SymbolKind.FUNCTION),
    (re.compile(r"\bclass\s+(\w+)(?:\s+extends\s+[\w.]+)?\s*\{"), SymbolKind.CLASS),
    (re.compile(r"\bconst\s+(\w+)\s*="), SymbolKind.VARIABLE),
    (re.compile(r"\bimport\b.*?\bfrom\s+['\"]([^'\"]+)['\"]"), SymbolKind.IMPORT),
]


class ScriptChunker(ChunkingStrategy):
    """Pattern chunker for JavaScript and TypeScript sources."""

    def chunk(self, text: str, path: str, language: str) -> list[Chunk]:
        lines = split_lines(text)
        lookahead = self.config.lookahead_lines
        chunks: list[Chunk] = []

        for pattern, symbol_kind in DECLARATION_PATTERNS:
            for match in pattern.finditer(text):
                start_line = line_at(text, match.start())
                end_line = min(start_line + lookahead, len(lines))
                column = match.start() - (text.rfind("\n", 0, match.start()) + 1)
                kind = ChunkKind.IMPORT if symbol_kind == SymbolKind.IMPORT else ChunkKind.SYMBOL

                chunk = self.make_chunk(
                    path, language, lines, start_line, end_line, symbol_kind.value, kind=kind
                )
                chunk.symbols.append(
                    Symbol(
                        name=match.group(1),
                        kind=symbol_kind,
                        location=SymbolLocation(line=start_line, column=column, end_line=end_line),
                        context=chunk.content[: self.config.symbol_context_chars],
                    )
                )
                chunks.append(chunk)

        return chunks

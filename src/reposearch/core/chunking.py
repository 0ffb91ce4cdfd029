"""Source file chunking.

Why this exists:
- Splits a file into independently retrievable chunks with line spans
- Extracts light-weight symbols (functions, classes, headings, elements)
- Keeps per-language logic behind a pluggable strategy interface

How to extend:
- Subclass ChunkingStrategy and register it for one or more languages
- A real parser per language can replace a pattern strategy without touching
  storage or ranking

Every line of a file ends up in at least one chunk: pattern strategies are
followed by a gap fill that windows whatever they did not cover.
"""

from abc import ABC, abstractmethod
from pathlib import PurePosixPath
from typing import Optional

from reposearch.config.schema import ChunkingConfig
from reposearch.core.tokens import term_frequencies
from reposearch.entities import Chunk, ChunkKind, FileRole, make_chunk_id
from reposearch.observability.logging import get_logger

logger = get_logger(__name__)

LANGUAGE_BY_EXTENSION = {
    ".html": "html",
    ".htm": "html",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".css": "css",
    ".scss": "css",
    ".sass": "css",
    ".md": "markdown",
    ".markdown": "markdown",
    ".json": "json",
    ".yml": "yaml",
    ".yaml": "yaml",
    ".toml": "toml",
    ".xml": "xml",
    ".py": "python",
    ".rb": "ruby",
    ".go": "go",
    ".rs": "rust",
    ".java": "java",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".php": "php",
}

MANIFEST_FILES = frozenset(
    {
        "package.json",
        "pyproject.toml",
        "setup.py",
        "requirements.txt",
        "Cargo.toml",
        "go.mod",
        "Gemfile",
        "composer.json",
        "pom.xml",
        "build.gradle",
    }
)


def detect_language(path: str) -> str:
    """Language tag for a file path, by extension. Unknown files are "text"."""
    return LANGUAGE_BY_EXTENSION.get(PurePosixPath(path).suffix.lower(), "text")


def classify_file_role(path: str) -> FileRole:
    """Coarse role of a file, used by the ranking heuristics."""
    posix = PurePosixPath(path)
    name = posix.name
    ext = posix.suffix.lower()
    padded = f"/{path}"

    if ext in (".html", ".htm"):
        return FileRole.PAGE
    if ext in (".css", ".scss", ".sass"):
        return FileRole.STYLE
    if name in ("layout.tsx", "page.tsx", "layout.jsx", "page.jsx"):
        return FileRole.PAGE
    if ext in (".tsx", ".jsx"):
        return FileRole.COMPONENT
    if ext in (".ts", ".js", ".mjs", ".cjs"):
        if "/api/" in padded or "route" in name:
            return FileRole.API
        if "/lib/" in padded or "/utils/" in padded:
            return FileRole.UTILITY
        return FileRole.SCRIPT
    if name in MANIFEST_FILES:
        return FileRole.CONFIG
    if ext == ".json":
        return FileRole.DATA
    if ext in (".yml", ".yaml", ".toml"):
        return FileRole.CONFIG
    if ext == ".xml":
        return FileRole.DATA
    if ext in (".md", ".markdown"):
        return FileRole.DOCUMENTATION
    if ext in (".php", ".py", ".rb", ".go", ".rs", ".java", ".c", ".h", ".cpp"):
        return FileRole.SCRIPT
    return FileRole.OTHER


def split_lines(text: str) -> list[str]:
    """Split text into lines; a trailing newline does not add an empty line."""
    lines = text.split("\n")
    if len(lines) > 1 and lines[-1] == "":
        lines.pop()
    return lines


def line_at(text: str, offset: int) -> int:
    """1-based line number of a character offset."""
    return text.count("\n", 0, offset) + 1


class ChunkingStrategy(ABC):
    """Turns one file's text into chunks.

    Strategies report spans and symbols; ``chunk_file`` fills in roles, term
    frequencies and coverage afterwards.
    """

    def __init__(self, config: Optional[ChunkingConfig] = None):
        self.config = config or ChunkingConfig()

    @abstractmethod
    def chunk(self, text: str, path: str, language: str) -> list[Chunk]:
        """Chunk a file.

        Args:
            text: Full file text
            path: Repository-relative path
            language: Detected language tag

        Returns:
            Chunks in discovery order (may overlap, may leave gaps)
        """

    def make_chunk(
        self,
        path: str,
        language: str,
        lines: list[str],
        start_line: int,
        end_line: int,
        label: str,
        kind: ChunkKind = ChunkKind.BLOCK,
        content: Optional[str] = None,
    ) -> Chunk:
        if content is None:
            content = "\n".join(lines[start_line - 1 : end_line])
        return Chunk(
            id=make_chunk_id(path, start_line, end_line, label),
            file_path=path,
            content=content,
            kind=kind,
            language=language,
            start_line=start_line,
            end_line=end_line,
        )


class LineWindowChunker(ChunkingStrategy):
    """Generic fallback: non-overlapping windows of ``window_lines`` lines."""

    def chunk(self, text: str, path: str, language: str) -> list[Chunk]:
        lines = split_lines(text)
        return self.window(path, language, lines, 1, len(lines))

    def window(
        self, path: str, language: str, lines: list[str], first: int, last: int
    ) -> list[Chunk]:
        """Window the inclusive 1-based line range [first, last]."""
        size = self.config.window_lines
        chunks = []
        for start in range(first, last + 1, size):
            end = min(start + size - 1, last)
            chunks.append(self.make_chunk(path, language, lines, start, end, ChunkKind.BLOCK.value))
        return chunks


def fill_uncovered_lines(
    chunks: list[Chunk],
    lines: list[str],
    path: str,
    language: str,
    config: ChunkingConfig,
) -> list[Chunk]:
    """Append generic block chunks for every run of lines no chunk covers."""
    covered = [False] * (len(lines) + 1)
    for chunk in chunks:
        for line in range(chunk.start_line, min(chunk.end_line, len(lines)) + 1):
            covered[line] = True

    windower = LineWindowChunker(config)
    filled = list(chunks)
    run_start = None
    for line in range(1, len(lines) + 2):
        is_gap = line <= len(lines) and not covered[line]
        if is_gap and run_start is None:
            run_start = line
        elif not is_gap and run_start is not None:
            filled.extend(windower.window(path, language, lines, run_start, line - 1))
            run_start = None
    return filled


def merge_duplicate_chunks(chunks: list[Chunk]) -> list[Chunk]:
    """Merge chunks sharing an id: first content wins, symbols are appended."""
    merged: dict[str, Chunk] = {}
    for chunk in chunks:
        existing = merged.get(chunk.id)
        if existing is None:
            merged[chunk.id] = chunk
            continue
        known = {(s.name, s.kind, s.location.line) for s in existing.symbols}
        for symbol in chunk.symbols:
            if (symbol.name, symbol.kind, symbol.location.line) not in known:
                existing.symbols.append(symbol)
    return list(merged.values())


def _builtin_strategies() -> dict[str, type[ChunkingStrategy]]:
    from reposearch.core.markdown_chunking import MarkdownChunker
    from reposearch.core.markup_chunking import MarkupChunker
    from reposearch.core.script_chunking import ScriptChunker

    return {
        "html": MarkupChunker,
        "javascript": ScriptChunker,
        "typescript": ScriptChunker,
        "markdown": MarkdownChunker,
    }


_registry: dict[str, type[ChunkingStrategy]] = {}


def _strategies() -> dict[str, type[ChunkingStrategy]]:
    if not _registry:
        _registry.update(_builtin_strategies())
    return _registry


def register_strategy(language: str, strategy: type[ChunkingStrategy]) -> None:
    """Use ``strategy`` for every file detected as ``language``."""
    _strategies()[language] = strategy


def get_strategy(language: str, config: Optional[ChunkingConfig] = None) -> ChunkingStrategy:
    """Strategy instance for a language, falling back to line windows."""
    strategy_class = _strategies().get(language, LineWindowChunker)
    return strategy_class(config)


def chunk_file(
    text: str,
    path: str,
    language: Optional[str] = None,
    config: Optional[ChunkingConfig] = None,
) -> list[Chunk]:
    """Chunk one file.

    Args:
        text: Full file text
        path: Repository-relative path, used in chunk ids
        language: Language tag (detected from the path when omitted)
        config: Chunking configuration

    Returns:
        Chunks covering every line of the file, with file role, symbol
        back-references and term frequencies populated. Empty or
        whitespace-only files produce no chunks.
    """
    if not text or not text.strip():
        return []

    config = config or ChunkingConfig()
    language = language or detect_language(path)
    strategy = get_strategy(language, config)
    lines = split_lines(text)

    chunks = strategy.chunk(text, path, language)
    if not chunks:
        chunks = LineWindowChunker(config).chunk(text, path, language)
    chunks = fill_uncovered_lines(chunks, lines, path, language, config)
    chunks = merge_duplicate_chunks(chunks)

    role = classify_file_role(path)
    for chunk in chunks:
        chunk.file_role = role
        chunk.term_frequencies = term_frequencies(chunk.content)
        for symbol in chunk.symbols:
            symbol.chunk_id = chunk.id

    logger.debug(
        "file_chunked",
        path=path,
        language=language,
        strategy=type(strategy).__name__,
        chunk_count=len(chunks),
    )
    return chunks

"""Entities - Domain models for the code-search index.

This module contains pure domain entities without business logic:
- Repository: Per-repository record of the indexed snapshot
- Chunk: An independently retrievable span of a source file
- Symbol: A named structural element inside a chunk
- SearchResult: A ranked chunk with per-signal scores
- IndexStats: Totals and breakdowns for a snapshot
"""

from reposearch.entities.chunk import Chunk, ChunkKind, FileRole, make_chunk_id
from reposearch.entities.repository import IndexStatus, Repository
from reposearch.entities.search_result import SearchResult
from reposearch.entities.stats import IndexStats
from reposearch.entities.symbol import Symbol, SymbolKind, SymbolLocation

__all__ = [
    "Chunk",
    "ChunkKind",
    "FileRole",
    "IndexStats",
    "IndexStatus",
    "Repository",
    "SearchResult",
    "Symbol",
    "SymbolKind",
    "SymbolLocation",
    "make_chunk_id",
]

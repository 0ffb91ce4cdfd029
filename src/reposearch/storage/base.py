"""Abstract base classes for index storage backends.

Why this exists:
- Separates the four index concerns: repository metadata and chunks, lexical
  postings, vectors and symbols
- Allows swapping backends (in-memory for tests, SQLite for persistence,
  Chroma for vectors)
- Keeps every read and write scoped to one snapshot generation

How to extend:
1. Subclass the relevant store ABC
2. Implement all abstract methods
3. Wire it up in reposearch.storage.create_index_stores
4. Add optional dependencies to pyproject.toml

Generations: the indexer stages a new snapshot under ``generation + 1`` and
flips ``Repository.generation`` when done. Stores never decide which
generation is current; callers always pass it explicitly.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel

from reposearch.entities import Chunk, Repository, Symbol


class StorageConfig(BaseModel):
    """Base configuration for storage backends."""

    store_type: str
    connection_string: str | None = None
    collection_name: str = "reposearch"
    persist_directory: str | None = None
    extra_params: dict[str, Any] = {}


@dataclass
class LexicalHit:
    """One lexical search result."""

    chunk_id: str
    score: float
    matched_terms: list[str] = field(default_factory=list)


class GenerationScoped(ABC):
    """Shared lifecycle and generation management for index stores."""

    def __init__(self, config: StorageConfig) -> None:
        self.config = config

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables, collections or indices."""

    @abstractmethod
    async def delete_generation(self, repository_id: UUID, generation: int) -> int:
        """Delete everything stored for one generation.

        Returns:
            Number of records deleted
        """

    @abstractmethod
    async def purge_generations(self, repository_id: UUID, older_than: Optional[int] = None) -> int:
        """Delete every generation of a repository below ``older_than``.

        Args:
            repository_id: Repository whose data is purged
            older_than: Oldest generation to keep; None deletes all of them

        Returns:
            Number of records deleted
        """

    @abstractmethod
    async def close(self) -> None:
        """Close connections and cleanup resources."""


class MetadataStore(GenerationScoped):
    """Repository records and chunk content.

    Chunks are returned without their embedding; vectors live in the
    VectorStore.
    """

    @abstractmethod
    async def add_repository(self, repository: Repository) -> None:
        """Store a new repository record."""

    @abstractmethod
    async def update_repository(self, repository: Repository) -> None:
        """Replace a repository record.

        This single write is the commit point of an indexing pass.
        """

    @abstractmethod
    async def get_repository(self, repository_id: UUID) -> Optional[Repository]:
        """Retrieve a repository by ID."""

    @abstractmethod
    async def get_repository_by_name(self, name: str) -> Optional[Repository]:
        """Retrieve a repository by name."""

    @abstractmethod
    async def list_repositories(self) -> list[Repository]:
        """List all repositories, ordered by name."""

    @abstractmethod
    async def delete_repository(self, repository_id: UUID) -> bool:
        """Delete a repository record and all of its chunks.

        Returns:
            True if deleted, False if not found
        """

    @abstractmethod
    async def add_chunks(self, repository_id: UUID, generation: int, chunks: list[Chunk]) -> None:
        """Store chunks under a generation."""

    @abstractmethod
    async def get_chunks(
        self, repository_id: UUID, generation: int, chunk_ids: list[str]
    ) -> dict[str, Chunk]:
        """Load chunks by id; unknown ids are absent from the result."""

    @abstractmethod
    async def list_chunks(self, repository_id: UUID, generation: int) -> list[Chunk]:
        """All chunks of a generation in insertion order."""

    @abstractmethod
    async def count_chunks(self, repository_id: UUID, generation: int) -> int:
        """Number of chunks in a generation."""

    @abstractmethod
    async def chunk_breakdown(self, repository_id: UUID, generation: int) -> dict[str, dict[str, int]]:
        """Chunk counts grouped by ``kind``, ``language`` and ``role``."""


class LexicalIndex(GenerationScoped):
    """Term-based ranking over chunk content."""

    @abstractmethod
    async def index_chunks(self, repository_id: UUID, generation: int, chunks: list[Chunk]) -> None:
        """Add chunks to the index; a chunk id already present is replaced."""

    @abstractmethod
    async def search(
        self, repository_id: UUID, generation: int, query: str, limit: int = 50
    ) -> list[LexicalHit]:
        """Rank chunks for a query, best first; ties keep insertion order."""

    @abstractmethod
    async def term_frequencies(
        self, repository_id: UUID, generation: int, chunk_id: str
    ) -> Optional[dict[str, int]]:
        """Term counts of one indexed chunk, None if unknown."""


class VectorStore(GenerationScoped):
    """Chunk embeddings and cosine similarity search."""

    @abstractmethod
    async def put(self, repository_id: UUID, generation: int, chunk_id: str, vector: list[float]) -> None:
        """Store a chunk vector. Empty vectors are ignored."""

    async def put_many(
        self, repository_id: UUID, generation: int, vectors: list[tuple[str, list[float]]]
    ) -> None:
        """Store several chunk vectors."""
        for chunk_id, vector in vectors:
            await self.put(repository_id, generation, chunk_id, vector)

    @abstractmethod
    async def search(
        self,
        repository_id: UUID,
        generation: int,
        query_vector: list[float],
        min_similarity: float = 0.1,
        limit: Optional[int] = None,
    ) -> list[tuple[str, float]]:
        """Chunks with similarity strictly above ``min_similarity``, best first."""

    @abstractmethod
    async def count(self, repository_id: UUID, generation: int) -> int:
        """Number of vectors stored for a generation."""


class SymbolStore(GenerationScoped):
    """Extracted symbols and structural search."""

    @abstractmethod
    async def put(self, repository_id: UUID, generation: int, chunk_id: str, symbols: list[Symbol]) -> None:
        """Store the symbols of one chunk."""

    @abstractmethod
    async def search(self, repository_id: UUID, generation: int, query: str) -> list[tuple[str, float]]:
        """Structural scores per chunk, best first."""

    @abstractmethod
    async def list_symbols(self, repository_id: UUID, generation: int) -> list[Symbol]:
        """Every symbol stored for a generation."""


class StorageError(Exception):
    """Base exception for storage errors."""

    def __init__(self, message: str, storage_type: str, original_error: Exception | None = None):
        self.message = message
        self.storage_type = storage_type
        self.original_error = original_error
        super().__init__(self.message)

"""In-memory storage implementations for testing and development.

These implementations keep all data in process memory and are useful for:
- Testing without external dependencies
- One-shot CLI runs that do not need persistence
- Small repositories
"""

from collections import Counter, defaultdict
from typing import Optional
from uuid import UUID

from reposearch.core.bm25 import BM25Scorer
from reposearch.core.similarity import cosine_similarity
from reposearch.core.structural import rank_structural, score_symbols
from reposearch.entities import Chunk, Repository, Symbol
from reposearch.storage.base import (
    LexicalHit,
    LexicalIndex,
    MetadataStore,
    StorageConfig,
    SymbolStore,
    VectorStore,
)

Key = tuple[UUID, int]


def _purge(collections: dict, repository_id: UUID, older_than: Optional[int], size=len) -> int:
    deleted = 0
    for key in [
        k for k in collections if k[0] == repository_id and (older_than is None or k[1] < older_than)
    ]:
        deleted += size(collections.pop(key))
    return deleted


class InMemoryMetadataStore(MetadataStore):
    """In-memory repository and chunk store."""

    def __init__(self, config: StorageConfig) -> None:
        super().__init__(config)
        self.repositories: dict[UUID, Repository] = {}
        self.chunks: dict[Key, dict[str, Chunk]] = {}

    async def initialize(self) -> None:
        pass

    async def add_repository(self, repository: Repository) -> None:
        self.repositories[repository.id] = repository.model_copy(deep=True)

    async def update_repository(self, repository: Repository) -> None:
        self.repositories[repository.id] = repository.model_copy(deep=True)

    async def get_repository(self, repository_id: UUID) -> Optional[Repository]:
        repository = self.repositories.get(repository_id)
        return repository.model_copy(deep=True) if repository else None

    async def get_repository_by_name(self, name: str) -> Optional[Repository]:
        for repository in self.repositories.values():
            if repository.name == name:
                return repository.model_copy(deep=True)
        return None

    async def list_repositories(self) -> list[Repository]:
        return [r.model_copy(deep=True) for r in sorted(self.repositories.values(), key=lambda r: r.name)]

    async def delete_repository(self, repository_id: UUID) -> bool:
        if repository_id not in self.repositories:
            return False
        await self.purge_generations(repository_id)
        del self.repositories[repository_id]
        return True

    async def add_chunks(self, repository_id: UUID, generation: int, chunks: list[Chunk]) -> None:
        collection = self.chunks.setdefault((repository_id, generation), {})
        for chunk in chunks:
            stored = chunk.model_copy(deep=True, update={"repository_id": repository_id, "embedding": []})
            collection[chunk.id] = stored

    async def get_chunks(
        self, repository_id: UUID, generation: int, chunk_ids: list[str]
    ) -> dict[str, Chunk]:
        collection = self.chunks.get((repository_id, generation), {})
        return {cid: collection[cid].model_copy(deep=True) for cid in chunk_ids if cid in collection}

    async def list_chunks(self, repository_id: UUID, generation: int) -> list[Chunk]:
        collection = self.chunks.get((repository_id, generation), {})
        return [chunk.model_copy(deep=True) for chunk in collection.values()]

    async def count_chunks(self, repository_id: UUID, generation: int) -> int:
        return len(self.chunks.get((repository_id, generation), {}))

    async def chunk_breakdown(self, repository_id: UUID, generation: int) -> dict[str, dict[str, int]]:
        collection = self.chunks.get((repository_id, generation), {}).values()
        return {
            "kind": dict(Counter(c.kind.value for c in collection)),
            "language": dict(Counter(c.language for c in collection)),
            "role": dict(Counter(c.file_role.value for c in collection)),
        }

    async def delete_generation(self, repository_id: UUID, generation: int) -> int:
        return len(self.chunks.pop((repository_id, generation), {}))

    async def purge_generations(self, repository_id: UUID, older_than: Optional[int] = None) -> int:
        return _purge(self.chunks, repository_id, older_than)

    async def close(self) -> None:
        pass


class InMemoryLexicalIndex(LexicalIndex):
    """BM25 index kept per repository generation."""

    def __init__(self, config: StorageConfig) -> None:
        super().__init__(config)
        self.k1 = float(config.extra_params.get("bm25_k1", 1.2))
        self.b = float(config.extra_params.get("bm25_b", 0.75))
        self.indexes: dict[Key, BM25Scorer] = {}

    async def initialize(self) -> None:
        pass

    async def index_chunks(self, repository_id: UUID, generation: int, chunks: list[Chunk]) -> None:
        scorer = self.indexes.setdefault((repository_id, generation), BM25Scorer(self.k1, self.b))
        for chunk in chunks:
            scorer.add(chunk.id, chunk.term_frequencies)

    async def search(
        self, repository_id: UUID, generation: int, query: str, limit: int = 50
    ) -> list[LexicalHit]:
        scorer = self.indexes.get((repository_id, generation))
        if scorer is None:
            return []
        return [
            LexicalHit(chunk_id=doc_id, score=score, matched_terms=matched)
            for doc_id, score, matched in scorer.search(query, limit)
        ]

    async def term_frequencies(
        self, repository_id: UUID, generation: int, chunk_id: str
    ) -> Optional[dict[str, int]]:
        scorer = self.indexes.get((repository_id, generation))
        if scorer is None or chunk_id not in scorer.term_frequencies:
            return None
        return dict(scorer.term_frequencies[chunk_id])

    async def delete_generation(self, repository_id: UUID, generation: int) -> int:
        scorer = self.indexes.pop((repository_id, generation), None)
        return scorer.doc_count if scorer else 0

    async def purge_generations(self, repository_id: UUID, older_than: Optional[int] = None) -> int:
        return _purge(self.indexes, repository_id, older_than, size=lambda scorer: scorer.doc_count)

    async def close(self) -> None:
        pass


class InMemoryVectorStore(VectorStore):
    """In-memory vector store with brute-force cosine search."""

    def __init__(self, config: StorageConfig) -> None:
        super().__init__(config)
        self.vectors: dict[Key, dict[str, list[float]]] = {}

    async def initialize(self) -> None:
        pass

    async def put(self, repository_id: UUID, generation: int, chunk_id: str, vector: list[float]) -> None:
        if not vector:
            return
        self.vectors.setdefault((repository_id, generation), {})[chunk_id] = list(vector)

    async def search(
        self,
        repository_id: UUID,
        generation: int,
        query_vector: list[float],
        min_similarity: float = 0.1,
        limit: Optional[int] = None,
    ) -> list[tuple[str, float]]:
        if not query_vector:
            return []
        results = []
        for chunk_id, vector in self.vectors.get((repository_id, generation), {}).items():
            similarity = cosine_similarity(query_vector, vector)
            if similarity > min_similarity:
                results.append((chunk_id, similarity))
        results.sort(key=lambda item: (-item[1], item[0]))
        return results[:limit] if limit else results

    async def count(self, repository_id: UUID, generation: int) -> int:
        return len(self.vectors.get((repository_id, generation), {}))

    async def delete_generation(self, repository_id: UUID, generation: int) -> int:
        return len(self.vectors.pop((repository_id, generation), {}))

    async def purge_generations(self, repository_id: UUID, older_than: Optional[int] = None) -> int:
        return _purge(self.vectors, repository_id, older_than)

    async def close(self) -> None:
        pass


class InMemorySymbolStore(SymbolStore):
    """In-memory symbol store; structural scoring runs over every stored symbol."""

    def __init__(self, config: StorageConfig) -> None:
        super().__init__(config)
        self.symbols: dict[Key, dict[str, list[Symbol]]] = defaultdict(dict)

    async def initialize(self) -> None:
        pass

    async def put(self, repository_id: UUID, generation: int, chunk_id: str, symbols: list[Symbol]) -> None:
        if not symbols:
            return
        self.symbols[(repository_id, generation)][chunk_id] = [
            symbol.model_copy(update={"chunk_id": chunk_id}) for symbol in symbols
        ]

    async def list_symbols(self, repository_id: UUID, generation: int) -> list[Symbol]:
        by_chunk = self.symbols.get((repository_id, generation), {})
        return [symbol for symbols in by_chunk.values() for symbol in symbols]

    async def search(self, repository_id: UUID, generation: int, query: str) -> list[tuple[str, float]]:
        symbols = await self.list_symbols(repository_id, generation)
        return rank_structural(score_symbols(symbols, query))

    async def delete_generation(self, repository_id: UUID, generation: int) -> int:
        by_chunk = self.symbols.pop((repository_id, generation), {})
        return sum(len(symbols) for symbols in by_chunk.values())

    async def purge_generations(self, repository_id: UUID, older_than: Optional[int] = None) -> int:
        return _purge(
            self.symbols,
            repository_id,
            older_than,
            size=lambda by_chunk: sum(len(symbols) for symbols in by_chunk.values()),
        )

    async def close(self) -> None:
        pass

"""Chroma vector store implementation.

This module provides a persistent vector backend using ChromaDB. Each
repository gets its own collection (cosine space); the snapshot generation is
stored as record metadata and every query filters on it.

Trade-offs:
- Approximate nearest neighbour search (HNSW) instead of a full scan
- Requires the optional ``chroma`` extra
- The Chroma client is synchronous; calls are made directly from async code
"""

import os
import re
from typing import Any, Optional
from uuid import UUID

from reposearch.observability.logging import get_logger
from reposearch.storage.base import StorageConfig, StorageError, VectorStore

logger = get_logger(__name__)


def sanitize_collection_name(name: str) -> str:
    """Sanitize collection name for Chroma compatibility.

    Chroma collection names must:
    - Be 3-63 characters long
    - Start and end with alphanumeric
    - Contain only alphanumeric, underscores, or hyphens
    """
    sanitized = re.sub(r"[^a-zA-Z0-9_-]", "_", name)
    if sanitized and not sanitized[0].isalnum():
        sanitized = "c" + sanitized
    if sanitized and not sanitized[-1].isalnum():
        sanitized = sanitized + "0"
    if len(sanitized) < 3:
        sanitized = sanitized + "_default"
    if len(sanitized) > 63:
        sanitized = sanitized[:63]
    return sanitized


class ChromaVectorStore(VectorStore):
    """Chroma backed vector store.

    Example:
        config = StorageConfig(
            store_type="sqlite",
            collection_name="reposearch",
            persist_directory="~/.reposearch/chroma",
        )
        store = ChromaVectorStore(config)
        await store.initialize()
    """

    def __init__(self, config: StorageConfig) -> None:
        super().__init__(config)
        persist_dir = config.persist_directory or config.extra_params.get(
            "persist_directory", "~/.reposearch/chroma"
        )
        self.persist_directory = os.path.expanduser(persist_dir)
        self.base_collection_name = config.collection_name
        self._client: Any = None
        self._collections: dict[str, Any] = {}

    async def initialize(self) -> None:
        """Create the persistent Chroma client.

        Raises:
            StorageError: If chromadb is missing or the client cannot start
        """
        try:
            import chromadb

            self._client = chromadb.PersistentClient(path=self.persist_directory)
            logger.info("chroma_vector_store_initialized", persist_directory=self.persist_directory)
        except ImportError as e:
            raise StorageError(
                message="chromadb not installed. Install with: pip install 'reposearch[chroma]'",
                storage_type="chroma",
                original_error=e,
            ) from e
        except Exception as e:
            raise StorageError(
                message=f"Failed to initialize Chroma client: {e}",
                storage_type="chroma",
                original_error=e,
            ) from e

    def _get_collection(self, repository_id: UUID) -> Any:
        if self._client is None:
            raise StorageError("Chroma client not initialized", storage_type="chroma")

        name = sanitize_collection_name(f"{self.base_collection_name}_{repository_id}")
        if name not in self._collections:
            try:
                self._collections[name] = self._client.get_or_create_collection(
                    name=name,
                    metadata={"repository_id": str(repository_id), "hnsw:space": "cosine"},
                )
            except Exception as e:
                raise StorageError(
                    message=f"Failed to get/create collection '{name}': {e}",
                    storage_type="chroma",
                    original_error=e,
                ) from e
        return self._collections[name]

    async def put(self, repository_id: UUID, generation: int, chunk_id: str, vector: list[float]) -> None:
        await self.put_many(repository_id, generation, [(chunk_id, vector)])

    async def put_many(
        self, repository_id: UUID, generation: int, vectors: list[tuple[str, list[float]]]
    ) -> None:
        items = [(chunk_id, vector) for chunk_id, vector in vectors if vector]
        if not items:
            return
        collection = self._get_collection(repository_id)
        try:
            collection.upsert(
                ids=[f"{generation}:{chunk_id}" for chunk_id, _ in items],
                embeddings=[vector for _, vector in items],
                metadatas=[{"chunk_id": chunk_id, "generation": generation} for chunk_id, _ in items],
            )
            logger.debug(
                "vectors_stored", repository_id=str(repository_id), generation=generation, count=len(items)
            )
        except Exception as e:
            raise StorageError(
                message=f"Failed to store vectors: {e}", storage_type="chroma", original_error=e
            ) from e

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
        total = await self.count(repository_id, generation)
        if total == 0:
            return []
        collection = self._get_collection(repository_id)
        try:
            response = collection.query(
                query_embeddings=[query_vector],
                n_results=min(limit, total) if limit else total,
                where={"generation": generation},
                include=["metadatas", "distances"],
            )
        except Exception as e:
            raise StorageError(
                message=f"Failed to search: {e}", storage_type="chroma", original_error=e
            ) from e

        results = []
        if response["ids"] and response["ids"][0]:
            for metadata, distance in zip(response["metadatas"][0], response["distances"][0]):
                # Cosine distance
                similarity = 1.0 - distance
                if similarity > min_similarity:
                    results.append((metadata["chunk_id"], similarity))
        results.sort(key=lambda item: (-item[1], item[0]))
        return results

    async def count(self, repository_id: UUID, generation: int) -> int:
        collection = self._get_collection(repository_id)
        try:
            return len(collection.get(where={"generation": generation}, include=[])["ids"])
        except Exception as e:
            raise StorageError(
                message=f"Failed to count vectors: {e}", storage_type="chroma", original_error=e
            ) from e

    async def _delete(self, repository_id: UUID, where: dict[str, Any]) -> int:
        collection = self._get_collection(repository_id)
        try:
            ids = collection.get(where=where, include=[])["ids"]
            if ids:
                collection.delete(ids=ids)
            return len(ids)
        except Exception as e:
            raise StorageError(
                message=f"Failed to delete vectors: {e}", storage_type="chroma", original_error=e
            ) from e

    async def delete_generation(self, repository_id: UUID, generation: int) -> int:
        return await self._delete(repository_id, {"generation": generation})

    async def purge_generations(self, repository_id: UUID, older_than: Optional[int] = None) -> int:
        if older_than is None:
            return await self._delete(repository_id, {"generation": {"$gte": 0}})
        return await self._delete(repository_id, {"generation": {"$lt": older_than}})

    async def close(self) -> None:
        self._collections.clear()
        self._client = None

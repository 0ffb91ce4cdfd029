"""Storage layer: repository metadata, lexical, vector and symbol stores."""

from dataclasses import dataclass

from reposearch.config.schema import StorageSettings, StoreType, VectorBackendType
from reposearch.storage.base import (
    LexicalHit,
    LexicalIndex,
    MetadataStore,
    StorageConfig,
    StorageError,
    SymbolStore,
    VectorStore,
)


@dataclass
class IndexStores:
    """The four stores backing one index, managed together."""

    metadata: MetadataStore
    lexical: LexicalIndex
    vectors: VectorStore
    symbols: SymbolStore

    def all(self) -> list:
        return [self.metadata, self.lexical, self.vectors, self.symbols]

    async def initialize(self) -> None:
        for store in self.all():
            await store.initialize()

    async def close(self) -> None:
        for store in self.all():
            await store.close()


def storage_config_from_settings(settings: StorageSettings) -> StorageConfig:
    return StorageConfig(
        store_type=settings.store_type.value,
        connection_string=settings.connection_string,
        collection_name=settings.collection_name,
        persist_directory=str(settings.persist_directory) if settings.persist_directory else None,
        extra_params=settings.extra_params,
    )


def create_vector_store(config: StorageConfig, backend: VectorBackendType, database=None) -> VectorStore:
    """Factory function to create the vector store.

    Raises:
        StorageError: If the chroma backend is requested but not installed
    """
    if config.store_type == StoreType.MEMORY.value:
        from reposearch.storage.memory import InMemoryVectorStore

        return InMemoryVectorStore(config)

    if backend == VectorBackendType.CHROMA:
        try:
            from reposearch.storage.chroma import ChromaVectorStore

            return ChromaVectorStore(config)
        except ImportError as e:
            raise StorageError(
                message="Chroma vector store requires chromadb. Install with: pip install 'reposearch[chroma]'",
                storage_type="chroma",
                original_error=e,
            ) from e

    from reposearch.storage.sqlite import SQLiteVectorStore

    return SQLiteVectorStore(config, database)


def create_index_stores(settings: StorageSettings) -> IndexStores:
    """Factory function to create all index stores from configuration.

    SQLite stores share one connection; the vector backend can be swapped
    for Chroma independently.

    Args:
        settings: Storage settings

    Returns:
        Uninitialized IndexStores; call ``initialize()`` before use

    Raises:
        ValueError: If store_type is unknown
        StorageError: If a required backend dependency is missing

    Example:
        stores = create_index_stores(StorageSettings(store_type="memory"))
        await stores.initialize()
    """
    config = storage_config_from_settings(settings)

    if settings.store_type == StoreType.MEMORY:
        from reposearch.storage.memory import (
            InMemoryLexicalIndex,
            InMemoryMetadataStore,
            InMemorySymbolStore,
        )

        return IndexStores(
            metadata=InMemoryMetadataStore(config),
            lexical=InMemoryLexicalIndex(config),
            vectors=create_vector_store(config, settings.vector_backend),
            symbols=InMemorySymbolStore(config),
        )

    if settings.store_type == StoreType.SQLITE:
        from reposearch.storage.sqlite import (
            SQLiteDatabase,
            SQLiteLexicalIndex,
            SQLiteMetadataStore,
            SQLiteSymbolStore,
        )

        database = SQLiteDatabase(config)
        return IndexStores(
            metadata=SQLiteMetadataStore(config, database),
            lexical=SQLiteLexicalIndex(config, database),
            vectors=create_vector_store(config, settings.vector_backend, database),
            symbols=SQLiteSymbolStore(config, database),
        )

    raise ValueError(
        f"Unknown store type: '{settings.store_type}'. Supported types: memory, sqlite"
    )


__all__ = [
    "IndexStores",
    "LexicalHit",
    "LexicalIndex",
    "MetadataStore",
    "StorageConfig",
    "StorageError",
    "SymbolStore",
    "VectorStore",
    "create_index_stores",
    "create_vector_store",
    "storage_config_from_settings",
]

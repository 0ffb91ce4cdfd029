"""Store and provider initialization service.

Provides helper functions for wiring storage and providers from configuration.
"""

from typing import Optional

from reposearch.config.schema import AppConfig
from reposearch.observability.logging import get_logger
from reposearch.providers import (
    EmbeddingProvider,
    LLMProvider,
    ProviderError,
    create_embedding_provider,
    create_llm_provider,
    embedding_provider_config,
    llm_provider_config,
)
from reposearch.storage import IndexStores, create_index_stores

logger = get_logger(__name__)


async def initialize_stores(config: AppConfig) -> IndexStores:
    """Create and initialize every index store.

    Args:
        config: Application configuration

    Returns:
        Initialized IndexStores; the caller closes them
    """
    stores = create_index_stores(config.storage)
    await stores.initialize()
    logger.debug(
        "stores_initialized",
        store_type=config.storage.store_type.value,
        vector_backend=config.storage.vector_backend.value,
    )
    return stores


def initialize_embedding_provider(config: AppConfig) -> Optional[EmbeddingProvider]:
    """Embedding provider from configuration, None when it cannot be created.

    Indexing and search both work without vectors, so a missing optional
    dependency or API key degrades the vector signal instead of failing.
    """
    try:
        return create_embedding_provider(embedding_provider_config(config.embedding))
    except ProviderError as e:
        logger.warning("embedding_provider_unavailable", provider=e.provider, error=e.message)
        return None


def initialize_llm_provider(config: AppConfig) -> LLMProvider:
    """LLM provider from configuration.

    Raises:
        ProviderError: If the provider cannot be created
    """
    return create_llm_provider(llm_provider_config(config.llm))

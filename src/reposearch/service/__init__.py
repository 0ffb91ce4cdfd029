"""Service layer - wiring of stores and providers from configuration."""

from reposearch.service.stores import (
    initialize_embedding_provider,
    initialize_llm_provider,
    initialize_stores,
)

__all__ = [
    "initialize_embedding_provider",
    "initialize_llm_provider",
    "initialize_stores",
]

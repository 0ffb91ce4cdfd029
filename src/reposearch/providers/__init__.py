"""Provider abstractions: embeddings and LLM backends."""

from reposearch.config.schema import EmbeddingConfig, LLMConfig
from reposearch.providers.base import (
    EmbeddingProvider,
    EmbeddingUnavailableError,
    LLMProvider,
    ProviderConfig,
    ProviderError,
    embed_or_empty,
)


def embedding_provider_config(config: EmbeddingConfig) -> ProviderConfig:
    return ProviderConfig(
        provider_type=config.provider.value,
        model_name=config.model_name,
        api_key=config.api_key,
        max_input_chars=config.max_input_chars,
        extra_params=config.extra_params,
    )


def llm_provider_config(config: LLMConfig) -> ProviderConfig:
    return ProviderConfig(
        provider_type=config.provider.value,
        model_name=config.model_name,
        api_key=config.api_key,
        extra_params=config.extra_params,
    )


def create_embedding_provider(config: ProviderConfig) -> EmbeddingProvider:
    """Factory function to create embedding providers based on configuration.

    Args:
        config: Provider configuration with provider_type

    Returns:
        Initialized embedding provider

    Raises:
        ValueError: If provider_type is unknown
        ProviderError: If provider initialization fails or dependencies are missing

    Example:
        provider = create_embedding_provider(
            ProviderConfig(provider_type="local", model_name="all-MiniLM-L6-v2")
        )
    """
    provider_type = config.provider_type.lower()

    if provider_type == "local":
        from reposearch.providers.local import LocalEmbeddingProvider

        return LocalEmbeddingProvider(config)

    if provider_type == "openai":
        from reposearch.providers.openai import OpenAIEmbeddingProvider

        return OpenAIEmbeddingProvider(config)

    if provider_type == "mock":
        from reposearch.providers.mock import MockEmbeddingProvider

        return MockEmbeddingProvider(config)

    raise ValueError(
        f"Unknown embedding provider type: '{provider_type}'. Supported types: local, openai, mock"
    )


def create_llm_provider(config: ProviderConfig) -> LLMProvider:
    """Factory function to create LLM providers based on configuration.

    Raises:
        ValueError: If provider_type is unknown
    """
    provider_type = config.provider_type.lower()

    if provider_type == "openai":
        from reposearch.providers.openai_llm import OpenAILLMProvider

        return OpenAILLMProvider(config)

    if provider_type == "mock":
        from reposearch.providers.mock import MockLLMProvider

        return MockLLMProvider(config)

    raise ValueError(f"Unknown LLM provider type: '{provider_type}'. Supported types: openai, mock")


__all__ = [
    "EmbeddingProvider",
    "EmbeddingUnavailableError",
    "LLMProvider",
    "ProviderConfig",
    "ProviderError",
    "create_embedding_provider",
    "create_llm_provider",
    "embed_or_empty",
    "embedding_provider_config",
    "llm_provider_config",
]

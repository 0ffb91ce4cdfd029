"""Abstract base classes for embedding and LLM providers.

Why this exists:
- Allows swapping between embedding models (local, OpenAI, mock)
- Enables testing with deterministic mock providers
- Keeps the "no vector signal" policy in one place (embed_or_empty)

How to extend:
1. Subclass EmbeddingProvider or LLMProvider
2. Implement all abstract methods
3. Register in reposearch.providers factories
4. Add optional dependencies to pyproject.toml
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Optional

from pydantic import BaseModel

from reposearch.observability.logging import get_logger

logger = get_logger(__name__)


class ProviderConfig(BaseModel):
    """Base configuration for all providers."""

    provider_type: str
    model_name: str
    api_key: Optional[str] = None
    max_input_chars: int = 512
    extra_params: dict[str, Any] = {}


class EmbeddingProvider(ABC):
    """Abstract interface for embedding providers.

    Implementations must handle:
    - Single text embedding
    - Batch text embedding
    - Model metadata (dimension, max tokens)

    Input is truncated to ``config.max_input_chars`` characters before it
    reaches the model.
    """

    def __init__(self, config: ProviderConfig) -> None:
        """Initialize provider with configuration."""
        self.config = config

    def truncate(self, text: str) -> str:
        return text[: self.config.max_input_chars]

    @abstractmethod
    async def embed_text(self, text: str) -> list[float]:
        """Generate embedding for a single text.

        Args:
            text: Input text to embed

        Returns:
            Embedding vector

        Raises:
            ProviderError: If embedding generation fails
        """
        pass

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts.

        Raises:
            ProviderError: If embedding generation fails
        """
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the embedding dimension for this model."""
        pass

    @abstractmethod
    def get_max_tokens(self) -> int:
        """Return the maximum token length for this model."""
        pass

    async def close(self) -> None:
        """Release provider resources."""
        pass


class LLMProvider(ABC):
    """Abstract interface for LLM providers."""

    def __init__(self, config: ProviderConfig) -> None:
        """Initialize provider with configuration."""
        self.config = config

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: float = 0.7,
    ) -> str:
        """Generate text completion.

        Args:
            prompt: User prompt
            system_prompt: Optional system prompt
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature

        Returns:
            Generated text

        Raises:
            ProviderError: If generation fails
        """
        pass

    @abstractmethod
    def count_tokens(self, text: str) -> int:
        """Count tokens in text for this model."""
        pass

    async def close(self) -> None:
        """Release provider resources."""
        pass


class ProviderError(Exception):
    """Base exception for provider errors."""

    def __init__(self, message: str, provider: str, original_error: Optional[Exception] = None):
        self.message = message
        self.provider = provider
        self.original_error = original_error
        super().__init__(self.message)


class EmbeddingUnavailableError(ProviderError):
    """No embedding could be produced for a text (failure or timeout)."""

    pass


async def embed_or_empty(
    provider: Optional[EmbeddingProvider],
    text: str,
    timeout: float,
    **log_context: Any,
) -> list[float]:
    """Embed text, treating failure or timeout as "no vector signal".

    Returns:
        The embedding, or an empty list when no provider is configured or the
        provider failed or timed out
    """
    if provider is None or not text.strip():
        return []
    try:
        return await asyncio.wait_for(provider.embed_text(text), timeout=timeout)
    except asyncio.TimeoutError:
        error: ProviderError = EmbeddingUnavailableError(
            f"Embedding timed out after {timeout}s", provider=provider.config.provider_type
        )
    except ProviderError as e:
        error = e
    logger.warning("embedding_unavailable", error=error.message, **log_context)
    return []

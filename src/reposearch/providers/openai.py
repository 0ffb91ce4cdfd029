"""OpenAI embedding provider using the official API.

Trade-offs:
- API costs per token
- Requires internet connection
- Chunk text is sent to a third-party service
"""

import os

from reposearch.observability.logging import get_logger
from reposearch.providers.base import EmbeddingProvider, ProviderConfig, ProviderError

logger = get_logger(__name__)

MODEL_METADATA = {
    "text-embedding-ada-002": {"dimension": 1536, "max_tokens": 8191},
    "text-embedding-3-small": {"dimension": 1536, "max_tokens": 8191},
    "text-embedding-3-large": {"dimension": 3072, "max_tokens": 8191},
}

DEFAULT_MODEL = "text-embedding-3-small"

# Maximum batch size for the OpenAI API
MAX_BATCH_SIZE = 2048


def resolve_api_key(api_key: str | None, env_var: str = "OPENAI_API_KEY") -> str | None:
    """Accept either a literal key or the name of an environment variable."""
    if not api_key:
        return os.getenv(env_var)
    return os.getenv(api_key) or api_key


def _classify_error(e: Exception) -> str:
    error_message = str(e).lower()
    if "authentication" in error_message or "api_key" in error_message:
        return "OpenAI authentication failed"
    if "rate_limit" in error_message:
        return "OpenAI rate limit exceeded"
    if "connection" in error_message or "network" in error_message:
        return "Network error connecting to OpenAI"
    return "Failed to generate embedding"


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """OpenAI embedding provider.

    Example:
        config = ProviderConfig(
            provider_type="openai",
            model_name="text-embedding-3-small",
            api_key="OPENAI_API_KEY",
        )
        provider = OpenAIEmbeddingProvider(config)
    """

    def __init__(self, config: ProviderConfig) -> None:
        """Create the async client.

        Raises:
            ProviderError: If no API key is available or the client fails
        """
        super().__init__(config)

        api_key = resolve_api_key(config.api_key)
        if not api_key:
            raise ProviderError(message="API key is required", provider="openai")

        self.model_name = config.model_name or DEFAULT_MODEL
        metadata = MODEL_METADATA.get(self.model_name)
        if metadata is None:
            logger.warning("unknown_openai_model", model_name=self.model_name)
            metadata = {"dimension": 1536, "max_tokens": 8191}
        self._dimension = metadata["dimension"]
        self._max_tokens = metadata["max_tokens"]

        try:
            from openai import AsyncOpenAI

            client_kwargs = {"api_key": api_key}
            client_kwargs.update(config.extra_params)
            self.client = AsyncOpenAI(**client_kwargs)
            logger.info("openai_embedding_provider_initialized", model_name=self.model_name)
        except ImportError as e:
            raise ProviderError(
                message="openai package not installed. Install with: pip install 'reposearch[openai]'",
                provider="openai",
                original_error=e,
            ) from e
        except Exception as e:
            raise ProviderError(
                message=f"Failed to initialize OpenAI client: {e}",
                provider="openai",
                original_error=e,
            ) from e

    async def embed_text(self, text: str) -> list[float]:
        """Generate embedding for a single (truncated) text.

        Raises:
            ProviderError: If text is empty or the API call fails
        """
        if not text or not text.strip():
            raise ProviderError(message="Cannot embed empty text", provider="openai")

        try:
            response = await self.client.embeddings.create(input=self.truncate(text), model=self.model_name)
        except Exception as e:
            raise ProviderError(
                message=f"{_classify_error(e)}: {e}", provider="openai", original_error=e
            ) from e

        if getattr(response, "usage", None):
            logger.debug("openai_embedding_generated", tokens_used=response.usage.total_tokens)
        return response.data[0].embedding

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts, splitting oversized batches.

        Raises:
            ProviderError: If any text is empty or an API call fails
        """
        if not texts:
            return []

        for i, text in enumerate(texts):
            if not text or not text.strip():
                raise ProviderError(message=f"Cannot embed empty text at index {i}", provider="openai")

        all_embeddings: list[list[float]] = []
        for start in range(0, len(texts), MAX_BATCH_SIZE):
            batch = [self.truncate(text) for text in texts[start : start + MAX_BATCH_SIZE]]
            try:
                response = await self.client.embeddings.create(input=batch, model=self.model_name)
            except Exception as e:
                raise ProviderError(
                    message=f"{_classify_error(e)}: {e}", provider="openai", original_error=e
                ) from e
            ordered = sorted(response.data, key=lambda item: item.index)
            all_embeddings.extend(item.embedding for item in ordered)

        logger.info("openai_batch_embeddings_generated", batch_size=len(texts))
        return all_embeddings

    def get_dimension(self) -> int:
        return self._dimension

    def get_max_tokens(self) -> int:
        return self._max_tokens

    async def close(self) -> None:
        await self.client.close()

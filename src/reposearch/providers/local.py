"""Local embedding provider using sentence-transformers.

This provider runs embedding models locally without requiring API calls.
The default model, all-MiniLM-L6-v2, produces 384-dimensional vectors.

Trade-offs:
- Requires local compute resources (CPU/GPU)
- Model download required on first use
"""

import asyncio
from typing import Optional

from reposearch.observability.logging import get_logger
from reposearch.providers.base import EmbeddingProvider, ProviderConfig, ProviderError

logger = get_logger(__name__)


# Model metadata: dimension and max tokens for common models
MODEL_METADATA = {
    "all-MiniLM-L6-v2": {"dimension": 384, "max_tokens": 256},
    "all-MiniLM-L12-v2": {"dimension": 384, "max_tokens": 256},
    "all-mpnet-base-v2": {"dimension": 768, "max_tokens": 384},
    "multi-qa-MiniLM-L6-cos-v1": {"dimension": 384, "max_tokens": 512},
}


class LocalEmbeddingProvider(EmbeddingProvider):
    """Local embedding provider using sentence-transformers.

    Example:
        config = ProviderConfig(provider_type="local", model_name="all-MiniLM-L6-v2")
        provider = LocalEmbeddingProvider(config)
        embedding = await provider.embed_text("function renderHeader() {")
    """

    def __init__(self, config: ProviderConfig) -> None:
        """Load the model.

        Raises:
            ProviderError: If sentence-transformers is missing or the model
                cannot be loaded
        """
        super().__init__(config)
        self.model_name = config.model_name
        self._model: Optional[object] = None
        self._dimension: Optional[int] = None
        self._max_tokens: Optional[int] = None

        try:
            from sentence_transformers import SentenceTransformer

            logger.info("loading_local_embedding_model", model_name=self.model_name)
            self._model = SentenceTransformer(self.model_name)

            if self.model_name in MODEL_METADATA:
                metadata = MODEL_METADATA[self.model_name]
                self._dimension = metadata["dimension"]
                self._max_tokens = metadata["max_tokens"]
            else:
                self._dimension = self._model.get_sentence_embedding_dimension()
                self._max_tokens = 512
                logger.warning(
                    "model_metadata_not_found",
                    model_name=self.model_name,
                    inferred_dimension=self._dimension,
                )

            logger.info(
                "local_embedding_model_loaded",
                model_name=self.model_name,
                dimension=self._dimension,
            )
        except ImportError as e:
            raise ProviderError(
                message="sentence-transformers not installed. Install with: pip install 'reposearch[local]'",
                provider="local",
                original_error=e,
            ) from e
        except Exception as e:
            raise ProviderError(
                message=f"Failed to load model '{self.model_name}': {e}",
                provider="local",
                original_error=e,
            ) from e

    def _require_model(self) -> object:
        if self._model is None:
            raise ProviderError(message="Model not initialized", provider="local")
        return self._model

    async def embed_text(self, text: str) -> list[float]:
        """Generate embedding for a single (truncated) text.

        Raises:
            ProviderError: If text is empty or embedding generation fails
        """
        if not text or not text.strip():
            raise ProviderError(message="Cannot embed empty text", provider="local")

        model = self._require_model()
        try:
            # Model inference runs in a worker thread to keep the event loop free
            embedding = await asyncio.to_thread(model.encode, self.truncate(text), convert_to_numpy=True)
            return embedding.tolist()
        except Exception as e:
            raise ProviderError(
                message=f"Failed to generate embedding: {e}",
                provider="local",
                original_error=e,
            ) from e

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts in one model call.

        Raises:
            ProviderError: If any text is empty or embedding generation fails
        """
        if not texts:
            return []

        for i, text in enumerate(texts):
            if not text or not text.strip():
                raise ProviderError(message=f"Cannot embed empty text at index {i}", provider="local")

        model = self._require_model()
        try:
            embeddings = await asyncio.to_thread(
                model.encode,
                [self.truncate(text) for text in texts],
                convert_to_numpy=True,
                show_progress_bar=False,
            )
            result = embeddings.tolist()
            logger.debug("generated_batch_embeddings", batch_size=len(texts))
            return result
        except Exception as e:
            raise ProviderError(
                message=f"Failed to generate batch embeddings: {e}",
                provider="local",
                original_error=e,
            ) from e

    def get_dimension(self) -> int:
        if self._dimension is None:
            raise ProviderError(message="Model not initialized", provider="local")
        return self._dimension

    def get_max_tokens(self) -> int:
        if self._max_tokens is None:
            raise ProviderError(message="Model not initialized", provider="local")
        return self._max_tokens

    async def close(self) -> None:
        """Release the model reference."""
        if self._model is not None:
            logger.info("closing_local_embedding_provider", model_name=self.model_name)
            self._model = None
            self._dimension = None
            self._max_tokens = None

"""Deterministic offline providers.

MockEmbeddingProvider hashes terms into a fixed number of buckets, so texts
sharing vocabulary get similar vectors. It needs no model download and is
stable across runs, which makes it suitable for tests and offline indexing.
"""

import hashlib
import math
from typing import Optional

from reposearch.core.tokens import tokenize
from reposearch.providers.base import EmbeddingProvider, LLMProvider, ProviderConfig, ProviderError

DEFAULT_DIMENSION = 384


class MockEmbeddingProvider(EmbeddingProvider):
    """Hashed bag-of-words embeddings, L2 normalized."""

    def __init__(self, config: Optional[ProviderConfig] = None) -> None:
        super().__init__(config or ProviderConfig(provider_type="mock", model_name="hashed-bow"))
        self.dimension = int(self.config.extra_params.get("dimension", DEFAULT_DIMENSION))
        self.calls = 0

    def _bucket(self, term: str) -> int:
        digest = hashlib.md5(term.encode("utf-8")).digest()
        return int.from_bytes(digest[:4], "big") % self.dimension

    def _vector(self, text: str) -> list[float]:
        vector = [0.0] * self.dimension
        for term in tokenize(self.truncate(text)):
            vector[self._bucket(term)] += 1.0
        norm = math.sqrt(sum(x * x for x in vector))
        if norm == 0:
            return vector
        return [x / norm for x in vector]

    async def embed_text(self, text: str) -> list[float]:
        if not text or not text.strip():
            raise ProviderError(message="Cannot embed empty text", provider="mock")
        self.calls += 1
        return self._vector(text)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed_text(text) for text in texts]

    def get_dimension(self) -> int:
        return self.dimension

    def get_max_tokens(self) -> int:
        return self.config.max_input_chars


class MockLLMProvider(LLMProvider):
    """Echoes the prompt size; records prompts for inspection."""

    def __init__(self, config: Optional[ProviderConfig] = None) -> None:
        super().__init__(config or ProviderConfig(provider_type="mock", model_name="echo"))
        self.prompts: list[str] = []

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: float = 0.7,
    ) -> str:
        self.prompts.append(prompt)
        return f"[mock answer based on {len(prompt)} characters of context]"

    def count_tokens(self, text: str) -> int:
        return len(text) // 4

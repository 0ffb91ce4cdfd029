"""OpenAI-compatible chat completion provider over httpx.

Works against the OpenAI API or any compatible endpoint (``base_url`` in
``extra_params``).
"""

from typing import Any, Optional

import httpx

from reposearch.providers.base import LLMProvider, ProviderConfig, ProviderError
from reposearch.providers.openai import resolve_api_key


class OpenAILLMProvider(LLMProvider):
    """LLM provider using the chat completions endpoint."""

    def __init__(self, config: ProviderConfig, client: Optional[httpx.AsyncClient] = None) -> None:
        """Create the HTTP client.

        Args:
            config: Provider configuration with api_key, model_name, etc.
            client: Preconfigured client (tests pass one with a mock transport)
        """
        super().__init__(config)
        self.api_key = resolve_api_key(config.api_key)
        self.model_name = config.model_name
        self.extra_params = config.extra_params
        self.base_url = self.extra_params.get("base_url", "https://api.openai.com/v1")

        self.client = client or httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            timeout=self.extra_params.get("timeout", 60.0),
        )

    async def generate(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int | None = None,
        temperature: float = 0.7,
    ) -> str:
        """Generate a completion.

        Raises:
            ProviderError: If the request fails or the response is malformed
        """
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        payload: dict[str, Any] = {
            "model": self.model_name,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens:
            payload["max_tokens"] = max_tokens

        try:
            response = await self.client.post("/chat/completions", json=payload)
            response.raise_for_status()
            data = response.json()
            return data["choices"][0]["message"]["content"]
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                message=f"OpenAI API error: {e.response.status_code} - {e.response.text}",
                provider="openai",
                original_error=e,
            ) from e
        except (httpx.HTTPError, KeyError, IndexError, ValueError) as e:
            raise ProviderError(
                message=f"LLM generation failed: {e}",
                provider="openai",
                original_error=e,
            ) from e

    def count_tokens(self, text: str) -> int:
        """Rough estimate: about four characters per token."""
        return len(text) // 4

    async def close(self) -> None:
        await self.client.aclose()

"""Source providers: where repository trees come from."""

from pathlib import Path
from typing import Optional

from reposearch.config.schema import SourceConfig, SourceProviderType
from reposearch.sources.base import SourceProvider, SourceTree, SourceUnavailableError


def create_source_provider(
    config: SourceConfig,
    provider: Optional[SourceProviderType] = None,
    paths: Optional[dict[str, Path]] = None,
    timeout: float = 300.0,
) -> SourceProvider:
    """Factory function to create a source provider.

    Args:
        config: Source configuration
        provider: Overrides ``config.provider``
        paths: Explicit repository directories for the local provider
        timeout: Seconds allowed for fetches and commit lookups

    Raises:
        ValueError: If the provider type is unknown
    """
    provider = provider or config.provider

    if provider == SourceProviderType.LOCAL:
        from reposearch.sources.local import LocalSourceProvider

        return LocalSourceProvider(root=config.local_root, paths=paths, timeout=timeout)

    if provider == SourceProviderType.GITHUB:
        from reposearch.sources.github import GitHubSourceProvider

        return GitHubSourceProvider(
            api_url=config.github_api_url,
            clone_url_template=config.clone_url_template,
            token=config.github_token,
            timeout=timeout,
        )

    raise ValueError(f"Unknown source provider: '{provider}'. Supported types: local, github")


__all__ = [
    "SourceProvider",
    "SourceTree",
    "SourceUnavailableError",
    "create_source_provider",
]

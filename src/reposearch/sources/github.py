"""GitHub source provider.

The commit for a ref comes from the GitHub REST API; the tree is a shallow,
single-branch ``git clone`` into a temporary directory that is removed when
``fetch_tree`` exits.
"""

import asyncio
import shutil
import tempfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import httpx

from reposearch.observability.logging import get_logger
from reposearch.sources.base import (
    GitCommandError,
    SourceProvider,
    SourceTree,
    SourceUnavailableError,
    run_git,
)

logger = get_logger(__name__)


class GitHubSourceProvider(SourceProvider):
    """Repositories hosted on GitHub, addressed as ``owner/name``."""

    name = "github"

    def __init__(
        self,
        api_url: str = "https://api.github.com",
        clone_url_template: str = "https://github.com/{repository}.git",
        token: Optional[str] = None,
        timeout: float = 300.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.clone_url_template = clone_url_template
        self.token = token
        self.timeout = timeout
        self._owns_client = client is None
        headers = {"Accept": "application/vnd.github+json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.client = client or httpx.AsyncClient(headers=headers, timeout=timeout)
        if client is not None:
            self.client.headers.update(headers)

    async def current_commit(self, repository: str, ref: str) -> Optional[str]:
        """Commit sha of ``ref`` according to the GitHub API.

        Returns:
            The sha, or None when GitHub answers without one (unknown ref,
            rate limiting)

        Raises:
            SourceUnavailableError: If the API cannot be reached
        """
        url = f"{self.api_url}/repos/{repository}/commits/{ref}"
        try:
            response = await self.client.get(url)
        except httpx.HTTPError as e:
            raise SourceUnavailableError(
                f"GitHub API request failed for {repository}@{ref}: {e}",
                source=self.name,
                original_error=e,
            ) from e

        if response.status_code != 200:
            logger.warning(
                "github_commit_lookup_failed",
                repository=repository,
                ref=ref,
                status_code=response.status_code,
            )
            return None
        return response.json().get("sha")

    def clone_url(self, repository: str) -> str:
        return self.clone_url_template.format(repository=repository)

    @asynccontextmanager
    async def fetch_tree(self, repository: str, ref: str) -> AsyncIterator[SourceTree]:
        workdir = Path(tempfile.mkdtemp(prefix="reposearch-"))
        checkout = workdir / "repo"
        try:
            logger.info("github_clone_started", repository=repository, ref=ref)
            try:
                await run_git(
                    "clone",
                    "--depth",
                    "1",
                    "--branch",
                    ref,
                    "--single-branch",
                    self.clone_url(repository),
                    str(checkout),
                    timeout=self.timeout,
                )
                commit = await run_git("rev-parse", "HEAD", cwd=checkout, timeout=self.timeout)
            except asyncio.TimeoutError as e:
                raise SourceUnavailableError(
                    f"Cloning {repository}@{ref} timed out after {self.timeout}s",
                    source=self.name,
                    original_error=e,
                ) from e
            except (GitCommandError, FileNotFoundError) as e:
                raise SourceUnavailableError(
                    f"Failed to clone {repository}@{ref}: {e}",
                    source=self.name,
                    original_error=e,
                ) from e

            logger.info("github_clone_completed", repository=repository, ref=ref, commit=commit)
            yield SourceTree(root=checkout, commit=commit)
        finally:
            shutil.rmtree(workdir, ignore_errors=True)

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

"""Local directory source provider.

Reads the working tree of a directory on disk. The commit is ``git rev-parse
HEAD`` when the directory is a git checkout; otherwise a fingerprint of file
paths, sizes and modification times stands in for it, so edits still make
the repository look stale.
"""

import asyncio
import hashlib
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from reposearch.observability.logging import get_logger
from reposearch.sources.base import (
    GitCommandError,
    SourceProvider,
    SourceTree,
    SourceUnavailableError,
    run_git,
)

logger = get_logger(__name__)

FINGERPRINT_PREFIX = "fp:"


def fingerprint_tree(root: Path, excluded_dirs: frozenset[str] = frozenset({".git"})) -> str:
    """Stable digest of every file's relative path, size and mtime."""
    digest = hashlib.sha1()
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in excluded_dirs)
        for filename in sorted(filenames):
            path = Path(dirpath) / filename
            try:
                stat = path.stat()
            except OSError:
                continue
            relative = path.relative_to(root).as_posix()
            digest.update(f"{relative}\0{stat.st_size}\0{stat.st_mtime_ns}\n".encode("utf-8"))
    return FINGERPRINT_PREFIX + digest.hexdigest()


class LocalSourceProvider(SourceProvider):
    """Serves repositories from local directories.

    Args:
        root: Directory containing one sub-directory per repository name
        paths: Explicit repository name to directory mapping (wins over root)
        timeout: Seconds allowed for git commands
    """

    name = "local"

    def __init__(
        self,
        root: Optional[Path] = None,
        paths: Optional[dict[str, Path]] = None,
        timeout: float = 300.0,
    ) -> None:
        self.root = root
        self.paths = {name: Path(path) for name, path in (paths or {}).items()}
        self.timeout = timeout

    def resolve(self, repository: str) -> Path:
        """Directory holding ``repository``.

        Raises:
            SourceUnavailableError: If no existing directory is known for it
        """
        path = self.paths.get(repository)
        if path is None and self.root is not None:
            path = self.root / repository
        if path is None or not path.is_dir():
            raise SourceUnavailableError(
                f"No local directory for repository '{repository}'", source=self.name
            )
        return path

    async def current_commit(self, repository: str, ref: str) -> Optional[str]:
        path = self.resolve(repository)
        if (path / ".git").exists():
            try:
                return await run_git("rev-parse", "HEAD", cwd=path, timeout=self.timeout)
            except (GitCommandError, FileNotFoundError, asyncio.TimeoutError) as e:
                logger.warning("git_commit_lookup_failed", repository=repository, error=str(e))
        return await asyncio.to_thread(fingerprint_tree, path)

    @asynccontextmanager
    async def fetch_tree(self, repository: str, ref: str) -> AsyncIterator[SourceTree]:
        path = self.resolve(repository)
        commit = await self.current_commit(repository, ref)
        logger.debug("local_tree_ready", repository=repository, path=str(path), commit=commit)
        yield SourceTree(root=path, commit=commit)

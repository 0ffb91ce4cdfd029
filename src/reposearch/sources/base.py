"""Source provider interface.

A source provider reads a repository tree at a ref and reports the commit the
tree corresponds to. The indexer only ever sees a local directory: remote
providers materialize one (for example with a shallow clone) for the duration
of ``fetch_tree``.
"""

import asyncio
from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from reposearch.observability.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SourceTree:
    """A readable checkout of a repository."""

    root: Path
    commit: Optional[str]


class SourceProvider(ABC):
    """Abstract interface for repository sources."""

    name: str = "source"

    @abstractmethod
    async def current_commit(self, repository: str, ref: str) -> Optional[str]:
        """Commit identifier ``ref`` currently points at.

        Returns:
            The commit id, or None when it cannot be determined

        Raises:
            SourceUnavailableError: If the source cannot be reached
        """

    @abstractmethod
    def fetch_tree(self, repository: str, ref: str) -> AbstractAsyncContextManager[SourceTree]:
        """Async context manager yielding a local tree for ``ref``.

        Temporary checkouts are removed when the context exits.

        Raises:
            SourceUnavailableError: If the tree cannot be fetched
        """

    async def close(self) -> None:
        pass


class SourceUnavailableError(Exception):
    """The repository or ref could not be read."""

    def __init__(self, message: str, source: str, original_error: Optional[Exception] = None):
        self.message = message
        self.source = source
        self.original_error = original_error
        super().__init__(self.message)


class GitCommandError(Exception):
    """A git subprocess exited with a non-zero status."""

    def __init__(self, args: tuple[str, ...], returncode: int, stderr: str):
        self.args_ = args
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"git {' '.join(args)} failed ({returncode}): {stderr.strip()}")


async def run_git(*args: str, cwd: Optional[Path] = None, timeout: float = 300.0) -> str:
    """Run a git command and return its stdout.

    Raises:
        GitCommandError: If git exits with a non-zero status
        FileNotFoundError: If git is not installed
        asyncio.TimeoutError: If the command does not finish within timeout
    """
    process = await asyncio.create_subprocess_exec(
        "git",
        *args,
        cwd=str(cwd) if cwd else None,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    finally:
        # Timed out here or cancelled by the caller: do not leave git running
        if process.returncode is None:
            process.kill()
            await process.wait()

    if process.returncode != 0:
        raise GitCommandError(args, process.returncode, stderr.decode("utf-8", errors="replace"))
    return stdout.decode("utf-8", errors="replace").strip()

"""Indexing pipeline: fetch, chunk, embed and store a repository snapshot.

Why this exists:
- Orchestrates a full indexing pass for one repository
- Keeps the previous snapshot readable until the new one is committed
- Absorbs per-file and per-chunk failures, propagates pass-level ones

How a pass works:
1. Take the repository's lock (one pass per repository at a time)
2. Fetch the tree at ``ref`` from the source provider
3. Chunk and embed eligible files through a bounded worker pool
4. Clear leftovers of generation ``current + 1``, then write the new snapshot there
5. Commit by updating the repository record (commit id, timestamp, chunk
   count, generation); this is the last write of the pass
6. Purge generations older than the previous one (it stays readable for
   queries that pinned it before the commit)

How to use:
    from reposearch.pipelines.indexing import RepositoryIndexer

    indexer = RepositoryIndexer(config, stores, source, embedding_provider)
    if await indexer.needs_update("owner/name", "main"):
        await indexer.index("owner/name", "main")
"""

import asyncio
import os
import time
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Optional

import structlog

from reposearch.config.schema import AppConfig, IndexingConfig
from reposearch.core.chunking import chunk_file
from reposearch.core.repository import RepositoryManager
from reposearch.entities import Chunk, IndexStats, IndexStatus, Repository
from reposearch.observability.logging import get_logger
from reposearch.providers.base import EmbeddingProvider, embed_or_empty
from reposearch.sources.base import SourceProvider, SourceTree, SourceUnavailableError
from reposearch.storage import IndexStores
from reposearch.storage.base import StorageError

logger = get_logger(__name__)


@dataclass
class IndexResult:
    """Outcome of one indexing pass."""

    repository: str
    commit: Optional[str]
    generation: int
    files_indexed: int = 0
    files_skipped: int = 0
    chunk_count: int = 0
    vector_count: int = 0
    skipped: list[tuple[str, str]] = field(default_factory=list)
    duration_seconds: float = 0.0


@dataclass
class PreparedFile:
    path: str
    chunks: list[Chunk]


def collect_source_files(root: Path, config: IndexingConfig) -> list[str]:
    """Eligible files under ``root`` as sorted, root-relative POSIX paths.

    Files must carry an allowed extension; excluded directories are pruned
    wherever they occur. Symbolic links are not followed.
    """
    extensions = {ext.lower() for ext in config.extensions}
    excluded = set(config.excluded_dirs)
    found = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [d for d in dirnames if d not in excluded]
        for filename in filenames:
            if PurePosixPath(filename).suffix.lower() not in extensions:
                continue
            path = Path(dirpath) / filename
            if path.is_symlink():
                continue
            found.append(path.relative_to(root).as_posix())
    return sorted(found)


def read_source_file(root: Path, relative_path: str, max_bytes: int) -> str:
    """Read one file as UTF-8 text.

    Raises:
        FileTooLargeError: If the file exceeds ``max_bytes``
        FileUnreadableError: If the file cannot be read or decoded
    """
    path = root / relative_path
    try:
        size = path.stat().st_size
        if size > max_bytes:
            raise FileTooLargeError(relative_path, f"{size} bytes exceeds limit of {max_bytes}")
        data = path.read_bytes()
    except OSError as e:
        raise FileUnreadableError(relative_path, str(e)) from e

    if b"\x00" in data:
        raise FileUnreadableError(relative_path, "binary content")
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise FileUnreadableError(relative_path, f"not valid UTF-8: {e.reason}") from e


class RepositoryIndexer:
    """Builds and maintains the searchable snapshot of each repository."""

    def __init__(
        self,
        config: AppConfig,
        stores: IndexStores,
        source: SourceProvider,
        embedding_provider: Optional[EmbeddingProvider] = None,
    ):
        """Initialize the indexer.

        Args:
            config: Application configuration
            stores: Index stores to write into
            source: Where repository trees come from
            embedding_provider: Vector provider; None indexes without vectors
        """
        self.config = config
        self.stores = stores
        self.source = source
        self.embedding_provider = embedding_provider
        self.repositories = RepositoryManager(stores)
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, repository: str) -> asyncio.Lock:
        return self._locks.setdefault(repository, asyncio.Lock())

    def is_indexing(self, repository: str) -> bool:
        return self._lock_for(repository).locked()

    async def needs_update(self, repository: str, ref: Optional[str] = None) -> bool:
        """Whether the stored snapshot is stale for ``ref``.

        True when the repository was never indexed, when the source cannot
        report a commit, or when the commit differs from the indexed one.
        """
        ref = ref or self.config.default_ref
        record = await self.repositories.get_repository(repository)
        if record is None or not record.is_indexed:
            return True

        try:
            commit = await asyncio.wait_for(
                self.source.current_commit(repository, ref),
                timeout=self.config.indexing.fetch_timeout,
            )
        except (SourceUnavailableError, asyncio.TimeoutError) as e:
            logger.warning("commit_lookup_failed", repository=repository, ref=ref, error=str(e) or type(e).__name__)
            return True

        if commit is None:
            return True
        stale = commit != record.last_commit
        logger.debug(
            "update_check", repository=repository, ref=ref, indexed=record.last_commit, current=commit, stale=stale
        )
        return stale

    async def index(self, repository: str, ref: Optional[str] = None, wait: bool = True) -> IndexResult:
        """Index ``repository`` at ``ref``, replacing its previous snapshot.

        Args:
            repository: Repository name, e.g. ``owner/name``
            ref: Branch, tag or commit (defaults to ``config.default_ref``)
            wait: When False, fail instead of waiting for a pass in progress

        Returns:
            IndexResult describing the committed snapshot

        Raises:
            IndexingInProgressError: If ``wait`` is False and a pass is running
            SourceUnavailableError: If the tree cannot be fetched
            IndexingError: If storage fails during the pass
        """
        ref = ref or self.config.default_ref
        lock = self._lock_for(repository)
        if not wait and lock.locked():
            raise IndexingInProgressError(f"Repository '{repository}' is already being indexed")

        async with lock:
            with structlog.contextvars.bound_contextvars(repository=repository, ref=ref):
                return await self._index_locked(repository, ref)

    async def index_if_needed(
        self, repository: str, ref: Optional[str] = None, force: bool = False
    ) -> Optional[IndexResult]:
        """Index only when the snapshot is stale (or ``force`` is set).

        Returns:
            The IndexResult, or None when the snapshot was already current
        """
        if not force and not await self.needs_update(repository, ref):
            logger.info("index_up_to_date", repository=repository, ref=ref or self.config.default_ref)
            return None
        return await self.index(repository, ref)

    async def _index_locked(self, repository: str, ref: str) -> IndexResult:
        started = time.monotonic()
        record = await self.repositories.get_or_create(repository)
        target = record.generation + 1
        logger.info("indexing_started", generation=target)

        record.status = IndexStatus.INDEXING
        record.last_error = None
        record.updated_at = datetime.utcnow()
        await self.stores.metadata.update_repository(record)

        try:
            async with AsyncExitStack() as stack:
                tree = await self._open_tree(stack, repository, ref)
                files = await asyncio.to_thread(collect_source_files, tree.root, self.config.indexing)
                logger.info("source_files_collected", file_count=len(files), commit=tree.commit)
                prepared, skipped = await self._prepare_files(tree.root, files)
                commit = tree.commit

            await self._clear_generation(record.id, target)
            chunk_count, vector_count = await self._write_snapshot(record.id, target, prepared)

            indexed_at = datetime.utcnow()
            committed = record.model_copy(
                update={
                    "last_commit": commit,
                    "last_indexed": indexed_at,
                    "updated_at": indexed_at,
                    "total_chunks": chunk_count,
                    "generation": target,
                    "status": IndexStatus.INDEXED,
                    "metadata": {**record.metadata, "ref": ref},
                }
            )
            await self.stores.metadata.update_repository(committed)
        except SourceUnavailableError as e:
            await self._mark_failed(record, e)
            raise
        except StorageError as e:
            await self._mark_failed(record, e)
            raise IndexingError(f"Storage failure while indexing '{repository}': {e.message}") from e
        except Exception as e:
            await self._mark_failed(record, e)
            raise

        await self._purge_old_generations(record.id, older_than=target - 1)

        result = IndexResult(
            repository=repository,
            commit=commit,
            generation=target,
            files_indexed=len(prepared),
            files_skipped=len(skipped),
            chunk_count=chunk_count,
            vector_count=vector_count,
            skipped=skipped,
            duration_seconds=time.monotonic() - started,
        )
        logger.info(
            "indexing_completed",
            commit=commit,
            generation=target,
            files_indexed=result.files_indexed,
            files_skipped=result.files_skipped,
            chunk_count=chunk_count,
            vector_count=vector_count,
            duration_seconds=round(result.duration_seconds, 3),
        )
        return result

    async def _open_tree(self, stack: AsyncExitStack, repository: str, ref: str) -> SourceTree:
        timeout = self.config.indexing.fetch_timeout
        try:
            tree = await asyncio.wait_for(
                stack.enter_async_context(self.source.fetch_tree(repository, ref)), timeout=timeout
            )
        except asyncio.TimeoutError as e:
            raise SourceUnavailableError(
                f"Fetching {repository}@{ref} timed out after {timeout}s",
                source=self.source.name,
                original_error=e,
            ) from e
        if tree.commit is None:
            raise SourceUnavailableError(
                f"Source did not report a commit for {repository}@{ref}", source=self.source.name
            )
        return tree

    async def _prepare_files(
        self, root: Path, files: list[str]
    ) -> tuple[list[PreparedFile], list[tuple[str, str]]]:
        semaphore = asyncio.Semaphore(self.config.indexing.max_workers)
        outcomes = await asyncio.gather(*(self._prepare_file(root, path, semaphore) for path in files))

        prepared = [outcome for outcome in outcomes if isinstance(outcome, PreparedFile)]
        skipped = [outcome for outcome in outcomes if isinstance(outcome, tuple)]
        return prepared, skipped

    async def _prepare_file(
        self, root: Path, path: str, semaphore: asyncio.Semaphore
    ) -> PreparedFile | tuple[str, str]:
        async with semaphore:
            try:
                text = await asyncio.to_thread(
                    read_source_file, root, path, self.config.indexing.max_file_bytes
                )
            except FileSkippedError as e:
                logger.warning("file_skipped", path=path, reason=e.reason, error_type=type(e).__name__)
                return (path, e.reason)

            try:
                chunks = chunk_file(text, path, config=self.config.chunking)
            except Exception as e:
                logger.warning("file_processing_failed", path=path, error=str(e))
                return (path, f"chunking failed: {e}")

            for chunk in chunks:
                chunk.embedding = await embed_or_empty(
                    self.embedding_provider,
                    chunk.content,
                    timeout=self.config.embedding.timeout,
                    path=path,
                    chunk_id=chunk.id,
                )
            return PreparedFile(path=path, chunks=chunks)

    async def _clear_generation(self, repository_id, generation: int) -> None:
        for store in self.stores.all():
            deleted = await store.delete_generation(repository_id, generation)
            if deleted:
                logger.info(
                    "stale_generation_cleared",
                    store=type(store).__name__,
                    generation=generation,
                    deleted=deleted,
                )

    async def _write_snapshot(
        self, repository_id, generation: int, prepared: list[PreparedFile]
    ) -> tuple[int, int]:
        chunk_count = 0
        vector_count = 0
        for prepared_file in prepared:
            chunks = prepared_file.chunks
            if not chunks:
                continue
            for chunk in chunks:
                chunk.repository_id = repository_id

            await self.stores.metadata.add_chunks(repository_id, generation, chunks)
            await self.stores.lexical.index_chunks(repository_id, generation, chunks)
            vectors = [(chunk.id, chunk.embedding) for chunk in chunks if chunk.has_embedding]
            await self.stores.vectors.put_many(repository_id, generation, vectors)
            for chunk in chunks:
                if chunk.symbols:
                    await self.stores.symbols.put(repository_id, generation, chunk.id, chunk.symbols)

            chunk_count += len(chunks)
            vector_count += len(vectors)
        return chunk_count, vector_count

    async def _purge_old_generations(self, repository_id, older_than: int) -> None:
        # The previous generation stays until the next commit; queries that pinned it may still be reading
        for store in self.stores.all():
            try:
                await store.purge_generations(repository_id, older_than=older_than)
            except StorageError as e:
                logger.warning("generation_purge_failed", store=type(store).__name__, error=e.message)

    async def _mark_failed(self, record: Repository, error: Exception) -> None:
        logger.error("indexing_failed", error=str(error), error_type=type(error).__name__)
        record.status = IndexStatus.FAILED
        record.last_error = str(error)
        record.updated_at = datetime.utcnow()
        try:
            await self.stores.metadata.update_repository(record)
        except StorageError as e:
            logger.error("failed_status_not_recorded", error=e.message)

    async def state(self, repository: str) -> Optional[Repository]:
        """Current repository record, None if the repository is unknown."""
        return await self.repositories.get_repository(repository)

    async def stats(self, repository: str) -> IndexStats:
        """Summary of the committed snapshot.

        Raises:
            RepositoryNotIndexedError: If the repository has no snapshot
        """
        record = await self.repositories.require_indexed(repository)
        breakdown = await self.stores.metadata.chunk_breakdown(record.id, record.generation)
        return IndexStats(
            repository=record.name,
            total_chunks=record.total_chunks,
            last_indexed=record.last_indexed,
            last_commit=record.last_commit,
            status=record.status,
            by_kind=breakdown.get("kind", {}),
            by_language=breakdown.get("language", {}),
            by_role=breakdown.get("role", {}),
        )


class IndexingError(Exception):
    """Exception raised when an indexing pass fails."""

    pass


class IndexingInProgressError(IndexingError):
    """Raised when a pass is requested without waiting while one is running."""

    pass


class FileSkippedError(Exception):
    """A single file was left out of the snapshot."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class FileTooLargeError(FileSkippedError):
    pass


class FileUnreadableError(FileSkippedError):
    pass

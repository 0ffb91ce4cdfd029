"""Unit tests for RepositoryManager."""

import pytest

from reposearch.core.repository import (
    RepositoryError,
    RepositoryManager,
    RepositoryNotFoundError,
    RepositoryNotIndexedError,
)
from reposearch.entities import Chunk, Symbol, SymbolKind, SymbolLocation


@pytest.fixture
def manager(memory_stores):
    return RepositoryManager(memory_stores)


class TestGetOrCreate:
    async def test_creates_once(self, manager):
        first = await manager.get_or_create("acme/site")
        second = await manager.get_or_create("acme/site")

        assert first.id == second.id
        assert first.generation == 0
        assert [r.name for r in await manager.list_repositories()] == ["acme/site"]

    async def test_invalid_name(self, manager):
        with pytest.raises(RepositoryError, match="Invalid repository name"):
            await manager.get_or_create("not a/valid/name")

    async def test_lookup_unknown(self, manager):
        assert await manager.get_repository("acme/none") is None


class TestRequireIndexed:
    async def test_unknown_repository(self, manager):
        with pytest.raises(RepositoryNotIndexedError, match="acme/none"):
            await manager.require_indexed("acme/none")

    async def test_never_committed(self, manager):
        await manager.get_or_create("acme/site")

        # Not-indexed is a kind of not-found
        with pytest.raises(RepositoryNotFoundError):
            await manager.require_indexed("acme/site")

    async def test_committed(self, manager, memory_stores):
        repository = await manager.get_or_create("acme/site")
        repository.generation = 1
        repository.last_commit = "abc"
        await memory_stores.metadata.update_repository(repository)

        assert (await manager.require_indexed("acme/site")).last_commit == "abc"


class TestDeleteRepository:
    async def test_delete_unknown(self, manager):
        assert not await manager.delete_repository("acme/none")

    async def test_cascades_to_every_store(self, manager, memory_stores):
        repository = await manager.get_or_create("acme/site")
        chunk = Chunk(
            id="index.html:1-1:block",
            file_path="index.html",
            content="header",
            start_line=1,
            end_line=1,
            term_frequencies={"header": 1},
        )
        symbol = Symbol(name="header", kind=SymbolKind.ELEMENT, location=SymbolLocation(line=1, end_line=1))
        await memory_stores.metadata.add_chunks(repository.id, 1, [chunk])
        await memory_stores.lexical.index_chunks(repository.id, 1, [chunk])
        await memory_stores.vectors.put(repository.id, 1, chunk.id, [1.0, 0.0])
        await memory_stores.symbols.put(repository.id, 1, chunk.id, [symbol])

        assert await manager.delete_repository("acme/site")

        assert await manager.get_repository("acme/site") is None
        assert await memory_stores.metadata.count_chunks(repository.id, 1) == 0
        assert await memory_stores.lexical.search(repository.id, 1, "header") == []
        assert await memory_stores.vectors.count(repository.id, 1) == 0
        assert await memory_stores.symbols.list_symbols(repository.id, 1) == []

    async def test_store_failure_is_wrapped(self, manager, memory_stores, monkeypatch):
        await manager.get_or_create("acme/site")

        async def broken(repository_id, older_than=None):
            raise RuntimeError("disk gone")

        monkeypatch.setattr(memory_stores.vectors, "purge_generations", broken)

        with pytest.raises(RepositoryError, match="disk gone"):
            await manager.delete_repository("acme/site")

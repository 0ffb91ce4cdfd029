"""Unit tests for ChromaVectorStore."""

from uuid import uuid4

import pytest

from reposearch.storage.base import StorageConfig
from reposearch.storage.chroma import ChromaVectorStore, sanitize_collection_name


class TestSanitizeCollectionName:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("reposearch_abc", "reposearch_abc"),
            ("acme/site", "acme_site"),
            ("_x", "c_x"),
            ("x_", "x_0"),
            ("ab", "ab_default"),
        ],
    )
    def test_sanitize(self, name, expected):
        assert sanitize_collection_name(name) == expected

    def test_truncates_long_names(self):
        assert len(sanitize_collection_name("a" * 100)) == 63


class TestChromaVectorStore:
    @pytest.fixture
    async def store(self, tmp_path):
        pytest.importorskip("chromadb")
        store = ChromaVectorStore(
            StorageConfig(store_type="sqlite", collection_name="test", persist_directory=str(tmp_path))
        )
        await store.initialize()
        yield store
        await store.close()

    async def test_initialization(self, store, tmp_path):
        assert store.base_collection_name == "test"
        assert store.persist_directory == str(tmp_path)
        assert store._client is not None

    async def test_put_and_search(self, store):
        repository_id = uuid4()
        await store.put_many(
            repository_id,
            1,
            [("same", [1.0, 0.0, 0.0]), ("close", [0.9, 0.1, 0.0]), ("far", [0.0, 0.0, 1.0])],
        )

        results = await store.search(repository_id, 1, [1.0, 0.0, 0.0], min_similarity=0.5)
        assert [chunk_id for chunk_id, _ in results] == ["same", "close"]
        assert results[0][1] == pytest.approx(1.0, abs=1e-4)

    async def test_empty_vectors_are_ignored(self, store):
        repository_id = uuid4()
        await store.put(repository_id, 1, "none", [])

        assert await store.count(repository_id, 1) == 0
        assert await store.search(repository_id, 1, [1.0, 0.0]) == []

    async def test_generations(self, store):
        repository_id = uuid4()
        await store.put(repository_id, 1, "a", [1.0, 0.0])
        await store.put(repository_id, 2, "a", [1.0, 0.0])

        assert [c for c, _ in await store.search(repository_id, 2, [1.0, 0.0])] == ["a"]

        await store.purge_generations(repository_id, older_than=2)
        assert await store.count(repository_id, 1) == 0
        assert await store.count(repository_id, 2) == 1

        await store.delete_generation(repository_id, 2)
        assert await store.count(repository_id, 2) == 0

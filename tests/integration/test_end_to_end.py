"""End-to-end tests: index a repository into SQLite, then search and answer."""

import pytest

from reposearch.config.schema import StorageSettings, StoreType
from reposearch.pipelines.indexing import RepositoryIndexer
from reposearch.pipelines.query import QueryEngine
from reposearch.storage import create_index_stores

pytestmark = pytest.mark.integration

REPO = "bentossell/site"

HEADER_DOC = """# Contributing

Keep pages small.

## Header

The header component is documented here. Change the header in index.html.
"""


@pytest.fixture
def settings(tmp_path):
    return StorageSettings(store_type=StoreType.SQLITE, connection_string=f"sqlite:///{tmp_path / 'e2e.db'}")


@pytest.fixture
async def stores(settings):
    stores = create_index_stores(settings)
    await stores.initialize()
    yield stores
    await stores.close()


@pytest.fixture
async def pipeline(app_config, stores, source, embedding_provider, llm_provider, site_files):
    source.publish(REPO, {**site_files, "docs/header.md": HEADER_DOC}, "a1")
    indexer = RepositoryIndexer(app_config, stores, source, embedding_provider)
    engine = QueryEngine(app_config, stores, embedding_provider, llm_provider)
    await indexer.index(REPO)
    return indexer, engine


class TestTitleChange:
    async def test_exact_title_chunk_ranks_first(self, pipeline):
        _, engine = pipeline

        results = await engine.search(REPO, "Change the site title from 'Ben Tossell' to 'Ben T'")

        top = results[0]
        assert top.chunk.id == "index.html:4-4:element"
        assert "exact text" in top.reason
        assert top.chunk.content == "<title>Ben Tossell</title>"
        css = [r for r in results if r.chunk.file_path == "styles.css"]
        assert all(r.fused_score < top.fused_score / 2 for r in css)

    async def test_answer_cites_the_title(self, pipeline, llm_provider):
        _, engine = pipeline

        answer, sources = await engine.answer(REPO, "Change the site title from 'Ben Tossell' to 'Ben T'")

        assert answer.startswith("[mock answer")
        assert sources[0].chunk.id == "index.html:4-4:element"
        assert "[index.html:4-4]" in llm_provider.prompts[0]


class TestHeaderTask:
    async def test_page_header_beats_documentation(self, pipeline):
        _, engine = pipeline

        results = await engine.search(REPO, "make the header sticky")
        ids = [r.chunk.id for r in results]

        assert ids[0] == "index.html:8-10:element"
        doc_positions = [i for i, r in enumerate(results) if r.chunk.file_path == "docs/header.md"]
        assert doc_positions
        assert min(doc_positions) > 0


class TestSnapshotLifecycle:
    async def test_new_commit_replaces_snapshot(self, pipeline, source, site_files, stores):
        indexer, engine = pipeline
        renamed = site_files["index.html"].replace("Ben Tossell", "Jane Doe")
        source.publish(REPO, {"index.html": renamed}, "a2")

        assert await indexer.needs_update(REPO)
        result = await indexer.index_if_needed(REPO)
        assert result.commit == "a2"

        results = await engine.search(REPO, "change 'Jane Doe'")
        assert results[0].chunk.content == "<title>Jane Doe</title>"
        assert all(r.chunk.file_path == "index.html" for r in results)

        record = await indexer.state(REPO)
        assert record.generation == 2
        assert await stores.metadata.count_chunks(record.id, 1) > 0
        assert not await indexer.needs_update(REPO)

        source.publish(REPO, {"index.html": renamed}, "a3")
        await indexer.index(REPO)
        assert await stores.metadata.count_chunks(record.id, 1) == 0
        assert await stores.metadata.count_chunks(record.id, 2) > 0

    async def test_index_survives_reopen(self, pipeline, settings, app_config, embedding_provider):
        _, engine = pipeline
        before = [r.chunk.id for r in await engine.search(REPO, "make the header sticky")]

        reopened = create_index_stores(settings)
        await reopened.initialize()
        try:
            after = [
                r.chunk.id
                for r in await QueryEngine(app_config, reopened, embedding_provider).search(
                    REPO, "make the header sticky"
                )
            ]
        finally:
            await reopened.close()

        assert after == before

    async def test_stats(self, pipeline):
        indexer, _ = pipeline

        stats = await indexer.stats(REPO)

        assert stats.last_commit == "a1"
        assert set(stats.by_language) == {"html", "css", "markdown"}
        assert stats.by_role["documentation"] >= 1

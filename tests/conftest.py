"""Shared fixtures: configuration, stores, providers and a scriptable source."""

import asyncio
import shutil
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import pytest
import structlog

from reposearch.config.schema import (
    AppConfig,
    EmbeddingConfig,
    LLMConfig,
    StorageSettings,
    StoreType,
)
from reposearch.providers.mock import MockEmbeddingProvider, MockLLMProvider
from reposearch.sources.base import SourceProvider, SourceTree, SourceUnavailableError
from reposearch.storage import create_index_stores

SITE_FILES = {
    "index.html": """<!DOCTYPE html>
<html>
<head>
  <title>Ben Tossell</title>
  <link rel="stylesheet" href="styles.css">
</head>
<body>
  <header>
    <nav><a href="/">Home</a> <a href="/about">About</a></nav>
  </header>
  <h1>Welcome</h1>
</body>
</html>
""",
    "styles.css": """body {
  font-family: sans-serif;
  color: #333;
}

.card {
  background: #fff;
}
""",
}


class FakeSourceProvider(SourceProvider):
    """In-process source: file maps per repository, materialized into temp dirs.

    Tests change ``files`` and ``commits`` between passes to simulate pushes.
    """

    name = "fake"

    def __init__(self, workdir: Path):
        self.workdir = workdir
        self.files: dict[str, dict[str, str | bytes]] = {}
        self.commits: dict[str, Optional[str]] = {}
        self.fail_fetch: Optional[Exception] = None
        self.fail_commit: Optional[Exception] = None
        self.fetch_delay = 0.0
        self.fetches = 0
        self.active_fetches = 0
        self.max_active_fetches = 0

    def publish(self, repository: str, files: dict[str, str | bytes], commit: Optional[str]) -> None:
        self.files[repository] = dict(files)
        self.commits[repository] = commit

    async def current_commit(self, repository: str, ref: str) -> Optional[str]:
        if self.fail_commit is not None:
            raise self.fail_commit
        return self.commits.get(repository)

    @asynccontextmanager
    async def fetch_tree(self, repository: str, ref: str):
        self.fetches += 1
        self.active_fetches += 1
        self.max_active_fetches = max(self.max_active_fetches, self.active_fetches)
        root = Path(tempfile.mkdtemp(dir=self.workdir))
        try:
            if self.fetch_delay:
                await asyncio.sleep(self.fetch_delay)
            if self.fail_fetch is not None:
                raise self.fail_fetch
            if repository not in self.files:
                raise SourceUnavailableError(f"Unknown repository {repository}", source=self.name)
            for relative, content in self.files[repository].items():
                path = root / relative
                path.parent.mkdir(parents=True, exist_ok=True)
                if isinstance(content, bytes):
                    path.write_bytes(content)
                else:
                    path.write_text(content, encoding="utf-8")
            yield SourceTree(root=root, commit=self.commits.get(repository))
        finally:
            self.active_fetches -= 1
            shutil.rmtree(root, ignore_errors=True)


@pytest.fixture(autouse=True)
def captured_logs():
    """Capture structlog events instead of printing them."""
    with structlog.testing.capture_logs() as logs:
        yield logs


@pytest.fixture
def app_config(tmp_path):
    """Offline configuration: in-memory stores, mock providers."""
    return AppConfig(
        data_dir=tmp_path / "data",
        storage=StorageSettings(store_type=StoreType.MEMORY),
        embedding=EmbeddingConfig(provider="mock", model_name="hashed-bow"),
        llm=LLMConfig(provider="mock", model_name="echo"),
    )


@pytest.fixture
async def memory_stores():
    stores = create_index_stores(StorageSettings(store_type=StoreType.MEMORY))
    await stores.initialize()
    yield stores
    await stores.close()


@pytest.fixture
def embedding_provider():
    return MockEmbeddingProvider()


@pytest.fixture
def llm_provider():
    return MockLLMProvider()


@pytest.fixture
def source(tmp_path):
    workdir = tmp_path / "checkouts"
    workdir.mkdir()
    return FakeSourceProvider(workdir)


@pytest.fixture
def site_files():
    return dict(SITE_FILES)

"""Unit tests for the CLI commands."""

import json
from unittest.mock import AsyncMock, patch

import pytest
import typer
from typer.testing import CliRunner

from reposearch.config.schema import SourceProviderType
from reposearch.interfaces.cli import (
    _ask_async,
    _index_async,
    _repo_delete_async,
    _repo_list_async,
    _search_async,
    _stats_async,
    _status_async,
    app,
)

REPO = "acme/site"


@pytest.fixture
def site_dir(tmp_path, site_files):
    root = tmp_path / "site"
    root.mkdir()
    for name, content in site_files.items():
        (root / name).write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def cli_env(app_config, memory_stores):
    """Route every command to the offline config and shared in-memory stores."""
    with patch("reposearch.interfaces.cli._load_config", return_value=app_config), patch(
        "reposearch.interfaces.cli._open_stores", AsyncMock(return_value=memory_stores)
    ):
        yield memory_stores


@pytest.fixture
async def indexed(cli_env, site_dir, capsys):
    await _index_async(REPO, None, None, site_dir, False, None)
    capsys.readouterr()
    return cli_env


class TestIndexCommand:
    async def test_index_local_directory(self, cli_env, site_dir, capsys):
        await _index_async(REPO, None, None, site_dir, False, None)

        output = capsys.readouterr().out
        assert f"Indexed '{REPO}'" in output
        assert "Files indexed: 2" in output
        record = await cli_env.metadata.get_repository_by_name(REPO)
        assert record.is_indexed
        assert record.last_commit.startswith("fp:")

    async def test_second_run_is_up_to_date(self, indexed, site_dir, capsys):
        await _index_async(REPO, None, None, site_dir, False, None)
        assert "already up to date" in capsys.readouterr().out

    async def test_force_reindexes(self, indexed, site_dir, capsys):
        await _index_async(REPO, None, None, site_dir, True, None)

        assert f"Indexed '{REPO}'" in capsys.readouterr().out
        assert (await indexed.metadata.get_repository_by_name(REPO)).generation == 2

    async def test_reports_skipped_files(self, cli_env, site_dir, capsys):
        (site_dir / "blob.js").write_bytes(b"\x00\x01")

        await _index_async(REPO, None, None, site_dir, False, None)
        output = capsys.readouterr().out
        assert "Skipped 1 file(s)" in output
        assert "blob.js: binary content" in output

    async def test_path_requires_local_source(self, cli_env, site_dir):
        with pytest.raises(typer.Exit) as exc_info:
            await _index_async(REPO, None, SourceProviderType.GITHUB, site_dir, False, None)
        assert exc_info.value.exit_code == 1

    async def test_missing_directory(self, cli_env, tmp_path):
        with pytest.raises(typer.Exit):
            await _index_async(REPO, None, None, tmp_path / "nope", False, None)

    async def test_unknown_repository_fails(self, cli_env, capsys):
        with pytest.raises(typer.Exit) as exc_info:
            await _index_async("acme/unknown", None, SourceProviderType.LOCAL, None, False, None)

        assert exc_info.value.exit_code == 1
        assert "Indexing failed" in capsys.readouterr().out


class TestStatusCommand:
    async def test_unknown(self, cli_env):
        with pytest.raises(typer.Exit):
            await _status_async(REPO, None)

    async def test_indexed(self, indexed, capsys):
        await _status_async(REPO, None)

        output = capsys.readouterr().out
        assert "indexed" in output
        assert "fp:" in output


class TestStatsCommand:
    async def test_json(self, indexed, capsys):
        await _stats_async(REPO, True, None)

        payload = json.loads(capsys.readouterr().out)
        assert payload["repository"] == REPO
        assert payload["total_chunks"] > 0
        assert set(payload["by_language"]) == {"html", "css"}

    async def test_not_indexed(self, cli_env):
        with pytest.raises(typer.Exit):
            await _stats_async(REPO, False, None)


class TestSearchCommand:
    async def test_json(self, indexed, capsys):
        await _search_async(REPO, "change the name 'Ben Tossell' to 'Jane Doe'", 5, True, None)

        payload = json.loads(capsys.readouterr().out)
        assert payload[0]["chunk_id"] == "index.html:4-4:element"
        assert payload[0]["file_path"] == "index.html"
        assert payload[0]["start_line"] == payload[0]["end_line"] == 4
        assert "exact text" in payload[0]["reason"]
        assert len(payload) <= 5

    async def test_no_results(self, cli_env, capsys):
        await _search_async(REPO, "header", 5, False, None)
        assert "No results found" in capsys.readouterr().out

    async def test_text_output(self, indexed, capsys):
        await _search_async(REPO, "make the header sticky", 3, False, None)

        output = capsys.readouterr().out
        assert "index.html:8-10" in output
        assert "Reason:" in output


class TestAskCommand:
    async def test_answer_with_sources(self, indexed, capsys):
        await _ask_async(REPO, "make the header sticky", 3, None)

        output = capsys.readouterr().out
        assert "[mock answer based on" in output
        assert "index.html:8-10" in output


class TestRepoCommands:
    async def test_list(self, indexed, capsys):
        await _repo_list_async(None)
        assert REPO in capsys.readouterr().out

    async def test_list_empty(self, cli_env, capsys):
        await _repo_list_async(None)
        assert "No repositories found" in capsys.readouterr().out

    async def test_delete(self, indexed, capsys):
        await _repo_delete_async(REPO, True, None)

        assert "Deleted repository" in capsys.readouterr().out
        assert await indexed.metadata.get_repository_by_name(REPO) is None

    async def test_delete_unknown(self, cli_env):
        with pytest.raises(typer.Exit):
            await _repo_delete_async("acme/none", True, None)


class TestSyncCommands:
    @pytest.fixture
    def runner(self, app_config):
        with patch("reposearch.interfaces.cli._load_config", return_value=app_config):
            yield CliRunner()

    def test_chunk_json(self, runner, site_dir):
        result = runner.invoke(app, ["chunk", str(site_dir / "index.html"), "--json"])

        assert result.exit_code == 0
        chunks = json.loads(result.output)
        title = next(c for c in chunks if c["start_line"] == 4 and c["kind"] == "symbol")
        assert title["symbols"] == [{"name": "Ben Tossell", "kind": "element", "line": 4}]
        assert "content" not in title

    def test_chunk_missing_file(self, runner, tmp_path):
        result = runner.invoke(app, ["chunk", str(tmp_path / "missing.html")])
        assert result.exit_code == 1

    def test_info(self, runner):
        result = runner.invoke(app, ["info"])

        assert result.exit_code == 0
        assert "hashed-bow" in result.output

"""Command-line interface for the repository code search engine.

Commands:
- index: Index a repository (incremental unless --force)
- status: Show a repository's indexing state
- stats: Show chunk counts of the indexed snapshot
- search: Rank the chunks relevant to a query
- ask: Answer a task with an LLM using the top chunks as context
- chunk: Show how a single file is chunked
- repo: Manage repositories (list, delete)
- info: Show system information
"""

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from reposearch.config.loader import get_default_config_path, load_config
from reposearch.config.schema import AppConfig, SourceProviderType
from reposearch.observability.logging import configure_from_config, get_logger

app = typer.Typer(
    name="reposearch",
    help="Index code repositories and search them with lexical, vector and structural signals",
    add_completion=False,
)

console = Console()
logger = get_logger(__name__)


async def _open_stores(config: AppConfig):
    """Create and initialize the index stores, exiting on failure."""
    from reposearch.service import initialize_stores
    from reposearch.storage import StorageError

    try:
        return await initialize_stores(config)
    except (StorageError, ValueError) as e:
        console.print(f"[red]Error initializing stores: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def index(
    repository: str = typer.Argument(..., help="Repository name (owner/name)"),
    ref: Optional[str] = typer.Option(None, "--ref", "-r", help="Branch, tag or commit (defaults to config default_ref)"),
    source: Optional[SourceProviderType] = typer.Option(None, "--source", "-s", help="Source provider"),
    path: Optional[Path] = typer.Option(None, "--path", "-p", help="Local directory holding the repository"),
    force: bool = typer.Option(False, "--force", "-f", help="Re-index even if the commit is unchanged"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Index a repository snapshot."""
    asyncio.run(_index_async(repository, ref, source, path, force, config_file))


async def _index_async(
    repository: str,
    ref: Optional[str],
    source: Optional[SourceProviderType],
    path: Optional[Path],
    force: bool,
    config_file: Optional[Path],
):
    """Async implementation of index command."""
    from reposearch.core.repository import RepositoryError
    from reposearch.pipelines.indexing import IndexingError, RepositoryIndexer
    from reposearch.service import initialize_embedding_provider
    from reposearch.sources import SourceUnavailableError, create_source_provider

    config = _load_config(config_file)
    if path is not None:
        source = source or SourceProviderType.LOCAL
        if source != SourceProviderType.LOCAL:
            console.print("[red]--path can only be used with the local source[/red]")
            raise typer.Exit(1)
        if not path.is_dir():
            console.print(f"[red]Directory not found: {path}[/red]")
            raise typer.Exit(1)

    stores = await _open_stores(config)
    source_provider = create_source_provider(
        config.sources,
        provider=source,
        paths={repository: path} if path is not None else None,
        timeout=config.indexing.fetch_timeout,
    )
    embedding_provider = initialize_embedding_provider(config)
    if embedding_provider is None:
        console.print("[yellow]Embedding provider unavailable; indexing without vectors[/yellow]")

    try:
        indexer = RepositoryIndexer(config, stores, source_provider, embedding_provider)
        console.print(f"[cyan]Indexing '{repository}' at {ref or config.default_ref}...[/cyan]")

        with console.status("Indexing..."):
            result = await indexer.index_if_needed(repository, ref, force=force)

        if result is None:
            console.print(f"[green]✓[/green] '{repository}' is already up to date")
            return

        console.print(f"[green]✓[/green] Indexed '{repository}' at commit {result.commit}")
        console.print(f"  Files indexed: {result.files_indexed}")
        console.print(f"  Chunks: {result.chunk_count} ({result.vector_count} with vectors)")
        if result.skipped:
            console.print(f"  [yellow]Skipped {result.files_skipped} file(s):[/yellow]")
            for skipped_path, reason in result.skipped:
                console.print(f"    {skipped_path}: {reason}")

    except (SourceUnavailableError, IndexingError, RepositoryError) as e:
        console.print(f"[red]Indexing failed: {e}[/red]")
        logger.error("index_command_failed", repository=repository, error=str(e))
        raise typer.Exit(1)

    finally:
        if embedding_provider:
            await embedding_provider.close()
        await source_provider.close()
        await stores.close()


@app.command()
def status(
    repository: str = typer.Argument(..., help="Repository name"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Show a repository's indexing state."""
    asyncio.run(_status_async(repository, config_file))


async def _status_async(repository: str, config_file: Optional[Path]):
    """Async implementation of status command."""
    config = _load_config(config_file)
    stores = await _open_stores(config)

    try:
        record = await stores.metadata.get_repository_by_name(repository)
        if record is None:
            console.print(f"[yellow]Repository '{repository}' has not been indexed[/yellow]")
            raise typer.Exit(1)

        table = Table(title=f"Repository: {record.name}")
        table.add_column("Field", style="cyan")
        table.add_column("Value", style="green")
        table.add_row("Status", record.status.value)
        table.add_row("Last commit", record.last_commit or "-")
        table.add_row("Last indexed", record.last_indexed.isoformat() if record.last_indexed else "-")
        table.add_row("Chunks", str(record.total_chunks))
        table.add_row("Generation", str(record.generation))
        table.add_row("Ref", str(record.metadata.get("ref", "-")))
        if record.last_error:
            table.add_row("Last error", record.last_error)
        console.print(table)

    finally:
        await stores.close()


@app.command()
def stats(
    repository: str = typer.Argument(..., help="Repository name"),
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Show chunk counts of the indexed snapshot."""
    asyncio.run(_stats_async(repository, json_output, config_file))


async def _stats_async(repository: str, json_output: bool, config_file: Optional[Path]):
    """Async implementation of stats command."""
    from reposearch.core.repository import RepositoryNotIndexedError
    from reposearch.pipelines.indexing import RepositoryIndexer
    from reposearch.sources import create_source_provider

    config = _load_config(config_file)
    stores = await _open_stores(config)
    source_provider = create_source_provider(config.sources)

    try:
        indexer = RepositoryIndexer(config, stores, source_provider)
        try:
            index_stats = await indexer.stats(repository)
        except RepositoryNotIndexedError as e:
            console.print(f"[yellow]{e}[/yellow]")
            raise typer.Exit(1)

        if json_output:
            typer.echo(index_stats.model_dump_json(indent=2))
            return

        console.print(f"[bold]{index_stats.repository}[/bold]")
        console.print(f"  Total chunks: {index_stats.total_chunks}")
        console.print(f"  Last commit: {index_stats.last_commit}")
        console.print(f"  Last indexed: {index_stats.last_indexed}")

        for title, breakdown in (
            ("By kind", index_stats.by_kind),
            ("By language", index_stats.by_language),
            ("By role", index_stats.by_role),
        ):
            table = Table(title=title)
            table.add_column("Value", style="cyan")
            table.add_column("Chunks", style="yellow", justify="right")
            for value, count in sorted(breakdown.items(), key=lambda item: (-item[1], item[0])):
                table.add_row(value, str(count))
            console.print(table)

    finally:
        await source_provider.close()
        await stores.close()


@app.command()
def search(
    repository: str = typer.Argument(..., help="Repository name"),
    query: str = typer.Argument(..., help="Search query or task description"),
    limit: int = typer.Option(10, "--limit", "-n", help="Number of results"),
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Rank the chunks of a repository for a query."""
    asyncio.run(_search_async(repository, query, limit, json_output, config_file))


async def _search_async(
    repository: str, query: str, limit: int, json_output: bool, config_file: Optional[Path]
):
    """Async implementation of search command."""
    from reposearch.pipelines.query import QueryEngine
    from reposearch.service import initialize_embedding_provider

    config = _load_config(config_file)
    stores = await _open_stores(config)
    embedding_provider = initialize_embedding_provider(config)

    try:
        engine = QueryEngine(config, stores, embedding_provider)
        results = await engine.search(repository, query, limit=limit)

        if json_output:
            payload = [
                {
                    "chunk_id": result.chunk.id,
                    "file_path": result.chunk.file_path,
                    "start_line": result.chunk.start_line,
                    "end_line": result.chunk.end_line,
                    "kind": result.chunk.kind.value,
                    "score": round(result.fused_score, 4),
                    "lexical_score": round(result.lexical_score, 4),
                    "vector_score": round(result.vector_score, 4),
                    "structural_score": round(result.structural_score, 4),
                    "boost_score": round(result.boost_score, 4),
                    "reason": result.reason,
                }
                for result in results
            ]
            typer.echo(json.dumps(payload, indent=2))
            return

        if not results:
            console.print("[yellow]No results found[/yellow]")
            return

        console.print(f"\n[green]Found {len(results)} result(s):[/green]\n")
        for i, result in enumerate(results, 1):
            chunk = result.chunk
            console.print(
                f"[bold cyan]{i}. {chunk.file_path}:{chunk.start_line}-{chunk.end_line}[/bold cyan] "
                f"(score: {result.fused_score:.4f})",
                markup=True,
            )
            console.print(f"   Reason: {result.reason}", markup=False)
            preview = chunk.content.strip().replace("\n", " ")
            console.print(f"   {preview[:200]}{'...' if len(preview) > 200 else ''}", markup=False)
            console.print()

    finally:
        if embedding_provider:
            await embedding_provider.close()
        await stores.close()


@app.command()
def ask(
    repository: str = typer.Argument(..., help="Repository name"),
    task: str = typer.Argument(..., help="Task or question about the code"),
    limit: int = typer.Option(5, "--limit", "-n", help="Number of chunks used as context"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Answer a task with an LLM, using the most relevant chunks as context."""
    asyncio.run(_ask_async(repository, task, limit, config_file))


async def _ask_async(repository: str, task: str, limit: int, config_file: Optional[Path]):
    """Async implementation of ask command."""
    from reposearch.pipelines.query import QueryEngine
    from reposearch.providers import ProviderError
    from reposearch.service import initialize_embedding_provider, initialize_llm_provider

    config = _load_config(config_file)

    try:
        llm_provider = initialize_llm_provider(config)
    except (ProviderError, ValueError) as e:
        console.print(f"[red]Error creating LLM provider: {e}[/red]")
        raise typer.Exit(1)

    stores = await _open_stores(config)
    embedding_provider = initialize_embedding_provider(config)

    try:
        engine = QueryEngine(config, stores, embedding_provider, llm_provider)
        try:
            answer, sources = await engine.answer(repository, task, limit=limit)
        except ProviderError as e:
            console.print(f"[red]LLM error: {e}[/red]")
            raise typer.Exit(1)

        console.print("\n[bold green]Answer:[/bold green]")
        console.print(answer, markup=False)

        if sources:
            console.print("\n[bold]Sources:[/bold]")
            for result in sources:
                chunk = result.chunk
                console.print(f"  - {chunk.file_path}:{chunk.start_line}-{chunk.end_line} ({result.reason})", markup=False)

    finally:
        if embedding_provider:
            await embedding_provider.close()
        await llm_provider.close()
        await stores.close()


@app.command()
def chunk(
    file: Path = typer.Argument(..., help="File to chunk"),
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show chunk content"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Show how a single file is chunked."""
    from reposearch.core.chunking import chunk_file

    config = _load_config(config_file)

    try:
        text = file.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        console.print(f"[yellow]Skipping non-text file: {file}[/yellow]")
        raise typer.Exit(1)
    except OSError as e:
        console.print(f"[red]Error reading file: {e}[/red]")
        raise typer.Exit(1)

    chunks = chunk_file(text, file.as_posix(), config=config.chunking)

    if json_output:
        payload = [
            {
                "id": c.id,
                "kind": c.kind.value,
                "language": c.language,
                "file_role": c.file_role.value,
                "start_line": c.start_line,
                "end_line": c.end_line,
                "symbols": [{"name": s.name, "kind": s.kind.value, "line": s.location.line} for s in c.symbols],
                **({"content": c.content} if verbose else {}),
            }
            for c in chunks
        ]
        typer.echo(json.dumps(payload, indent=2))
        return

    if not chunks:
        console.print("[yellow]No chunks produced (empty file)[/yellow]")
        return

    table = Table(title=f"Chunks of {file.name}")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Lines", style="cyan")
    table.add_column("Kind", style="green")
    table.add_column("Language")
    table.add_column("Role")
    table.add_column("Symbols", style="yellow")
    for i, c in enumerate(chunks, 1):
        table.add_row(
            str(i),
            f"{c.start_line}-{c.end_line}",
            c.kind.value,
            c.language,
            c.file_role.value,
            ", ".join(f"{s.kind.value}:{s.name}" for s in c.symbols) or "-",
        )
    console.print(table)

    if verbose:
        for c in chunks:
            console.print(f"\n[bold]{c.id}[/bold]")
            console.print(c.content, markup=False, highlight=False)


repo_app = typer.Typer(help="Manage repositories")
app.add_typer(repo_app, name="repo")


@repo_app.command("list")
def repo_list(
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """List all known repositories."""
    asyncio.run(_repo_list_async(config_file))


async def _repo_list_async(config_file: Optional[Path]):
    """Async implementation of repo list command."""
    from reposearch.core.repository import RepositoryManager

    config = _load_config(config_file)
    stores = await _open_stores(config)

    try:
        repositories = await RepositoryManager(stores).list_repositories()
        if not repositories:
            console.print("[yellow]No repositories found[/yellow]")
            return

        table = Table(title="Repositories")
        table.add_column("Name", style="cyan")
        table.add_column("Status", style="green")
        table.add_column("Commit", style="dim")
        table.add_column("Chunks", style="yellow", justify="right")
        table.add_column("Last indexed")
        for repo in repositories:
            table.add_row(
                repo.name,
                repo.status.value,
                (repo.last_commit or "-")[:12],
                str(repo.total_chunks),
                repo.last_indexed.strftime("%Y-%m-%d %H:%M") if repo.last_indexed else "-",
            )
        console.print(table)

    finally:
        await stores.close()


@repo_app.command("delete")
def repo_delete(
    name: str = typer.Argument(..., help="Repository name"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation prompt"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Delete a repository and all its index data."""
    asyncio.run(_repo_delete_async(name, force, config_file))


async def _repo_delete_async(name: str, force: bool, config_file: Optional[Path]):
    """Async implementation of repo delete command."""
    from reposearch.core.repository import RepositoryError, RepositoryManager

    config = _load_config(config_file)

    if not force:
        typer.confirm(f"Are you sure you want to delete repository '{name}' and all its index data?", abort=True)

    stores = await _open_stores(config)

    try:
        try:
            deleted = await RepositoryManager(stores).delete_repository(name)
        except RepositoryError as e:
            console.print(f"[red]Error deleting repository: {e}[/red]")
            raise typer.Exit(1)

        if not deleted:
            console.print(f"[red]Repository '{name}' not found[/red]")
            raise typer.Exit(1)

        console.print(f"[green]✓[/green] Deleted repository: {name}")

    finally:
        await stores.close()


@app.command()
def info(
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Show system information and configuration."""
    config = _load_config(config_file)

    table = Table(title="reposearch Information")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Data Directory", str(config.data_dir))
    table.add_row("Default Ref", config.default_ref)
    table.add_row("Log Level", config.logging.level.value)
    table.add_row("Embedding Provider", config.embedding.provider.value)
    table.add_row("Embedding Model", config.embedding.model_name)
    table.add_row("LLM Provider", config.llm.provider.value)
    table.add_row("LLM Model", config.llm.model_name)
    table.add_row("Store", config.storage.store_type.value)
    table.add_row("Vector Backend", config.storage.vector_backend.value)
    table.add_row("Source Provider", config.sources.provider.value)
    table.add_row("Boost Rules", ", ".join(config.search.boosts))

    console.print(table)


def _load_config(config_file: Optional[Path]) -> AppConfig:
    """Load configuration and setup logging."""
    if config_file is None:
        config_file = get_default_config_path()

    config = load_config(config_file)
    configure_from_config(config.logging)

    return config


if __name__ == "__main__":
    app()

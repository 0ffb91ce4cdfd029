"""SQLite storage implementation.

Provides persistent storage for repositories, chunks, lexical postings (FTS5),
vectors and symbols in one SQLite database. Uses aiosqlite for async
operations. The four stores share a single connection through SQLiteDatabase.

Layout:
- repositories: one row per repository, including the current generation
- chunks: PK (repository_id, generation, id)
- symbols: one row per symbol, scoped by repository and generation
- vectors: JSON encoded chunk embeddings
- chunks_fts: FTS5 table (porter tokenizer) ranked with bm25()
"""

import json
import os
from collections import Counter
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import aiosqlite

from reposearch.core.similarity import cosine_similarity
from reposearch.core.structural import rank_structural, score_symbols
from reposearch.core.tokens import query_terms
from reposearch.entities import (
    Chunk,
    ChunkKind,
    FileRole,
    IndexStatus,
    Repository,
    Symbol,
    SymbolKind,
    SymbolLocation,
)
from reposearch.storage.base import (
    LexicalHit,
    LexicalIndex,
    MetadataStore,
    StorageConfig,
    StorageError,
    SymbolStore,
    VectorStore,
)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS repositories (
        id TEXT PRIMARY KEY,
        name TEXT UNIQUE NOT NULL,
        last_commit TEXT,
        last_indexed TEXT,
        total_chunks INTEGER NOT NULL DEFAULT 0,
        generation INTEGER NOT NULL DEFAULT 0,
        status TEXT NOT NULL,
        last_error TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        metadata TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS chunks (
        repository_id TEXT NOT NULL,
        generation INTEGER NOT NULL,
        id TEXT NOT NULL,
        seq INTEGER NOT NULL,
        file_path TEXT NOT NULL,
        content TEXT NOT NULL,
        kind TEXT NOT NULL,
        language TEXT NOT NULL,
        file_role TEXT NOT NULL,
        start_line INTEGER NOT NULL,
        end_line INTEGER NOT NULL,
        term_frequencies TEXT NOT NULL,
        symbols TEXT NOT NULL,
        metadata TEXT NOT NULL,
        PRIMARY KEY (repository_id, generation, id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS symbols (
        repository_id TEXT NOT NULL,
        generation INTEGER NOT NULL,
        chunk_id TEXT NOT NULL,
        name TEXT NOT NULL,
        kind TEXT NOT NULL,
        line INTEGER NOT NULL,
        column_no INTEGER NOT NULL,
        end_line INTEGER NOT NULL,
        end_column INTEGER NOT NULL,
        context TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS vectors (
        repository_id TEXT NOT NULL,
        generation INTEGER NOT NULL,
        chunk_id TEXT NOT NULL,
        dimension INTEGER NOT NULL,
        vector TEXT NOT NULL,
        PRIMARY KEY (repository_id, generation, chunk_id)
    )
    """,
    """
    CREATE VIRTUAL TABLE IF NOT EXISTS chunks_fts USING fts5(
        content,
        file_path,
        chunk_id UNINDEXED,
        repository_id UNINDEXED,
        generation UNINDEXED,
        term_frequencies UNINDEXED,
        tokenize = 'porter unicode61'
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_repositories_name ON repositories(name)",
    "CREATE INDEX IF NOT EXISTS idx_chunks_scope ON chunks(repository_id, generation, seq)",
    "CREATE INDEX IF NOT EXISTS idx_symbols_scope ON symbols(repository_id, generation)",
]


def resolve_db_path(connection_string: Optional[str]) -> str:
    """Turn a connection string into a filesystem path (or ":memory:")."""
    if connection_string is None:
        db_dir = os.path.expanduser("~/.reposearch")
        os.makedirs(db_dir, exist_ok=True)
        return os.path.join(db_dir, "index.db")
    if connection_string.startswith("sqlite:///"):
        path = os.path.expanduser(connection_string[len("sqlite:///") :])
    else:
        path = os.path.expanduser(connection_string)
    if path != ":memory:":
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
    return path


def fts_query(query: str) -> str:
    """Build a safe FTS5 MATCH expression: quoted terms joined with OR."""
    return " OR ".join(f'"{term}"' for term in query_terms(query))


class SQLiteDatabase:
    """Shared aiosqlite connection and schema."""

    def __init__(self, config: StorageConfig) -> None:
        self.db_path = resolve_db_path(config.connection_string)
        self.connection: Optional[aiosqlite.Connection] = None

    async def initialize(self) -> None:
        """Open the connection and create the schema (idempotent)."""
        if self.connection is not None:
            return
        try:
            self.connection = await aiosqlite.connect(self.db_path)
            self.connection.row_factory = aiosqlite.Row
            if self.db_path != ":memory:":
                await self.connection.execute("PRAGMA journal_mode = WAL")
            for statement in SCHEMA:
                await self.connection.execute(statement)
            await self.connection.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to initialize SQLite database: {e}",
                storage_type="sqlite",
                original_error=e,
            ) from e

    def require(self) -> aiosqlite.Connection:
        if not self.connection:
            raise StorageError("Database not initialized", storage_type="sqlite")
        return self.connection

    async def close(self) -> None:
        if self.connection is not None:
            await self.connection.close()
            self.connection = None


class _SQLiteStore:
    """Mixin giving a store access to the shared database."""

    table = ""
    scope_column = "repository_id"

    def _init_database(self, config: StorageConfig, database: Optional[SQLiteDatabase]) -> None:
        self.database = database or SQLiteDatabase(config)

    async def initialize(self) -> None:
        await self.database.initialize()

    async def close(self) -> None:
        await self.database.close()

    async def _execute_write(self, action: str, sql: str, params: tuple = ()) -> int:
        connection = self.database.require()
        try:
            cursor = await connection.execute(sql, params)
            await connection.commit()
            return cursor.rowcount
        except Exception as e:
            raise StorageError(
                f"Failed to {action}: {e}", storage_type="sqlite", original_error=e
            ) from e

    async def _fetch(self, action: str, sql: str, params: tuple = ()) -> list[aiosqlite.Row]:
        connection = self.database.require()
        try:
            cursor = await connection.execute(sql, params)
            return list(await cursor.fetchall())
        except Exception as e:
            raise StorageError(
                f"Failed to {action}: {e}", storage_type="sqlite", original_error=e
            ) from e

    async def delete_generation(self, repository_id: UUID, generation: int) -> int:
        return await self._execute_write(
            f"delete generation from {self.table}",
            f"DELETE FROM {self.table} WHERE repository_id = ? AND generation = ?",
            (str(repository_id), generation),
        )

    async def purge_generations(self, repository_id: UUID, older_than: Optional[int] = None) -> int:
        if older_than is None:
            return await self._execute_write(
                f"purge {self.table}",
                f"DELETE FROM {self.table} WHERE repository_id = ?",
                (str(repository_id),),
            )
        return await self._execute_write(
            f"purge {self.table}",
            f"DELETE FROM {self.table} WHERE repository_id = ? AND generation < ?",
            (str(repository_id), older_than),
        )


def _row_to_repository(row: aiosqlite.Row) -> Repository:
    return Repository(
        id=UUID(row["id"]),
        name=row["name"],
        last_commit=row["last_commit"],
        last_indexed=datetime.fromisoformat(row["last_indexed"]) if row["last_indexed"] else None,
        total_chunks=row["total_chunks"],
        generation=row["generation"],
        status=IndexStatus(row["status"]),
        last_error=row["last_error"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
        metadata=json.loads(row["metadata"]),
    )


def _row_to_chunk(row: aiosqlite.Row) -> Chunk:
    return Chunk(
        id=row["id"],
        repository_id=UUID(row["repository_id"]),
        file_path=row["file_path"],
        content=row["content"],
        kind=ChunkKind(row["kind"]),
        language=row["language"],
        file_role=FileRole(row["file_role"]),
        start_line=row["start_line"],
        end_line=row["end_line"],
        term_frequencies=json.loads(row["term_frequencies"]),
        symbols=[Symbol.model_validate(s) for s in json.loads(row["symbols"])],
        metadata=json.loads(row["metadata"]),
    )


class SQLiteMetadataStore(_SQLiteStore, MetadataStore):
    """SQLite repository and chunk store."""

    table = "chunks"

    def __init__(self, config: StorageConfig, database: Optional[SQLiteDatabase] = None) -> None:
        super().__init__(config)
        self._init_database(config, database)

    def _repository_params(self, repository: Repository) -> tuple[Any, ...]:
        return (
            repository.name,
            repository.last_commit,
            repository.last_indexed.isoformat() if repository.last_indexed else None,
            repository.total_chunks,
            repository.generation,
            repository.status.value,
            repository.last_error,
            repository.created_at.isoformat(),
            repository.updated_at.isoformat(),
            json.dumps(repository.metadata),
            str(repository.id),
        )

    async def add_repository(self, repository: Repository) -> None:
        await self._execute_write(
            "add repository",
            """
            INSERT INTO repositories (
                name, last_commit, last_indexed, total_chunks, generation, status,
                last_error, created_at, updated_at, metadata, id
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            self._repository_params(repository),
        )

    async def update_repository(self, repository: Repository) -> None:
        updated = await self._execute_write(
            "update repository",
            """
            UPDATE repositories SET
                name = ?, last_commit = ?, last_indexed = ?, total_chunks = ?, generation = ?,
                status = ?, last_error = ?, created_at = ?, updated_at = ?, metadata = ?
            WHERE id = ?
            """,
            self._repository_params(repository),
        )
        if updated == 0:
            raise StorageError(f"Repository {repository.id} not found", storage_type="sqlite")

    async def get_repository(self, repository_id: UUID) -> Optional[Repository]:
        rows = await self._fetch(
            "get repository", "SELECT * FROM repositories WHERE id = ?", (str(repository_id),)
        )
        return _row_to_repository(rows[0]) if rows else None

    async def get_repository_by_name(self, name: str) -> Optional[Repository]:
        rows = await self._fetch(
            "get repository by name", "SELECT * FROM repositories WHERE name = ?", (name,)
        )
        return _row_to_repository(rows[0]) if rows else None

    async def list_repositories(self) -> list[Repository]:
        rows = await self._fetch("list repositories", "SELECT * FROM repositories ORDER BY name")
        return [_row_to_repository(row) for row in rows]

    async def delete_repository(self, repository_id: UUID) -> bool:
        await self.purge_generations(repository_id)
        deleted = await self._execute_write(
            "delete repository", "DELETE FROM repositories WHERE id = ?", (str(repository_id),)
        )
        return deleted > 0

    async def add_chunks(self, repository_id: UUID, generation: int, chunks: list[Chunk]) -> None:
        if not chunks:
            return
        connection = self.database.require()
        try:
            cursor = await connection.execute(
                "SELECT COALESCE(MAX(seq), 0) FROM chunks WHERE repository_id = ? AND generation = ?",
                (str(repository_id), generation),
            )
            row = await cursor.fetchone()
            last_seq = row[0]
            await connection.executemany(
                """
                INSERT OR REPLACE INTO chunks (
                    repository_id, generation, id, seq, file_path, content, kind, language,
                    file_role, start_line, end_line, term_frequencies, symbols, metadata
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        str(repository_id),
                        generation,
                        chunk.id,
                        last_seq + offset,
                        chunk.file_path,
                        chunk.content,
                        chunk.kind.value,
                        chunk.language,
                        chunk.file_role.value,
                        chunk.start_line,
                        chunk.end_line,
                        json.dumps(chunk.term_frequencies),
                        json.dumps([s.model_dump(mode="json") for s in chunk.symbols]),
                        json.dumps(chunk.metadata),
                    )
                    for offset, chunk in enumerate(chunks, start=1)
                ],
            )
            await connection.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to add chunks: {e}", storage_type="sqlite", original_error=e
            ) from e

    async def get_chunks(
        self, repository_id: UUID, generation: int, chunk_ids: list[str]
    ) -> dict[str, Chunk]:
        if not chunk_ids:
            return {}
        placeholders = ", ".join("?" for _ in chunk_ids)
        rows = await self._fetch(
            "get chunks",
            f"SELECT * FROM chunks WHERE repository_id = ? AND generation = ? AND id IN ({placeholders})",
            (str(repository_id), generation, *chunk_ids),
        )
        return {row["id"]: _row_to_chunk(row) for row in rows}

    async def list_chunks(self, repository_id: UUID, generation: int) -> list[Chunk]:
        rows = await self._fetch(
            "list chunks",
            "SELECT * FROM chunks WHERE repository_id = ? AND generation = ? ORDER BY seq",
            (str(repository_id), generation),
        )
        return [_row_to_chunk(row) for row in rows]

    async def count_chunks(self, repository_id: UUID, generation: int) -> int:
        rows = await self._fetch(
            "count chunks",
            "SELECT COUNT(*) AS total FROM chunks WHERE repository_id = ? AND generation = ?",
            (str(repository_id), generation),
        )
        return rows[0]["total"]

    async def chunk_breakdown(self, repository_id: UUID, generation: int) -> dict[str, dict[str, int]]:
        rows = await self._fetch(
            "get chunk breakdown",
            "SELECT kind, language, file_role FROM chunks WHERE repository_id = ? AND generation = ?",
            (str(repository_id), generation),
        )
        return {
            "kind": dict(Counter(row["kind"] for row in rows)),
            "language": dict(Counter(row["language"] for row in rows)),
            "role": dict(Counter(row["file_role"] for row in rows)),
        }


class SQLiteLexicalIndex(_SQLiteStore, LexicalIndex):
    """FTS5 backed lexical index ranked with bm25()."""

    table = "chunks_fts"

    def __init__(self, config: StorageConfig, database: Optional[SQLiteDatabase] = None) -> None:
        super().__init__(config)
        self._init_database(config, database)

    async def index_chunks(self, repository_id: UUID, generation: int, chunks: list[Chunk]) -> None:
        if not chunks:
            return
        connection = self.database.require()
        try:
            await connection.executemany(
                "DELETE FROM chunks_fts WHERE repository_id = ? AND generation = ? AND chunk_id = ?",
                [(str(repository_id), generation, chunk.id) for chunk in chunks],
            )
            await connection.executemany(
                """
                INSERT INTO chunks_fts (
                    content, file_path, chunk_id, repository_id, generation, term_frequencies
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        chunk.content,
                        chunk.file_path,
                        chunk.id,
                        str(repository_id),
                        generation,
                        json.dumps(chunk.term_frequencies),
                    )
                    for chunk in chunks
                ],
            )
            await connection.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to index chunks: {e}", storage_type="sqlite", original_error=e
            ) from e

    async def search(
        self, repository_id: UUID, generation: int, query: str, limit: int = 50
    ) -> list[LexicalHit]:
        match = fts_query(query)
        if not match:
            return []
        rows = await self._fetch(
            "search chunks",
            """
            SELECT chunk_id, content, term_frequencies, bm25(chunks_fts) AS rank_score
            FROM chunks_fts
            WHERE chunks_fts MATCH ? AND repository_id = ? AND generation = ?
            ORDER BY rank_score, rowid
            LIMIT ?
            """,
            (match, str(repository_id), generation, limit),
        )

        terms = query_terms(query)
        hits = []
        for row in rows:
            term_freq = json.loads(row["term_frequencies"])
            content = row["content"].lower()
            matched = [t for t in terms if t in term_freq or t in content]
            # bm25() is negative, lower is better
            hits.append(LexicalHit(chunk_id=row["chunk_id"], score=abs(row["rank_score"]), matched_terms=matched))
        return hits

    async def term_frequencies(
        self, repository_id: UUID, generation: int, chunk_id: str
    ) -> Optional[dict[str, int]]:
        rows = await self._fetch(
            "get term frequencies",
            "SELECT term_frequencies FROM chunks_fts WHERE repository_id = ? AND generation = ? AND chunk_id = ?",
            (str(repository_id), generation, chunk_id),
        )
        return json.loads(rows[0]["term_frequencies"]) if rows else None


class SQLiteVectorStore(_SQLiteStore, VectorStore):
    """JSON vectors in SQLite with brute-force cosine search."""

    table = "vectors"

    def __init__(self, config: StorageConfig, database: Optional[SQLiteDatabase] = None) -> None:
        super().__init__(config)
        self._init_database(config, database)

    async def put(self, repository_id: UUID, generation: int, chunk_id: str, vector: list[float]) -> None:
        await self.put_many(repository_id, generation, [(chunk_id, vector)])

    async def put_many(
        self, repository_id: UUID, generation: int, vectors: list[tuple[str, list[float]]]
    ) -> None:
        rows = [
            (str(repository_id), generation, chunk_id, len(vector), json.dumps(vector))
            for chunk_id, vector in vectors
            if vector
        ]
        if not rows:
            return
        connection = self.database.require()
        try:
            await connection.executemany(
                """
                INSERT OR REPLACE INTO vectors (repository_id, generation, chunk_id, dimension, vector)
                VALUES (?, ?, ?, ?, ?)
                """,
                rows,
            )
            await connection.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to store vectors: {e}", storage_type="sqlite", original_error=e
            ) from e

    async def search(
        self,
        repository_id: UUID,
        generation: int,
        query_vector: list[float],
        min_similarity: float = 0.1,
        limit: Optional[int] = None,
    ) -> list[tuple[str, float]]:
        if not query_vector:
            return []
        rows = await self._fetch(
            "search vectors",
            "SELECT chunk_id, vector FROM vectors WHERE repository_id = ? AND generation = ? AND dimension = ?",
            (str(repository_id), generation, len(query_vector)),
        )
        results = []
        for row in rows:
            similarity = cosine_similarity(query_vector, json.loads(row["vector"]))
            if similarity > min_similarity:
                results.append((row["chunk_id"], similarity))
        results.sort(key=lambda item: (-item[1], item[0]))
        return results[:limit] if limit else results

    async def count(self, repository_id: UUID, generation: int) -> int:
        rows = await self._fetch(
            "count vectors",
            "SELECT COUNT(*) AS total FROM vectors WHERE repository_id = ? AND generation = ?",
            (str(repository_id), generation),
        )
        return rows[0]["total"]


class SQLiteSymbolStore(_SQLiteStore, SymbolStore):
    """Symbols in SQLite; structural scoring runs over the generation's symbols."""

    table = "symbols"

    def __init__(self, config: StorageConfig, database: Optional[SQLiteDatabase] = None) -> None:
        super().__init__(config)
        self._init_database(config, database)

    async def put(self, repository_id: UUID, generation: int, chunk_id: str, symbols: list[Symbol]) -> None:
        if not symbols:
            return
        connection = self.database.require()
        try:
            await connection.execute(
                "DELETE FROM symbols WHERE repository_id = ? AND generation = ? AND chunk_id = ?",
                (str(repository_id), generation, chunk_id),
            )
            await connection.executemany(
                """
                INSERT INTO symbols (
                    repository_id, generation, chunk_id, name, kind, line, column_no,
                    end_line, end_column, context
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        str(repository_id),
                        generation,
                        chunk_id,
                        symbol.name,
                        symbol.kind.value,
                        symbol.location.line,
                        symbol.location.column,
                        symbol.location.end_line,
                        symbol.location.end_column,
                        symbol.context,
                    )
                    for symbol in symbols
                ],
            )
            await connection.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to store symbols: {e}", storage_type="sqlite", original_error=e
            ) from e

    async def list_symbols(self, repository_id: UUID, generation: int) -> list[Symbol]:
        rows = await self._fetch(
            "list symbols",
            "SELECT * FROM symbols WHERE repository_id = ? AND generation = ? ORDER BY rowid",
            (str(repository_id), generation),
        )
        return [
            Symbol(
                name=row["name"],
                kind=SymbolKind(row["kind"]),
                location=SymbolLocation(
                    line=row["line"],
                    column=row["column_no"],
                    end_line=row["end_line"],
                    end_column=row["end_column"],
                ),
                context=row["context"],
                chunk_id=row["chunk_id"],
            )
            for row in rows
        ]

    async def search(self, repository_id: UUID, generation: int, query: str) -> list[tuple[str, float]]:
        symbols = await self.list_symbols(repository_id, generation)
        return rank_structural(score_symbols(symbols, query))

"""Chunk entity - the atomic retrievable unit of the index."""

from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from reposearch.entities.symbol import Symbol


class ChunkKind(str, Enum):
    """What a chunk represents."""

    SYMBOL = "symbol"
    BLOCK = "block"
    COMMENT = "comment"
    IMPORT = "import"


class FileRole(str, Enum):
    """Coarse role of the owning file, used by the ranking heuristics."""

    PAGE = "page"
    STYLE = "style"
    COMPONENT = "component"
    API = "api"
    UTILITY = "utility"
    SCRIPT = "script"
    CONFIG = "config"
    DATA = "data"
    DOCUMENTATION = "documentation"
    OTHER = "other"


def make_chunk_id(file_path: str, start_line: int, end_line: int, label: str) -> str:
    """Deterministic chunk id: ``path:start-end:label``."""
    return f"{file_path}:{start_line}-{end_line}:{label}"


class Chunk(BaseModel):
    """An indexed, independently retrievable span of a source file.

    Ids are derived from the file path, line range and kind label, so indexing
    the same content twice reproduces the same ids.
    """

    id: str
    repository_id: UUID | None = Field(default=None, description="Owning repository")
    file_path: str
    content: str
    kind: ChunkKind = ChunkKind.BLOCK
    language: str = "text"
    file_role: FileRole = FileRole.OTHER
    start_line: int = Field(..., ge=1)
    end_line: int = Field(..., ge=1)
    embedding: list[float] = Field(default_factory=list)
    term_frequencies: dict[str, int] = Field(default_factory=dict)
    symbols: list[Symbol] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("end_line")
    @classmethod
    def end_not_before_start(cls, v: int, info: Any) -> int:
        if "start_line" in info.data and v < info.data["start_line"]:
            raise ValueError("end_line must not be before start_line")
        return v

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding) and any(self.embedding)

    @property
    def line_count(self) -> int:
        return self.end_line - self.start_line + 1

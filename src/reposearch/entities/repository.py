"""Repository entity - the per-repository record of the last indexed snapshot."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator


class IndexStatus(str, Enum):
    """Lifecycle of a repository's index."""

    NOT_INDEXED = "not_indexed"
    INDEXING = "indexing"
    INDEXED = "indexed"
    FAILED = "failed"


class Repository(BaseModel):
    """A source repository tracked by the index.

    The index holds exactly one snapshot per repository. ``generation`` points at
    the snapshot queries should read; 0 means nothing has been committed yet.
    """

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(
        ...,
        pattern=r"^[A-Za-z0-9_.-]+(/[A-Za-z0-9_.-]+)?$",
        description="Repository identifier, e.g. owner/name",
    )
    last_commit: str | None = None
    last_indexed: datetime | None = None
    total_chunks: int = Field(default=0, ge=0)
    generation: int = Field(default=0, ge=0)
    status: IndexStatus = IndexStatus.NOT_INDEXED
    last_error: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Repository name cannot be empty")
        return v

    @property
    def is_indexed(self) -> bool:
        return self.generation > 0 and self.last_commit is not None

"""IndexStats entity - summary of a repository's current snapshot."""

from datetime import datetime

from pydantic import BaseModel, Field

from reposearch.entities.repository import IndexStatus


class IndexStats(BaseModel):
    """Totals and breakdowns for one repository's indexed snapshot."""

    repository: str
    total_chunks: int = 0
    last_indexed: datetime | None = None
    last_commit: str | None = None
    status: IndexStatus = IndexStatus.NOT_INDEXED
    by_kind: dict[str, int] = Field(default_factory=dict)
    by_language: dict[str, int] = Field(default_factory=dict)
    by_role: dict[str, int] = Field(default_factory=dict)

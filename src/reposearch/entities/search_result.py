"""SearchResult entity - a ranked chunk with its per-signal scores."""

from pydantic import BaseModel, Field

from reposearch.entities.chunk import Chunk


class SearchResult(BaseModel):
    """A retrieved chunk with the scores that ranked it.

    Returned by the query engine; never persisted. ``fused_score`` is the
    weighted three-signal fusion plus ``boost_score``.
    """

    chunk: Chunk
    lexical_score: float = 0.0
    vector_score: float = 0.0
    structural_score: float = 0.0
    boost_score: float = 0.0
    fused_score: float = 0.0
    matched_terms: list[str] = Field(default_factory=list)
    reason: str = "general relevance"

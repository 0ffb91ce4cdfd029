"""Three-signal score fusion.

    fused = w_lex * clamp(lexical / ceiling) + w_vec * vector + w_struct * structural

Weights and the lexical ceiling come from SearchConfig. Heuristic boosts are
applied afterwards by ``reposearch.core.boosts`` and are not part of this sum.
"""

from dataclasses import dataclass

from reposearch.config.schema import SearchConfig
from reposearch.core.similarity import normalize_score


@dataclass(frozen=True)
class FusionWeights:
    lexical: float = 0.3
    vector: float = 0.4
    structural: float = 0.3
    lexical_ceiling: float = 10.0
    semantic_threshold: float = 0.3

    @classmethod
    def from_config(cls, config: SearchConfig) -> "FusionWeights":
        return cls(
            lexical=config.lexical_weight,
            vector=config.vector_weight,
            structural=config.structural_weight,
            lexical_ceiling=config.lexical_ceiling,
            semantic_threshold=config.semantic_reason_threshold,
        )


def fuse(
    lexical: float,
    vector: float,
    structural: float,
    weights: FusionWeights | None = None,
) -> float:
    """Weighted sum of the three signals.

    Non-decreasing in each input when the others are held fixed, since every
    weight is non-negative and the lexical clamp is monotonic.
    """
    weights = weights or FusionWeights()
    return (
        weights.lexical * normalize_score(lexical, weights.lexical_ceiling)
        + weights.vector * max(vector, 0.0)
        + weights.structural * max(structural, 0.0)
    )


def explain_score(
    lexical: float,
    vector: float,
    structural: float,
    matched_terms: list[str],
    weights: FusionWeights | None = None,
) -> list[str]:
    """Reason fragments for the signals that contributed significantly."""
    weights = weights or FusionWeights()
    reasons = []
    if lexical > 0:
        terms = ", ".join(matched_terms) if matched_terms else "query terms"
        reasons.append(f"text match ({terms})")
    if vector > weights.semantic_threshold:
        reasons.append("semantic similarity")
    if structural > 0:
        reasons.append("structural match")
    return reasons


def join_reasons(reasons: list[str]) -> str:
    return ", ".join(reasons) if reasons else "general relevance"

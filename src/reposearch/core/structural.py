"""Structural matching of queries against extracted symbols.

A symbol matches a query when its name or context contains the whole query
(case-insensitive), or when the query uses a structural keyword mapped to the
symbol's kind. Literal kind names ("function", "class", ...) match every
symbol of that kind; descriptive keywords ("header", "menu", ...) only match
symbols of the mapped kind that mention the keyword.
"""

import re
from collections import defaultdict
from collections.abc import Iterable

from reposearch.entities import Symbol, SymbolKind

BASE_BOOST = 0.5
ELEMENT_BOOST = 1.0
FUNCTION_BOOST = 0.8

KIND_KEYWORDS: dict[str, SymbolKind] = {kind.value: kind for kind in SymbolKind}

DESCRIPTIVE_KEYWORDS: dict[str, SymbolKind] = {
    "header": SymbolKind.ELEMENT,
    "topbar": SymbolKind.ELEMENT,
    "nav": SymbolKind.ELEMENT,
    "navigation": SymbolKind.ELEMENT,
    "navbar": SymbolKind.ELEMENT,
    "menu": SymbolKind.ELEMENT,
    "title": SymbolKind.ELEMENT,
    "heading": SymbolKind.ELEMENT,
    "section": SymbolKind.ELEMENT,
    "method": SymbolKind.FUNCTION,
    "handler": SymbolKind.FUNCTION,
    "const": SymbolKind.VARIABLE,
    "constant": SymbolKind.VARIABLE,
    "component": SymbolKind.CLASS,
    "module": SymbolKind.IMPORT,
}

HEADER_LIKE = frozenset({"header", "topbar", "nav", "navigation", "navbar", "menu", "title", "heading"})

_WORD = re.compile(r"[a-z0-9_]+")


def query_words(query: str) -> set[str]:
    return set(_WORD.findall(query.lower()))


def symbol_matches(symbol: Symbol, query: str, words: set[str] | None = None) -> bool:
    """Whether a symbol matches a query by substring or structural keyword."""
    needle = query.strip().lower()
    if not needle:
        return False
    name = symbol.name.lower()
    context = symbol.context.lower()
    if needle in name or needle in context:
        return True

    words = query_words(query) if words is None else words
    for word in words:
        if KIND_KEYWORDS.get(word) == symbol.kind:
            return True
        if DESCRIPTIVE_KEYWORDS.get(word) == symbol.kind and (word in name or word in context):
            return True
    return False


def symbol_boost(symbol: Symbol, words: set[str]) -> float:
    """Score contributed by one matching symbol."""
    if symbol.kind == SymbolKind.ELEMENT and words & HEADER_LIKE:
        return ELEMENT_BOOST
    if symbol.kind == SymbolKind.FUNCTION and "function" in words:
        return FUNCTION_BOOST
    return BASE_BOOST


def score_symbols(symbols: Iterable[Symbol], query: str) -> dict[str, float]:
    """Accumulate structural scores per chunk id for a query.

    Args:
        symbols: Candidate symbols, each carrying its ``chunk_id``
        query: Natural-language query

    Returns:
        Mapping of chunk id to summed score; chunks without a matching symbol
        are absent
    """
    words = query_words(query)
    scores: dict[str, float] = defaultdict(float)
    for symbol in symbols:
        if symbol.chunk_id is None:
            continue
        if symbol_matches(symbol, query, words):
            scores[symbol.chunk_id] += symbol_boost(symbol, words)
    return dict(scores)


def rank_structural(scores: dict[str, float]) -> list[tuple[str, float]]:
    """Order (chunk id, score) pairs by score, highest first, id as tie-break."""
    return sorted(scores.items(), key=lambda item: (-item[1], item[0]))

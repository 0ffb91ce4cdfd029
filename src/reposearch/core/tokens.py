"""Tokenization shared by the lexical index, the boost rules and the chunkers.

Terms are lowercase word runs of more than two characters; everything that is
not a word character separates terms.
"""

import re
from collections import Counter

_NON_WORD = re.compile(r"[^\w\s]")
_SINGLE_QUOTED = re.compile(r"'([^']+)'")
_DOUBLE_QUOTED = re.compile(r'"([^"]+)"')

MIN_TERM_LENGTH = 3


def tokenize(text: str) -> list[str]:
    """Split text into lexical terms, preserving order and duplicates."""
    cleaned = _NON_WORD.sub(" ", text.lower())
    return [term for term in cleaned.split() if len(term) >= MIN_TERM_LENGTH]


def term_frequencies(text: str) -> dict[str, int]:
    """Count how often each term occurs in text."""
    return dict(Counter(tokenize(text)))


def query_terms(query: str) -> list[str]:
    """Distinct query terms in first-seen order."""
    return list(dict.fromkeys(tokenize(query)))


def extract_quoted_phrases(query: str) -> list[str]:
    """Return quoted substrings of a query.

    Single-quoted phrases win; double quotes are only consulted when the query
    has no single-quoted phrase. Blank phrases are ignored.
    """
    phrases = [p.strip() for p in _SINGLE_QUOTED.findall(query) if p.strip()]
    if phrases:
        return phrases
    return [p.strip() for p in _DOUBLE_QUOTED.findall(query) if p.strip()]

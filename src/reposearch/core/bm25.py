"""Lightweight BM25 ranking over term-frequency maps."""

import math
from collections import defaultdict

from reposearch.core.tokens import query_terms


class BM25Scorer:
    """Incremental BM25 index.

    Documents are keyed by id and kept in insertion order, which is the
    tie-break for equal scores. Re-adding an id replaces the document and
    keeps its original position.
    """

    def __init__(self, k1: float = 1.2, b: float = 0.75) -> None:
        self.k1 = k1
        self.b = b
        self.term_frequencies: dict[str, dict[str, int]] = {}
        self.doc_lengths: dict[str, int] = {}
        self.doc_term_counts: dict[str, int] = defaultdict(int)

    @property
    def doc_count(self) -> int:
        return len(self.term_frequencies)

    @property
    def avg_doc_length(self) -> float:
        if not self.doc_lengths:
            return 0.0
        return sum(self.doc_lengths.values()) / len(self.doc_lengths)

    def add(self, doc_id: str, term_freq: dict[str, int]) -> None:
        """Add or replace a document."""
        for term in self.term_frequencies.get(doc_id, {}):
            self._forget_term(term)
        self.term_frequencies[doc_id] = dict(term_freq)
        self.doc_lengths[doc_id] = sum(term_freq.values())
        for term in term_freq:
            self.doc_term_counts[term] += 1

    def remove(self, doc_id: str) -> None:
        term_freq = self.term_frequencies.pop(doc_id, None)
        if term_freq is None:
            return
        self.doc_lengths.pop(doc_id, None)
        for term in term_freq:
            self._forget_term(term)

    def _forget_term(self, term: str) -> None:
        self.doc_term_counts[term] -= 1
        if self.doc_term_counts[term] <= 0:
            del self.doc_term_counts[term]

    def idf(self, term: str) -> float:
        doc_freq = self.doc_term_counts.get(term, 0)
        if doc_freq == 0:
            return 0.0
        # log((N + 1) / df) stays positive even when every document has the term
        return math.log((self.doc_count + 1) / doc_freq)

    def score(self, terms: list[str], doc_id: str) -> float:
        """BM25 score of one document for already tokenized query terms."""
        term_freq = self.term_frequencies.get(doc_id)
        if not term_freq:
            return 0.0

        avg_length = self.avg_doc_length or 1.0
        length_normalization = 1 - self.b + self.b * (self.doc_lengths[doc_id] / avg_length)
        score = 0.0
        for term in terms:
            tf = term_freq.get(term)
            if not tf:
                continue
            numerator = tf * (self.k1 + 1)
            denominator = tf + self.k1 * length_normalization
            score += self.idf(term) * (numerator / denominator)
        return max(0.0, score)

    def search(self, query: str, limit: int = 50) -> list[tuple[str, float, list[str]]]:
        """Rank documents for a query.

        Returns:
            (doc id, score, matched terms) for documents scoring above zero,
            best first, insertion order breaking ties
        """
        terms = query_terms(query)
        if not terms:
            return []

        hits = []
        for position, (doc_id, term_freq) in enumerate(self.term_frequencies.items()):
            matched = [term for term in terms if term in term_freq]
            if not matched:
                continue
            score = self.score(terms, doc_id)
            if score > 0:
                hits.append((position, doc_id, score, matched))

        hits.sort(key=lambda hit: (-hit[2], hit[0]))
        return [(doc_id, score, matched) for _, doc_id, score, matched in hits[:limit]]

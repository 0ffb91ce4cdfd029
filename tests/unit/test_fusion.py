"""Unit tests for three-signal fusion and score explanations."""

import itertools

import pytest

from reposearch.config.schema import SearchConfig
from reposearch.core.fusion import FusionWeights, explain_score, fuse, join_reasons


class TestFuse:
    def test_reference_weights(self):
        assert fuse(5.0, 0.5, 1.0) == pytest.approx(0.3 * 0.5 + 0.4 * 0.5 + 0.3 * 1.0)

    def test_lexical_is_clamped_at_ceiling(self):
        assert fuse(10.0, 0.0, 0.0) == pytest.approx(0.3)
        assert fuse(250.0, 0.0, 0.0) == pytest.approx(0.3)

    def test_negative_signals_contribute_nothing(self):
        assert fuse(-1.0, -0.5, 0.0) == 0.0

    def test_monotonic_in_each_signal(self):
        values = [0.0, 0.2, 1.0, 5.0, 12.0]
        similarities = [0.0, 0.1, 0.5, 1.0]
        for lex, vec, struct in itertools.product(values, similarities, values):
            base = fuse(lex, vec, struct)
            assert fuse(lex + 1.0, vec, struct) >= base
            assert fuse(lex, vec + 0.1, struct) >= base
            assert fuse(lex, vec, struct + 0.5) >= base

    def test_weights_from_config(self):
        config = SearchConfig(lexical_weight=1.0, vector_weight=0.0, structural_weight=0.0, lexical_ceiling=4.0)
        weights = FusionWeights.from_config(config)

        assert fuse(2.0, 1.0, 1.0, weights) == pytest.approx(0.5)


class TestExplainScore:
    def test_all_signals(self):
        reasons = explain_score(3.2, 0.45, 1.0, ["title", "ben"])
        assert reasons == ["text match (title, ben)", "semantic similarity", "structural match"]

    def test_weak_vector_is_not_mentioned(self):
        assert explain_score(0.0, 0.3, 0.0, []) == []

    def test_lexical_without_terms(self):
        assert explain_score(1.0, 0.0, 0.0, []) == ["text match (query terms)"]

    def test_join_reasons(self):
        assert join_reasons(["text match (nav)", "HTML file"]) == "text match (nav), HTML file"
        assert join_reasons([]) == "general relevance"

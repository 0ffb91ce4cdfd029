"""Unit tests for structural symbol matching and scoring."""

import pytest

from reposearch.core.structural import (
    BASE_BOOST,
    ELEMENT_BOOST,
    FUNCTION_BOOST,
    rank_structural,
    score_symbols,
    symbol_matches,
)
from reposearch.entities import Symbol, SymbolKind, SymbolLocation


def make_symbol(name, kind, context="", chunk_id="c1"):
    return Symbol(
        name=name,
        kind=kind,
        location=SymbolLocation(line=1, end_line=1),
        context=context,
        chunk_id=chunk_id,
    )


class TestSymbolMatches:
    def test_whole_query_substring_of_name(self):
        symbol = make_symbol("renderHeader", SymbolKind.FUNCTION)
        assert symbol_matches(symbol, "renderheader")

    def test_whole_query_substring_of_context(self):
        symbol = make_symbol("Widget", SymbolKind.CLASS, context="class Widget extends Base {")
        assert symbol_matches(symbol, "extends base")

    def test_literal_kind_name_matches_every_symbol_of_kind(self):
        symbol = make_symbol("load", SymbolKind.FUNCTION)
        assert symbol_matches(symbol, "which function loads data")

    def test_literal_kind_name_does_not_match_other_kinds(self):
        symbol = make_symbol("Widget", SymbolKind.CLASS)
        assert not symbol_matches(symbol, "which function loads data")

    def test_descriptive_keyword_requires_mention(self):
        header = make_symbol("Home About", SymbolKind.ELEMENT, context="<header><nav>Home About</nav></header>")
        heading = make_symbol("Welcome", SymbolKind.ELEMENT, context="<h1>Welcome</h1>")

        assert symbol_matches(header, "make the header sticky")
        assert not symbol_matches(heading, "make the header sticky")

    def test_descriptive_keyword_requires_mapped_kind(self):
        symbol = make_symbol("headerHeight", SymbolKind.VARIABLE)
        assert not symbol_matches(symbol, "make the header sticky")

    def test_blank_query_matches_nothing(self):
        assert not symbol_matches(make_symbol("x", SymbolKind.FUNCTION), "   ")


class TestScoreSymbols:
    def test_element_under_header_like_query(self):
        symbol = make_symbol("Menu", SymbolKind.ELEMENT, context="<nav>Menu</nav>")
        assert score_symbols([symbol], "update the nav") == {"c1": ELEMENT_BOOST}

    def test_function_under_function_query(self):
        symbol = make_symbol("load", SymbolKind.FUNCTION)
        assert score_symbols([symbol], "function that loads") == {"c1": FUNCTION_BOOST}

    def test_base_boost_otherwise(self):
        symbol = make_symbol("Widget", SymbolKind.CLASS)
        assert score_symbols([symbol], "widget") == {"c1": BASE_BOOST}

    def test_scores_accumulate_per_chunk(self):
        symbols = [
            make_symbol("load", SymbolKind.FUNCTION, chunk_id="a"),
            make_symbol("save", SymbolKind.FUNCTION, chunk_id="a"),
            make_symbol("Widget", SymbolKind.CLASS, chunk_id="b"),
        ]
        scores = score_symbols(symbols, "function")

        assert scores == {"a": pytest.approx(2 * FUNCTION_BOOST)}

    def test_symbols_without_chunk_are_ignored(self):
        symbol = make_symbol("load", SymbolKind.FUNCTION, chunk_id=None)
        assert score_symbols([symbol], "function") == {}

    def test_rank_orders_by_score_then_id(self):
        ranked = rank_structural({"b": 0.5, "a": 0.5, "c": 1.0})
        assert ranked == [("c", 1.0), ("a", 0.5), ("b", 0.5)]

"""Unit tests for the heuristic boost rules."""

import pytest

from reposearch.config.schema import SearchConfig
from reposearch.core.boosts import (
    BOOST_RULES,
    ChangeTaskTermsBoost,
    EssentialConfigBoost,
    MarkupFileBoost,
    QueryContext,
    QuotedTextBoost,
    RoleTaskBoost,
    StyleTaskBoost,
    UITaskBoost,
    apply_boosts,
    build_boost_rules,
)
from reposearch.entities import Chunk, FileRole


def make_chunk(path, content, language="text", role=FileRole.OTHER):
    return Chunk(
        id=f"{path}:1-1:block",
        file_path=path,
        content=content,
        language=language,
        file_role=role,
        start_line=1,
        end_line=1,
    )


class TestQueryContext:
    def test_task_detection(self):
        context = QueryContext.from_query("Change the header colour to 'navy'")

        assert context.is_change_task
        assert context.is_ui_task
        assert context.is_style_task
        assert context.quoted == ["navy"]
        assert "'navy'" not in context.words
        assert "navy" in context.words

    def test_plain_query(self):
        context = QueryContext.from_query("where are users loaded")

        assert not context.is_change_task
        assert not context.is_ui_task
        assert not context.is_style_task


class TestQuotedTextBoost:
    def test_only_chunk_containing_phrase_is_boosted(self):
        rule = QuotedTextBoost()
        context = QueryContext.from_query("change the title to 'Ben Tossell'")
        matching = make_chunk("index.html", "<title>Ben Tossell</title>")
        other = make_chunk("about.html", "<title>About us</title>")

        boosts = rule.apply(matching, context)
        assert [b.amount for b in boosts] == [2.0]
        assert boosts[0].reason == 'contains exact text "ben tossell"'
        assert rule.apply(other, context) == []

    def test_match_is_case_insensitive(self):
        context = QueryContext.from_query("find 'BEN tossell'")
        assert QuotedTextBoost().apply(make_chunk("a.md", "Hi, ben TOSSELL here"), context)

    def test_change_task_only_checks_first_phrase(self):
        context = QueryContext.from_query("replace 'Old Name' with 'New Name'")
        chunk = make_chunk("a.html", "<h1>New Name</h1>")

        assert QuotedTextBoost().apply(chunk, context) == []

    def test_non_change_task_checks_every_phrase(self):
        context = QueryContext.from_query("where do 'Old Name' and 'New Name' appear")
        chunk = make_chunk("a.html", "<h1>New Name</h1>")

        assert len(QuotedTextBoost().apply(chunk, context)) == 1


class TestUITaskBoost:
    @pytest.fixture
    def context(self):
        return QueryContext.from_query("make the navigation sticky")

    def test_main_page(self, context):
        chunk = make_chunk("site/index.html", "<nav></nav>", "html", FileRole.PAGE)
        assert [b.amount for b in UITaskBoost().apply(chunk, context)] == [3.0]

    def test_other_markup(self, context):
        chunk = make_chunk("about.html", "<nav></nav>", "html", FileRole.PAGE)
        assert [b.amount for b in UITaskBoost().apply(chunk, context)] == [1.5]

    def test_page_role(self, context):
        chunk = make_chunk("app/page.tsx", "export default Page", "typescript", FileRole.PAGE)
        assert [b.amount for b in UITaskBoost().apply(chunk, context)] == [0.8]

    def test_non_ui_query(self):
        chunk = make_chunk("index.html", "<nav></nav>", "html", FileRole.PAGE)
        assert UITaskBoost().apply(chunk, QueryContext.from_query("fix the login bug")) == []


class TestSmallRules:
    def test_style_task(self):
        chunk = make_chunk("styles.css", "body {}", "css", FileRole.STYLE)
        assert StyleTaskBoost().apply(chunk, QueryContext.from_query("update the css"))[0].amount == 0.4
        assert StyleTaskBoost().apply(chunk, QueryContext.from_query("fix login")) == []

    def test_markup_file(self):
        chunk = make_chunk("a.htm", "<p>", "html")
        assert MarkupFileBoost().apply(chunk, QueryContext.from_query("anything"))[0].amount == 0.5

    def test_change_task_terms(self):
        chunk = make_chunk("a.html", "<button>Submit order</button>")
        boosts = ChangeTaskTermsBoost().apply(chunk, QueryContext.from_query("change the submit button"))

        assert sorted(b.reason for b in boosts) == ['contains "button"', 'contains "submit"']
        assert all(b.amount == 0.3 for b in boosts)

    def test_change_task_terms_needs_change_task(self):
        chunk = make_chunk("a.html", "<button>Submit</button>")
        assert ChangeTaskTermsBoost().apply(chunk, QueryContext.from_query("where is submit")) == []

    def test_role_task(self):
        chunk = make_chunk("components/Nav.tsx", "export function Nav()", "typescript", FileRole.COMPONENT)
        assert RoleTaskBoost().apply(chunk, QueryContext.from_query("which component renders links"))[0].amount == 0.3
        assert RoleTaskBoost().apply(chunk, QueryContext.from_query("which api renders links")) == []

    def test_essential_config(self):
        manifest = make_chunk("frontend/package.json", "{}", "json", FileRole.CONFIG)
        other = make_chunk("data.json", "{}", "json", FileRole.DATA)
        context = QueryContext.from_query("anything")

        assert EssentialConfigBoost().apply(manifest, context)[0].reason == "essential config"
        assert EssentialConfigBoost().apply(other, context) == []


class TestBuildBoostRules:
    def test_default_order(self):
        rules = build_boost_rules(SearchConfig())
        assert [rule.name for rule in rules] == SearchConfig().boosts
        assert set(SearchConfig().boosts) <= set(BOOST_RULES)

    def test_unknown_rule(self):
        with pytest.raises(ValueError, match="Unknown boost rule"):
            build_boost_rules(SearchConfig(boosts=["quoted_text", "nope"]))

    def test_weight_overrides(self):
        config = SearchConfig(boosts=["quoted_text", "ui_task"], boost_weights={"quoted_text": 5.0, "ui_task.markup": 0.7})
        quoted, ui = build_boost_rules(config)

        assert quoted.amounts["bonus"] == 5.0
        assert ui.amounts == {"main_page": 3.0, "markup": 0.7, "page": 0.8}

    def test_apply_boosts_concatenates_in_rule_order(self):
        rules = build_boost_rules(SearchConfig(boosts=["markup_file", "quoted_text"]))
        chunk = make_chunk("index.html", "<title>Ben Tossell</title>", "html", FileRole.PAGE)
        boosts = apply_boosts(rules, chunk, QueryContext.from_query("'Ben Tossell'"))

        assert [b.rule for b in boosts] == ["markup_file", "quoted_text"]
        assert sum(b.amount for b in boosts) == pytest.approx(2.5)

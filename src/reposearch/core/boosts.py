"""Heuristic boost rules applied after three-signal fusion.

Each rule is independent: it looks at one candidate chunk and the query and
returns zero or more additive boosts, each with a reason. Rules run in the
order configured in ``SearchConfig.boosts``.

Boost magnitudes are configurable through ``SearchConfig.boost_weights``:
``"quoted_text": 2.5`` replaces a rule's primary amount, and
``"ui_task.markup": 1.0`` replaces one named level of a multi-level rule.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Optional

from reposearch.config.schema import SearchConfig
from reposearch.core.chunking import MANIFEST_FILES
from reposearch.core.tokens import extract_quoted_phrases
from reposearch.entities import Chunk, FileRole

_CHANGE_TASK = re.compile(r"\b(change|replace|update)", re.IGNORECASE)
_UI_TASK = re.compile(r"\b(header|topbar|navigation|nav|title|menu)", re.IGNORECASE)
_STYLE_TASK = re.compile(r"\b(style|css|colou?r)", re.IGNORECASE)
_EDGE_PUNCTUATION = "'\"`.,;:!?()[]{}<>"


@dataclass
class QueryContext:
    """Facts about a query shared by every rule, computed once per search."""

    query: str
    lower: str = ""
    words: list[str] = field(default_factory=list)
    quoted: list[str] = field(default_factory=list)
    is_change_task: bool = False
    is_ui_task: bool = False
    is_style_task: bool = False

    @classmethod
    def from_query(cls, query: str) -> "QueryContext":
        words = [w.strip(_EDGE_PUNCTUATION) for w in query.lower().split()]
        return cls(
            query=query,
            lower=query.lower(),
            words=[w for w in words if w],
            quoted=extract_quoted_phrases(query),
            is_change_task=bool(_CHANGE_TASK.search(query)),
            is_ui_task=bool(_UI_TASK.search(query)),
            is_style_task=bool(_STYLE_TASK.search(query)),
        )


@dataclass(frozen=True)
class Boost:
    rule: str
    amount: float
    reason: str


def _is_markup(chunk: Chunk) -> bool:
    return chunk.language == "html" or chunk.file_path.lower().endswith((".html", ".htm"))


class BoostRule(ABC):
    """A named additive score adjustment."""

    name: str = ""
    primary: str = "bonus"
    defaults: dict[str, float] = {}

    def __init__(self, overrides: Optional[dict[str, float]] = None):
        overrides = overrides or {}
        self.amounts = dict(self.defaults)
        if self.name in overrides:
            self.amounts[self.primary] = overrides[self.name]
        for key in self.defaults:
            qualified = f"{self.name}.{key}"
            if qualified in overrides:
                self.amounts[key] = overrides[qualified]

    def boost(self, key: str, reason: str) -> Boost:
        return Boost(rule=self.name, amount=self.amounts[key], reason=reason)

    @abstractmethod
    def apply(self, chunk: Chunk, context: QueryContext) -> list[Boost]:
        """Boosts this rule grants ``chunk`` for the query."""


class QuotedTextBoost(BoostRule):
    """Chunks literally containing a quoted phrase of the query.

    Change/replace/update tasks only check the first phrase, the text being
    changed rather than its replacement.
    """

    name = "quoted_text"
    defaults = {"bonus": 2.0}

    def apply(self, chunk: Chunk, context: QueryContext) -> list[Boost]:
        phrases = context.quoted[:1] if context.is_change_task else context.quoted
        content = chunk.content.lower()
        return [
            self.boost("bonus", f'contains exact text "{phrase.lower()}"')
            for phrase in phrases
            if phrase.lower() in content
        ]


class UITaskBoost(BoostRule):
    """Header, navigation, title and menu tasks favour the pages that render them."""

    name = "ui_task"
    primary = "main_page"
    defaults = {"main_page": 3.0, "markup": 1.5, "page": 0.8}

    def apply(self, chunk: Chunk, context: QueryContext) -> list[Boost]:
        if not context.is_ui_task:
            return []
        if PurePosixPath(chunk.file_path).name.lower() == "index.html":
            return [self.boost("main_page", "main HTML file for UI change")]
        if _is_markup(chunk):
            return [self.boost("markup", "HTML file for UI change")]
        if chunk.file_role == FileRole.PAGE:
            return [self.boost("page", "page content for UI change")]
        return []


class StyleTaskBoost(BoostRule):
    name = "style_task"
    defaults = {"bonus": 0.4}

    def apply(self, chunk: Chunk, context: QueryContext) -> list[Boost]:
        if context.is_style_task and chunk.file_role == FileRole.STYLE:
            return [self.boost("bonus", "styling task")]
        return []


class MarkupFileBoost(BoostRule):
    name = "markup_file"
    defaults = {"bonus": 0.5}

    def apply(self, chunk: Chunk, context: QueryContext) -> list[Boost]:
        if _is_markup(chunk):
            return [self.boost("bonus", "HTML file")]
        return []


class ChangeTaskTermsBoost(BoostRule):
    """For change tasks, every longer query word found in the chunk adds a little."""

    name = "change_task_terms"
    defaults = {"bonus": 0.3}
    min_word_length = 4

    def apply(self, chunk: Chunk, context: QueryContext) -> list[Boost]:
        if not context.is_change_task:
            return []
        content = chunk.content.lower()
        boosts = []
        for word in dict.fromkeys(context.words):
            if len(word) >= self.min_word_length and word in content:
                boosts.append(self.boost("bonus", f'contains "{word}"'))
        return boosts


class RoleTaskBoost(BoostRule):
    """Queries naming a file role (component, api, page) favour files of that role."""

    name = "role_task"
    defaults = {"bonus": 0.3}
    role_keywords = {
        "component": FileRole.COMPONENT,
        "api": FileRole.API,
        "page": FileRole.PAGE,
    }

    def apply(self, chunk: Chunk, context: QueryContext) -> list[Boost]:
        for keyword, role in self.role_keywords.items():
            if chunk.file_role == role and re.search(rf"\b{keyword}", context.lower):
                return [self.boost("bonus", f"{keyword} task")]
        return []


class EssentialConfigBoost(BoostRule):
    """Project manifests are almost always worth including."""

    name = "essential_config"
    defaults = {"bonus": 0.2}

    def apply(self, chunk: Chunk, context: QueryContext) -> list[Boost]:
        if PurePosixPath(chunk.file_path).name in MANIFEST_FILES:
            return [self.boost("bonus", "essential config")]
        return []


BOOST_RULES: dict[str, type[BoostRule]] = {
    rule.name: rule
    for rule in (
        QuotedTextBoost,
        UITaskBoost,
        StyleTaskBoost,
        MarkupFileBoost,
        ChangeTaskTermsBoost,
        RoleTaskBoost,
        EssentialConfigBoost,
    )
}


def build_boost_rules(config: SearchConfig) -> list[BoostRule]:
    """Instantiate the enabled rules in their configured order.

    Raises:
        ValueError: If a configured rule name is unknown
    """
    rules = []
    for name in config.boosts:
        rule_class = BOOST_RULES.get(name)
        if rule_class is None:
            raise ValueError(f"Unknown boost rule: {name}")
        rules.append(rule_class(config.boost_weights))
    return rules


def apply_boosts(rules: list[BoostRule], chunk: Chunk, context: QueryContext) -> list[Boost]:
    """Run every rule against a chunk, in order."""
    boosts: list[Boost] = []
    for rule in rules:
        boosts.extend(rule.apply(chunk, context))
    return boosts

"""
Pattern rule tables for query anonymization.

Rules are plain data: a compiled matcher, the generic replacement and the
semantic category recorded when the rule fires. The substitution
algorithms live in ``mirror.anonymizer.strategies``; swapping or extending
a table does not touch them.

Tables are built once at startup and treated as read-only afterwards.
``RuleTable.add`` and ``RuleTable.clear`` exist for tests and teardown.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass


@dataclass(frozen=True)
class PatternRule:
    """A single substitution rule."""

    matcher: re.Pattern[str]
    replacement: str
    category: str

    def apply(self, text: str) -> tuple[str, int]:
        """Apply the rule to text.

        Returns:
            Tuple of (new text, number of substitutions).
        """
        return self.matcher.subn(self.replacement, text)


def regex_rule(pattern: str, replacement: str, category: str, flags: int = re.IGNORECASE) -> PatternRule:
    """Build a rule from a regular expression."""
    return PatternRule(re.compile(pattern, flags), replacement, category)


def phrase_rule(phrase: str, replacement: str, category: str) -> PatternRule:
    """Build a case-insensitive whole-word rule for a literal phrase."""
    return regex_rule(rf"\b{re.escape(phrase)}\b", replacement, category)


class RuleTable:
    """Ordered collection of pattern rules."""

    def __init__(self, rules: Iterable[PatternRule] = ()):
        self._rules: list[PatternRule] = list(rules)

    def __iter__(self) -> Iterator[PatternRule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    @property
    def categories(self) -> list[str]:
        """Distinct categories in table order."""
        return list(dict.fromkeys(rule.category for rule in self._rules))

    def add(self, rule: PatternRule) -> None:
        """Append a rule. Not safe while serving traffic."""
        self._rules.append(rule)

    def clear(self) -> None:
        """Remove all rules. Not safe while serving traffic."""
        self._rules.clear()


# =============================================================================
# Advanced (simulated model) rules
# =============================================================================

# Runs on the original casing, before the query is lower-cased:
# "pizza in Manhattan" -> "pizza in location"
PLACE_NAME_RULE = regex_rule(
    r"\b([Ii]n|[Aa]t|[Nn]ear|[Ff]rom|[Aa]round)\s+"
    r"(?!(?:I|Me|My|Mine)\b)[A-Z][\w'-]*(?:\s+[A-Z][\w'-]*)*",
    r"\1 location",
    "location",
    flags=0,
)

# Order matters: "near me" must be generalized before pronouns are stripped.
ADVANCED_PATTERNS: list[tuple[str, str, str]] = [
    (r"\b(near me|near here|close to me|around here|nearby)\b", "in the area", "location"),
    (r"\b(city|town|address|neighborhood|district)\b", "location", "location"),
    (r"\b(me|my|mine|i|personal)\b", "", "personal"),
    (r"\b(home|work|school)\b", "location", "personal"),
    (r"\b(best|favorite|favourite|preferred)\b", "recommended", "preference"),
    (r"\b(cheap|expensive|quality)\b", "quality_level", "preference"),
    (r"\b(food|restaurant|cuisine|dish)\b", "local_food", "food"),
    (r"\b(today|tomorrow|now|urgent)\b", "time_sensitive", "temporal"),
]


def build_advanced_table() -> RuleTable:
    """Build the regex category table used by the advanced strategy."""
    return RuleTable(regex_rule(p, r, c) for p, r, c in ADVANCED_PATTERNS)


# =============================================================================
# Rule-based phrase table
# =============================================================================

PHRASE_RULES: list[tuple[str, str, str]] = [
    # Location
    ("city", "location", "location"),
    ("town", "location", "location"),
    ("near", "location", "location"),
    ("nearby", "area", "location"),
    # Food
    ("restaurant", "food_place", "food"),
    ("cuisine", "food_type", "food"),
    ("meal", "food", "food"),
    ("dish", "food", "food"),
    ("dinner", "meal", "food"),
    # Time
    ("today", "recent", "temporal"),
    ("tomorrow", "soon", "temporal"),
    ("now", "current", "temporal"),
    ("urgent", "important", "temporal"),
    # Personal
    ("family", "people", "personal"),
    ("home", "place", "personal"),
    ("work", "workplace", "personal"),
    ("school", "education_place", "personal"),
]


def build_phrase_table() -> RuleTable:
    """Build the phrase -> generic term table used by the rule-based strategy."""
    return RuleTable(phrase_rule(p, r, c) for p, r, c in PHRASE_RULES)


# =============================================================================
# Generic patterns shared by the lower tiers
# =============================================================================

PRONOUN_PATTERN = re.compile(r"\b(my|mine|me|i|we|our)\b", re.IGNORECASE)
BASIC_PRONOUN_PATTERN = re.compile(r"\b(i|me|my|mine)\b", re.IGNORECASE)
NUMBER_PATTERN = re.compile(r"\b\d+\b")
WHITESPACE_PATTERN = re.compile(r"\s+")

NUMBER_TOKEN = "number"


def collapse_whitespace(text: str) -> str:
    """Collapse whitespace runs and trim."""
    return WHITESPACE_PATTERN.sub(" ", text).strip()

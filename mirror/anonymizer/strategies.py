"""
Anonymization strategies.

Each strategy implements ``attempt(query) -> StrategyOutcome``. An outcome
is either a success carrying the rewritten query, or a decline carrying a
reason. The engine walks an ordered list of strategies and stops at the
first success; exceptions raised by a strategy count as a decline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from mirror.anonymizer.models import AnonymizationMethod
from mirror.anonymizer.rules import (
    BASIC_PRONOUN_PATTERN,
    NUMBER_PATTERN,
    NUMBER_TOKEN,
    PLACE_NAME_RULE,
    PRONOUN_PATTERN,
    PatternRule,
    RuleTable,
    collapse_whitespace,
)

SHORT_QUERY_CONFIDENCE = 0.9
ADVANCED_CONFIDENCE = 0.85
BASIC_CONFIDENCE = 0.3

RULE_BASE_CONFIDENCE = 0.3
RULE_STEP_CONFIDENCE = 0.2
RULE_MIN_CONFIDENCE = 0.1
RULE_MAX_CONFIDENCE = 0.9


@dataclass
class StrategyOutcome:
    """Result of a single strategy attempt."""

    anonymized_query: str | None = None
    confidence: float = 0.0
    preserved_semantics: list[str] = field(default_factory=list)
    method: AnonymizationMethod | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        """Whether the strategy produced a usable query."""
        return self.reason is None and self.anonymized_query is not None

    @classmethod
    def success(
        cls,
        anonymized_query: str,
        confidence: float,
        preserved_semantics: list[str],
        method: AnonymizationMethod,
    ) -> StrategyOutcome:
        """Create a successful outcome."""
        return cls(
            anonymized_query=anonymized_query,
            confidence=confidence,
            preserved_semantics=list(dict.fromkeys(preserved_semantics)),
            method=method,
        )

    @classmethod
    def decline(cls, reason: str) -> StrategyOutcome:
        """Create a declined outcome."""
        return cls(reason=reason)


@runtime_checkable
class AnonymizationStrategy(Protocol):
    """Protocol for anonymization strategies."""

    @property
    def name(self) -> str:
        """Strategy name used in logs."""
        ...

    def attempt(self, query: str) -> StrategyOutcome:
        """Try to anonymize a query."""
        ...


def rule_based_confidence(replacements: int) -> float:
    """Confidence for the rule-based tier.

    Zero matches floor to 0.3; each matched phrase adds 0.2, capped at 0.9.
    """
    score = replacements * RULE_STEP_CONFIDENCE + RULE_BASE_CONFIDENCE
    return round(min(RULE_MAX_CONFIDENCE, max(RULE_MIN_CONFIDENCE, score)), 4)


class ShortQueryStrategy:
    """Pass very short queries through untouched."""

    name = "short-query"

    def __init__(self, min_length: int = 3):
        self._min_length = min_length

    def attempt(self, query: str) -> StrategyOutcome:
        if len(query.lower().strip()) >= self._min_length:
            return StrategyOutcome.decline("query long enough to transform")

        return StrategyOutcome.success(
            anonymized_query=query,
            confidence=SHORT_QUERY_CONFIDENCE,
            preserved_semantics=["short-query"],
            method=AnonymizationMethod.FALLBACK,
        )


class AdvancedStrategy:
    """
    Simulated model rewrite.

    Place names are generalized on the original casing first, then the
    lower-cased query is scanned against the regex category table. The
    strategy only succeeds when at least one category fired.
    """

    name = "advanced"

    def __init__(
        self,
        rules: RuleTable,
        place_rule: PatternRule = PLACE_NAME_RULE,
        min_output_length: int = 2,
    ):
        self._rules = rules
        self._place_rule = place_rule
        self._min_output_length = min_output_length

    def attempt(self, query: str) -> StrategyOutcome:
        semantics: list[str] = []

        text, count = self._place_rule.apply(query.strip())
        substitutions = count
        if count:
            semantics.append(self._place_rule.category)

        text = text.lower()
        for rule in self._rules:
            text, count = rule.apply(text)
            if count:
                substitutions += count
                semantics.append(rule.category)

        text = collapse_whitespace(text)

        if substitutions == 0:
            return StrategyOutcome.decline("no advanced pattern matched")
        if len(text) < self._min_output_length:
            return StrategyOutcome.decline("rewrite too short")

        return StrategyOutcome.success(
            anonymized_query=text,
            confidence=ADVANCED_CONFIDENCE,
            preserved_semantics=semantics,
            method=AnonymizationMethod.ADVANCED,
        )


class RuleBasedStrategy:
    """
    Phrase table substitution.

    Always succeeds: a query with no matching phrase passes through with
    the floor confidence rather than being blocked.
    """

    name = "rule-based"

    def __init__(self, rules: RuleTable, min_output_length: int = 2):
        self._rules = rules
        self._min_output_length = min_output_length

    def attempt(self, query: str) -> StrategyOutcome:
        text = query.lower().strip()
        semantics: list[str] = []
        replacements = 0

        for rule in self._rules:
            text, count = rule.apply(text)
            if count:
                replacements += 1
                semantics.append(rule.category)

        text, generic_count = self._apply_generic_patterns(text)
        if generic_count:
            semantics.append("pattern-based")

        if len(text.strip()) < self._min_output_length:
            text = query
            semantics.append("fallback")

        return StrategyOutcome.success(
            anonymized_query=text.strip() or query,
            confidence=rule_based_confidence(replacements),
            preserved_semantics=semantics,
            method=AnonymizationMethod.RULE_BASED,
        )

    @staticmethod
    def _apply_generic_patterns(text: str) -> tuple[str, int]:
        text, pronouns = PRONOUN_PATTERN.subn("", text)
        text, numbers = NUMBER_PATTERN.subn(NUMBER_TOKEN, text)
        return collapse_whitespace(text), pronouns + numbers


class BasicStrategy:
    """Last resort used when every other tier raised."""

    name = "basic"

    def __init__(self, min_output_length: int = 2):
        self._min_output_length = min_output_length

    def attempt(self, query: str) -> StrategyOutcome:
        text = BASIC_PRONOUN_PATTERN.sub("", query)
        text = NUMBER_PATTERN.sub(NUMBER_TOKEN, text)
        text = collapse_whitespace(text)

        if len(text) < self._min_output_length:
            text = query

        return StrategyOutcome.success(
            anonymized_query=text,
            confidence=BASIC_CONFIDENCE,
            preserved_semantics=["general"],
            method=AnonymizationMethod.FALLBACK,
        )

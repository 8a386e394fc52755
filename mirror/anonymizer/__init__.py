"""
Mirror Search query anonymization.

Main entry point:
    AnonymizationEngine.anonymize() - Rewrite a query through the strategy cascade

Rule tables:
    PatternRule / RuleTable - Data-driven substitution rules
    build_advanced_table() / build_phrase_table() - Default tables
"""

from mirror.anonymizer.engine import AnonymizationEngine
from mirror.anonymizer.models import AnonymizationMethod, AnonymizationResult, EngineStatus
from mirror.anonymizer.rules import (
    PatternRule,
    RuleTable,
    build_advanced_table,
    build_phrase_table,
    phrase_rule,
    regex_rule,
)
from mirror.anonymizer.strategies import (
    AdvancedStrategy,
    AnonymizationStrategy,
    BasicStrategy,
    RuleBasedStrategy,
    ShortQueryStrategy,
    StrategyOutcome,
    rule_based_confidence,
)

__all__ = [
    "AnonymizationEngine",
    "AnonymizationMethod",
    "AnonymizationResult",
    "EngineStatus",
    "PatternRule",
    "RuleTable",
    "build_advanced_table",
    "build_phrase_table",
    "phrase_rule",
    "regex_rule",
    "AnonymizationStrategy",
    "StrategyOutcome",
    "ShortQueryStrategy",
    "AdvancedStrategy",
    "RuleBasedStrategy",
    "BasicStrategy",
    "rule_based_confidence",
]

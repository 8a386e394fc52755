"""
Query anonymization engine.

Runs a cascade of strategies of decreasing capability and returns the
first usable rewrite:

    short-query -> advanced (simulated model) -> rule-based -> basic

The engine never raises for string input. If every strategy in the
cascade raises, the basic strategy produces the result; if even that
fails, the original query is returned with minimal confidence.
"""

from __future__ import annotations

import time

from mirror.anonymizer.models import AnonymizationMethod, AnonymizationResult, EngineStatus
from mirror.anonymizer.rules import RuleTable, build_advanced_table, build_phrase_table
from mirror.anonymizer.strategies import (
    AdvancedStrategy,
    AnonymizationStrategy,
    BasicStrategy,
    RuleBasedStrategy,
    ShortQueryStrategy,
    StrategyOutcome,
)
from mirror.utils.config import AnonymizationConfig
from mirror.utils.logging import get_logger
from mirror.utils.secure_logging import summarize_query

logger = get_logger(__name__)

LAST_RESORT_CONFIDENCE = 0.1


class AnonymizationEngine:
    """
    Cascading query anonymizer.

    Example:
        engine = AnonymizationEngine()
        result = engine.anonymize("best pizza near me in Manhattan")
        result.method        # AnonymizationMethod.ADVANCED
        result.anonymized_query
    """

    def __init__(
        self,
        config: AnonymizationConfig | None = None,
        advanced_rules: RuleTable | None = None,
        phrase_rules: RuleTable | None = None,
    ):
        """
        Initialize engine.

        Args:
            config: Anonymization settings. Defaults are used if None.
            advanced_rules: Regex category table for the advanced tier.
            phrase_rules: Phrase table for the rule-based tier.
        """
        self._config = config or AnonymizationConfig()
        self._advanced_rules = advanced_rules if advanced_rules is not None else build_advanced_table()
        self._phrase_rules = phrase_rules if phrase_rules is not None else build_phrase_table()

        self._initialized = False
        self._model_loaded = False
        self._strategies: list[AnonymizationStrategy] = []
        self._last_resort = BasicStrategy(self._config.min_output_length)

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def model_loaded(self) -> bool:
        return self._model_loaded

    @property
    def strategies(self) -> list[AnonymizationStrategy]:
        """Active cascade, in order."""
        return list(self._strategies)

    def initialize(self) -> bool:
        """Load the simulated model and build the strategy cascade.

        Returns:
            True once the engine is ready.
        """
        self._model_loaded = self._config.use_advanced

        strategies: list[AnonymizationStrategy] = [
            ShortQueryStrategy(self._config.short_query_length),
        ]
        if self._model_loaded:
            strategies.append(
                AdvancedStrategy(
                    self._advanced_rules,
                    min_output_length=self._config.min_output_length,
                )
            )
        strategies.append(RuleBasedStrategy(self._phrase_rules, self._config.min_output_length))

        self._strategies = strategies
        self._initialized = True

        logger.info(
            "Anonymization engine initialized",
            model_loaded=self._model_loaded,
            model_path=self._config.model_path,
            rules_count=len(self._phrase_rules),
            strategies=[s.name for s in strategies],
        )
        return True

    def anonymize(self, query: str) -> AnonymizationResult:
        """
        Anonymize a query.

        Args:
            query: Raw query text.

        Returns:
            AnonymizationResult. The anonymized query is empty only when
            the input is, via the short-query pass-through.

        Raises:
            TypeError: If query is not a string.
        """
        if not isinstance(query, str):
            raise TypeError(f"query must be a string, got {type(query).__name__}")

        start = time.perf_counter()

        if not self._initialized:
            self.initialize()

        for strategy in self._strategies:
            try:
                outcome = strategy.attempt(query)
            except Exception as e:
                logger.warning(
                    "Anonymization strategy failed",
                    strategy=strategy.name,
                    error=str(e),
                )
                continue

            if outcome.ok:
                return self._build_result(query, outcome, start)

            logger.debug(
                "Anonymization strategy declined",
                strategy=strategy.name,
                reason=outcome.reason,
            )

        try:
            outcome = self._last_resort.attempt(query)
        except Exception as e:
            logger.error("Basic anonymization failed", error=str(e))
            outcome = StrategyOutcome.success(
                anonymized_query=query,
                confidence=LAST_RESORT_CONFIDENCE,
                preserved_semantics=["general"],
                method=AnonymizationMethod.FALLBACK,
            )

        return self._build_result(query, outcome, start)

    def _build_result(
        self,
        query: str,
        outcome: StrategyOutcome,
        start: float,
    ) -> AnonymizationResult:
        anonymized = outcome.anonymized_query or ""
        semantics = list(outcome.preserved_semantics)

        if not anonymized.strip():
            anonymized = query
            if "fallback" not in semantics:
                semantics.append("fallback")

        elapsed_ms = (time.perf_counter() - start) * 1000

        result = AnonymizationResult(
            original_query=query,
            anonymized_query=anonymized,
            confidence=outcome.confidence,
            preserved_semantics=semantics,
            method=outcome.method or AnonymizationMethod.FALLBACK,
            processing_time_ms=elapsed_ms,
        )

        logger.debug(
            "Query anonymized",
            method=result.method.value,
            confidence=result.confidence,
            semantics=result.preserved_semantics,
            elapsed_ms=round(elapsed_ms, 3),
            **summarize_query(query),
        )
        return result

    def get_status(self) -> EngineStatus:
        """Get engine status."""
        return EngineStatus(
            initialized=self._initialized,
            model_loaded=self._model_loaded,
            rules_count=len(self._phrase_rules),
            version=self._config.version,
            model_type=(
                AnonymizationMethod.ADVANCED.value
                if self._model_loaded
                else AnonymizationMethod.RULE_BASED.value
            ),
            model_path=self._config.model_path,
        )

    def destroy(self) -> None:
        """Clear rule tables and reset state. For teardown only."""
        self._initialized = False
        self._model_loaded = False
        self._strategies = []
        self._advanced_rules.clear()
        self._phrase_rules.clear()
        logger.debug("Anonymization engine destroyed")

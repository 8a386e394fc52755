"""
Search orchestration.

Anonymizes a query, then walks the configured backends in priority order
until one returns results. Every failed backend leaves an entry in the
response's ``error_info``; when all of them fail, deterministic fallback
results are synthesized so callers always get a well-formed response.

    START -> ANONYMIZE -> TRY_BACKEND[0] -> ... -> TRY_BACKEND[n]
          -> SYNTHESIZE_FALLBACK -> DONE
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from typing import Any

from mirror.anonymizer.engine import AnonymizationEngine
from mirror.anonymizer.models import AnonymizationResult
from mirror.search.backends.fallback import FallbackGenerator
from mirror.search.errors import BackendError, EmptyResultsError
from mirror.search.normalizer import ResultNormalizer
from mirror.search.provider import (
    HealthReport,
    HealthState,
    SearchBackend,
    SearchDebug,
    SearchResponse,
    SearchResult,
    SearchStatus,
)
from mirror.utils.config import AnonymizationConfig, SearchConfig
from mirror.utils.logging import get_logger
from mirror.utils.secure_logging import sanitize_error_message, summarize_query

logger = get_logger(__name__)

DEFAULT_MAX_QUERY_LENGTH = 500
MIN_ANONYMIZED_LENGTH = 2
NO_ANONYMIZATION = "no-anonymization"


class SearchOrchestrator:
    """
    Ordered backend dispatcher.

    Example:
        orchestrator = SearchOrchestrator(engine, backends, settings.search)
        response = await orchestrator.search("best pizza near me")
        response.engine      # label of the backend that answered
        response.error_info  # {"duckduckgo_html": "Timed out after 15s"}
    """

    def __init__(
        self,
        engine: AnonymizationEngine,
        backends: Sequence[SearchBackend],
        config: SearchConfig | None = None,
        anonymization_config: AnonymizationConfig | None = None,
        normalizer: ResultNormalizer | None = None,
        fallback: FallbackGenerator | None = None,
        max_query_length: int = DEFAULT_MAX_QUERY_LENGTH,
    ):
        self._engine = engine
        self._backends = list(backends)
        self._config = config or SearchConfig()
        self._anonymization_enabled = (anonymization_config or AnonymizationConfig()).enabled
        self._normalizer = normalizer or ResultNormalizer(self._config)
        self._fallback = fallback or FallbackGenerator(
            self._config.fallback_label, self._config.fallback_source
        )
        self._max_query_length = max_query_length

    @property
    def backends(self) -> list[SearchBackend]:
        return list(self._backends)

    @property
    def engine(self) -> AnonymizationEngine:
        return self._engine

    async def search(self, query: str, use_anonymization: bool = True) -> SearchResponse:
        """
        Search with automatic fallthrough to the next backend on failure.

        Args:
            query: Raw query text. Trimmed and truncated to the maximum length.
            use_anonymization: Rewrite the query before dispatch.

        Returns:
            SearchResponse. Never raises for backend or anonymization failures.
        """
        start = time.perf_counter()
        text = query.strip()[: self._max_query_length] if isinstance(query, str) else ""

        if not text:
            logger.info("Empty query, skipping backends")
            return SearchResponse(
                engine="none",
                total_time_ms=self._elapsed_ms(start),
                error_info={"query": "Query is empty"},
            )

        anonymization = None
        if use_anonymization and self._anonymization_enabled:
            anonymization = self._anonymize(text)
        search_query = anonymization.anonymized_query if anonymization else text

        errors: dict[str, str] = {}

        for backend in self._backends:
            try:
                raw_results = await backend.search(search_query)
                results = self._normalizer.normalize(raw_results, backend.label)
                if not results:
                    raise EmptyResultsError(backend.name)
            except BackendError as e:
                errors[backend.name] = str(e)
                logger.warning("Search backend failed", backend=backend.name, error=str(e))
                continue
            except Exception as e:
                errors[backend.name] = sanitize_error_message(e)
                logger.error(
                    "Search backend raised unexpectedly",
                    backend=backend.name,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                continue

            response = self._build_response(
                results,
                engine=backend.label,
                start=start,
                anonymization=anonymization,
                errors=errors,
                fast_threshold_ms=self._config.fast_threshold_ms,
            )
            logger.info(
                "Search completed",
                engine=backend.name,
                result_count=len(results),
                failed_backends=list(errors),
                anonymized=anonymization is not None,
                elapsed_ms=round(response.total_time_ms, 1),
                **summarize_query(text),
            )
            return response

        logger.warning(
            "All search backends failed, using fallback results",
            failed_backends=list(errors),
            **summarize_query(text),
        )
        results = self._normalizer.normalize(
            self._fallback.generate(search_query), self._fallback.source
        )
        response = self._build_response(
            results,
            engine=self._fallback.label,
            start=start,
            anonymization=anonymization,
            errors=errors,
            fast_threshold_ms=self._config.fallback_fast_threshold_ms,
        )
        if response.debug is None:
            response.debug = SearchDebug(
                anonymization_method=NO_ANONYMIZATION,
                original_query=text,
                anonymized_query=text,
                confidence=0.0,
            )
        return response

    def _anonymize(self, text: str) -> AnonymizationResult | None:
        try:
            result = self._engine.anonymize(text)
        except Exception as e:
            logger.error("Anonymization failed, using original query", error=str(e))
            return None

        if len(result.anonymized_query.strip()) < MIN_ANONYMIZED_LENGTH:
            logger.debug("Anonymized query too short, using original query")
            return None
        return result

    def _build_response(
        self,
        results: list[SearchResult],
        engine: str,
        start: float,
        anonymization: AnonymizationResult | None,
        errors: dict[str, str],
        fast_threshold_ms: float,
    ) -> SearchResponse:
        elapsed_ms = self._elapsed_ms(start)
        debug = None
        if anonymization is not None:
            debug = SearchDebug(
                anonymization_method=anonymization.method.value,
                original_query=anonymization.original_query,
                anonymized_query=anonymization.anonymized_query,
                confidence=anonymization.confidence,
            )

        return SearchResponse(
            results=results,
            total_results=len(results),
            total_time_ms=elapsed_ms,
            engine=engine,
            status=SearchStatus(
                anonymized=anonymization is not None,
                fast=elapsed_ms < fast_threshold_ms,
            ),
            anonymization=anonymization,
            error_info=dict(errors) or None,
            debug=debug,
        )

    @staticmethod
    def _elapsed_ms(start: float) -> float:
        return (time.perf_counter() - start) * 1000

    # =========================================================================
    # Health / status
    # =========================================================================

    async def _probe_all(self) -> dict[str, bool]:
        outcomes = await asyncio.gather(
            *(backend.probe() for backend in self._backends),
            return_exceptions=True,
        )
        status = {}
        for backend, outcome in zip(self._backends, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                logger.error("Backend probe raised", backend=backend.name, error=str(outcome))
                outcome = False
            status[backend.name] = bool(outcome)
        return status

    async def get_engine_status(self) -> dict[str, Any]:
        """
        Probe every backend and report liveness counts.

        Returns:
            Dict with per-backend booleans under ``engines``, the
            anonymization engine's ``initialized`` flag, ``totalEngines``
            and ``activeEngines``.
        """
        engines = await self._probe_all()
        anonymization = self._engine.initialized
        active = sum(engines.values()) + (1 if anonymization else 0)
        return {
            "engines": engines,
            "anonymization": anonymization,
            "totalEngines": len(engines) + 1,
            "activeEngines": active,
        }

    async def health_check(self) -> HealthReport:
        """
        Aggregate backend and engine liveness.

        healthy when every component is live, degraded when some are,
        unhealthy when none are.
        """
        engine_status = await self.get_engine_status()
        status = self._engine.get_status()

        report = HealthReport(
            status=HealthState.from_counts(
                engine_status["activeEngines"], engine_status["totalEngines"]
            ),
            engines={
                backend.name: {
                    "available": engine_status["engines"][backend.name],
                    "endpoint": backend.endpoint,
                }
                for backend in self._backends
            },
            anonymization={
                "available": status.initialized,
                "version": status.version,
                "rulesCount": status.rules_count,
            },
        )
        logger.debug(
            "Health check completed",
            status=report.status.value,
            active=engine_status["activeEngines"],
            total=engine_status["totalEngines"],
        )
        return report

    async def close(self) -> None:
        """Close all backends."""
        for backend in self._backends:
            try:
                await backend.close()
            except Exception as e:
                logger.error("Failed to close backend", backend=backend.name, error=str(e))
        logger.info("Search backends closed")

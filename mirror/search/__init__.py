"""
Mirror Search backend dispatch.

Main entry point:
    SearchOrchestrator.search() - Anonymize, dispatch and normalize

Building blocks:
    BaseSearchBackend / SearchBackend - Adapter interface
    ResultNormalizer / paginate() - Canonical results and pages
"""

from mirror.search.backends import (
    FallbackGenerator,
    HtmlSearchBackend,
    InstantAnswerBackend,
    SearXNGBackend,
    build_backends,
    register_backend,
)
from mirror.search.errors import (
    BackendError,
    BackendHTTPError,
    BackendParseError,
    BackendTimeoutError,
    EmptyResultsError,
    ErrorCode,
)
from mirror.search.normalizer import ResultNormalizer, ResultPage, paginate
from mirror.search.orchestrator import SearchOrchestrator
from mirror.search.provider import (
    BaseSearchBackend,
    HealthReport,
    HealthState,
    RawPayload,
    SearchBackend,
    SearchDebug,
    SearchResponse,
    SearchResult,
    SearchStatus,
)

__all__ = [
    "SearchOrchestrator",
    "BaseSearchBackend",
    "SearchBackend",
    "RawPayload",
    "SearchResult",
    "SearchStatus",
    "SearchDebug",
    "SearchResponse",
    "HealthState",
    "HealthReport",
    "ResultNormalizer",
    "ResultPage",
    "paginate",
    "FallbackGenerator",
    "HtmlSearchBackend",
    "InstantAnswerBackend",
    "SearXNGBackend",
    "build_backends",
    "register_backend",
    "ErrorCode",
    "BackendError",
    "BackendTimeoutError",
    "BackendHTTPError",
    "BackendParseError",
    "EmptyResultsError",
]

"""
Search Backend Adapters.

Each adapter turns a query into a list of SearchResult objects:
- html: scraped HTML result page (DuckDuckGo HTML), optional HTTP proxy
- instant_answer: DuckDuckGo Instant Answer JSON API
- searxng: self-hosted SearXNG JSON API

FallbackGenerator produces placeholder results when every adapter failed.
"""

from mirror.search.backends.fallback import FallbackGenerator
from mirror.search.backends.html import (
    HtmlSearchBackend,
    is_administrative_url,
    normalize_result_url,
    unwrap_redirect_url,
)
from mirror.search.backends.instant_answer import InstantAnswerBackend, parse_json_lenient
from mirror.search.backends.registry import (
    build_backends,
    get_available_kinds,
    get_backend_class,
    register_backend,
)
from mirror.search.backends.searxng import SearXNGBackend

# Register all adapters
register_backend("html", HtmlSearchBackend)
register_backend("instant_answer", InstantAnswerBackend)
register_backend("searxng", SearXNGBackend)

__all__ = [
    "FallbackGenerator",
    "HtmlSearchBackend",
    "InstantAnswerBackend",
    "SearXNGBackend",
    "build_backends",
    "get_available_kinds",
    "get_backend_class",
    "register_backend",
    "is_administrative_url",
    "normalize_result_url",
    "unwrap_redirect_url",
    "parse_json_lenient",
]

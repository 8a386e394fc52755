"""
Pytest fixtures and configuration for Mirror Search tests.

=============================================================================
Test Classification
=============================================================================

- @pytest.mark.unit: Single class/function, no external dependencies
  - DEFAULT: Tests without marker are auto-classified as unit

- @pytest.mark.integration: Several components wired together
  (orchestrator + backends + HTTP shell), external services mocked

=============================================================================
Mock Strategy
=============================================================================

- Outbound HTTP: httpx.MockTransport, never the real network
- HTTP shell: aiohttp.test_utils.TestClient / TestServer
- Backends in orchestrator tests: in-process fakes implementing
  the SearchBackend protocol
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import httpx
import pytest

from mirror.anonymizer.engine import AnonymizationEngine
from mirror.search.errors import BackendError, BackendTimeoutError
from mirror.search.provider import SearchResult
from mirror.utils.config import BackendConfig, Settings, get_settings


def pytest_configure(config):
    """Register custom markers for test classification."""
    config.addinivalue_line("markers", "unit: Unit tests with no external dependencies")
    config.addinivalue_line(
        "markers", "integration: Integration tests with mocked external dependencies"
    )


def pytest_collection_modifyitems(config, items):
    """Tests without an explicit classification are unit tests."""
    for item in items:
        has_classification = any(
            marker.name in ("unit", "integration") for marker in item.iter_markers()
        )
        if not has_classification:
            item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Keep cached settings from leaking between tests."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    """Default settings, independent of config files."""
    return Settings()


@pytest.fixture
def engine() -> AnonymizationEngine:
    """Initialized anonymization engine with default rule tables."""
    engine = AnonymizationEngine()
    engine.initialize()
    return engine


@pytest.fixture
def make_backend_config() -> Callable[..., BackendConfig]:
    """Factory for backend configurations."""

    def _make(kind: str = "html", **overrides) -> BackendConfig:
        values = {
            "kind": kind,
            "label": "Test Backend",
            "endpoint": "https://search.test/",
            "timeout_seconds": 2.0,
        }
        values.update(overrides)
        return BackendConfig(**values)

    return _make


@pytest.fixture
def mock_http_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """Build an httpx.AsyncClient whose requests are answered by a handler."""

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _make


def make_results(count: int, prefix: str = "Result", source: str = "") -> list[SearchResult]:
    """Create ``count`` distinct results."""
    return [
        SearchResult(
            title=f"{prefix} {i}",
            url=f"https://example.org/{prefix.lower()}/{i}",
            snippet=f"Snippet for {prefix.lower()} {i}",
            source=source,
        )
        for i in range(1, count + 1)
    ]


class FakeBackend:
    """In-process backend implementing the SearchBackend protocol."""

    def __init__(
        self,
        name: str,
        results: list[SearchResult] | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
        alive: bool = True,
        label: str | None = None,
    ):
        self.name = name
        self.label = label or name.title()
        self.endpoint = f"https://{name}.test/"
        self._results = results or []
        self._error = error
        self._delay = delay
        self._alive = alive
        self.queries: list[str] = []
        self.closed = False

    async def search(self, query: str) -> list[SearchResult]:
        self.queries.append(query)
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return list(self._results)

    async def probe(self) -> bool:
        return self._alive

    async def close(self) -> None:
        self.closed = True


def timing_out_backend(name: str) -> FakeBackend:
    return FakeBackend(name, error=BackendTimeoutError(name, 15.0))


def failing_backend(name: str, message: str = "HTTP 503") -> FakeBackend:
    return FakeBackend(name, error=BackendError(name, message))

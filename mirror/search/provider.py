"""
Search backend abstraction layer for Mirror Search.

Provides the canonical result and response models and the interface every
backend adapter implements, so the orchestrator can walk an ordered list
of backends without knowing how each one talks to its upstream.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol, runtime_checkable

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

from mirror.anonymizer.models import AnonymizationResult
from mirror.search.errors import (
    BackendError,
    BackendHTTPError,
    BackendTimeoutError,
    EmptyResultsError,
)
from mirror.utils.config import BackendConfig
from mirror.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_USER_AGENT = "Mirror Search Bot 2.1 (Privacy-First)"
PROBE_TIMEOUT_SECONDS = 5.0


# ============================================================================
# Pydantic Models for Search Results
# ============================================================================


class SearchResult(BaseModel):
    """
    Canonical search result from any backend.

    Fields are coerced to strings on construction; placeholders for missing
    values are applied by the ResultNormalizer.
    """

    model_config = ConfigDict(frozen=False, extra="forbid")

    title: str = Field(default="", description="Result title")
    url: str = Field(default="", description="Result URL")
    snippet: str = Field(default="", description="Text snippet/content preview")
    source: str = Field(default="", description="Backend or sub-source that produced the result")

    @field_validator("title", "url", "snippet", "source", mode="before")
    @classmethod
    def coerce_str(cls, v: Any) -> str:
        if v is None:
            return ""
        return v if isinstance(v, str) else str(v)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "title": self.title,
            "url": self.url,
            "snippet": self.snippet,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SearchResult:
        """Create from dictionary."""
        return cls(
            title=data.get("title"),
            url=data.get("url"),
            snippet=data.get("snippet"),
            source=data.get("source"),
        )


class SearchStatus(BaseModel):
    """Privacy and performance flags attached to every response."""

    anonymized: bool = False
    protected: bool = True
    fast: bool = False
    secure: bool = True

    def to_dict(self) -> dict[str, bool]:
        return {
            "anonymized": self.anonymized,
            "protected": self.protected,
            "fast": self.fast,
            "secure": self.secure,
        }


class SearchDebug(BaseModel):
    """Anonymization details echoed back for inspection."""

    anonymization_method: str
    original_query: str
    anonymized_query: str
    confidence: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "anonymizationMethod": self.anonymization_method,
            "originalQuery": self.original_query,
            "anonymizedQuery": self.anonymized_query,
            "confidence": self.confidence,
        }


class SearchResponse(BaseModel):
    """
    Unified response of one search request.
    """

    model_config = ConfigDict(frozen=False)

    results: list[SearchResult] = Field(default_factory=list)
    total_results: int = Field(default=0, ge=0)
    total_time_ms: float = Field(default=0.0, ge=0.0, description="Wall time in milliseconds")
    engine: str = Field(..., description="Display label of the backend that answered")
    status: SearchStatus = Field(default_factory=SearchStatus)
    anonymization: AnonymizationResult | None = None
    # Backend name -> error message, only when at least one backend failed
    error_info: dict[str, str] | None = None
    debug: SearchDebug | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire format."""
        result: dict[str, Any] = {
            "results": [r.to_dict() for r in self.results],
            "totalResults": self.total_results,
            "totalTime": round(self.total_time_ms, 3),
            "engine": self.engine,
            "status": self.status.to_dict(),
        }
        if self.anonymization is not None:
            result["anonymization"] = self.anonymization.to_dict()
        if self.error_info:
            result["errorInfo"] = dict(self.error_info)
        if self.debug is not None:
            result["debug"] = self.debug.to_dict()
        return result


# ============================================================================
# Health Status
# ============================================================================


class HealthState(str, Enum):
    """Service health states."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"

    @classmethod
    def from_counts(cls, live: int, total: int) -> HealthState:
        """Derive the state from the number of live components."""
        if total > 0 and live == total:
            return cls.HEALTHY
        if live > 0:
            return cls.DEGRADED
        return cls.UNHEALTHY


class HealthReport(BaseModel):
    """
    Liveness of every backend and of the anonymization engine.
    """

    status: HealthState
    engines: dict[str, dict[str, Any]] = Field(default_factory=dict)
    anonymization: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "engines": self.engines,
            "anonymization": self.anonymization,
            "timestamp": self.timestamp.isoformat(),
        }


# ============================================================================
# Search Backend Protocol
# ============================================================================


@dataclass
class RawPayload:
    """Upstream response handed from ``request`` to ``parse``."""

    query: str
    url: str
    status_code: int
    text: str
    headers: dict[str, str] = field(default_factory=dict)


@runtime_checkable
class SearchBackend(Protocol):
    """
    Protocol for search backends.

    Example implementation:
        class MyBackend:
            name = "my_backend"
            label = "My Backend"
            endpoint = "https://search.example/"

            async def search(self, query: str) -> list[SearchResult]:
                ...

            async def probe(self) -> bool:
                return True

            async def close(self) -> None:
                ...
    """

    @property
    def name(self) -> str:
        """Configuration key of the backend."""
        ...

    @property
    def label(self) -> str:
        """Display label reported as the response engine."""
        ...

    @property
    def endpoint(self) -> str:
        """Upstream endpoint URL."""
        ...

    async def search(self, query: str) -> list[SearchResult]:
        """
        Execute a search query.

        Returns:
            Non-empty list of results.

        Raises:
            BackendError: On timeout, transport failure, bad payload or
                empty results.
        """
        ...

    async def probe(self) -> bool:
        """Lightweight liveness check. Never raises."""
        ...

    async def close(self) -> None:
        """Release resources owned by the backend."""
        ...


class BaseSearchBackend(ABC):
    """
    Abstract base class for HTTP search backends.

    Subclasses implement ``request`` and ``parse``; ``search`` bounds the
    request with ``asyncio.wait_for`` and translates transport failures
    into BackendError subclasses.
    """

    def __init__(
        self,
        name: str,
        config: BackendConfig,
        client: httpx.AsyncClient | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        """
        Initialize backend.

        Args:
            name: Configuration key of the backend.
            config: Backend configuration.
            client: Shared HTTP client. A private one is created lazily if None.
            user_agent: Default User-Agent when the backend config sets none.
        """
        self._name = name
        self._config = config
        self._client = client
        self._owns_client = client is None
        self._user_agent = config.user_agent or user_agent

    @property
    def name(self) -> str:
        return self._name

    @property
    def label(self) -> str:
        return self._config.label

    @property
    def endpoint(self) -> str:
        return self._config.endpoint

    @property
    def timeout(self) -> float:
        """Per-call timeout in seconds."""
        return self._config.timeout_seconds

    @property
    def config(self) -> BackendConfig:
        return self._config

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(follow_redirects=True)
            self._owns_client = True
        return self._client

    def _default_headers(self) -> dict[str, str]:
        return {"User-Agent": self._user_agent}

    async def _get(
        self,
        query: str,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> RawPayload:
        """Perform a GET request and wrap the response.

        Raises:
            BackendHTTPError: On non-2xx status or transport failure.
        """
        client = await self._get_client()
        merged_headers = {**self._default_headers(), **(headers or {})}
        try:
            response = await client.get(
                url, params=params, headers=merged_headers, timeout=self.timeout
            )
        except httpx.TimeoutException as e:
            raise BackendTimeoutError(self.name, self.timeout) from e
        except httpx.HTTPError as e:
            raise BackendHTTPError(self.name, None, f"Request failed: {type(e).__name__}") from e

        if not response.is_success:
            raise BackendHTTPError(self.name, response.status_code)

        return RawPayload(
            query=query,
            url=str(response.url),
            status_code=response.status_code,
            text=response.text,
            headers=dict(response.headers),
        )

    @abstractmethod
    async def request(self, query: str) -> RawPayload:
        """Fetch the upstream response for a query."""
        pass

    @abstractmethod
    def parse(self, payload: RawPayload) -> list[SearchResult]:
        """Extract results from an upstream response.

        Raises:
            BackendParseError: If the payload cannot be interpreted.
        """
        pass

    async def search(self, query: str) -> list[SearchResult]:
        """Request and parse under the configured timeout.

        Raises:
            BackendError: On any failure, including an empty result list.
        """
        try:
            payload = await asyncio.wait_for(self.request(query), timeout=self.timeout)
        except TimeoutError as e:
            raise BackendTimeoutError(self.name, self.timeout) from e

        results = self.parse(payload)
        if not results:
            raise EmptyResultsError(self.name)

        logger.debug("Backend parsed results", backend=self.name, count=len(results))
        return results

    def _probe_url(self) -> str:
        return self.endpoint

    async def probe(self) -> bool:
        """Lightweight GET against the backend. Never raises."""
        try:
            client = await self._get_client()
            response = await client.get(
                self._probe_url(),
                headers=self._default_headers(),
                timeout=min(self.timeout, PROBE_TIMEOUT_SECONDS),
            )
            return response.is_success
        except (httpx.HTTPError, BackendError) as e:
            logger.debug("Backend probe failed", backend=self.name, error=type(e).__name__)
            return False

    async def close(self) -> None:
        """Close the HTTP client if this backend created it."""
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

"""
SearXNG backend.

Queries a self-hosted SearXNG instance through its JSON API. The instance
aggregates several engines; the sub-engine that produced each result is
kept in ``source``.
"""

from __future__ import annotations

from typing import Any

from mirror.search.backends.instant_answer import parse_json_lenient
from mirror.search.errors import BackendParseError
from mirror.search.provider import BaseSearchBackend, RawPayload, SearchResult
from mirror.utils.logging import get_logger

logger = get_logger(__name__)


class SearXNGBackend(BaseSearchBackend):
    """
    SearXNG JSON backend.

    Example:
        backend = SearXNGBackend("searxng", config, client)
        results = await backend.search("privacy tools")
    """

    @property
    def base_url(self) -> str:
        return self.endpoint.rstrip("/")

    def _probe_url(self) -> str:
        return f"{self.base_url}/healthz"

    async def request(self, query: str) -> RawPayload:
        params = {
            "q": query,
            "format": "json",
            "pageno": 1,
        }
        return await self._get(
            query,
            f"{self.base_url}/search",
            params=params,
            headers={"Accept": "application/json"},
        )

    def parse(self, payload: RawPayload) -> list[SearchResult]:
        data = parse_json_lenient(payload.text, self.name)
        items = data.get("results") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise BackendParseError(self.name, "Missing results array")

        results = []
        for item in items:
            if not isinstance(item, dict):
                continue
            results.append(
                SearchResult(
                    title=item.get("title"),
                    url=item.get("url"),
                    snippet=item.get("content"),
                    source=self._source_for(item),
                )
            )

        logger.debug(
            "SearXNG results parsed",
            backend=self.name,
            result_count=len(results),
            unresponsive=len(data.get("unresponsive_engines") or []),
        )
        return results

    def _source_for(self, item: dict[str, Any]) -> str:
        engine = item.get("engine")
        if isinstance(engine, str) and engine:
            return f"{self.label} ({engine})"
        return self.label

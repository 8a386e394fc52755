"""
Instant-answer JSON backend (DuckDuckGo Instant Answer API).
"""

from __future__ import annotations

import json
from typing import Any
from urllib.parse import quote_plus

from mirror.search.errors import BackendParseError
from mirror.search.provider import BaseSearchBackend, RawPayload, SearchResult
from mirror.utils.logging import get_logger

logger = get_logger(__name__)

MAX_RELATED_TOPICS = 5
MAX_RESULTS = 3
ANSWER_FALLBACK_URL = "https://duckduckgo.com/?q={query}"


def parse_json_lenient(text: str, backend: str) -> Any:
    """Parse a JSON body, retrying on the outermost ``{...}`` span.

    Some upstreams wrap JSON in a callback or prepend junk. If the body is
    not valid JSON, the substring from the first ``{`` to the last ``}`` is
    parsed before giving up.

    Raises:
        BackendParseError: If no JSON object can be recovered.
    """
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        pass

    start = text.find("{") if isinstance(text, str) else -1
    end = text.rfind("}") if isinstance(text, str) else -1
    if start == -1 or end <= start:
        raise BackendParseError(backend, "Response is not valid JSON")

    try:
        data = json.loads(text[start : end + 1])
    except json.JSONDecodeError as e:
        raise BackendParseError(backend, "Response is not valid JSON") from e

    logger.debug("Recovered JSON from wrapped body", backend=backend)
    return data


def flatten_topics(topics: list[Any]) -> list[dict[str, Any]]:
    """Flatten RelatedTopics, expanding grouped entries (``{"Name", "Topics"}``)."""
    flat: list[dict[str, Any]] = []
    for topic in topics:
        if not isinstance(topic, dict):
            continue
        nested = topic.get("Topics")
        if isinstance(nested, list):
            flat.extend(t for t in nested if isinstance(t, dict))
        else:
            flat.append(topic)
    return flat


def _title_from_text(text: str, default: str) -> str:
    return text.split(" - ")[0].strip() or default


class InstantAnswerBackend(BaseSearchBackend):
    """Backend reading the DuckDuckGo Instant Answer API."""

    def _default_headers(self) -> dict[str, str]:
        return {
            "User-Agent": self._user_agent,
            "Accept": "application/json",
            "Accept-Language": "en-US,en;q=0.9",
        }

    def _probe_url(self) -> str:
        return f"{self.endpoint}?q=test&format=json"

    async def request(self, query: str) -> RawPayload:
        params = {
            "q": query.strip(),
            "format": "json",
            "no_html": "1",
            "skip_disambig": "1",
        }
        return await self._get(query, self.endpoint, params=params)

    def parse(self, payload: RawPayload) -> list[SearchResult]:
        data = parse_json_lenient(payload.text, self.name)
        if not isinstance(data, dict):
            raise BackendParseError(self.name, "Unexpected JSON structure")

        results: list[SearchResult] = []

        # Abstract (main result)
        if data.get("Abstract") and data.get("AbstractText") and data.get("AbstractURL"):
            results.append(
                SearchResult(
                    title=data.get("Heading") or "Definition",
                    url=data["AbstractURL"],
                    snippet=data["AbstractText"],
                    source="DuckDuckGo Instant",
                )
            )

        if data.get("Definition") and data.get("DefinitionURL"):
            results.append(
                SearchResult(
                    title=data["Definition"],
                    url=data["DefinitionURL"],
                    snippet=data["Definition"],
                    source="DuckDuckGo Definition",
                )
            )

        if data.get("Answer") and data.get("AnswerType"):
            results.append(
                SearchResult(
                    title=f"{data['AnswerType']} Answer",
                    url=data.get("AbstractURL")
                    or ANSWER_FALLBACK_URL.format(query=quote_plus(payload.query)),
                    snippet=data["Answer"],
                    source="DuckDuckGo Answer",
                )
            )

        related = data.get("RelatedTopics")
        if isinstance(related, list):
            for topic in flatten_topics(related)[:MAX_RELATED_TOPICS]:
                text = topic.get("Text")
                if isinstance(text, str) and text and topic.get("FirstURL"):
                    results.append(
                        SearchResult(
                            title=_title_from_text(text, "Related Topic"),
                            url=topic["FirstURL"],
                            snippet=text,
                            source="DuckDuckGo Related",
                        )
                    )

        extra = data.get("Results")
        if isinstance(extra, list):
            for item in extra[:MAX_RESULTS]:
                if not isinstance(item, dict):
                    continue
                text = item.get("Text")
                if isinstance(text, str) and text and item.get("FirstURL"):
                    results.append(
                        SearchResult(
                            title=_title_from_text(text, "Search Result"),
                            url=item["FirstURL"],
                            snippet=text,
                            source="DuckDuckGo",
                        )
                    )

        return results

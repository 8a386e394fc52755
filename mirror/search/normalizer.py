"""
Result normalization and pagination.

Backends return loosely-filled SearchResult objects; the normalizer turns
them into the canonical shape every response carries:

- every field is a string, with placeholders for a missing title/snippet
- ``source`` defaults to the backend label
- results without a URL are dropped
- duplicate URLs collapse to their first occurrence
- the list is truncated to ``max_results``
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, Field

from mirror.search.provider import SearchResult
from mirror.utils.config import SearchConfig


class ResultPage(BaseModel):
    """One page of a normalized result list."""

    results: list[SearchResult] = Field(default_factory=list)
    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)
    total_pages: int = Field(..., ge=0)
    total_results: int = Field(..., ge=0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "results": [r.to_dict() for r in self.results],
            "page": self.page,
            "pageSize": self.page_size,
            "totalPages": self.total_pages,
            "totalResults": self.total_results,
        }


class ResultNormalizer:
    """Coerce, dedupe and truncate backend results."""

    def __init__(self, config: SearchConfig | None = None):
        config = config or SearchConfig()
        self.max_results = config.max_results
        self.title_placeholder = config.title_placeholder
        self.snippet_placeholder = config.snippet_placeholder

    def normalize(self, results: Iterable[SearchResult], source: str) -> list[SearchResult]:
        """
        Normalize results from one backend.

        Args:
            results: Results as parsed by the backend.
            source: Backend label used when a result carries no source.

        Returns:
            At most ``max_results`` canonical results.
        """
        normalized: list[SearchResult] = []
        seen_urls: set[str] = set()

        for result in results:
            url = result.url.strip()
            if not url or url in seen_urls:
                continue
            seen_urls.add(url)

            normalized.append(
                SearchResult(
                    title=result.title.strip() or self.title_placeholder,
                    url=url,
                    snippet=result.snippet.strip() or self.snippet_placeholder,
                    source=result.source.strip() or source,
                )
            )
            if len(normalized) >= self.max_results:
                break

        return normalized


def paginate(results: list[SearchResult], page: int = 1, page_size: int = 10) -> ResultPage:
    """
    Slice a result list into a page.

    Pages past the end yield an empty result list with the real totals.

    Raises:
        ValueError: If page or page_size is not positive.
    """
    if page < 1:
        raise ValueError("page must be >= 1")
    if page_size < 1:
        raise ValueError("page_size must be >= 1")

    total = len(results)
    start = (page - 1) * page_size
    return ResultPage(
        results=results[start : start + page_size],
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size),
        total_results=total,
    )

"""
Synthetic fallback results.

Used when every configured backend failed. Performs no I/O and always
returns the same three results for the same query.
"""

from urllib.parse import quote

from mirror.search.provider import SearchResult

# Characters encodeURIComponent leaves untouched
_URI_COMPONENT_SAFE = "-_.!~*'()"

_TEMPLATES = [
    (
        "{q} - Search Results",
        "https://en.wikipedia.org/wiki/{quoted}",
        "Information about {q}. This is a placeholder result while live search "
        "backends are unavailable.",
    ),
    (
        "{q} Guide and Information",
        "https://example.com/search?q={quoted}",
        "Comprehensive guide and detailed information about {q}. Privacy-first "
        "search results.",
    ),
    (
        "Best {q} Resources",
        "https://example.com/resources/{quoted}",
        "Top resources and links related to {q}. Curated content for your search query.",
    ),
]


class FallbackGenerator:
    """Deterministic placeholder result generator."""

    def __init__(self, label: str = "Mirror Search (Fallback)", source: str = "Mirror Search"):
        self.label = label
        self.source = source

    def generate(self, query: str) -> list[SearchResult]:
        q = query.strip() or query
        quoted = quote(q, safe=_URI_COMPONENT_SAFE)
        return [
            SearchResult(
                title=title.format(q=q),
                url=url.format(quoted=quoted),
                snippet=snippet.format(q=q),
                source=self.source,
            )
            for title, url, snippet in _TEMPLATES
        ]

"""
HTML-scraped search backend (DuckDuckGo HTML endpoint).

The result page is fetched directly or through an HTTP proxy whose URL
template carries a ``{url}`` placeholder, then parsed with BeautifulSoup
using the CSS selectors from configuration.
"""

from __future__ import annotations

import random
from typing import Any
from urllib.parse import parse_qs, quote, urlencode, urljoin, urlparse

import httpx
from bs4 import BeautifulSoup, Tag

from mirror.search.errors import BackendParseError
from mirror.search.provider import (
    DEFAULT_USER_AGENT,
    BaseSearchBackend,
    RawPayload,
    SearchResult,
)
from mirror.utils.config import BackendConfig
from mirror.utils.logging import get_logger

logger = get_logger(__name__)

BASE_URL = "https://duckduckgo.com"

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:109.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
]

# (path prefix, query parameters holding the real target)
REDIRECT_WRAPPERS: list[tuple[str, tuple[str, ...]]] = [
    ("/l/", ("uddg", "kh")),
    ("/url", ("q", "url")),
]

INTERNAL_DOMAINS = ("duckduckgo.com", "duck.co", "spreadprivacy.com")
CACHE_DOMAINS = ("webcache.googleusercontent.com", "cc.bingj.com", "web.archive.org")
AUTH_HOST_PREFIXES = ("accounts.", "login.", "signin.", "auth.")
AD_DOMAINS = ("googleadservices.com", "doubleclick.net")

FALLBACK_TITLE_SELECTOR = "h2 a, .result__title a, a[data-testid='result-title-a']"
FALLBACK_SNIPPET_SELECTOR = "[data-testid='result-snippet'], [data-result='snippet']"


def privacy_headers(user_agent: str | None = None) -> dict[str, str]:
    """Browser-like request headers with a rotating User-Agent."""
    return {
        "User-Agent": user_agent or random.choice(USER_AGENTS),
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
        "DNT": "1",
    }


def unwrap_redirect_url(url: str) -> str:
    """Return the target of a known redirect wrapper, or ``url`` unchanged.

    Example:
        "/l/?uddg=https%3A%2F%2Fexample.com%2F" -> "https://example.com/"
    """
    parsed = urlparse(url)
    if parsed.netloc and not _host_matches(parsed.netloc, ("duckduckgo.com", "google.com")):
        return url

    for prefix, params in REDIRECT_WRAPPERS:
        if not (parsed.path == prefix.rstrip("/") or parsed.path.startswith(prefix)):
            continue
        query = parse_qs(parsed.query)
        for param in params:
            values = query.get(param)
            if values and values[0]:
                return values[0]
    return url


def is_administrative_url(url: str) -> bool:
    """Check if a URL points at engine-internal, auth, cache or ad-click pages."""
    parsed = urlparse(url)
    host = parsed.netloc.lower().split(":")[0]
    if not host:
        return True
    if _host_matches(host, INTERNAL_DOMAINS) or _host_matches(host, CACHE_DOMAINS):
        return True
    if host.startswith(AUTH_HOST_PREFIXES):
        return True
    return _host_matches(host, AD_DOMAINS)


def normalize_result_url(url: str | None, base_url: str = BASE_URL) -> str | None:
    """Unwrap redirects, resolve relative links and reject non-result URLs."""
    if not url:
        return None

    url = unwrap_redirect_url(url.strip())

    if url.startswith(("javascript:", "mailto:", "#")):
        return None

    if not url.startswith(("http://", "https://")):
        if url.startswith("//"):
            url = "https:" + url
        elif base_url:
            url = unwrap_redirect_url(urljoin(base_url, url))
        else:
            return None

    if not url.startswith(("http://", "https://")) or is_administrative_url(url):
        return None
    return url


def _host_matches(host: str, domains: tuple[str, ...]) -> bool:
    host = host.lower().split(":")[0]
    return any(host == d or host.endswith("." + d) for d in domains)


class HtmlSearchBackend(BaseSearchBackend):
    """
    Backend scraping an HTML result page.

    Example:
        backend = HtmlSearchBackend("duckduckgo_html", config, client)
        results = await backend.search("privacy tools")
    """

    def __init__(
        self,
        name: str,
        config: BackendConfig,
        client: httpx.AsyncClient | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        super().__init__(name, config, client, user_agent)
        self._selectors = config.selectors

    def _default_headers(self) -> dict[str, str]:
        return privacy_headers(self.config.user_agent)

    def build_url(self, query: str) -> str:
        """Target URL for a query, routed through the proxy if configured."""
        target = f"{self.endpoint}?{urlencode({'q': query})}"
        return self._via_proxy(target)

    def _via_proxy(self, target: str) -> str:
        if not self.config.proxy_url:
            return target
        return self.config.proxy_url.replace("{url}", quote(target, safe=""))

    def _probe_url(self) -> str:
        return self._via_proxy(self.endpoint)

    async def request(self, query: str) -> RawPayload:
        return await self._get(query, self.build_url(query))

    def parse(self, payload: RawPayload) -> list[SearchResult]:
        try:
            soup = BeautifulSoup(payload.text, "html.parser")
        except Exception as e:
            raise BackendParseError(self.name, f"Unparseable HTML: {type(e).__name__}") from e

        containers = soup.select(self._selectors.results_container)
        if not containers:
            containers = soup.select(self._selectors.results_container_alt)

        results = []
        skipped = 0
        for container in containers:
            result = self._extract_single_result(container)
            if result is None:
                skipped += 1
                continue
            results.append(result)

        if skipped:
            logger.debug("Skipped HTML results", backend=self.name, skipped=skipped)
        return results

    def _extract_single_result(self, container: Tag) -> SearchResult | None:
        if self._is_sponsored(container):
            return None

        title_elem = container.select_one(self._selectors.title)
        if title_elem is None:
            title_elem = container.select_one(FALLBACK_TITLE_SELECTOR)
        if title_elem is None:
            return None

        url = normalize_result_url(self._extract_href(title_elem))
        if not url:
            return None

        snippet_elem = container.select_one(self._selectors.snippet)
        if snippet_elem is None:
            snippet_elem = container.select_one(FALLBACK_SNIPPET_SELECTOR)

        return SearchResult(
            title=self._extract_text(title_elem),
            url=url,
            snippet=self._extract_text(snippet_elem),
            source=self.label,
        )

    def _is_sponsored(self, container: Tag) -> bool:
        classes: Any = container.get("class") or []
        if any(cls.endswith("--ad") for cls in classes):
            return True
        return container.select_one(self._selectors.sponsored) is not None

    @staticmethod
    def _extract_text(element: Tag | None, default: str = "") -> str:
        if element is None:
            return default
        return element.get_text(" ", strip=True) or default

    @staticmethod
    def _extract_href(element: Tag) -> str | None:
        href = element.get("href")
        if isinstance(href, str) and href:
            return href
        link = element.find("a")
        if isinstance(link, Tag):
            href = link.get("href")
            if isinstance(href, str):
                return href
        return None

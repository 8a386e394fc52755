"""
Unit tests for search backend adapters.

Outbound HTTP is served by httpx.MockTransport; no network access.

## Test Perspectives Table

| Case ID | Input / Precondition | Perspective (Equivalence / Boundary) | Expected Result | Notes |
|---------|---------------------|---------------------------------------|-----------------|-------|
| TC-URL-N-01 | DuckDuckGo /l/?uddg= wrapper | Equivalence – normal | Target URL | - |
| TC-URL-N-02 | Google /url?q= wrapper | Equivalence – normal | Target URL | - |
| TC-URL-A-01 | javascript:, #, internal, auth, cache, ad URLs | Abnormal – not a result | None | - |
| TC-HTML-N-01 | Result page with organic, ad and internal links | Equivalence – normal | Organic results only | - |
| TC-HTML-N-02 | proxy_url configured | Equivalence – normal | Request goes to proxy with encoded target | - |
| TC-HTML-N-03 | Primary container selector absent | Equivalence – alt selector | Alt containers parsed | - |
| TC-HTML-A-01 | HTTP 503 | Abnormal – non-2xx | BackendHTTPError(503) | - |
| TC-HTML-A-02 | Page with no results | Abnormal – empty | EmptyResultsError | - |
| TC-HTML-A-03 | Upstream slower than timeout | Abnormal – timeout | BackendTimeoutError | - |
| TC-HTML-A-04 | Transport-level timeout | Abnormal – timeout | BackendTimeoutError | - |
| TC-IA-N-01 | Abstract, RelatedTopics (nested), Results | Equivalence – normal | Flattened results with sources | - |
| TC-IA-N-02 | Request parameters | Equivalence – normal | format=json, no_html=1, skip_disambig=1 | - |
| TC-IA-N-03 | Answer without AbstractURL | Equivalence – normal | Search URL used | - |
| TC-IA-B-01 | 7 related topics | Boundary – cap | First 5 kept | - |
| TC-IA-B-02 | JSON wrapped in a callback | Boundary – lenient | Parsed from braces | - |
| TC-IA-A-01 | Non-JSON body | Abnormal – parse | BackendParseError | - |
| TC-SX-N-01 | SearXNG results | Equivalence – normal | Sub-engine kept in source | - |
| TC-SX-A-01 | Missing results array | Abnormal – parse | BackendParseError | - |
| TC-PB-N-01 | Probe answered 200 | Equivalence – normal | True, hits probe URL | - |
| TC-PB-A-01 | Probe connection error | Abnormal – transport | False | - |
| TC-FB-N-01 | Fallback generator | Equivalence – normal | 3 deterministic results | - |
| TC-RG-A-01 | Unknown backend kind | Abnormal – config | ValueError | - |
"""

import asyncio
import json

import httpx
import pytest

from mirror.search.backends import (
    FallbackGenerator,
    HtmlSearchBackend,
    InstantAnswerBackend,
    SearXNGBackend,
    build_backends,
    is_administrative_url,
    normalize_result_url,
    parse_json_lenient,
    unwrap_redirect_url,
)
from mirror.search.errors import (
    BackendHTTPError,
    BackendParseError,
    BackendTimeoutError,
    EmptyResultsError,
)
from mirror.search.provider import RawPayload
from mirror.utils.config import SearchConfig

pytestmark = pytest.mark.unit


RESULT_PAGE = """
<html><body>
<div class="results">
  <div class="result results_links web-result">
    <h2 class="result__title">
      <a class="result__a" href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fexample.com%2Fpizza&amp;rut=abc">Pizza Guide</a>
    </h2>
    <a class="result__snippet" href="#">Everything about pizza.</a>
  </div>
  <div class="result result--ad">
    <a class="result__a" href="https://ads.example.net/offer">Buy Pizza Now</a>
    <div class="result__snippet">Sponsored</div>
  </div>
  <div class="result">
    <a class="result__a" href="https://duckduckgo.com/settings">Settings</a>
  </div>
  <div class="result">
    <a class="result__a" href="https://en.wikipedia.org/wiki/Pizza">Pizza - Wikipedia</a>
    <div class="result__snippet">Pizza is a dish.</div>
  </div>
  <div class="result">
    <a class="result__a" href="https://accounts.google.com/signin">Sign in</a>
  </div>
</div>
</body></html>
"""

INSTANT_ANSWER = {
    "Heading": "Pizza",
    "Abstract": "Pizza is an Italian dish.",
    "AbstractText": "Pizza is an Italian dish.",
    "AbstractURL": "https://en.wikipedia.org/wiki/Pizza",
    "Definition": "",
    "Answer": "",
    "RelatedTopics": [
        {
            "Text": "Neapolitan pizza - A style originating in Naples",
            "FirstURL": "https://duckduckgo.com/Neapolitan_pizza",
        },
        {
            "Name": "Styles",
            "Topics": [
                {
                    "Text": "Chicago-style pizza - Deep dish",
                    "FirstURL": "https://duckduckgo.com/Chicago-style_pizza",
                }
            ],
        },
    ],
    "Results": [
        {"Text": "Official site - pizza.example", "FirstURL": "https://pizza.example/"},
    ],
}


def payload(text: str, query: str = "pizza") -> RawPayload:
    return RawPayload(query=query, url="https://search.test/", status_code=200, text=text)


# ============================================================================
# URL helpers
# ============================================================================


class TestUrlHelpers:
    """Tests for redirect unwrapping and URL filtering."""

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("/l/?uddg=https%3A%2F%2Fexample.com%2Fa", "https://example.com/a"),
            (
                "//duckduckgo.com/l/?uddg=https%3A%2F%2Fexample.com%2Fa&rut=x",
                "https://example.com/a",
            ),
            ("/url?q=https://example.org/page&sa=U", "https://example.org/page"),
            ("https://www.google.com/url?q=https://example.org/x", "https://example.org/x"),
            ("https://example.com/l/?uddg=https://other.test", "https://example.com/l/?uddg=https://other.test"),
        ],
    )
    def test_unwrap_redirect(self, url: str, expected: str):
        """TC-URL-N-01/02: Known wrappers on engine hosts are unwrapped."""
        assert unwrap_redirect_url(url) == expected

    @pytest.mark.parametrize(
        "url",
        [
            None,
            "",
            "javascript:void(0)",
            "#",
            "mailto:someone@example.com",
            "https://duckduckgo.com/settings",
            "/about",
            "https://webcache.googleusercontent.com/search?q=cache:x",
            "https://accounts.google.com/signin",
            "https://adclick.g.doubleclick.net/pcs/click",
        ],
    )
    def test_non_result_urls_rejected(self, url):
        """TC-URL-A-01: Non-result URLs normalize to None."""
        assert normalize_result_url(url) is None

    def test_organic_url_accepted(self):
        assert normalize_result_url("https://example.com/page") == "https://example.com/page"
        assert is_administrative_url("https://example.com/login") is False


# ============================================================================
# HTML backend
# ============================================================================


class TestHtmlSearchBackend:
    """Tests for the HTML scraping adapter."""

    @pytest.mark.asyncio
    async def test_parses_organic_results(self, make_backend_config, mock_http_client):
        """TC-HTML-N-01: Ads, internal and auth links are skipped."""
        # Given: Upstream returns a mixed result page
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text=RESULT_PAGE)

        client = mock_http_client(handler)
        backend = HtmlSearchBackend(
            "duckduckgo_html", make_backend_config(label="DuckDuckGo"), client=client
        )

        # When: Searching
        results = await backend.search("pizza near")

        # Then: Only the two organic results, redirect unwrapped
        assert [r.url for r in results] == [
            "https://example.com/pizza",
            "https://en.wikipedia.org/wiki/Pizza",
        ]
        assert results[0].title == "Pizza Guide"
        assert results[0].snippet == "Everything about pizza."
        assert results[1].source == "DuckDuckGo"
        assert seen[0].url.params["q"] == "pizza near"
        assert seen[0].headers["DNT"] == "1"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_proxy_url(self, make_backend_config, mock_http_client):
        """TC-HTML-N-02: Requests are routed through the configured proxy."""
        # Given: Backend with a proxy template
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text=RESULT_PAGE)

        client = mock_http_client(handler)
        config = make_backend_config(proxy_url="https://proxy.test/fetch?url={url}")
        backend = HtmlSearchBackend("duckduckgo_html", config, client=client)

        # When: Searching
        await backend.search("pizza near")

        # Then: Proxy receives the encoded target URL
        assert seen[0].url.host == "proxy.test"
        assert seen[0].url.params["url"] == "https://search.test/?q=pizza+near"
        await client.aclose()

    def test_alt_container_selector(self, make_backend_config):
        """TC-HTML-N-03: Alternate container selector is used when primary finds nothing."""
        # Given: Markup using only the alternate container class
        html = (
            '<div class="web-result"><h2><a href="https://example.com/alt">Alt</a></h2>'
            '<span data-result="snippet">Alt snippet</span></div>'
        )
        backend = HtmlSearchBackend("duckduckgo_html", make_backend_config())

        # When: Parsing
        results = backend.parse(payload(html))

        # Then: Fallback title and snippet selectors apply
        assert len(results) == 1
        assert results[0].url == "https://example.com/alt"
        assert results[0].snippet == "Alt snippet"

    @pytest.mark.asyncio
    async def test_http_error(self, make_backend_config, mock_http_client):
        """TC-HTML-A-01: Non-2xx responses raise BackendHTTPError."""
        client = mock_http_client(lambda request: httpx.Response(503, text="unavailable"))
        backend = HtmlSearchBackend("duckduckgo_html", make_backend_config(), client=client)

        with pytest.raises(BackendHTTPError) as exc_info:
            await backend.search("pizza")

        assert exc_info.value.status == 503
        assert str(exc_info.value) == "HTTP 503"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_empty_page(self, make_backend_config, mock_http_client):
        """TC-HTML-A-02: A page without results is a failure."""
        client = mock_http_client(lambda request: httpx.Response(200, text="<html></html>"))
        backend = HtmlSearchBackend("duckduckgo_html", make_backend_config(), client=client)

        with pytest.raises(EmptyResultsError):
            await backend.search("pizza")
        await client.aclose()

    @pytest.mark.asyncio
    async def test_slow_upstream_times_out(self, make_backend_config, mock_http_client):
        """TC-HTML-A-03: wait_for bounds the whole request."""

        # Given: Upstream slower than the backend timeout
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(1.0)
            return httpx.Response(200, text=RESULT_PAGE)

        client = mock_http_client(handler)
        backend = HtmlSearchBackend(
            "duckduckgo_html", make_backend_config(timeout_seconds=0.05), client=client
        )

        # When/Then: Timeout error naming the backend
        with pytest.raises(BackendTimeoutError) as exc_info:
            await backend.search("pizza")
        assert exc_info.value.backend == "duckduckgo_html"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_transport_timeout(self, make_backend_config, mock_http_client):
        """TC-HTML-A-04: httpx timeouts map to BackendTimeoutError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client = mock_http_client(handler)
        backend = HtmlSearchBackend("duckduckgo_html", make_backend_config(), client=client)

        with pytest.raises(BackendTimeoutError):
            await backend.search("pizza")
        await client.aclose()


# ============================================================================
# Instant answer backend
# ============================================================================


class TestInstantAnswerBackend:
    """Tests for the instant-answer JSON adapter."""

    def test_parse_sections(self, make_backend_config):
        """TC-IA-N-01: Abstract, related topics and results are read in order."""
        # Given: Instant answer payload with a nested topic group
        backend = InstantAnswerBackend("duckduckgo_instant", make_backend_config("instant_answer"))

        # When: Parsing
        results = backend.parse(payload(json.dumps(INSTANT_ANSWER)))

        # Then: Nested topics flattened, titles cut at " - "
        assert [r.source for r in results] == [
            "DuckDuckGo Instant",
            "DuckDuckGo Related",
            "DuckDuckGo Related",
            "DuckDuckGo",
        ]
        assert results[0].title == "Pizza"
        assert results[1].title == "Neapolitan pizza"
        assert results[2].url == "https://duckduckgo.com/Chicago-style_pizza"
        assert results[3].title == "Official site"

    @pytest.mark.asyncio
    async def test_request_parameters(self, make_backend_config, mock_http_client):
        """TC-IA-N-02: API is queried in JSON mode without HTML."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=INSTANT_ANSWER)

        client = mock_http_client(handler)
        backend = InstantAnswerBackend(
            "duckduckgo_instant", make_backend_config("instant_answer"), client=client
        )

        results = await backend.search("  pizza ")

        params = seen[0].url.params
        assert params["q"] == "pizza"
        assert params["format"] == "json"
        assert params["no_html"] == "1"
        assert params["skip_disambig"] == "1"
        assert seen[0].headers["Accept"] == "application/json"
        assert len(results) == 4
        await client.aclose()

    def test_answer_without_abstract_url(self, make_backend_config):
        """TC-IA-N-03: An answer without AbstractURL links to the search page."""
        backend = InstantAnswerBackend("duckduckgo_instant", make_backend_config("instant_answer"))
        data = {"Answer": "4", "AnswerType": "calc", "AbstractURL": ""}

        results = backend.parse(payload(json.dumps(data), query="2+2"))

        assert len(results) == 1
        assert results[0].title == "calc Answer"
        assert results[0].url == "https://duckduckgo.com/?q=2%2B2"
        assert results[0].source == "DuckDuckGo Answer"

    def test_related_topics_capped(self, make_backend_config):
        """TC-IA-B-01: Only the first five related topics are used."""
        backend = InstantAnswerBackend("duckduckgo_instant", make_backend_config("instant_answer"))
        data = {
            "RelatedTopics": [
                {"Text": f"Topic {i} - text", "FirstURL": f"https://duckduckgo.com/T{i}"}
                for i in range(7)
            ]
        }

        results = backend.parse(payload(json.dumps(data)))

        assert [r.title for r in results] == [f"Topic {i}" for i in range(5)]

    def test_wrapped_json(self, make_backend_config):
        """TC-IA-B-02: JSON inside a callback wrapper is recovered."""
        backend = InstantAnswerBackend("duckduckgo_instant", make_backend_config("instant_answer"))
        text = "ddg_spice(" + json.dumps(INSTANT_ANSWER) + ");"

        results = backend.parse(payload(text))

        assert len(results) == 4

    @pytest.mark.parametrize("text", ["<html>blocked</html>", "{not json}", ""])
    def test_unparseable_body(self, make_backend_config, text: str):
        """TC-IA-A-01: Bodies without a JSON object raise BackendParseError."""
        backend = InstantAnswerBackend("duckduckgo_instant", make_backend_config("instant_answer"))

        with pytest.raises(BackendParseError):
            backend.parse(payload(text))

    def test_parse_json_lenient_valid(self):
        assert parse_json_lenient('{"a": 1}', "test") == {"a": 1}


# ============================================================================
# SearXNG backend
# ============================================================================


class TestSearXNGBackend:
    """Tests for the SearXNG JSON adapter."""

    @pytest.mark.asyncio
    async def test_search(self, make_backend_config, mock_http_client):
        """TC-SX-N-01: Results carry the sub-engine in their source."""
        seen: list[httpx.Request] = []
        body = {
            "results": [
                {"title": "A", "url": "https://a.test/", "content": "first", "engine": "brave"},
                {"title": "B", "url": "https://b.test/", "content": "second"},
            ]
        }

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=body)

        client = mock_http_client(handler)
        config = make_backend_config("searxng", label="SearXNG", endpoint="http://searx.test/")
        backend = SearXNGBackend("searxng", config, client=client)

        results = await backend.search("pizza")

        assert seen[0].url.path == "/search"
        assert seen[0].url.params["format"] == "json"
        assert [r.source for r in results] == ["SearXNG (brave)", "SearXNG"]
        assert results[0].snippet == "first"
        await client.aclose()

    def test_missing_results_array(self, make_backend_config):
        """TC-SX-A-01: A payload without results is a parse error."""
        backend = SearXNGBackend("searxng", make_backend_config("searxng"))

        with pytest.raises(BackendParseError):
            backend.parse(payload('{"query": "pizza"}'))


# ============================================================================
# Probes
# ============================================================================


class TestProbe:
    """Tests for lightweight liveness probes."""

    @pytest.mark.asyncio
    async def test_probe_success(self, make_backend_config, mock_http_client):
        """TC-PB-N-01: 2xx means alive; the probe does not search."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text="ok")

        client = mock_http_client(handler)
        config = make_backend_config("searxng", endpoint="http://searx.test")
        backend = SearXNGBackend("searxng", config, client=client)

        assert await backend.probe() is True
        assert seen[0].url.path == "/healthz"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_probe_connection_error(self, make_backend_config, mock_http_client):
        """TC-PB-A-01: Transport errors mean not alive."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = mock_http_client(handler)
        backend = InstantAnswerBackend(
            "duckduckgo_instant", make_backend_config("instant_answer"), client=client
        )

        assert await backend.probe() is False
        await client.aclose()


# ============================================================================
# Fallback generator and registry
# ============================================================================


class TestFallbackGenerator:
    """Tests for synthetic fallback results."""

    def test_generate(self):
        """TC-FB-N-01: Three deterministic results derived from the query."""
        generator = FallbackGenerator()

        first = generator.generate("pizza dough")
        second = generator.generate("pizza dough")

        assert [r.to_dict() for r in first] == [r.to_dict() for r in second]
        assert len(first) == 3
        assert first[0].title == "pizza dough - Search Results"
        assert first[0].url == "https://en.wikipedia.org/wiki/pizza%20dough"
        assert first[1].url == "https://example.com/search?q=pizza%20dough"
        assert first[2].title == "Best pizza dough Resources"
        assert {r.source for r in first} == {"Mirror Search"}


class TestRegistry:
    """Tests for build_backends."""

    def test_default_order(self):
        """Default settings build the two DuckDuckGo backends in order."""
        backends = build_backends(SearchConfig())

        assert [b.name for b in backends] == ["duckduckgo_html", "duckduckgo_instant"]
        assert isinstance(backends[0], HtmlSearchBackend)
        assert isinstance(backends[1], InstantAnswerBackend)
        assert backends[0].timeout == 15.0
        assert backends[1].timeout == 10.0

    def test_unknown_kind(self):
        """TC-RG-A-01: Unknown kinds are rejected at build time."""
        config = SearchConfig(
            backend_order=["mystery"],
            backends={"mystery": {"kind": "gopher", "label": "X", "endpoint": "gopher://x"}},
        )

        with pytest.raises(ValueError, match="unknown kind"):
            build_backends(config)

"""
Mirror Search HTTP server.

Thin aiohttp shell around the search orchestrator and the anonymization
engine. Both are injected into the application through typed AppKeys.

Routes:
  POST /search     -> anonymized search with backend fallthrough
  GET  /health     -> backend and engine liveness
  GET  /llm-status -> anonymization engine status

Domain errors are reported as HTTP 200 with an ``{error, message}`` body.
"""

from __future__ import annotations

import json
import secrets
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

import httpx
from aiohttp import web

from mirror.anonymizer.engine import AnonymizationEngine
from mirror.search.errors import ErrorCode
from mirror.search.normalizer import paginate
from mirror.search.orchestrator import SearchOrchestrator
from mirror.utils.config import Settings
from mirror.utils.logging import LogContext, get_logger
from mirror.utils.secure_logging import generate_error_id, sanitize_error_message

logger = get_logger(__name__)

ORCHESTRATOR_KEY = web.AppKey("orchestrator", SearchOrchestrator)
ENGINE_KEY = web.AppKey("engine", AnonymizationEngine)
SETTINGS_KEY = web.AppKey("settings", Settings)
CLIENT_KEY = web.AppKey("http_client", httpx.AsyncClient)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


class RequestValidationError(Exception):
    """Invalid /search request body."""

    def __init__(self, code: ErrorCode, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


def error_payload(code: ErrorCode, message: str) -> dict[str, str]:
    return {"error": code.value, "message": message}


def _timestamp() -> str:
    return datetime.now(UTC).isoformat()


@web.middleware
async def request_context_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Bind a request id to every log line emitted while handling the request."""
    request_id = request.headers.get("X-Request-ID") or f"req_{secrets.token_hex(8)}"
    with LogContext(request_id=request_id, path=request.path):
        response = await handler(request)
    response.headers["X-Request-ID"] = request_id
    return response


def _optional_positive_int(body: dict[str, Any], key: str) -> int | None:
    value = body.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise RequestValidationError(
            ErrorCode.INVALID_PARAMETER, f"{key} must be a positive integer"
        )
    return value


def parse_search_request(
    raw_body: bytes | str, max_query_length: int
) -> tuple[str, bool, int | None, int | None]:
    """
    Validate a /search request body.

    Returns:
        Tuple of (query, use_anonymization, page, page_size).

    Raises:
        RequestValidationError: On undecodable or malformed JSON, or invalid fields.
    """
    try:
        if isinstance(raw_body, bytes):
            raw_body = raw_body.decode("utf-8")
        body = json.loads(raw_body) if raw_body.strip() else {}
    except ValueError as e:
        raise RequestValidationError(
            ErrorCode.INVALID_JSON, "Request body must be valid JSON"
        ) from e

    if not isinstance(body, dict):
        body = {}

    query = body.get("query")
    if not isinstance(query, str) or not query.strip():
        raise RequestValidationError(ErrorCode.INVALID_QUERY, "Query must be a non-empty string")
    if len(query) > max_query_length:
        raise RequestValidationError(
            ErrorCode.INVALID_QUERY, f"Query must be at most {max_query_length} characters"
        )

    use_anonymization = body.get("useAnonymization", True)
    if not isinstance(use_anonymization, bool):
        raise RequestValidationError(
            ErrorCode.INVALID_PARAMETER, "useAnonymization must be a boolean"
        )

    page = _optional_positive_int(body, "page")
    page_size = _optional_positive_int(body, "pageSize")
    return query, use_anonymization, page, page_size


async def handle_search(request: web.Request) -> web.Response:
    """Anonymized search endpoint."""
    orchestrator = request.app[ORCHESTRATOR_KEY]
    settings = request.app[SETTINGS_KEY]

    try:
        query, use_anonymization, page, page_size = parse_search_request(
            await request.read(), settings.server.max_query_length
        )
    except RequestValidationError as e:
        logger.info("Rejected search request", error=e.code.value, reason=e.message)
        return web.json_response(error_payload(e.code, e.message))

    try:
        response = await orchestrator.search(query, use_anonymization=use_anonymization)
        data = response.to_dict()

        if page is not None or page_size is not None:
            result_page = paginate(
                response.results, page or 1, page_size or settings.search.max_results
            )
            data["results"] = [r.to_dict() for r in result_page.results]
            data["pagination"] = {
                "page": result_page.page,
                "pageSize": result_page.page_size,
                "totalPages": result_page.total_pages,
            }

        data["debug_info"] = {
            "engine": response.engine,
            "errorInfo": response.error_info or {},
            "query": query,
            "anonymized": response.status.anonymized,
        }
        return web.json_response(data)

    except Exception as e:
        error_id = generate_error_id()
        logger.error("Search request failed", error_id=error_id, error=str(e), exc_info=True)
        return web.json_response(error_payload(ErrorCode.SEARCH_FAILED, sanitize_error_message(e)))


async def handle_health(request: web.Request) -> web.Response:
    """Health check endpoint."""
    orchestrator = request.app[ORCHESTRATOR_KEY]
    try:
        report = await orchestrator.health_check()
        return web.json_response(report.to_dict())
    except Exception as e:
        logger.error("Health check failed", error=str(e))
        return web.json_response(
            error_payload(ErrorCode.HEALTH_CHECK_FAILED, sanitize_error_message(e))
        )


async def handle_llm_status(request: web.Request) -> web.Response:
    """Anonymization engine status. Initializes the engine if needed."""
    engine = request.app[ENGINE_KEY]
    try:
        if not engine.initialized:
            engine.initialize()
        status = engine.get_status()
        return web.json_response(
            {
                "status": "ok",
                **status.to_dict(),
                "timestamp": _timestamp(),
            }
        )
    except Exception as e:
        logger.error("Engine status check failed", error=str(e))
        return web.json_response(
            error_payload(ErrorCode.STATUS_CHECK_FAILED, sanitize_error_message(e))
        )


async def _close_resources(app: web.Application) -> None:
    await app[ORCHESTRATOR_KEY].close()
    client = app.get(CLIENT_KEY)
    if client is not None and not client.is_closed:
        await client.aclose()
    logger.info("Server resources released")


def create_app(
    orchestrator: SearchOrchestrator,
    engine: AnonymizationEngine,
    settings: Settings | None = None,
    client: httpx.AsyncClient | None = None,
) -> web.Application:
    """
    Create aiohttp application.

    Args:
        orchestrator: Search orchestrator serving /search and /health.
        engine: Anonymization engine reported by /llm-status.
        settings: Settings. Defaults are used if None.
        client: Shared outbound HTTP client, closed on app cleanup.
    """
    app = web.Application(middlewares=[request_context_middleware])
    app[ORCHESTRATOR_KEY] = orchestrator
    app[ENGINE_KEY] = engine
    app[SETTINGS_KEY] = settings or Settings()
    if client is not None:
        app[CLIENT_KEY] = client

    app.router.add_post("/search", handle_search)
    app.router.add_get("/health", handle_health)
    app.router.add_get("/llm-status", handle_llm_status)

    app.on_cleanup.append(_close_resources)
    return app

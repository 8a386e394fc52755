"""
Error types for search dispatch.

Backend adapters raise BackendError subclasses; the orchestrator catches
them, records ``str(error)`` under the backend's name and moves on to the
next backend. ErrorCode names the error payloads returned by the HTTP API.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Error payload names returned by the HTTP API."""

    INVALID_JSON = "Invalid JSON format"
    INVALID_QUERY = "Invalid query parameter"
    INVALID_PARAMETER = "Invalid request parameter"
    SEARCH_FAILED = "Search failed"
    STATUS_CHECK_FAILED = "LLM status check failed"
    HEALTH_CHECK_FAILED = "Health check failed"


class BackendError(Exception):
    """Base error raised by a search backend."""

    def __init__(self, backend: str, message: str):
        self.backend = backend
        self.message = message
        super().__init__(message)


class BackendTimeoutError(BackendError):
    """Backend did not answer within its timeout."""

    def __init__(self, backend: str, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(backend, f"Timed out after {timeout_seconds:g}s")


class BackendHTTPError(BackendError):
    """Backend answered with a non-2xx status or the transport failed."""

    def __init__(self, backend: str, status: int | None, message: str | None = None):
        self.status = status
        if message is None:
            message = f"HTTP {status}" if status is not None else "Request failed"
        super().__init__(backend, message)


class BackendParseError(BackendError):
    """Backend payload could not be parsed."""


class EmptyResultsError(BackendError):
    """Backend answered but returned no usable results."""

    def __init__(self, backend: str):
        super().__init__(backend, "No results returned")

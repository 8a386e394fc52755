"""
Secure logging helpers for Mirror Search.

Search queries are the sensitive payload of this service, so they are
never written to logs verbatim. Callers log a summary (hash + length)
instead, and exception messages are sanitized before they are echoed
back to HTTP clients.
"""

from __future__ import annotations

import hashlib
import re
import secrets
from dataclasses import dataclass
from typing import Any

MAX_ERROR_MESSAGE_LENGTH = 200

_SENSITIVE_PATH_PATTERN = re.compile(
    r"/home/[^/\s]+|"
    r"/root/|"
    r"/tmp/[^/\s]+|"
    r"/var/[^/\s]+|"
    r"C:\\\\Users\\\\[^\\\\]+|"
    r'File "[^"]+"|'
    r"line \d+, in \w+",
    re.IGNORECASE,
)

_STACK_TRACE_PATTERN = re.compile(
    r"Traceback \(most recent call last\):|"
    r"^\s+File |"
    r"^\s+raise \w+",
    re.MULTILINE,
)


@dataclass
class QuerySummary:
    """Loggable summary of a search query."""

    query_hash: str  # SHA256 hash (first 16 chars)
    length: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for structured logging."""
        return {"query_hash": self.query_hash, "query_len": self.length}


def summarize_query(query: str) -> dict[str, Any]:
    """Summarize a query for structured logging.

    Args:
        query: Raw or anonymized query text.

    Returns:
        Dict with ``query_hash`` and ``query_len`` keys, suitable for
        ``logger.info("...", **summarize_query(q))``.
    """
    digest = hashlib.sha256(query.encode("utf-8")).hexdigest()[:16]
    return QuerySummary(query_hash=digest, length=len(query)).to_dict()


def sanitize_error_message(exception: BaseException) -> str:
    """Strip paths and stack fragments from an exception message.

    Args:
        exception: Exception to describe.

    Returns:
        Message safe to return to a client.
    """
    message = str(exception) or type(exception).__name__

    sanitized = _SENSITIVE_PATH_PATTERN.sub("[PATH]", message)
    sanitized = _STACK_TRACE_PATTERN.sub("[TRACE]", sanitized)

    if len(sanitized) > MAX_ERROR_MESSAGE_LENGTH:
        sanitized = sanitized[:MAX_ERROR_MESSAGE_LENGTH] + "..."

    redaction_count = sanitized.count("[PATH]") + sanitized.count("[TRACE]")
    if redaction_count > 3:
        sanitized = "An internal error occurred"

    return sanitized


def generate_error_id() -> str:
    """Generate unique error ID for log correlation."""
    return f"err_{secrets.token_hex(8)}"

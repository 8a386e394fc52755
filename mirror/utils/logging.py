"""
Structured logging for Mirror Search.

structlog renders every event as JSON (or coloured console output in
development). Values bound with LogContext, such as the per-request
``request_id`` set by the HTTP middleware, are merged into every event
emitted inside the block, including events from backends and the
anonymization engine.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from mirror.utils.config import get_project_root, get_settings

# Keys that identify the request an event belongs to, rendered first
REQUEST_KEYS = ("request_id", "path")


def _filter_health_check(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Drop debug-level health check events, which fire on every probe."""
    event = str(event_dict.get("event", "")).lower().replace("_", " ")
    if method_name == "debug" and event.startswith("health check"):
        raise structlog.DropEvent
    return event_dict


def _order_request_keys(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Move request identifiers to the front of the rendered event."""
    ordered = {key: event_dict.pop(key) for key in REQUEST_KEYS if key in event_dict}
    ordered.update(event_dict)
    return ordered


def _log_file_path(logs_dir: str) -> Path:
    log_dir = get_project_root() / logs_dir
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir / f"mirror_{datetime.now().strftime('%Y%m%d')}.log"


def configure_logging(
    log_level: str | None = None,
    log_file: str | Path | None = None,
    json_format: bool | None = None,
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR. Defaults to
            ``general.log_level``.
        log_file: Extra file destination. Defaults to a dated file under
            ``general.logs_dir`` when ``general.log_to_file`` is set.
        json_format: JSON output when True, console output when False.
            Defaults to ``general.json_logs``.
    """
    general = get_settings().general
    log_level = log_level or general.log_level
    json_format = general.json_logs if json_format is None else json_format
    if log_file is None and general.log_to_file:
        log_file = _log_file_path(general.logs_dir)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper(), logging.INFO),
        handlers=handlers,
        force=True,
    )

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        _filter_health_check,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _order_request_keys,
    ]
    if json_format:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a logger, usually with ``__name__``."""
    return structlog.get_logger(name)


class LogContext:
    """Bind context values for the duration of a ``with`` block.

    Values bound by an enclosing block are restored on exit, so nested
    contexts do not clobber each other.

    Example:
        with LogContext(request_id="req_1f2e", path="/search"):
            logger.info("Search completed")  # carries request_id and path
    """

    def __init__(self, **values: Any):
        self.values = values
        self._tokens: dict[str, Any] = {}

    def __enter__(self) -> "LogContext":
        self._tokens = structlog.contextvars.bind_contextvars(**self.values)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        structlog.contextvars.reset_contextvars(**self._tokens)

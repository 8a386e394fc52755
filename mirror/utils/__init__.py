"""
Mirror Search utilities module.
"""

from mirror.utils.config import Settings, get_project_root, get_settings, load_settings
from mirror.utils.logging import (
    LogContext,
    configure_logging,
    get_logger,
)
from mirror.utils.secure_logging import (
    generate_error_id,
    sanitize_error_message,
    summarize_query,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    "load_settings",
    "get_project_root",
    # Logging
    "get_logger",
    "configure_logging",
    "LogContext",
    # Secure logging
    "summarize_query",
    "sanitize_error_message",
    "generate_error_id",
]

"""
Logging configuration using structlog for structured, JSON-based logging.

Log lines go to stderr so that stdout stays free for command output.
"""

import logging
import sys
from typing import Any

import structlog


def configure_logging(log_level: str = "INFO", debug: bool = False) -> None:
    """Configure structured logging with JSON output.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        debug: Force DEBUG level, which also surfaces the per-request
            ``http_request`` / ``http_response`` events
    """
    level = logging.DEBUG if debug else getattr(logging, log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> Any:
    """Get a logger instance.

    Example:
        >>> log = get_logger(__name__)
        >>> log.info("provider_registered", name="gitea", type="gitea")
    """
    return structlog.get_logger(name)

"""sourcewatch structured logging with JSON formatting.

Provides structured logging using structlog with:
- JSON format for machine parsing (production)
- Colorful console output for development
- ISO timestamps
- Exception formatting
- Reconcile context (namespace, name, revision) carried via contextvars
"""

import logging
import sys
from typing import Any, cast

import structlog
from structlog.types import FilteringBoundLogger, Processor

from sourcewatch.config.settings import get_settings


def configure_logging() -> FilteringBoundLogger:
    """Configure structlog for the application.

    Configures structured logging with JSON output for production
    and colorful console output for development.

    Returns:
        FilteringBoundLogger: Configured logger instance
    """
    settings = get_settings()
    level = "DEBUG" if settings.debug else settings.observability.log_level

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    processors: list[Processor]
    if settings.observability.log_format == "json" or settings.is_production:
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(sort_keys=True),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.set_exc_info,
            structlog.dev.ConsoleRenderer(
                colors=True,
                pad_event=25,
                exception_formatter=structlog.dev.plain_traceback,
            ),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelNamesMapping()[level]),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # Standard library logging (kopf, kubernetes, httpx)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=level,
    )
    for noisy_logger in ("httpx", "httpcore", "urllib3", "kubernetes"):
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    return cast(FilteringBoundLogger, structlog.get_logger())


def get_logger(name: str | None = None, **initial_context: Any) -> FilteringBoundLogger:
    """Get a logger instance with optional initial context.

    Args:
        name: Optional logger name (typically module name)
        **initial_context: Initial context to bind to logger

    Returns:
        FilteringBoundLogger: Logger instance with bound context

    Example:
        >>> log = get_logger(__name__, component="fetcher")
        >>> log.info("artifact_downloaded", size=2048)
        {
          "component": "fetcher",
          "event": "artifact_downloaded",
          "level": "info",
          "size": 2048,
          "timestamp": "2026-10-19T12:34:56.789Z"
        }
    """
    logger = structlog.get_logger(name) if name else structlog.get_logger()

    if initial_context:
        logger = logger.bind(**initial_context)

    return cast(FilteringBoundLogger, logger)


def bind_reconcile_context(**context: Any) -> None:
    """Bind reconcile identity to every log line emitted in the current task."""
    structlog.contextvars.bind_contextvars(**context)


def clear_reconcile_context(*keys: str) -> None:
    """Remove reconcile identity bound by :func:`bind_reconcile_context`."""
    structlog.contextvars.unbind_contextvars(*keys)


__all__ = [
    "bind_reconcile_context",
    "clear_reconcile_context",
    "configure_logging",
    "get_logger",
]

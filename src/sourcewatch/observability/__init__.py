"""sourcewatch observability package.

Structured logging (structlog) and Prometheus metrics.
"""

from sourcewatch.observability._logging import configure_logging, get_logger

__all__ = ["configure_logging", "get_logger"]

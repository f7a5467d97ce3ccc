"""shadowlink structured logging.

Provides structured logging using structlog with:
- JSON format for machine parsing (production)
- Colorful console output for development
- ISO timestamps
- Exception formatting
"""

import logging
import sys
from typing import Any, cast

import structlog
from structlog.types import FilteringBoundLogger, Processor

from shadowlink.config.settings import Settings, get_settings


def _stderr_logger(*args: Any) -> structlog.PrintLogger:
    # sys.stderr is looked up per logger, it can be swapped after configuration
    return structlog.PrintLogger(file=sys.stderr)


def configure_logging(settings: Settings | None = None) -> FilteringBoundLogger:
    """Configure structlog for the application.

    Args:
        settings: Settings to read level and format from (default: cached settings)

    Returns:
        FilteringBoundLogger: Configured logger instance
    """
    settings = settings or get_settings()
    level = logging.getLevelName(settings.observability.log_level)

    # Shared processors for both console and JSON output
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
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )

    # Configure standard library logging (kubernetes client, urllib3)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=level,
    )

    return cast(FilteringBoundLogger, structlog.get_logger())


def get_logger(name: str | None = None, **initial_context: Any) -> FilteringBoundLogger:
    """Get a logger instance with optional initial context.

    Args:
        name: Optional logger name (typically module name)
        **initial_context: Initial context to bind to logger

    Returns:
        FilteringBoundLogger: Logger instance with bound context

    Example:
        >>> log = get_logger(__name__, component="discovery")
        >>> log.info("shadow_pod_reused", pod="shadow-t1")
    """
    logger = structlog.get_logger(name) if name else structlog.get_logger()

    if initial_context:
        logger = logger.bind(**initial_context)

    return cast(FilteringBoundLogger, logger)


# Initialize logging on module import
configure_logging()


__all__ = ["configure_logging", "get_logger"]

"""
Logging configuration for the structured note engine.

All modules obtain their logger through get_logger() so that output is
structured consistently. Nothing is configured at import time: applications
call configure_logging() once at startup.
"""
import logging
import sys
from typing import Optional

import structlog
from structlog.types import FilteringBoundLogger


def configure_logging(
    level: str = "INFO",
    format_json: bool = False,
    include_timestamp: bool = True,
    extra_processors: Optional[list] = None,
) -> None:
    """
    Configure structlog on top of the standard library logging module.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_json: If True, render JSON lines; otherwise a console format
        include_timestamp: Add an ISO timestamp to each event
        extra_processors: Additional structlog processors inserted before rendering
    """
    log_level = getattr(logging, level.upper())

    logging.basicConfig(
        level=log_level,
        stream=sys.stdout,
        format="%(message)s",
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))

    if extra_processors:
        processors.extend(extra_processors)

    if format_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> FilteringBoundLogger:
    """
    Get a structlog logger.

    Args:
        name: Logger name (typically __name__)
    """
    return structlog.get_logger(name)


def get_evaluation_logger(name: str, position_id: str) -> FilteringBoundLogger:
    """Logger pre-bound with the position being evaluated."""
    return get_logger(name).bind(subsystem="evaluator", position_id=position_id)

"""
Structured logging setup.

JSON output in production/staging, colored console output otherwise.
Call configure_logging() once at application startup.
"""

import logging
import sys

import structlog
from structlog.typing import Processor

from core.config import settings


def configure_logging() -> None:
    """Configure structlog and route standard library logging to stdout."""
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.LOG_FORMAT == "json" or settings.is_production:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # SQLAlchemy, uvicorn and friends use the standard library
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

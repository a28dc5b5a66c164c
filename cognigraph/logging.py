"""
Logging configuration module for cognigraph.

Configures structlog for console output (default) or one JSON object per
line. Log lines go to stderr so command output on stdout stays parseable.
"""

import logging
import sys

import structlog

from .config import settings


def configure_logging(level: str | None = None, log_format: str | None = None) -> None:
    """Configure structlog for the application.

    Args:
        level: Level name overriding ``settings.log_level``
        log_format: "console" or "json", overriding ``settings.log_format``
    """
    level_name = (level or settings.log_level).upper()
    renderer = (
        structlog.processors.JSONRenderer()
        if (log_format or settings.log_format) == "json"
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level_name, logging.INFO)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )

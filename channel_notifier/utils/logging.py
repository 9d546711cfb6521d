"""Structured Logging Configuration.

This module configures structlog for key-value event logging.
Outputs JSON by default for production log aggregation; set LOG_FORMAT=console
for human-readable local output.

Configuration:
- JSON output format (for production log aggregation)
- Context binding support (video_id, channel_id, profile_id, etc.)
- Log levels: DEBUG, INFO, WARNING, ERROR, CRITICAL (LOG_LEVEL env var)
"""

import logging
import os
import sys

import structlog


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Configure structlog and the stdlib root logger.

    Safe to call more than once; the last call wins.

    Args:
        level: Log level name, defaults to LOG_LEVEL or "INFO".
        fmt: "json" or "console", defaults to LOG_FORMAT or "json".
    """
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    output_format = (fmt or os.getenv("LOG_FORMAT", "json")).lower()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
        force=True,
    )

    renderer: structlog.types.Processor
    if output_format == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance for the given module.

    Args:
        name: Module name (typically __name__)

    Returns:
        structlog logger bound with the module name
    """
    return structlog.get_logger(name)

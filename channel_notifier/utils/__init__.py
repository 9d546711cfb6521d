"""Cross-cutting utilities for the notification pipeline.

Modules:
    logging: structlog configuration and logger factory.
"""

from channel_notifier.utils.logging import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "get_logger",
]

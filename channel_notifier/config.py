"""Configuration management for the notification pipeline.

This module provides centralized configuration loading from environment variables.
Required values are cached after first read; tunables are re-read on each call so
tests and operators can change them without a restart.

Environment Variables:
    DATABASE_URL: PostgreSQL connection URL (required)
    APP_URL: Public base URL used to build the WebSub callback URL (required for workers)
    WEBSUB_HUB_URL: WebSub hub subscribe endpoint (optional)
    OPENAI_API_KEY: Summarizer credentials (optional, summaries skipped when unset)
    RESEND_API_KEY: Email delivery credentials (optional, delivery worker disabled when unset)

Usage:
    from channel_notifier.config import get_database_url, get_queue_name

    db_url = get_database_url()  # Raises if DATABASE_URL not set
    queue_name = get_queue_name()  # "youtube_data_queue" by default
"""

import os
from functools import lru_cache

import structlog

from channel_notifier.constants import (
    DEFAULT_HUB_URL,
    DEFAULT_QUEUE_NAME,
    WEBSUB_CALLBACK_PATH,
)
from channel_notifier.exceptions import ConfigurationError

log = structlog.get_logger(__name__)


def _get_int(name: str, default: int, minimum: int, maximum: int) -> int:
    """Read an integer environment variable clamped to [minimum, maximum].

    Invalid values fall back to the default with a warning.
    """
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        log.warning("invalid_integer_setting", setting=name, value=raw, using_default=default)
        return default
    return max(minimum, min(maximum, value))


@lru_cache
def get_database_url() -> str:
    """Get database URL from environment.

    Converts postgresql:// to postgresql+asyncpg:// for async SQLAlchemy.

    Returns:
        Database URL with asyncpg driver.

    Raises:
        ConfigurationError: If DATABASE_URL not set.
    """
    url = os.getenv("DATABASE_URL")
    if not url:
        raise ConfigurationError("DATABASE_URL environment variable is required")

    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)

    return url


def get_database_echo() -> bool:
    return os.getenv("DATABASE_ECHO", "").lower() == "true"


def get_app_url() -> str:
    """Get the public base URL of this service.

    Environment Variable:
        APP_URL: e.g. "https://notifier.example.com" (no trailing slash needed)

    Raises:
        ConfigurationError: If APP_URL not set.
    """
    url = os.getenv("APP_URL")
    if not url:
        raise ConfigurationError("APP_URL environment variable is required")
    return url.rstrip("/")


def get_websub_callback_url() -> str:
    """Build the WebSub callback URL the hub pushes new-video notifications to."""
    return f"{get_app_url()}{WEBSUB_CALLBACK_PATH}"


def get_websub_hub_url() -> str:
    return os.getenv("WEBSUB_HUB_URL", DEFAULT_HUB_URL)


def get_websub_secret() -> str | None:
    """Get the optional hub.secret sent with subscription requests."""
    return os.getenv("WEBSUB_SECRET") or None


def get_websub_lease_seconds() -> int | None:
    """Get the requested lease duration.

    Returns None when unset so the hub applies its own default
    (YouTube's hub grants roughly 5 to 10 days).
    """
    if not os.getenv("WEBSUB_LEASE_SECONDS"):
        return None
    return _get_int("WEBSUB_LEASE_SECONDS", 432000, 3600, 2592000)


def get_queue_name() -> str:
    return os.getenv("QUEUE_NAME", DEFAULT_QUEUE_NAME)


def get_queue_poll_interval() -> int:
    """Get queue polling interval in seconds (default 5, clamped 1-300)."""
    return _get_int("QUEUE_POLL_INTERVAL_SECONDS", 5, 1, 300)


def get_renewal_interval() -> int:
    """Get renewal tick interval in seconds (default 3600, clamped 60-86400)."""
    return _get_int("RENEWAL_INTERVAL_SECONDS", 3600, 60, 86400)


def get_renewal_threshold_days() -> int:
    """Get age in days after which a WebSub lease is renewed (default 7).

    Kept well inside the hub's lease lifetime to tolerate missed ticks.
    """
    return _get_int("RENEWAL_THRESHOLD_DAYS", 7, 1, 30)


def get_renewal_batch_size() -> int:
    return _get_int("RENEWAL_BATCH_SIZE", 10, 1, 500)


def get_email_poll_interval() -> int:
    """Get email delivery polling interval in seconds (default 20, clamped 1-600)."""
    return _get_int("EMAIL_POLL_INTERVAL_SECONDS", 20, 1, 600)


def get_email_batch_size() -> int:
    return _get_int("EMAIL_BATCH_SIZE", 10, 1, 100)


def get_http_timeout() -> float:
    """Get timeout in seconds applied to every outbound HTTP call (default 30)."""
    return float(_get_int("HTTP_TIMEOUT_SECONDS", 30, 1, 300))


def get_openai_api_key() -> str | None:
    """Get OpenAI API key.

    Returns:
        API key string, or None if not set. Without a key the queue worker
        still dispatches notifications, just without an AI summary.
    """
    return os.getenv("OPENAI_API_KEY") or None


def get_openai_model() -> str:
    return os.getenv("OPENAI_MODEL", "gpt-4o-mini")


def get_resend_api_key() -> str | None:
    return os.getenv("RESEND_API_KEY") or None


def get_email_from() -> str:
    return os.getenv("EMAIL_FROM", "Flow Fusion Notifier <notifications@example.com>")


def get_workers_enabled() -> bool:
    """Whether the web process should start the background workers.

    Environment Variable:
        WORKERS_ENABLED: "false" disables workers in the web process, for
        deployments that run `python -m channel_notifier.worker` separately.
    """
    return os.getenv("WORKERS_ENABLED", "true").lower() != "false"

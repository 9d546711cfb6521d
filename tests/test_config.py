"""Tests for channel_notifier/config.py configuration module.

This module tests:
- Environment variable loading functions
- Default value handling and clamping of interval settings
- Error cases for missing required configuration
"""

import pytest

from channel_notifier.config import (
    get_app_url,
    get_database_url,
    get_email_batch_size,
    get_queue_name,
    get_queue_poll_interval,
    get_renewal_threshold_days,
    get_websub_callback_url,
    get_websub_lease_seconds,
    get_workers_enabled,
)
from channel_notifier.exceptions import ConfigurationError


class TestGetDatabaseUrl:
    """Tests for get_database_url function."""

    def test_converts_postgresql_to_asyncpg(self, monkeypatch: pytest.MonkeyPatch):
        # GIVEN: A plain postgresql:// URL as hosting platforms provide it
        monkeypatch.setenv("DATABASE_URL", "postgresql://user:pw@db:5432/notifier")

        # WHEN: Reading the database URL
        result = get_database_url()

        # THEN: The asyncpg driver is selected
        assert result == "postgresql+asyncpg://user:pw@db:5432/notifier"

    def test_keeps_explicit_driver(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

        assert get_database_url() == "sqlite+aiosqlite:///:memory:"

    def test_raises_when_not_set(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)

        with pytest.raises(ConfigurationError, match="DATABASE_URL"):
            get_database_url()


class TestCallbackUrl:
    """Tests for APP_URL and the derived WebSub callback URL."""

    def test_callback_url_appends_route_path(self, monkeypatch: pytest.MonkeyPatch):
        # GIVEN: APP_URL with a trailing slash
        monkeypatch.setenv("APP_URL", "https://notifier.example.com/")

        # WHEN: Building the callback URL
        result = get_websub_callback_url()

        # THEN: No double slash, route path appended
        assert result == "https://notifier.example.com/api/v1/websub/callback"

    def test_app_url_required(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("APP_URL", raising=False)

        with pytest.raises(ConfigurationError, match="APP_URL"):
            get_app_url()


class TestTunables:
    """Tests for defaults and clamping of integer settings."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch):
        for name in (
            "QUEUE_NAME",
            "QUEUE_POLL_INTERVAL_SECONDS",
            "RENEWAL_THRESHOLD_DAYS",
            "EMAIL_BATCH_SIZE",
            "WEBSUB_LEASE_SECONDS",
            "WORKERS_ENABLED",
        ):
            monkeypatch.delenv(name, raising=False)

        assert get_queue_name() == "youtube_data_queue"
        assert get_queue_poll_interval() == 5
        assert get_renewal_threshold_days() == 7
        assert get_email_batch_size() == 10
        assert get_websub_lease_seconds() is None
        assert get_workers_enabled() is True

    def test_out_of_range_values_are_clamped(self, monkeypatch: pytest.MonkeyPatch):
        # GIVEN: A poll interval below the minimum and a batch size above the maximum
        monkeypatch.setenv("QUEUE_POLL_INTERVAL_SECONDS", "0")
        monkeypatch.setenv("EMAIL_BATCH_SIZE", "100000")

        # THEN: Both are clamped to their bounds
        assert get_queue_poll_interval() == 1
        assert get_email_batch_size() == 100

    def test_invalid_value_falls_back_to_default(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("QUEUE_POLL_INTERVAL_SECONDS", "soon")

        assert get_queue_poll_interval() == 5

    def test_lease_seconds_parsed_when_set(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("WEBSUB_LEASE_SECONDS", "864000")

        assert get_websub_lease_seconds() == 864000

    def test_workers_can_be_disabled(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("WORKERS_ENABLED", "false")

        assert get_workers_enabled() is False

"""Tests for custom exception classes.

Tests cover:
- HubRequestError context attributes and string form
- NotificationWriteError / EmailDeliveryError attributes
"""

import pytest

from channel_notifier.exceptions import (
    ConfigurationError,
    EmailDeliveryError,
    HubRequestError,
    NotificationWriteError,
)


class TestHubRequestError:
    def test_carries_request_context(self) -> None:
        """
        GIVEN: A hub rejection for a subscribe request
        WHEN: The error is raised and caught
        THEN: mode, channel_id and status_code are available and in str()
        """
        with pytest.raises(HubRequestError) as exc_info:
            raise HubRequestError("rejected", mode="subscribe", channel_id="UC1", status_code=409)

        error = exc_info.value
        assert error.mode == "subscribe"
        assert error.channel_id == "UC1"
        assert error.status_code == 409
        assert "channel_id=UC1" in str(error)
        assert "status_code=409" in str(error)

    def test_status_code_none_for_transport_errors(self) -> None:
        error = HubRequestError("timeout", mode="unsubscribe", channel_id="UC2")

        assert error.status_code is None
        assert "mode=unsubscribe" in str(error)


def test_notification_write_error_attributes() -> None:
    error = NotificationWriteError("insert failed", video_id="V1", profile_count=2)

    assert error.video_id == "V1"
    assert error.profile_count == 2
    assert str(error) == "insert failed"


def test_email_delivery_error_status_code() -> None:
    assert EmailDeliveryError("refused", status_code=422).status_code == 422


def test_configuration_error_is_exception() -> None:
    assert issubclass(ConfigurationError, Exception)

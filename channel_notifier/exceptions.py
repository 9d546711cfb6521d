"""Shared exceptions for the application.

This module contains exception classes used across clients, services and
workers so that the queue worker can classify failures without importing
every collaborator.
"""


class ConfigurationError(Exception):
    """Raised when required configuration is missing.

    Indicates a deployment problem (e.g. DATABASE_URL or APP_URL unset) that
    prevents the workers from starting.
    """

    pass


class HubRequestError(Exception):
    """Raised when the WebSub hub rejects or fails a (un)subscribe request.

    Covers both non-2xx responses and transport failures (timeouts, connection
    errors). The hub client never retries; callers decide whether to requeue
    or wait for the next renewal tick.

    Attributes:
        mode: "subscribe" or "unsubscribe".
        channel_id: YouTube channel ID the request was for.
        status_code: HTTP status returned by the hub, None on transport failure.
    """

    def __init__(
        self,
        message: str,
        mode: str,
        channel_id: str,
        status_code: int | None = None,
    ):
        self.mode = mode
        self.channel_id = channel_id
        self.status_code = status_code
        super().__init__(message)

    def __str__(self) -> str:
        base_message = super().__str__()
        return (
            f"{base_message} (mode={self.mode}, channel_id={self.channel_id}, "
            f"status_code={self.status_code})"
        )


class QueueError(Exception):
    """Raised when the durable queue store cannot pop or send a message."""

    pass


class NotificationWriteError(Exception):
    """Raised when the notification batch insert fails.

    The batch is rolled back before this is raised, so no partial set of
    notification records is ever left behind.
    """

    def __init__(self, message: str, video_id: str, profile_count: int):
        self.video_id = video_id
        self.profile_count = profile_count
        super().__init__(message)


class SummarizerError(Exception):
    """Raised for non-retriable summarizer failures (4xx other than 429, bad JSON)."""

    pass


class EmailDeliveryError(Exception):
    """Raised when the email provider refuses a message."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)

"""Resend email API client with rate limiting.

Implements:
- Resend's default 2 requests/second limit via AsyncLimiter
- Automatic retry with exponential backoff for 429, 5xx and timeouts
- EmailDeliveryError for refused messages (4xx other than 429)

Usage:
    sender = ResendEmailSender(api_key, from_address="Notifier <hi@example.com>")
    message_id = await sender.send(to, subject, html, text)
"""

import httpx
from aiolimiter import AsyncLimiter
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from channel_notifier.exceptions import EmailDeliveryError
from channel_notifier.utils.logging import get_logger

log = get_logger(__name__)

RESEND_EMAILS_URL = "https://api.resend.com/emails"


def _is_retriable_error(exception: BaseException) -> bool:
    if isinstance(exception, httpx.HTTPStatusError):
        return exception.response.status_code in [429, 500, 502, 503, 504]
    return isinstance(exception, (httpx.TimeoutException, httpx.ConnectError))


class ResendEmailSender:
    """EmailSender backed by the Resend REST API."""

    def __init__(
        self,
        api_key: str,
        from_address: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        self.from_address = from_address
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self.rate_limiter = AsyncLimiter(max_rate=2, time_period=1)

    @retry(
        retry=retry_if_exception(_is_retriable_error),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        reraise=True,
    )
    async def send(self, to: str, subject: str, html: str, text: str) -> str | None:
        """Send one email.

        Returns:
            Resend message ID.

        Raises:
            EmailDeliveryError: If Resend refuses the message.
            httpx.HTTPError: When transient errors persist after 3 attempts.
        """
        async with self.rate_limiter:
            response = await self.client.post(
                RESEND_EMAILS_URL,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "from": self.from_address,
                    "to": [to],
                    "subject": subject,
                    "html": html,
                    "text": text,
                },
            )

        if 400 <= response.status_code < 500 and response.status_code != 429:
            raise EmailDeliveryError(
                f"Email refused by provider: {response.text[:200]}",
                status_code=response.status_code,
            )
        response.raise_for_status()

        message_id = response.json().get("id")
        log.debug("email_sent", message_id=message_id, subject=subject[:80])
        return message_id

    async def close(self) -> None:
        """Close HTTP connections."""
        await self.client.aclose()

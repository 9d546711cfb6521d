"""WebSub (PubSubHubbub) hub client.

Registers and removes push subscriptions for a channel's video feed:
- Topic URL built deterministically from the channel ID
- Form-encoded POST to the hub (hub.callback, hub.topic, hub.mode, hub.verify)
- Any non-2xx response or transport error raises HubRequestError
- No retries here; the queue worker requeues and the renewal worker
  retries on its next tick

The hub answers 202 Accepted (async verification) or 204 No Content. It does
so for repeated subscribes and for unsubscribes of unknown subscriptions too,
which makes both operations idempotent from the caller's side.

Usage:
    client = HubClient(hub_url="https://pubsubhubbub.appspot.com/subscribe")
    await client.subscribe("UC123", "https://notifier.example.com/api/v1/websub/callback")
"""

import httpx

from channel_notifier.constants import DEFAULT_HUB_URL, FEED_TOPIC_TEMPLATE
from channel_notifier.exceptions import HubRequestError
from channel_notifier.utils.logging import get_logger

log = get_logger(__name__)


def build_topic_url(channel_id: str) -> str:
    """Return the YouTube Atom feed URL used as the WebSub topic."""
    return FEED_TOPIC_TEMPLATE.format(channel_id=channel_id)


class HubClient:
    """Stateless request/response client for a WebSub hub."""

    def __init__(
        self,
        hub_url: str = DEFAULT_HUB_URL,
        secret: str | None = None,
        lease_seconds: int | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize hub client.

        Args:
            hub_url: Hub subscribe endpoint.
            secret: Optional hub.secret for signed content distribution.
            lease_seconds: Optional requested lease duration.
            timeout: Request timeout in seconds.
            client: Pre-built httpx client (tests inject a mock transport).
        """
        self.hub_url = hub_url
        self.secret = secret
        self.lease_seconds = lease_seconds
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def subscribe(self, channel_id: str, callback_url: str) -> None:
        await self._request(channel_id, callback_url, "subscribe")

    async def unsubscribe(self, channel_id: str, callback_url: str) -> None:
        await self._request(channel_id, callback_url, "unsubscribe")

    async def _request(self, channel_id: str, callback_url: str, mode: str) -> None:
        """Post a subscription change to the hub.

        Raises:
            HubRequestError: On non-2xx response, timeout or connection error.
        """
        topic_url = build_topic_url(channel_id)
        form = {
            "hub.callback": callback_url,
            "hub.topic": topic_url,
            "hub.verify": "async",
            "hub.mode": mode,
        }
        if self.secret:
            form["hub.secret"] = self.secret
        if self.lease_seconds:
            form["hub.lease_seconds"] = str(self.lease_seconds)

        try:
            response = await self.client.post(self.hub_url, data=form)
        except httpx.HTTPError as e:
            log.warning(
                "websub_hub_transport_error",
                mode=mode,
                channel_id=channel_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise HubRequestError(
                f"Failed to {mode} channel updates: {type(e).__name__}",
                mode=mode,
                channel_id=channel_id,
            ) from e

        if not 200 <= response.status_code < 300:
            log.warning(
                "websub_hub_rejected",
                mode=mode,
                channel_id=channel_id,
                status_code=response.status_code,
                response=response.text[:500],
            )
            raise HubRequestError(
                f"Failed to {mode} channel updates: {response.text[:200]}",
                mode=mode,
                channel_id=channel_id,
                status_code=response.status_code,
            )

        log.info(
            "websub_hub_request_accepted",
            mode=mode,
            channel_id=channel_id,
            status_code=response.status_code,
        )

    async def close(self) -> None:
        """Close HTTP connections."""
        await self.client.aclose()

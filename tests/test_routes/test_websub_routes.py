"""Tests for the WebSub callback routes.

Tests cover:
- GET verification: challenge echo, missing parameters, invalid mode
- POST distribution: enqueue, deleted entries, signature checks, queue failures
"""

import hashlib
import hmac
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from channel_notifier.exceptions import QueueError
from channel_notifier.main import app
from channel_notifier.queue import QueueStore
from channel_notifier.routes.websub import get_queue_store

CALLBACK = "/api/v1/websub/callback"
TOPIC = "https://www.youtube.com/xml/feeds/videos.xml?channel_id=UC_test_channel"

ATOM_BODY = b"""<?xml version='1.0' encoding='UTF-8'?>
<feed xmlns:yt="http://www.youtube.com/xml/schemas/2015" xmlns="http://www.w3.org/2005/Atom">
  <entry>
    <id>yt:video:dQw4w9WgXcQ</id>
    <yt:videoId>dQw4w9WgXcQ</yt:videoId>
    <yt:channelId>UC_test_channel</yt:channelId>
    <title>Launch Day Recap</title>
    <author><name>Test Channel</name></author>
    <published>2026-01-05T14:30:00+00:00</published>
    <updated>2026-01-05T14:31:02+00:00</updated>
  </entry>
</feed>
"""

DELETED_BODY = b"""<?xml version='1.0' encoding='UTF-8'?>
<feed xmlns:at="http://purl.org/atompub/tombstones/1.0" xmlns="http://www.w3.org/2005/Atom">
  <at:deleted-entry ref="yt:video:dQw4w9WgXcQ" when="2026-01-05T15:00:00+00:00"/>
</feed>
"""


@pytest.fixture
def queue() -> AsyncMock:
    store = AsyncMock(spec=QueueStore)
    store.send.return_value = 1
    return store


@pytest.fixture
def client(queue, monkeypatch: pytest.MonkeyPatch):
    """Test client with the queue dependency replaced by a mock."""
    monkeypatch.delenv("WEBSUB_SECRET", raising=False)
    monkeypatch.delenv("QUEUE_NAME", raising=False)
    app.dependency_overrides[get_queue_store] = lambda: queue
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestVerification:
    def test_echoes_challenge(self, client: TestClient):
        # WHEN: The hub verifies a subscribe request
        response = client.get(
            CALLBACK,
            params={
                "hub.mode": "subscribe",
                "hub.topic": TOPIC,
                "hub.challenge": "challenge-123",
                "hub.lease_seconds": "432000",
            },
        )

        # THEN: The challenge is echoed as plain text
        assert response.status_code == 200
        assert response.text == "challenge-123"
        assert response.headers["content-type"].startswith("text/plain")

    def test_unsubscribe_mode_accepted(self, client: TestClient):
        response = client.get(
            CALLBACK,
            params={"hub.mode": "unsubscribe", "hub.topic": TOPIC, "hub.challenge": "bye"},
        )

        assert response.status_code == 200
        assert response.text == "bye"

    @pytest.mark.parametrize("missing", ["hub.mode", "hub.topic", "hub.challenge"])
    def test_missing_parameter_rejected(self, client: TestClient, missing: str):
        params = {"hub.mode": "subscribe", "hub.topic": TOPIC, "hub.challenge": "c"}
        del params[missing]

        response = client.get(CALLBACK, params=params)

        assert response.status_code == 400
        assert response.text == "Bad Request: Missing Parameters"

    def test_invalid_mode_rejected(self, client: TestClient):
        response = client.get(
            CALLBACK,
            params={"hub.mode": "denied", "hub.topic": TOPIC, "hub.challenge": "c"},
        )

        assert response.status_code == 400
        assert response.text == "Bad Request: Invalid Mode"


class TestDistribution:
    def test_upload_is_enqueued(self, client: TestClient, queue: AsyncMock):
        # WHEN: The hub pushes an upload notification
        response = client.post(
            CALLBACK, content=ATOM_BODY, headers={"Content-Type": "application/atom+xml"}
        )

        # THEN: The event is queued in camelCase wire form
        assert response.status_code == 200
        assert response.text == "OK"
        queue.send.assert_awaited_once()
        queue_name, payload = queue.send.await_args.args
        assert queue_name == "youtube_data_queue"
        assert payload["videoId"] == "dQw4w9WgXcQ"
        assert payload["channelId"] == "UC_test_channel"
        assert payload["title"] == "Launch Day Recap"
        assert payload["authorName"] == "Test Channel"

    def test_deleted_entry_is_acknowledged_without_enqueue(self, client, queue):
        response = client.post(CALLBACK, content=DELETED_BODY)

        assert response.status_code == 200
        queue.send.assert_not_awaited()

    def test_queue_failure_returns_500(self, client, queue):
        queue.send.side_effect = QueueError("Failed to send message")

        response = client.post(CALLBACK, content=ATOM_BODY)

        assert response.status_code == 500
        assert response.text == "Internal Server Error"

    def test_queue_not_configured_returns_503(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("WEBSUB_SECRET", raising=False)
        app.dependency_overrides.clear()
        if hasattr(app.state, "queue"):
            monkeypatch.delattr(app.state, "queue")

        response = TestClient(app).post(CALLBACK, content=ATOM_BODY)

        assert response.status_code == 503


class TestSignedDistribution:
    SECRET = "hub-secret"

    @pytest.fixture(autouse=True)
    def configure_secret(self, client, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("WEBSUB_SECRET", self.SECRET)

    def signature(self, body: bytes) -> str:
        return "sha1=" + hmac.new(self.SECRET.encode(), body, hashlib.sha1).hexdigest()

    def test_valid_signature_is_enqueued(self, client, queue):
        response = client.post(
            CALLBACK, content=ATOM_BODY, headers={"X-Hub-Signature": self.signature(ATOM_BODY)}
        )

        assert response.status_code == 200
        queue.send.assert_awaited_once()

    def test_invalid_signature_is_acknowledged_and_dropped(self, client, queue):
        response = client.post(CALLBACK, content=ATOM_BODY, headers={"X-Hub-Signature": "sha1=bad"})

        assert response.status_code == 200
        queue.send.assert_not_awaited()

    def test_missing_signature_is_dropped(self, client, queue):
        response = client.post(CALLBACK, content=ATOM_BODY)

        assert response.status_code == 200
        queue.send.assert_not_awaited()

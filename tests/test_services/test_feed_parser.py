"""Tests for WebSub push verification and Atom parsing."""

import hashlib
import hmac

from channel_notifier.services.feed_parser import parse_video_event, verify_hub_signature

ATOM_BODY = b"""<?xml version='1.0' encoding='UTF-8'?>
<feed xmlns:yt="http://www.youtube.com/xml/schemas/2015" xmlns="http://www.w3.org/2005/Atom">
  <link rel="hub" href="https://pubsubhubbub.appspot.com"/>
  <link rel="self" href="https://www.youtube.com/xml/feeds/videos.xml?channel_id=UC_test_channel"/>
  <title>YouTube video feed</title>
  <updated>2026-01-05T14:31:02.123456+00:00</updated>
  <entry>
    <id>yt:video:dQw4w9WgXcQ</id>
    <yt:videoId>dQw4w9WgXcQ</yt:videoId>
    <yt:channelId>UC_test_channel</yt:channelId>
    <title>Launch Day Recap</title>
    <link rel="alternate" href="https://www.youtube.com/watch?v=dQw4w9WgXcQ"/>
    <author>
      <name>Test Channel</name>
      <uri>https://www.youtube.com/channel/UC_test_channel</uri>
    </author>
    <published>2026-01-05T14:30:00+00:00</published>
    <updated>2026-01-05T14:31:02.123456+00:00</updated>
  </entry>
</feed>
"""

DELETED_BODY = b"""<?xml version='1.0' encoding='UTF-8'?>
<feed xmlns:at="http://purl.org/atompub/tombstones/1.0" xmlns="http://www.w3.org/2005/Atom">
  <at:deleted-entry ref="yt:video:dQw4w9WgXcQ" when="2026-01-05T15:00:00+00:00">
    <link href="https://www.youtube.com/watch?v=dQw4w9WgXcQ"/>
  </at:deleted-entry>
</feed>
"""


class TestParseVideoEvent:
    def test_upload_notification(self):
        event = parse_video_event(ATOM_BODY)

        assert event is not None
        assert event.is_valid()
        assert event.video_id == "dQw4w9WgXcQ"
        assert event.channel_id == "UC_test_channel"
        assert event.title == "Launch Day Recap"
        assert event.author_name == "Test Channel"
        assert event.published_at == "2026-01-05T14:30:00+00:00"
        assert event.timestamp is not None

    def test_payload_uses_camel_case_keys(self):
        payload = parse_video_event(ATOM_BODY).to_payload()

        assert payload["videoId"] == "dQw4w9WgXcQ"
        assert payload["channelId"] == "UC_test_channel"
        assert payload["authorName"] == "Test Channel"

    def test_deleted_entry_yields_none(self):
        assert parse_video_event(DELETED_BODY) is None

    def test_garbage_yields_none(self):
        assert parse_video_event(b"not xml at all") is None


class TestVerifyHubSignature:
    SECRET = "hub-secret"

    def sign(self, body: bytes, method: str = "sha1") -> str:
        digest = hmac.new(self.SECRET.encode(), body, getattr(hashlib, method)).hexdigest()
        return f"{method}={digest}"

    def test_valid_sha1_signature(self):
        assert verify_hub_signature(ATOM_BODY, self.sign(ATOM_BODY), self.SECRET) is True

    def test_valid_sha256_signature(self):
        signature = self.sign(ATOM_BODY, "sha256")
        assert verify_hub_signature(ATOM_BODY, signature, self.SECRET) is True

    def test_tampered_body_rejected(self):
        signature = self.sign(ATOM_BODY)
        assert verify_hub_signature(ATOM_BODY + b" ", signature, self.SECRET) is False

    def test_missing_signature_rejected(self):
        assert verify_hub_signature(ATOM_BODY, None, self.SECRET) is False

    def test_unsupported_method_rejected(self):
        assert verify_hub_signature(ATOM_BODY, "md5=abcdef", self.SECRET) is False

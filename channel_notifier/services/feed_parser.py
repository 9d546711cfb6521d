"""WebSub content distribution: signature check and Atom parsing.

YouTube pushes an Atom document per upload or metadata change:

    <feed xmlns:yt="http://www.youtube.com/xml/schemas/2015" ...>
      <entry>
        <yt:videoId>VIDEO_ID</yt:videoId>
        <yt:channelId>CHANNEL_ID</yt:channelId>
        <title>...</title>
        <author><name>...</name></author>
        <published>2026-01-05T14:30:00+00:00</published>
        <updated>2026-01-05T14:31:02.123456+00:00</updated>
      </entry>
    </feed>

Deleted-video notifications carry an at:deleted-entry instead of an entry and
parse to None.
"""

import hashlib
import hmac

import feedparser

from channel_notifier.models import utcnow
from channel_notifier.schemas import VideoEvent
from channel_notifier.utils.logging import get_logger

log = get_logger(__name__)

_SIGNATURE_ALGORITHMS = {
    "sha1": hashlib.sha1,
    "sha256": hashlib.sha256,
    "sha384": hashlib.sha384,
    "sha512": hashlib.sha512,
}


def verify_hub_signature(body: bytes, signature: str | None, secret: str) -> bool:
    """Verify an X-Hub-Signature header ("method=hexdigest") with HMAC.

    Args:
        body: Raw request body.
        signature: X-Hub-Signature header value.
        secret: The hub.secret sent at subscription time.

    Returns:
        True if the signature matches, False otherwise.

    Security:
        Uses constant-time comparison to prevent timing attacks
    """
    if not signature or "=" not in signature:
        log.warning("websub_signature_missing")
        return False

    method, _, provided = signature.partition("=")
    digestmod = _SIGNATURE_ALGORITHMS.get(method.lower())
    if digestmod is None:
        log.warning("websub_signature_unsupported_method", method=method)
        return False

    computed = hmac.new(secret.encode(), body, digestmod).hexdigest()
    is_valid = hmac.compare_digest(computed, provided.strip().lower())

    if not is_valid:
        log.warning(
            "websub_signature_verification_failed",
            signature_provided=provided[:8] + "...",
            computed_signature=computed[:8] + "...",
        )

    return is_valid


def parse_video_event(body: bytes | str) -> VideoEvent | None:
    """Parse the first entry of a YouTube Atom push into a VideoEvent.

    Returns:
        The event, or None when the feed has no entries.
    """
    feed = feedparser.parse(body)
    if feed.bozo:
        log.warning("websub_feed_malformed", error=str(feed.get("bozo_exception")))

    if not feed.entries:
        return None

    entry = feed.entries[0]
    author_name = entry.get("author_detail", {}).get("name") or entry.get("author", "")

    return VideoEvent(
        channel_id=entry.get("yt_channelid"),
        video_id=entry.get("yt_videoid"),
        title=entry.get("title", ""),
        author_name=author_name,
        published_at=entry.get("published"),
        updated_at=entry.get("updated"),
        timestamp=utcnow().isoformat(),
    )

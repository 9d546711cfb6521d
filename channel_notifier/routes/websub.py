"""WebSub callback routes.

This module provides the endpoints the hub calls back:
- GET /api/v1/websub/callback - Subscription verification (challenge echo)
- POST /api/v1/websub/callback - Content distribution (Atom push)

Pattern:
- Verify signature when a hub secret is configured (fast, no DB)
- Parse the first Atom entry (fast)
- Send the VideoEvent to the queue
- Return 200 so the hub does not retry; 500 when the queue is unavailable
  so that it does
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from channel_notifier.config import get_queue_name, get_websub_secret
from channel_notifier.constants import WEBSUB_MODES
from channel_notifier.exceptions import QueueError
from channel_notifier.queue import QueueStore
from channel_notifier.services.feed_parser import parse_video_event, verify_hub_signature
from channel_notifier.utils.logging import get_logger

log = get_logger(__name__)
router = APIRouter(prefix="/api/v1/websub", tags=["websub"])


def get_queue_store(request: Request) -> QueueStore:
    """FastAPI dependency returning the process-wide queue store."""
    queue = getattr(request.app.state, "queue", None)
    if queue is None:
        raise HTTPException(status_code=503, detail="Queue not configured")
    return queue


@router.get("/callback", response_class=PlainTextResponse)
async def verify_subscription(
    mode: str | None = Query(default=None, alias="hub.mode"),
    topic: str | None = Query(default=None, alias="hub.topic"),
    challenge: str | None = Query(default=None, alias="hub.challenge"),
    lease_seconds: str | None = Query(default=None, alias="hub.lease_seconds"),
) -> PlainTextResponse:
    """Answer the hub's verification of intent.

    Returns:
        200 with the challenge echoed as text/plain
        400 when a parameter is missing or the mode is unknown
    """
    if not mode or not topic or not challenge:
        log.warning("websub_verification_missing_parameters", mode=mode, topic=topic)
        return PlainTextResponse("Bad Request: Missing Parameters", status_code=400)

    if mode not in WEBSUB_MODES:
        log.warning("websub_verification_invalid_mode", mode=mode, topic=topic)
        return PlainTextResponse("Bad Request: Invalid Mode", status_code=400)

    log.info(
        "websub_verification_accepted",
        mode=mode,
        topic=topic,
        lease_seconds=lease_seconds,
    )
    return PlainTextResponse(challenge, status_code=200)


@router.post("/callback", response_class=PlainTextResponse)
async def receive_notification(
    request: Request,
    queue: QueueStore = Depends(get_queue_store),
) -> PlainTextResponse:
    """Accept a content distribution push and enqueue the video event.

    Returns:
        200 OK: Event queued, or nothing to queue (no entries, bad signature)
        500 Internal Server Error: Queue unavailable, the hub will retry
    """
    body = await request.body()

    secret = get_websub_secret()
    if secret and not verify_hub_signature(body, request.headers.get("X-Hub-Signature"), secret):
        # Hubs expect 2xx even for rejected content
        return PlainTextResponse("OK", status_code=200)

    try:
        event = parse_video_event(body)
    except ValidationError as e:
        log.warning("websub_notification_invalid", error=str(e), body=body[:200].decode(errors="replace"))
        return PlainTextResponse("OK", status_code=200)

    if event is None:
        log.info("websub_notification_without_entries", body_length=len(body))
        return PlainTextResponse("OK", status_code=200)

    try:
        msg_id = await queue.send(get_queue_name(), event.to_payload())
    except QueueError as e:
        log.error(
            "websub_notification_queue_failed",
            video_id=event.video_id,
            channel_id=event.channel_id,
            error=str(e),
        )
        return PlainTextResponse("Internal Server Error", status_code=500)

    log.info(
        "websub_notification_queued",
        msg_id=msg_id,
        video_id=event.video_id,
        channel_id=event.channel_id,
        title=event.title[:100],
    )
    return PlainTextResponse("OK", status_code=200)

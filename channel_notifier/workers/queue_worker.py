"""Queue worker: turns "new video" events into notification records.

Per iteration:
    1. Claim: destructive pop of one message (empty → sleep poll interval)
    2. Validate: drop if videoId/channelId missing or payload malformed
    3. Subscription check: no subscribers → drop and unsubscribe at the hub
    4. Eligibility check: no eligible profiles → drop
    5. Content: no transcript → drop
    6. Summarize: cached summary, else generate and cache (optional)
    7. Dispatch: create pending notification records with the email body
    8. Any exception in 2-7 → send the original payload back to the queue,
       invisible for requeue_delay seconds, then sleep the poll interval

Dropped messages are gone for good (pop already deleted them). Requeued
messages are processed again from step 2; dedup makes that safe.

Short transaction pattern: each database step opens and closes its own
session, so no connection is held during hub, transcript or summarizer calls.
"""

import asyncio
import enum
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from channel_notifier.clients.base import EmailSender, Summarizer, TranscriptProvider
from channel_notifier.clients.websub import HubClient
from channel_notifier.constants import DEFAULT_QUEUE_NAME
from channel_notifier.exceptions import SummarizerError
from channel_notifier.models import ChannelSubscription
from channel_notifier.queue import QueueMessage, QueueStore
from channel_notifier.schemas import SummaryContent, Transcript, VideoEvent
from channel_notifier.services.eligibility import get_eligible_profiles
from channel_notifier.services.email_template import render_notification_email
from channel_notifier.services.notification_dispatch import dispatch_notifications
from channel_notifier.services.summary_cache import get_or_create_summary
from channel_notifier.utils.logging import get_logger
from channel_notifier.workers.base import link_shutdown, wait_for_shutdown

log = get_logger(__name__)


class Outcome(str, enum.Enum):
    """Result of one queue worker iteration."""

    PROCESSED = "processed"
    SKIPPED = "skipped"
    REQUEUED = "requeued"
    EMPTY = "empty"


class SkipReason(str, enum.Enum):
    """Why a message was dropped without creating notifications."""

    INVALID_MESSAGE = "invalid_message"
    NO_SUBSCRIBERS = "no_subscribers"
    NO_ELIGIBLE_PROFILES = "no_eligible_profiles"
    NO_TRANSCRIPT = "no_transcript"


@dataclass(frozen=True)
class ProcessResult:
    outcome: Outcome
    reason: str | None = None
    msg_id: int | None = None
    video_id: str | None = None
    channel_id: str | None = None
    notifications_created: int = 0


def _payload_field(payload: Any, key: str) -> Any:
    return payload.get(key) if isinstance(payload, dict) else None


class QueueWorker:
    """Consumes the video event queue one message at a time."""

    def __init__(
        self,
        queue: QueueStore,
        session_factory: async_sessionmaker[AsyncSession],
        hub_client: HubClient,
        transcripts: TranscriptProvider,
        callback_url: str,
        summarizer: Summarizer | None = None,
        email_sender: EmailSender | None = None,
        queue_name: str = DEFAULT_QUEUE_NAME,
        poll_interval: float = 5,
        requeue_delay: float | None = None,
    ):
        """Initialize queue worker.

        Args:
            queue: Durable queue store.
            session_factory: Session factory for the relational store.
            hub_client: Used to unsubscribe channels nobody watches anymore.
            transcripts: Transcript provider.
            callback_url: WebSub callback URL registered for the channels.
            summarizer: Optional AI summarizer; notifications go out without
                a summary when None.
            email_sender: Delivers usage alert emails raised by the
                eligibility gate; alerts are only recorded when None.
            queue_name: Queue to consume.
            poll_interval: Seconds to sleep when the queue is empty and after
                a requeue.
            requeue_delay: Seconds a requeued message stays invisible,
                defaults to poll_interval.
        """
        self.queue = queue
        self.session_factory = session_factory
        self.hub_client = hub_client
        self.transcripts = transcripts
        self.callback_url = callback_url
        self.summarizer = summarizer
        self.email_sender = email_sender
        self.queue_name = queue_name
        self.poll_interval = poll_interval
        self.requeue_delay = poll_interval if requeue_delay is None else requeue_delay
        self._shutdown = asyncio.Event()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def stop(self) -> None:
        self._shutdown.set()

    async def start(self, shutdown: asyncio.Event | None = None) -> None:
        """Run the consume loop until shutdown is requested.

        Per-iteration errors (e.g. the queue store being unreachable) are
        logged and followed by a poll-interval sleep; they never end the loop.
        A requeue is followed by the same sleep, and the requeued message
        stays invisible for requeue_delay seconds.
        """
        linked = link_shutdown(shutdown, self._shutdown)
        self._running = True
        log.info(
            "queue_worker_started",
            queue_name=self.queue_name,
            poll_interval=self.poll_interval,
        )

        try:
            while not self._shutdown.is_set():
                try:
                    result = await self.process_next_message()
                except Exception as e:
                    log.error(
                        "queue_worker_iteration_failed",
                        queue_name=self.queue_name,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    result = None

                if result is None or result.outcome in (Outcome.EMPTY, Outcome.REQUEUED):
                    await wait_for_shutdown(self._shutdown, self.poll_interval)
        finally:
            self._running = False
            if linked is not None:
                linked.cancel()
            log.info("queue_worker_stopped", queue_name=self.queue_name)

    async def process_next_message(self) -> ProcessResult:
        """Claim and process at most one message.

        Raises:
            QueueError: If the claim itself fails (nothing was claimed).
        """
        message = await self.queue.pop(self.queue_name)
        if message is None:
            return ProcessResult(outcome=Outcome.EMPTY)

        video_id = _payload_field(message.payload, "videoId")
        log.info(
            "queue_message_claimed",
            msg_id=message.msg_id,
            video_id=video_id,
            delivery_count=message.delivery_count,
        )

        try:
            result = await self._process(message)
        except Exception as e:
            log.error(
                "queue_message_processing_failed",
                msg_id=message.msg_id,
                video_id=video_id,
                channel_id=_payload_field(message.payload, "channelId"),
                error=str(e),
                error_type=type(e).__name__,
            )
            await self._requeue(message)
            return ProcessResult(
                outcome=Outcome.REQUEUED,
                reason=type(e).__name__,
                msg_id=message.msg_id,
                video_id=video_id,
            )

        log.info(
            "queue_message_completed",
            msg_id=message.msg_id,
            video_id=result.video_id,
            channel_id=result.channel_id,
            outcome=result.outcome.value,
            reason=result.reason,
            notifications_created=result.notifications_created,
        )
        return result

    async def _process(self, message: QueueMessage) -> ProcessResult:
        try:
            event = VideoEvent.model_validate(message.payload)
        except ValidationError:
            return self._skip(message, SkipReason.INVALID_MESSAGE)
        if not event.is_valid():
            return self._skip(message, SkipReason.INVALID_MESSAGE, event)

        async with self.session_factory() as session:
            has_subscribers = await self._has_subscribers(session, event.channel_id)

        if not has_subscribers:
            await self.hub_client.unsubscribe(event.channel_id, self.callback_url)
            log.info("orphaned_channel_unsubscribed", channel_id=event.channel_id)
            return self._skip(message, SkipReason.NO_SUBSCRIBERS, event)

        async with self.session_factory() as session:
            eligible = await get_eligible_profiles(session, event.channel_id, self.email_sender)

        if not eligible:
            return self._skip(message, SkipReason.NO_ELIGIBLE_PROFILES, event)

        transcript = await self.transcripts.get_transcript(event.video_id)
        if transcript is None:
            return self._skip(message, SkipReason.NO_TRANSCRIPT, event)

        summary = await self._summarize(event, transcript)
        body = render_notification_email(
            video_id=event.video_id,
            title=event.title,
            channel_name=event.author_name,
            published_at=event.published_at,
            summary=summary,
        )

        async with self.session_factory() as session:
            created = await dispatch_notifications(session, event, eligible, body)

        return ProcessResult(
            outcome=Outcome.PROCESSED,
            msg_id=message.msg_id,
            video_id=event.video_id,
            channel_id=event.channel_id,
            notifications_created=created,
        )

    async def _has_subscribers(self, session: AsyncSession, channel_id: str) -> bool:
        result = await session.execute(
            select(ChannelSubscription.id).where(ChannelSubscription.channel_id == channel_id).limit(1)
        )
        return result.first() is not None

    async def _summarize(self, event: VideoEvent, transcript: Transcript) -> SummaryContent | None:
        """Cached or fresh summary; non-retriable summarizer errors yield None."""
        try:
            return await get_or_create_summary(
                self.session_factory,
                self.summarizer,
                event.video_id,
                event.title,
                transcript,
            )
        except SummarizerError as e:
            log.warning(
                "video_summary_failed",
                video_id=event.video_id,
                error=str(e),
            )
            return None

    async def _requeue(self, message: QueueMessage) -> None:
        try:
            new_msg_id = await self.queue.send(
                self.queue_name, message.payload, delay_seconds=self.requeue_delay
            )
        except Exception as e:
            log.error(
                "queue_requeue_failed",
                msg_id=message.msg_id,
                video_id=_payload_field(message.payload, "videoId"),
                error=str(e),
            )
            return
        log.info(
            "queue_message_requeued",
            msg_id=message.msg_id,
            new_msg_id=new_msg_id,
            delay_seconds=self.requeue_delay,
            video_id=_payload_field(message.payload, "videoId"),
        )

    @staticmethod
    def _skip(
        message: QueueMessage,
        reason: SkipReason,
        event: VideoEvent | None = None,
    ) -> ProcessResult:
        return ProcessResult(
            outcome=Outcome.SKIPPED,
            reason=reason.value,
            msg_id=message.msg_id,
            video_id=event.video_id if event else _payload_field(message.payload, "videoId"),
            channel_id=event.channel_id if event else _payload_field(message.payload, "channelId"),
        )

"""Email delivery worker: sends pending notification records.

Each tick:
    1. Fetch up to N pending records, oldest first, with the profile email
    2. Skip (leave pending) records whose profile has no email address
    3. Send; on failure mark the record failed and move on
    4. On success mark it sent and increment the profile's usage_count on
       its active plan subscription, in one transaction. If that write fails
       the record is remembered as delivered and only the write is retried on
       later ticks, so the subscriber is not emailed twice

Only one email worker should run per database; records are not locked while
the provider call is in flight.
"""

import asyncio
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from channel_notifier.clients.base import EmailSender
from channel_notifier.constants import ACTIVE_SUBSCRIPTION_STATUS
from channel_notifier.models import (
    Notification,
    NotificationStatus,
    PlanSubscription,
    Profile,
    utcnow,
)
from channel_notifier.services.email_template import html_to_text, render_notification_subject
from channel_notifier.utils.logging import get_logger
from channel_notifier.workers.base import link_shutdown, wait_for_shutdown

log = get_logger(__name__)


@dataclass(frozen=True)
class DeliveryResult:
    sent: int
    failed: int
    skipped: int


class EmailWorker:
    """Drains pending notification records through the email sender."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        email_sender: EmailSender,
        poll_interval: float = 20,
        batch_size: int = 10,
    ):
        self.session_factory = session_factory
        self.email_sender = email_sender
        self.poll_interval = poll_interval
        self.batch_size = batch_size
        self._delivered_unmarked: set[UUID] = set()
        self._shutdown = asyncio.Event()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def stop(self) -> None:
        self._shutdown.set()

    async def start(self, shutdown: asyncio.Event | None = None) -> None:
        linked = link_shutdown(shutdown, self._shutdown)
        self._running = True
        log.info(
            "email_worker_started",
            poll_interval=self.poll_interval,
            batch_size=self.batch_size,
        )

        try:
            while not self._shutdown.is_set():
                try:
                    await self.deliver_pending()
                except Exception as e:
                    log.error(
                        "email_delivery_tick_failed",
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                await wait_for_shutdown(self._shutdown, self.poll_interval)
        finally:
            self._running = False
            if linked is not None:
                linked.cancel()
            log.info("email_worker_stopped")

    async def deliver_pending(self) -> DeliveryResult:
        """Send one batch of pending notifications.

        Returns:
            Counts of records sent, failed and skipped.
        """
        async with self.session_factory() as session:
            result = await session.execute(
                select(Notification, Profile.email)
                .join(Profile, Profile.id == Notification.profile_id)
                .where(Notification.status == NotificationStatus.PENDING)
                .order_by(Notification.created_at.asc())
                .limit(self.batch_size)
            )
            rows = result.all()

        sent = failed = skipped = 0
        for notification, email in rows:
            if notification.id in self._delivered_unmarked:
                if await self._record_sent(notification):
                    self._delivered_unmarked.discard(notification.id)
                continue

            if not email:
                skipped += 1
                log.warning(
                    "notification_email_missing",
                    notification_id=str(notification.id),
                    profile_id=str(notification.profile_id),
                )
                continue

            try:
                await self.email_sender.send(
                    to=email,
                    subject=render_notification_subject(notification.title),
                    html=notification.email_content,
                    text=html_to_text(notification.email_content),
                )
            except Exception as e:
                failed += 1
                log.error(
                    "notification_send_failed",
                    notification_id=str(notification.id),
                    profile_id=str(notification.profile_id),
                    video_id=notification.video_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                try:
                    await self._mark_failed(notification.id)
                except SQLAlchemyError as mark_error:
                    log.error(
                        "notification_mark_failed_failed",
                        notification_id=str(notification.id),
                        error=str(mark_error),
                    )
                continue

            sent += 1
            if not await self._record_sent(notification):
                self._delivered_unmarked.add(notification.id)

        if rows:
            log.info("email_batch_completed", sent=sent, failed=failed, skipped=skipped)
        return DeliveryResult(sent=sent, failed=failed, skipped=skipped)

    async def _record_sent(self, notification: Notification) -> bool:
        """Mark a delivered record sent; False if the write failed."""
        try:
            await self._mark_sent(notification.id, notification.profile_id)
        except SQLAlchemyError as e:
            log.error(
                "notification_mark_sent_failed",
                notification_id=str(notification.id),
                profile_id=str(notification.profile_id),
                video_id=notification.video_id,
                error=str(e),
            )
            return False
        log.info(
            "notification_sent",
            notification_id=str(notification.id),
            profile_id=str(notification.profile_id),
            video_id=notification.video_id,
        )
        return True

    async def _mark_sent(self, notification_id: UUID, profile_id: UUID) -> None:
        async with self.session_factory() as session:
            await session.execute(
                update(Notification)
                .where(Notification.id == notification_id)
                .values(status=NotificationStatus.SENT, sent_at=utcnow())
            )
            await session.execute(
                update(PlanSubscription)
                .where(
                    PlanSubscription.profile_id == profile_id,
                    PlanSubscription.status == ACTIVE_SUBSCRIPTION_STATUS,
                )
                .values(usage_count=PlanSubscription.usage_count + 1)
            )
            await session.commit()

    async def _mark_failed(self, notification_id: UUID) -> None:
        async with self.session_factory() as session:
            await session.execute(
                update(Notification)
                .where(Notification.id == notification_id)
                .values(status=NotificationStatus.FAILED)
            )
            await session.commit()

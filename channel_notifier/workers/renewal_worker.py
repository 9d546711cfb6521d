"""WebSub subscription renewal worker.

Hub leases expire (YouTube's hub grants roughly 5-10 days), so every channel
someone watches is re-subscribed before its lease runs out. Each tick:
    1. Select up to N distinct channels with a ChannelSubscription row whose
       websub_renewed_at is NULL or older than the threshold
    2. Subscribe each at the hub with the configured callback URL
    3. On success stamp websub_renewed_at and callback_url on every row of
       that channel

A failure for one channel is logged and skipped; the channel is still stale
and is picked up again on the next tick.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from channel_notifier.clients.websub import HubClient
from channel_notifier.exceptions import HubRequestError
from channel_notifier.models import ChannelSubscription, utcnow
from channel_notifier.utils.logging import get_logger
from channel_notifier.workers.base import link_shutdown, wait_for_shutdown

log = get_logger(__name__)


@dataclass(frozen=True)
class RenewalResult:
    attempted: int
    renewed: int
    failed: int


class RenewalWorker:
    """Periodically renews stale WebSub subscriptions."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        hub_client: HubClient,
        callback_url: str,
        interval: float = 3600,
        threshold_days: int = 7,
        batch_size: int = 10,
    ):
        self.session_factory = session_factory
        self.hub_client = hub_client
        self.callback_url = callback_url
        self.interval = interval
        self.threshold_days = threshold_days
        self.batch_size = batch_size
        self._shutdown = asyncio.Event()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def stop(self) -> None:
        self._shutdown.set()

    async def start(self, shutdown: asyncio.Event | None = None) -> None:
        """Renew immediately, then once per interval until shutdown."""
        linked = link_shutdown(shutdown, self._shutdown)
        self._running = True
        log.info(
            "renewal_worker_started",
            interval=self.interval,
            threshold_days=self.threshold_days,
            batch_size=self.batch_size,
        )

        try:
            while not self._shutdown.is_set():
                try:
                    await self.renew_stale_subscriptions()
                except Exception as e:
                    log.error(
                        "renewal_tick_failed",
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                await wait_for_shutdown(self._shutdown, self.interval)
        finally:
            self._running = False
            if linked is not None:
                linked.cancel()
            log.info("renewal_worker_stopped")

    async def find_stale_channels(self, now: datetime | None = None) -> list[str]:
        """Return up to batch_size channel IDs due for renewal.

        Never-registered channels come first, then the longest-unrenewed.
        """
        threshold = (now or utcnow()) - timedelta(days=self.threshold_days)
        stmt = (
            select(ChannelSubscription.channel_id)
            .where(
                or_(
                    ChannelSubscription.websub_renewed_at.is_(None),
                    ChannelSubscription.websub_renewed_at < threshold,
                )
            )
            .group_by(ChannelSubscription.channel_id)
            .order_by(
                func.min(ChannelSubscription.websub_renewed_at).asc().nulls_first(),
                ChannelSubscription.channel_id,
            )
            .limit(self.batch_size)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def renew_stale_subscriptions(self) -> RenewalResult:
        """Run one renewal pass.

        Returns:
            Counts of channels attempted, renewed and failed.
        """
        channels = await self.find_stale_channels()
        if not channels:
            log.debug("renewal_nothing_stale")
            return RenewalResult(attempted=0, renewed=0, failed=0)

        log.info("renewal_batch_started", channel_count=len(channels))
        renewed = 0
        failed = 0

        for channel_id in channels:
            try:
                await self.hub_client.subscribe(channel_id, self.callback_url)
            except HubRequestError as e:
                failed += 1
                log.warning(
                    "websub_renewal_failed",
                    channel_id=channel_id,
                    status_code=e.status_code,
                    error=str(e),
                )
                continue

            try:
                await self._mark_renewed(channel_id)
            except SQLAlchemyError as e:
                failed += 1
                log.error(
                    "websub_renewal_mark_failed",
                    channel_id=channel_id,
                    error=str(e),
                )
                continue

            renewed += 1
            log.info("websub_subscription_renewed", channel_id=channel_id)

        log.info(
            "renewal_batch_completed",
            attempted=len(channels),
            renewed=renewed,
            failed=failed,
        )
        return RenewalResult(attempted=len(channels), renewed=renewed, failed=failed)

    async def _mark_renewed(self, channel_id: str) -> None:
        async with self.session_factory() as session:
            await session.execute(
                update(ChannelSubscription)
                .where(ChannelSubscription.channel_id == channel_id)
                .values(websub_renewed_at=utcnow(), callback_url=self.callback_url)
            )
            await session.commit()

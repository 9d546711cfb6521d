"""Eligibility gate: which subscribers of a channel may be notified.

A profile is eligible for a channel's notification when it:
    - is subscribed to the channel,
    - has an active plan subscription,
    - has an email address,
    - and has usage_count below its plan's monthly_email_limit.

Billing periods roll over lazily: when an active subscription's end_date has
passed, usage_count is reset to 0 and the period moves forward one month
before the comparison. Rollovers are committed immediately.

Over-limit profiles trigger a limit_reached alert, and eligible profiles at or
above 80% of their limit trigger an approaching_limit alert. Alerts are
idempotent per billing period (see services.usage_alerts) and an alert failure
never stops evaluation of the remaining profiles.

Eligibility is derived on every call and never cached.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from dateutil.relativedelta import relativedelta
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from channel_notifier.clients.base import EmailSender
from channel_notifier.constants import ACTIVE_SUBSCRIPTION_STATUS
from channel_notifier.models import (
    AlertType,
    ChannelSubscription,
    Plan,
    PlanSubscription,
    Profile,
    as_utc,
    utcnow,
)
from channel_notifier.services.usage_alerts import trigger_usage_alert
from channel_notifier.utils.logging import get_logger

log = get_logger(__name__)

APPROACHING_LIMIT_THRESHOLD = 0.80  # 80%


@dataclass(frozen=True)
class EligibilityRecord:
    """Usage snapshot of one subscriber, derived per evaluation."""

    profile_id: UUID
    email: str | None
    current_usage: int
    monthly_limit: int
    period_start: datetime

    @property
    def over_limit(self) -> bool:
        return self.current_usage >= self.monthly_limit

    @property
    def is_eligible(self) -> bool:
        return bool(self.email) and not self.over_limit

    @property
    def approaching_limit(self) -> bool:
        if self.monthly_limit <= 0 or self.over_limit:
            return False
        return self.current_usage >= self.monthly_limit * APPROACHING_LIMIT_THRESHOLD


def roll_billing_period(subscription: PlanSubscription, now: datetime | None = None) -> bool:
    """Reset usage and advance the period if the current one has ended.

    Args:
        subscription: Active plan subscription (modified in place).
        now: Reference time, defaults to the current UTC time.

    Returns:
        True if the subscription was rolled over.
    """
    now = now or utcnow()
    end_date = as_utc(subscription.end_date)
    if end_date is None or end_date >= now:
        return False

    subscription.usage_count = 0
    subscription.start_date = as_utc(subscription.start_date) + relativedelta(months=1)
    subscription.end_date = end_date + relativedelta(months=1)
    return True


async def evaluate_channel_eligibility(
    session: AsyncSession,
    channel_id: str,
    now: datetime | None = None,
) -> list[EligibilityRecord]:
    """Compute eligibility records for every planned subscriber of a channel.

    Profiles without an active plan subscription, or whose plan starts after
    `now`, are excluded entirely.

    Args:
        session: Database session. Rollovers are committed on it.
        channel_id: YouTube channel ID.
        now: Reference time for rollover, defaults to the current UTC time.

    Returns:
        One record per (profile, active plan subscription), possibly empty.
    """
    now = now or utcnow()
    stmt = (
        select(Profile.id, Profile.email, PlanSubscription, Plan.monthly_email_limit)
        .select_from(ChannelSubscription)
        .join(Profile, Profile.id == ChannelSubscription.profile_id)
        .join(
            PlanSubscription,
            and_(
                PlanSubscription.profile_id == Profile.id,
                PlanSubscription.status == ACTIVE_SUBSCRIPTION_STATUS,
                PlanSubscription.start_date <= now,
            ),
        )
        .join(Plan, Plan.id == PlanSubscription.plan_id)
        .where(ChannelSubscription.channel_id == channel_id)
        .order_by(Profile.id)
    )
    result = await session.execute(stmt)
    rows = result.all()

    records: list[EligibilityRecord] = []
    rolled = 0
    for profile_id, email, subscription, monthly_limit in rows:
        if roll_billing_period(subscription, now):
            rolled += 1
            log.info(
                "billing_period_rolled_over",
                profile_id=str(profile_id),
                start_date=subscription.start_date.isoformat(),
                end_date=subscription.end_date.isoformat(),
            )
        records.append(
            EligibilityRecord(
                profile_id=profile_id,
                email=email,
                current_usage=subscription.usage_count,
                monthly_limit=monthly_limit,
                period_start=as_utc(subscription.start_date),
            )
        )

    if rolled:
        await session.commit()

    return records


async def get_eligible_profiles(
    session: AsyncSession,
    channel_id: str,
    email_sender: EmailSender | None = None,
) -> set[UUID]:
    """Return the subscribers of a channel that may receive a notification.

    Triggers usage alerts as a side effect (see module docstring).

    Args:
        session: Database session.
        channel_id: YouTube channel ID.
        email_sender: Used to deliver alert emails; alerts are only logged
            when None.

    Returns:
        Eligible profile IDs; empty when the channel has no subscribers.
    """
    records = await evaluate_channel_eligibility(session, channel_id)
    eligible: set[UUID] = set()

    for record in records:
        if record.over_limit:
            alert_type = AlertType.LIMIT_REACHED
        elif record.approaching_limit:
            alert_type = AlertType.APPROACHING_LIMIT
        else:
            alert_type = None

        if alert_type is not None:
            try:
                await trigger_usage_alert(session, record, alert_type, email_sender)
            except Exception as e:
                log.error(
                    "usage_alert_failed",
                    profile_id=str(record.profile_id),
                    channel_id=channel_id,
                    alert_type=alert_type.value,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        if record.is_eligible:
            eligible.add(record.profile_id)

    log.info(
        "eligibility_evaluated",
        channel_id=channel_id,
        subscribers=len(records),
        eligible=len(eligible),
    )
    return eligible

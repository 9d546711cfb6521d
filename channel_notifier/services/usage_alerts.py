"""Usage-limit alerts, at most one per profile, type and billing period.

The UsageAlertLog row is written before the email is sent. A concurrent
worker racing on the same alert hits the unique constraint and backs off, so
the email goes out once even when two workers evaluate the same channel.
"""

from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from channel_notifier.clients.base import EmailSender
from channel_notifier.models import AlertType, UsageAlertLog
from channel_notifier.services.email_template import (
    html_to_text,
    render_limit_alert_email,
    render_limit_alert_subject,
)
from channel_notifier.utils.logging import get_logger

if TYPE_CHECKING:
    from channel_notifier.services.eligibility import EligibilityRecord

log = get_logger(__name__)


async def has_alert_for_period(
    session: AsyncSession,
    record: "EligibilityRecord",
    alert_type: AlertType,
) -> bool:
    result = await session.execute(
        select(UsageAlertLog.id).where(
            UsageAlertLog.profile_id == record.profile_id,
            UsageAlertLog.alert_type == alert_type,
            UsageAlertLog.period_start == record.period_start,
        )
    )
    return result.first() is not None


async def trigger_usage_alert(
    session: AsyncSession,
    record: "EligibilityRecord",
    alert_type: AlertType,
    email_sender: EmailSender | None = None,
) -> bool:
    """Record and send a usage alert unless one exists for this period.

    Args:
        session: Database session.
        record: Eligibility snapshot of the profile.
        alert_type: LIMIT_REACHED or APPROACHING_LIMIT.
        email_sender: Delivers the alert email; skipped when None or when the
            profile has no email address.

    Returns:
        True if a new alert was recorded, False if one already existed.

    Raises:
        SQLAlchemyError: If the alert log cannot be written (session is
            rolled back first).
        EmailDeliveryError, httpx.HTTPError: If sending the email fails. The
            log row stays committed, so the alert is not retried.
    """
    if await has_alert_for_period(session, record, alert_type):
        log.debug(
            "usage_alert_already_sent",
            profile_id=str(record.profile_id),
            alert_type=alert_type.value,
        )
        return False

    content = render_limit_alert_email(
        alert_type,
        record.email,
        record.current_usage,
        record.monthly_limit,
    )
    session.add(
        UsageAlertLog(
            profile_id=record.profile_id,
            alert_type=alert_type,
            period_start=record.period_start,
            current_usage=record.current_usage,
            monthly_limit=record.monthly_limit,
            email_content=content,
        )
    )
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        log.debug(
            "usage_alert_already_sent",
            profile_id=str(record.profile_id),
            alert_type=alert_type.value,
        )
        return False
    except SQLAlchemyError:
        await session.rollback()
        raise

    log.info(
        "usage_alert_recorded",
        profile_id=str(record.profile_id),
        alert_type=alert_type.value,
        current_usage=record.current_usage,
        monthly_limit=record.monthly_limit,
    )

    if email_sender is not None and record.email:
        await email_sender.send(
            to=record.email,
            subject=render_limit_alert_subject(alert_type),
            html=content,
            text=html_to_text(content),
        )
        log.info(
            "usage_alert_sent",
            profile_id=str(record.profile_id),
            alert_type=alert_type.value,
        )

    return True

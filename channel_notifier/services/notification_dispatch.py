"""Notification deduplication and batch writing.

Dedup happens in two layers:
    1. Query: profiles that already hold a record for the video are removed
       from the batch before insert.
    2. Store: the (profile_id, video_id) unique constraint rejects whatever a
       concurrent worker slipped in between the query and the insert. The
       whole batch is rolled back and the message is requeued; the retry's
       dedup query then sees the other worker's rows.

Re-processing a video therefore never yields a second record for the same
profile.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from channel_notifier.exceptions import NotificationWriteError
from channel_notifier.models import Notification, NotificationStatus, utcnow
from channel_notifier.schemas import VideoEvent
from channel_notifier.utils.logging import get_logger

log = get_logger(__name__)


async def get_notified_profile_ids(
    session: AsyncSession,
    video_id: str,
    profile_ids: set[UUID] | None = None,
) -> set[UUID]:
    """Return profiles that already have a notification for this video.

    Args:
        session: Database session.
        video_id: YouTube video ID.
        profile_ids: Restrict the lookup to these profiles.
    """
    stmt = select(Notification.profile_id).where(Notification.video_id == video_id)
    if profile_ids is not None:
        stmt = stmt.where(Notification.profile_id.in_(profile_ids))
    result = await session.execute(stmt)
    return set(result.scalars().all())


async def dispatch_notifications(
    session: AsyncSession,
    event: VideoEvent,
    eligible_profiles: set[UUID],
    body: str,
) -> int:
    """Create pending notification records for profiles not yet notified.

    Args:
        session: Database session.
        event: The video event being processed (must be valid).
        eligible_profiles: Output of the eligibility gate.
        body: Rendered email HTML shared by every record.

    Returns:
        Number of records created (0 when everyone was already notified).

    Raises:
        NotificationWriteError: If the insert fails. Nothing is persisted.
    """
    if not eligible_profiles:
        return 0

    already_notified = await get_notified_profile_ids(session, event.video_id, eligible_profiles)
    to_create = eligible_profiles - already_notified

    if not to_create:
        log.info(
            "notifications_already_dispatched",
            video_id=event.video_id,
            channel_id=event.channel_id,
            eligible=len(eligible_profiles),
        )
        return 0

    created_at = utcnow()
    session.add_all(
        [
            Notification(
                profile_id=profile_id,
                channel_id=event.channel_id,
                video_id=event.video_id,
                title=event.title,
                email_content=body,
                status=NotificationStatus.PENDING,
                created_at=created_at,
            )
            for profile_id in sorted(to_create)
        ]
    )

    try:
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        log.error(
            "notification_write_failed",
            video_id=event.video_id,
            channel_id=event.channel_id,
            profile_count=len(to_create),
            error=str(e),
        )
        raise NotificationWriteError(
            f"Failed to create notifications for video {event.video_id}: {e}",
            video_id=event.video_id,
            profile_count=len(to_create),
        ) from e

    log.info(
        "notifications_created",
        video_id=event.video_id,
        channel_id=event.channel_id,
        created=len(to_create),
        already_notified=len(already_notified),
    )
    return len(to_create)

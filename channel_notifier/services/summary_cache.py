"""Per-video AI summary cache.

Summaries are generated once per video and reused across requeues and across
every subscriber of the channel.

Short transaction pattern: the cache lookup and the cache write each use
their own session, and no connection is held while the summarizer runs.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from channel_notifier.clients.base import Summarizer
from channel_notifier.models import VideoSummary
from channel_notifier.schemas import SummaryContent, Transcript
from channel_notifier.utils.logging import get_logger

log = get_logger(__name__)


async def get_cached_summary(session: AsyncSession, video_id: str) -> SummaryContent | None:
    result = await session.execute(select(VideoSummary).where(VideoSummary.video_id == video_id))
    row = result.scalar_one_or_none()
    if row is None:
        return None
    return SummaryContent(
        brief_summary=row.brief_summary,
        key_points=list(row.key_points or []),
        model=row.model,
    )


async def store_summary(
    session: AsyncSession,
    video_id: str,
    summary: SummaryContent,
    language: str | None = None,
) -> None:
    """Persist a summary; a concurrent insert for the same video wins."""
    session.add(
        VideoSummary(
            video_id=video_id,
            brief_summary=summary.brief_summary,
            key_points=list(summary.key_points),
            model=summary.model,
            language=language,
        )
    )
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        log.debug("video_summary_already_cached", video_id=video_id)


async def get_or_create_summary(
    session_factory: async_sessionmaker[AsyncSession],
    summarizer: Summarizer | None,
    video_id: str,
    title: str,
    transcript: Transcript,
) -> SummaryContent | None:
    """Return the cached summary, generating and caching it on a miss.

    Returns:
        The summary, or None when no summarizer is configured or it produced
        nothing. Summarizer exceptions propagate.
    """
    async with session_factory() as session:
        cached = await get_cached_summary(session, video_id)
    if cached is not None:
        log.debug("video_summary_cache_hit", video_id=video_id)
        return cached

    if summarizer is None:
        return None

    summary = await summarizer.summarize(video_id, title, transcript.text, transcript.language)
    if summary is None:
        log.info("video_summary_unavailable", video_id=video_id)
        return None

    async with session_factory() as session:
        await store_summary(session, video_id, summary, transcript.language)
    return summary

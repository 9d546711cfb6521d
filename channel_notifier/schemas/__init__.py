"""Pydantic schemas for queue payloads and collaborator results."""

from channel_notifier.schemas.content import SummaryContent, Transcript
from channel_notifier.schemas.video_event import VideoEvent

__all__ = [
    "SummaryContent",
    "Transcript",
    "VideoEvent",
]

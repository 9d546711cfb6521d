"""Collaborator interfaces consumed by the workers.

Concrete implementations live next to this module; tests substitute AsyncMock
objects that satisfy the same shape.
"""

from typing import Protocol

from channel_notifier.schemas import SummaryContent, Transcript


class TranscriptProvider(Protocol):
    async def get_transcript(self, video_id: str) -> Transcript | None:
        """Return the video's transcript, or None when none is available."""
        ...


class Summarizer(Protocol):
    async def summarize(
        self,
        video_id: str,
        title: str,
        transcript: str,
        language: str,
    ) -> SummaryContent | None:
        """Return an AI summary, or None when the summarizer is unavailable."""
        ...


class EmailSender(Protocol):
    async def send(self, to: str, subject: str, html: str, text: str) -> str | None:
        """Send one email; returns the provider's message ID when it has one."""
        ...

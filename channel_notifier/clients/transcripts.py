"""Transcript retrieval via youtube-transcript-api.

youtube-transcript-api is synchronous (requests under the hood), so calls run
in a worker thread to keep the event loop free.

Error classification:
- Transcripts disabled, none found, video unavailable → None (permanent; the
  queue worker drops the message)
- Anything else (network errors, blocked requests) propagates so the queue
  worker requeues the message
"""

import asyncio

from youtube_transcript_api import (
    NoTranscriptFound,
    TranscriptsDisabled,
    VideoUnavailable,
    YouTubeTranscriptApi,
)

from channel_notifier.schemas import Transcript
from channel_notifier.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_LANGUAGES = ("en", "en-US", "en-GB")


class YouTubeTranscriptClient:
    """TranscriptProvider backed by YouTube's caption tracks."""

    def __init__(
        self,
        languages: tuple[str, ...] = DEFAULT_LANGUAGES,
        api: YouTubeTranscriptApi | None = None,
    ):
        self.languages = languages
        self.api = api or YouTubeTranscriptApi()

    async def get_transcript(self, video_id: str) -> Transcript | None:
        """Fetch the best transcript for a video.

        Prefers the configured languages, then falls back to whatever track
        the video has (manual tracks before auto-generated ones).

        Returns:
            Transcript, or None if the video has no usable captions.
        """
        try:
            return await asyncio.to_thread(self._fetch, video_id)
        except (TranscriptsDisabled, NoTranscriptFound, VideoUnavailable) as e:
            log.info(
                "transcript_unavailable",
                video_id=video_id,
                reason=type(e).__name__,
            )
            return None

    def _fetch(self, video_id: str) -> Transcript | None:
        transcript_list = self.api.list(video_id)
        try:
            track = transcript_list.find_transcript(list(self.languages))
        except NoTranscriptFound:
            track = self._first_available(transcript_list)
            if track is None:
                raise

        fetched = track.fetch()
        text = " ".join(
            snippet["text"].replace("\n", " ").strip()
            for snippet in fetched.to_raw_data()
            if snippet.get("text")
        )
        text = " ".join(text.split())
        if not text:
            return None

        log.debug(
            "transcript_fetched",
            video_id=video_id,
            language=track.language_code,
            is_generated=track.is_generated,
            length=len(text),
        )
        return Transcript(text=text, language=track.language_code)

    @staticmethod
    def _first_available(transcript_list):
        tracks = list(transcript_list)
        manual = [t for t in tracks if not t.is_generated]
        if manual:
            return manual[0]
        return tracks[0] if tracks else None

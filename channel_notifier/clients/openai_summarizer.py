"""OpenAI chat-completions summarizer.

Produces a brief summary and key points for a video transcript. Implements:
- Automatic retry with exponential backoff for transient errors (429, 5xx, timeouts)
- Fail-fast on non-retriable errors (any 4xx other than 429) and non-JSON or malformed replies
- Transcript truncation to keep prompts within the model's context window

Usage:
    summarizer = OpenAISummarizer(api_key, model="gpt-4o-mini")
    summary = await summarizer.summarize(video_id, title, transcript, "en")
"""

import json

import httpx
from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from channel_notifier.exceptions import SummarizerError
from channel_notifier.schemas import SummaryContent
from channel_notifier.utils.logging import get_logger

log = get_logger(__name__)

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"
MAX_TRANSCRIPT_CHARS = 48000

SYSTEM_PROMPT = (
    "You summarize YouTube videos from their transcripts. "
    'Respond with a JSON object: {"briefSummary": "your summary here", '
    '"keyPoints": ["point 1", "point 2", "point 3"]}. '
    "Write in the transcript's language. Keep the summary under 120 words "
    "and give 3 to 5 key points."
)


def _is_retriable_error(exception: BaseException) -> bool:
    """Retry rate limits, server errors and network failures."""
    if isinstance(exception, httpx.HTTPStatusError):
        return exception.response.status_code in [429, 500, 502, 503, 504]
    return isinstance(exception, (httpx.TimeoutException, httpx.ConnectError))


class OpenAISummarizer:
    """Summarizer backed by the OpenAI chat-completions REST API."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def summarize(
        self,
        video_id: str,
        title: str,
        transcript: str,
        language: str,
    ) -> SummaryContent | None:
        """Summarize a transcript.

        Returns:
            SummaryContent, or None when the transcript is empty.

        Raises:
            SummarizerError: On non-retriable API errors or unparseable output.
            httpx.HTTPError: When transient errors persist after 3 attempts.
        """
        if not transcript.strip():
            return None

        body = {
            "model": self.model,
            "temperature": 0.7,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": (
                        f"Title: {title}\nLanguage: {language}\n\n"
                        f"Transcript:\n{transcript[:MAX_TRANSCRIPT_CHARS]}"
                    ),
                },
            ],
        }

        data = await self._post_with_retry(body)

        try:
            content = data["choices"][0]["message"]["content"]
            summary = SummaryContent.model_validate(json.loads(content))
        except (KeyError, IndexError, TypeError, json.JSONDecodeError, ValidationError) as e:
            raise SummarizerError(f"Unparseable summary for video {video_id}: {e}") from e

        log.info(
            "video_summary_generated",
            video_id=video_id,
            model=self.model,
            summary_length=len(summary.brief_summary),
            points_count=len(summary.key_points),
        )
        return summary.model_copy(update={"model": self.model})

    @retry(
        retry=retry_if_exception(_is_retriable_error),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=2, min=2, max=8),
        reraise=True,
    )
    async def _post_with_retry(self, body: dict) -> dict:
        response = await self.client.post(
            OPENAI_CHAT_URL,
            headers={"Authorization": f"Bearer {self.api_key}"},
            json=body,
        )
        # 429 falls through to the retry predicate; any other 4xx is permanent
        if 400 <= response.status_code < 500 and response.status_code != 429:
            raise SummarizerError(
                f"Non-retriable summarizer error: {response.status_code} {response.text[:200]}"
            )
        response.raise_for_status()
        try:
            return response.json()
        except ValueError as e:
            raise SummarizerError(f"Summarizer returned a non-JSON body: {e}") from e

    async def close(self) -> None:
        """Close HTTP connections."""
        await self.client.aclose()

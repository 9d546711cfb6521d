"""Queue payload schema for "new video" events.

The wire form uses the camelCase keys produced by the WebSub callback
(channelId, videoId, title, authorName, published, updated). Fields are
optional at parse time so that a payload missing its identifiers can still be
read, logged and dropped by the queue worker rather than failing validation.
"""

from pydantic import BaseModel, ConfigDict, Field


class VideoEvent(BaseModel):
    """A new upload detected on a watched channel."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    channel_id: str | None = Field(default=None, alias="channelId")
    video_id: str | None = Field(default=None, alias="videoId")
    title: str = ""
    author_name: str = Field(default="", alias="authorName")
    published_at: str | None = Field(default=None, alias="published")
    updated_at: str | None = Field(default=None, alias="updated")
    timestamp: str | None = None

    def is_valid(self) -> bool:
        """Whether the event carries both identifiers needed to process it."""
        return bool(self.video_id) and bool(self.channel_id)

    def to_payload(self) -> dict[str, str | None]:
        """Serialize to the camelCase queue payload."""
        return self.model_dump(by_alias=True)

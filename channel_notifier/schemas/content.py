"""Content collaborator schemas: transcripts and AI summaries."""

from pydantic import BaseModel, ConfigDict, Field


class Transcript(BaseModel):
    """Plain-text transcript of a video."""

    text: str
    language: str = "en"


class SummaryContent(BaseModel):
    """AI summary of a video transcript.

    Matches the JSON object the summarizer is prompted to return:
    {"briefSummary": "...", "keyPoints": ["...", "..."]}
    """

    brief_summary: str = Field(alias="briefSummary")
    key_points: list[str] = Field(default_factory=list, alias="keyPoints")
    model: str | None = None

    model_config = ConfigDict(populate_by_name=True)

"""Outbound clients: WebSub hub, transcripts, summarizer and email provider."""

from channel_notifier.clients.base import EmailSender, Summarizer, TranscriptProvider
from channel_notifier.clients.websub import HubClient, build_topic_url

__all__ = [
    "EmailSender",
    "HubClient",
    "Summarizer",
    "TranscriptProvider",
    "build_topic_url",
]

"""Email body rendering for video notifications and usage alerts.

Every interpolated value is HTML-escaped; titles, channel names and AI
summaries all originate outside this service.
"""

import re
from datetime import datetime, timezone
from html import escape, unescape

from channel_notifier.constants import VIDEO_URL_TEMPLATE
from channel_notifier.models import AlertType
from channel_notifier.schemas import SummaryContent

BRAND_NAME = "Flow Fusion"

_NOTIFICATION_STYLE = """
    body { font-family: Arial, sans-serif; line-height: 1.6; max-width: 600px;
           margin: 0 auto; padding: 20px; color: #1a1a1a; }
    .video-title { font-size: 24px; margin-bottom: 20px; font-weight: bold; }
    .video-meta { color: #666; margin: 20px 0; font-size: 12px; }
    .key-point { margin-bottom: 10px; }
"""


def format_published_date(published_at: str | None) -> str:
    """Render an ISO-8601 timestamp as "Jan 05, 2026 14:30 UTC".

    Unparseable values are returned unchanged; missing ones become "".
    """
    if not published_at:
        return ""
    try:
        parsed = datetime.fromisoformat(published_at.replace("Z", "+00:00"))
    except ValueError:
        return published_at
    if parsed.tzinfo is None:
        return parsed.strftime("%b %d, %Y %H:%M")
    return parsed.astimezone(timezone.utc).strftime("%b %d, %Y %H:%M UTC")


def render_notification_email(
    video_id: str,
    title: str,
    channel_name: str,
    published_at: str | None,
    summary: SummaryContent | None = None,
) -> str:
    """Render the HTML body of a new-video notification.

    Args:
        video_id: YouTube video ID (used for the watch link).
        title: Video title.
        channel_name: Channel display name.
        published_at: ISO-8601 publish timestamp from the feed.
        summary: AI summary; omitted from the body when None.

    Returns:
        A single-line HTML document.
    """
    video_url = escape(VIDEO_URL_TEMPLATE.format(video_id=video_id))
    safe_title = escape(title or "New video")
    safe_channel = escape(channel_name or "")

    parts = [
        "<!DOCTYPE html>",
        "<html><head><meta charset=\"utf-8\">",
        f"<title>New Video from {safe_channel}</title>",
        f"<style>{' '.join(_NOTIFICATION_STYLE.split())}</style>",
        "</head><body>",
        f"<h1 class=\"video-title\">{safe_title}</h1>",
    ]

    meta = " &middot; ".join(
        value for value in (safe_channel, escape(format_published_date(published_at))) if value
    )
    if meta:
        parts.append(f"<p class=\"video-meta\">{meta}</p>")

    if summary is not None:
        parts.append(f"<div><p>{escape(summary.brief_summary)}</p>")
        if summary.key_points:
            parts.append("<div>")
            parts.extend(
                f"<p class=\"key-point\">&bull; {escape(point)}</p>" for point in summary.key_points
            )
            parts.append("</div>")
        parts.append("</div>")

    parts.append(f"<p>Watch the video: <a href=\"{video_url}\">{video_url}</a></p>")
    parts.append("</body></html>")
    return "".join(parts)


def render_notification_subject(title: str | None, channel_name: str = "") -> str:
    title = title or "New video"
    if channel_name:
        return f"New video from {channel_name}: {title}"
    return f"New video: {title}"


def render_limit_alert_email(
    alert_type: AlertType,
    email: str | None,
    current_usage: int,
    monthly_limit: int,
) -> str:
    """Render the HTML body of a usage alert."""
    greeting = f"<p>Hi {escape(email)},</p>" if email else "<p>Hi,</p>"
    usage = f"<p>Current usage: {current_usage}/{monthly_limit}</p>"

    if alert_type is AlertType.LIMIT_REACHED:
        body = (
            f"<p>You have reached your monthly limit of {monthly_limit} notifications.</p>"
            f"{usage}"
            "<p>Please upgrade your plan to continue receiving notifications "
            "for all your channels.</p>"
        )
    else:
        body = (
            f"<p>You're approaching your monthly limit of {monthly_limit} notifications.</p>"
            f"{usage}"
            "<p>Consider upgrading your plan to ensure uninterrupted notifications "
            "for all your channels.</p>"
        )

    return f"{greeting}{body}<p>Thanks for using {BRAND_NAME}!</p>"


def render_limit_alert_subject(alert_type: AlertType) -> str:
    if alert_type is AlertType.LIMIT_REACHED:
        return "You've reached your monthly notification limit"
    return "You're approaching your monthly notification limit"


def html_to_text(html: str) -> str:
    """Crude plain-text alternative for the email's text part."""
    text = re.sub(r"<(style|title)[^>]*>.*?</\1>", "", html, flags=re.DOTALL)
    text = re.sub(r"</p>|<br\s*/?>|</h1>", "\n", text)
    text = re.sub(r"<[^>]+>", "", text)
    text = text.replace("&bull;", "-").replace("&middot;", "-")
    return "\n".join(line.strip() for line in unescape(text).splitlines() if line.strip())

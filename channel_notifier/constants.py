"""Shared constants for the notification pipeline."""

# Durable queue
DEFAULT_QUEUE_NAME = "youtube_data_queue"

# WebSub (PubSubHubbub)
DEFAULT_HUB_URL = "https://pubsubhubbub.appspot.com/subscribe"
FEED_TOPIC_TEMPLATE = "https://www.youtube.com/xml/feeds/videos.xml?channel_id={channel_id}"
WEBSUB_CALLBACK_PATH = "/api/v1/websub/callback"
WEBSUB_MODES = ("subscribe", "unsubscribe")

# Videos
VIDEO_URL_TEMPLATE = "https://youtube.com/watch?v={video_id}"

# Billing
ACTIVE_SUBSCRIPTION_STATUS = "active"

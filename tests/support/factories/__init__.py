# Data factories for test data generation

from tests.support.factories.subscriber_factory import (
    add_subscriber,
    create_channel_subscription,
    create_plan,
    create_plan_subscription,
    create_profile,
)
from tests.support.factories.video_factory import (
    create_notification,
    create_video_event,
    video_event_payload,
)

__all__ = [
    # Subscriber factories
    "add_subscriber",
    "create_channel_subscription",
    "create_plan",
    "create_plan_subscription",
    "create_profile",
    # Video factories
    "create_notification",
    "create_video_event",
    "video_event_payload",
]

"""Background workers: queue consumption, WebSub renewal and email delivery."""

from channel_notifier.workers.base import Runnable
from channel_notifier.workers.email_worker import EmailWorker
from channel_notifier.workers.queue_worker import QueueWorker
from channel_notifier.workers.renewal_worker import RenewalWorker

__all__ = [
    "EmailWorker",
    "QueueWorker",
    "RenewalWorker",
    "Runnable",
]

"""Construction of clients and workers from environment configuration.

Shared by the FastAPI lifespan (channel_notifier.main) and the standalone
worker process (channel_notifier.worker).
"""

import asyncio
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from channel_notifier import config
from channel_notifier.clients.openai_summarizer import OpenAISummarizer
from channel_notifier.clients.resend import ResendEmailSender
from channel_notifier.clients.transcripts import YouTubeTranscriptClient
from channel_notifier.clients.websub import HubClient
from channel_notifier.queue import QueueStore
from channel_notifier.utils.logging import get_logger
from channel_notifier.workers import EmailWorker, QueueWorker, RenewalWorker, Runnable

log = get_logger(__name__)


@dataclass
class WorkerRuntime:
    """Clients and workers of one process, plus their asyncio tasks."""

    queue: QueueStore
    hub_client: HubClient
    workers: dict[str, Runnable]
    summarizer: OpenAISummarizer | None = None
    email_sender: ResendEmailSender | None = None
    tasks: dict[str, asyncio.Task] = field(default_factory=dict)

    def start(self) -> None:
        """Schedule every worker as a background task on the running loop."""
        for name, worker in self.workers.items():
            self.tasks[name] = asyncio.create_task(worker.start(), name=name)
            log.info("worker_task_started", worker=name)

    def stop(self) -> None:
        """Ask every worker to finish its current iteration and exit."""
        for worker in self.workers.values():
            worker.stop()

    async def wait(self, timeout: float | None = None) -> None:
        """Wait for worker tasks to exit, cancelling any still running after timeout."""
        if not self.tasks:
            return
        done, pending = await asyncio.wait(self.tasks.values(), timeout=timeout)
        for task in pending:
            log.warning("worker_task_cancelled", worker=task.get_name())
            task.cancel()
        for task in pending:
            try:
                await task
            except asyncio.CancelledError:
                pass
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                log.error(
                    "worker_task_crashed",
                    worker=task.get_name(),
                    error=str(task.exception()),
                )

    async def close(self) -> None:
        """Close outbound HTTP clients."""
        await self.hub_client.close()
        if self.summarizer is not None:
            await self.summarizer.close()
        if self.email_sender is not None:
            await self.email_sender.close()

    def status(self) -> dict[str, str]:
        return {
            name: "running" if worker.is_running else "stopped"
            for name, worker in self.workers.items()
        }


def build_runtime(session_factory: async_sessionmaker[AsyncSession]) -> WorkerRuntime:
    """Build clients and workers from environment configuration.

    The email worker is only created when RESEND_API_KEY is set, and the
    summarizer only when OPENAI_API_KEY is set.

    Raises:
        ConfigurationError: If APP_URL is not set (needed for the callback URL).
    """
    timeout = config.get_http_timeout()
    callback_url = config.get_websub_callback_url()

    queue = QueueStore(session_factory)
    hub_client = HubClient(
        hub_url=config.get_websub_hub_url(),
        secret=config.get_websub_secret(),
        lease_seconds=config.get_websub_lease_seconds(),
        timeout=timeout,
    )

    summarizer = None
    openai_api_key = config.get_openai_api_key()
    if openai_api_key:
        summarizer = OpenAISummarizer(
            api_key=openai_api_key,
            model=config.get_openai_model(),
            timeout=timeout,
        )
    else:
        log.warning("summarizer_disabled", message="OPENAI_API_KEY not set")

    email_sender = None
    resend_api_key = config.get_resend_api_key()
    if resend_api_key:
        email_sender = ResendEmailSender(
            api_key=resend_api_key,
            from_address=config.get_email_from(),
            timeout=timeout,
        )
    else:
        log.warning("email_delivery_disabled", message="RESEND_API_KEY not set")

    workers: dict[str, Runnable] = {
        "queue_worker": QueueWorker(
            queue=queue,
            session_factory=session_factory,
            hub_client=hub_client,
            transcripts=YouTubeTranscriptClient(),
            callback_url=callback_url,
            summarizer=summarizer,
            email_sender=email_sender,
            queue_name=config.get_queue_name(),
            poll_interval=config.get_queue_poll_interval(),
        ),
        "renewal_worker": RenewalWorker(
            session_factory=session_factory,
            hub_client=hub_client,
            callback_url=callback_url,
            interval=config.get_renewal_interval(),
            threshold_days=config.get_renewal_threshold_days(),
            batch_size=config.get_renewal_batch_size(),
        ),
    }
    if email_sender is not None:
        workers["email_worker"] = EmailWorker(
            session_factory=session_factory,
            email_sender=email_sender,
            poll_interval=config.get_email_poll_interval(),
            batch_size=config.get_email_batch_size(),
        )

    return WorkerRuntime(
        queue=queue,
        hub_client=hub_client,
        workers=workers,
        summarizer=summarizer,
        email_sender=email_sender,
    )

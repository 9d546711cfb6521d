"""Standalone worker process entry point.

Runs the queue, renewal and email workers without the HTTP server, for
deployments that scale workers separately from the callback endpoint (start
the web service with WORKERS_ENABLED=false then).

Graceful Shutdown:
    SIGTERM/SIGINT set every worker's shutdown token. Each worker finishes
    its in-flight iteration and exits; the process then closes its HTTP
    clients and the database engine.

Usage:
    python -m channel_notifier.worker
"""

import asyncio
import signal
import sys

from channel_notifier import database
from channel_notifier.config import get_database_url
from channel_notifier.exceptions import ConfigurationError
from channel_notifier.runtime import WorkerRuntime, build_runtime
from channel_notifier.utils.logging import configure_logging, get_logger

log = get_logger(__name__)


def install_signal_handlers(runtime: WorkerRuntime) -> None:
    """Stop all workers on SIGTERM (deploys) and SIGINT (Ctrl+C locally)."""
    loop = asyncio.get_running_loop()

    def handle(signum: int) -> None:
        log.info(
            "shutdown_signal_received",
            signal=signum,
            signal_name=signal.Signals(signum).name,
        )
        runtime.stop()

    for signum in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(signum, handle, signum)


async def run_workers() -> None:
    """Build the workers, run them until they all exit, then clean up."""
    runtime = build_runtime(database.require_session_factory())
    install_signal_handlers(runtime)
    runtime.start()
    log.info("worker_process_started", workers=sorted(runtime.workers))

    try:
        await runtime.wait()
    finally:
        await runtime.close()
        if database.engine is not None:
            await database.engine.dispose()
        log.info("worker_process_stopped")


def main() -> None:
    """Worker process entry point.

    Exit Codes:
        0: Successful shutdown (SIGTERM received)
        1: Fatal error (configuration invalid, database unreachable)
    """
    configure_logging()

    try:
        database_url = get_database_url()
    except ConfigurationError as e:
        log.error("configuration_load_failed", error=str(e))
        sys.exit(1)

    # Redact credentials when logging
    database_host = database_url.split("@")[-1].split("/")[0] if "@" in database_url else "local"
    log.info("worker_configuration_loaded", database_url_host=database_host)

    try:
        asyncio.run(run_workers())
    except ConfigurationError as e:
        log.error("configuration_load_failed", error=str(e))
        sys.exit(1)
    except Exception as e:
        log.error("worker_fatal_error", error=str(e), exc_info=True)
        sys.exit(1)

    log.info("worker_exited_successfully")


if __name__ == "__main__":
    main()

"""FastAPI application for the channel notification service.

This is the web service entry point: it hosts the WebSub callback and, unless
WORKERS_ENABLED=false, runs the queue, renewal and email workers as background
tasks of the same process.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, status
from fastapi.responses import JSONResponse

from channel_notifier import database
from channel_notifier.config import get_workers_enabled
from channel_notifier.queue import QueueStore
from channel_notifier.routes import websub, workers
from channel_notifier.runtime import build_runtime
from channel_notifier.utils.logging import configure_logging, get_logger

log = get_logger(__name__)

WORKER_SHUTDOWN_TIMEOUT_SECONDS = 30


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage startup/shutdown of background workers.

    Startup:
    - Create the queue store if DATABASE_URL is set
    - Build clients and start workers if WORKERS_ENABLED

    Shutdown:
    - Signal workers to stop, cancel stragglers after a timeout
    - Close outbound HTTP clients
    """
    configure_logging()
    runtime = None
    session_factory = database.async_session_factory

    if session_factory is None:
        log.warning(
            "database_not_configured",
            message="DATABASE_URL not set, callback and workers are disabled",
        )
    else:
        app.state.queue = QueueStore(session_factory)

        if get_workers_enabled():
            runtime = build_runtime(session_factory)
            runtime.start()
            app.state.runtime = runtime
        else:
            log.info("workers_disabled", message="WORKERS_ENABLED=false")

    yield  # Application runs here

    if runtime is not None:
        log.info("shutting_down_workers")
        runtime.stop()
        await runtime.wait(timeout=WORKER_SHUTDOWN_TIMEOUT_SECONDS)
        await runtime.close()


app = FastAPI(
    title="Channel Notifier",
    description="Emails subscribers AI summaries of new uploads on watched YouTube channels",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(websub.router)
app.include_router(workers.router)


@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check() -> JSONResponse:
    """Health check endpoint for deployment validation.

    Returns:
        JSONResponse: Status and basic service information
    """
    return JSONResponse(
        content={
            "status": "healthy",
            "service": "channel-notifier",
            "database_configured": database.async_session_factory is not None,
        }
    )


if __name__ == "__main__":
    import uvicorn

    # Binding to 0.0.0.0 is intentional for container deployments
    uvicorn.run(
        "channel_notifier.main:app",
        host="0.0.0.0",  # noqa: S104
        port=8000,
        reload=True,
    )

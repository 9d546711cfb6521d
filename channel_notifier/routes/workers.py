"""Worker status route.

- GET /api/v1/workers/status - running/stopped per background worker
"""

from fastapi import APIRouter, Request

router = APIRouter(prefix="/api/v1/workers", tags=["workers"])


@router.get("/status")
async def worker_status(request: Request) -> dict:
    """Report each worker's state.

    Returns an empty worker map when workers are disabled in this process.
    """
    runtime = getattr(request.app.state, "runtime", None)
    workers = runtime.status() if runtime is not None else {}
    return {
        "workers": workers,
        "all_running": bool(workers) and all(state == "running" for state in workers.values()),
    }

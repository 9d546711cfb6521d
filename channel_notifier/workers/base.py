"""Shared worker contract.

Each worker owns a private shutdown token (an asyncio.Event). Setting it
prevents the next iteration; an iteration already in flight runs to
completion. A shared event passed to start() is linked to the private token,
so stop() on one worker never stops the others sharing that event. Workers implement the Runnable protocol independently; there is
no common base class.
"""

import asyncio
from typing import Protocol, runtime_checkable


@runtime_checkable
class Runnable(Protocol):
    """A long-running background worker."""

    @property
    def is_running(self) -> bool: ...

    async def start(self, shutdown: asyncio.Event | None = None) -> None:
        """Run until `shutdown` is set or stop() is called."""
        ...

    def stop(self) -> None:
        """Request shutdown after the current iteration."""
        ...


async def wait_for_shutdown(shutdown: asyncio.Event, timeout: float) -> bool:
    """Sleep for `timeout` seconds, waking early if shutdown is requested.

    Returns:
        True if shutdown was requested.
    """
    try:
        await asyncio.wait_for(shutdown.wait(), timeout=timeout)
    except asyncio.TimeoutError:
        return False
    return True


def link_shutdown(source: asyncio.Event | None, target: asyncio.Event) -> asyncio.Task | None:
    """Set `target` once `source` is set.

    Lets a worker follow a shared shutdown event while its own stop() only
    sets its private token. The caller cancels the returned task on exit.
    """
    if source is None:
        return None
    if source.is_set():
        target.set()
        return None

    async def forward() -> None:
        await source.wait()
        target.set()

    return asyncio.create_task(forward())

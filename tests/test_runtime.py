"""Tests for worker runtime construction and lifecycle."""

import asyncio

import pytest

from channel_notifier.exceptions import ConfigurationError
from channel_notifier.runtime import WorkerRuntime, build_runtime
from channel_notifier.workers import EmailWorker, QueueWorker, RenewalWorker, Runnable


class FakeWorker:
    """Minimal Runnable that idles until stopped."""

    def __init__(self, crash: bool = False, ignore_stop: bool = False):
        self.crash = crash
        self.ignore_stop = ignore_stop
        self._shutdown = asyncio.Event()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def stop(self) -> None:
        if not self.ignore_stop:
            self._shutdown.set()

    async def start(self, shutdown=None) -> None:
        self._running = True
        try:
            if self.crash:
                raise RuntimeError("worker blew up")
            await self._shutdown.wait()
        finally:
            self._running = False


@pytest.fixture
def runtime_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("APP_URL", "https://notifier.example.com")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("RESEND_API_KEY", raising=False)
    return monkeypatch


class TestBuildRuntime:
    async def test_minimal_configuration(self, runtime_env, session_factory):
        runtime = build_runtime(session_factory)

        assert set(runtime.workers) == {"queue_worker", "renewal_worker"}
        assert isinstance(runtime.workers["queue_worker"], QueueWorker)
        assert isinstance(runtime.workers["renewal_worker"], RenewalWorker)
        assert runtime.summarizer is None
        assert runtime.email_sender is None
        assert all(isinstance(w, Runnable) for w in runtime.workers.values())
        await runtime.close()

    async def test_full_configuration(self, runtime_env, session_factory):
        runtime_env.setenv("OPENAI_API_KEY", "sk-test")
        runtime_env.setenv("RESEND_API_KEY", "re_test")

        runtime = build_runtime(session_factory)

        assert isinstance(runtime.workers["email_worker"], EmailWorker)
        assert runtime.summarizer is not None
        assert runtime.workers["queue_worker"].summarizer is runtime.summarizer
        assert runtime.workers["queue_worker"].callback_url == (
            "https://notifier.example.com/api/v1/websub/callback"
        )
        await runtime.close()

    def test_requires_app_url(self, runtime_env, session_factory):
        runtime_env.delenv("APP_URL")

        with pytest.raises(ConfigurationError):
            build_runtime(session_factory)


class TestWorkerRuntime:
    @pytest.fixture
    def runtime(self, queue_store, mock_hub_client) -> WorkerRuntime:
        return WorkerRuntime(
            queue=queue_store,
            hub_client=mock_hub_client,
            workers={"first": FakeWorker(), "second": FakeWorker()},
        )

    async def test_start_stop_wait(self, runtime):
        runtime.start()
        await asyncio.sleep(0)

        assert runtime.status() == {"first": "running", "second": "running"}

        runtime.stop()
        await runtime.wait(timeout=1)

        assert runtime.status() == {"first": "stopped", "second": "stopped"}
        assert all(task.done() for task in runtime.tasks.values())

    async def test_wait_cancels_stragglers(self, queue_store, mock_hub_client):
        stubborn = FakeWorker(ignore_stop=True)
        runtime = WorkerRuntime(queue_store, mock_hub_client, {"stubborn": stubborn})
        runtime.start()
        await asyncio.sleep(0)

        runtime.stop()
        await runtime.wait(timeout=0.05)

        assert runtime.tasks["stubborn"].cancelled()
        assert stubborn.is_running is False

    async def test_crashed_worker_does_not_break_wait(self, queue_store, mock_hub_client):
        runtime = WorkerRuntime(queue_store, mock_hub_client, {"crashy": FakeWorker(crash=True)})
        runtime.start()

        await runtime.wait(timeout=1)

        assert runtime.status() == {"crashy": "stopped"}

    async def test_close_closes_clients(self, runtime, mock_hub_client):
        await runtime.close()

        mock_hub_client.close.assert_awaited_once()

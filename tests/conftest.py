"""Shared pytest fixtures for async database testing.

This module provides reusable fixtures for testing models, services and
workers against an in-memory SQLite database. A StaticPool keeps every
session on one connection, so sessions opened by a worker under test see the
rows a test committed through another session.
"""

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from channel_notifier.clients.websub import HubClient
from channel_notifier.config import get_database_url
from channel_notifier.database import create_test_engine
from channel_notifier.models import Base
from channel_notifier.queue import QueueStore
from channel_notifier.utils.logging import configure_logging

configure_logging(level="DEBUG", fmt="console")


@pytest_asyncio.fixture
async def test_database():
    """Create the schema in a fresh in-memory database.

    Yields:
        Tuple of (AsyncEngine, async_sessionmaker).
    """
    engine, session_factory = create_test_engine()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine, session_factory

    await engine.dispose()


@pytest.fixture
def async_engine(test_database):
    return test_database[0]


@pytest.fixture
def session_factory(test_database):
    """Session factory bound to the test database (expire_on_commit=False)."""
    return test_database[1]


@pytest_asyncio.fixture
async def async_session(session_factory):
    """Create an async session for testing.

    Yields:
        AsyncSession: Database session for test operations.
    """
    async with session_factory() as session:
        yield session


@pytest.fixture
def queue_store(session_factory) -> QueueStore:
    return QueueStore(session_factory)


@pytest.fixture
def mock_hub_client() -> AsyncMock:
    """HubClient double whose subscribe/unsubscribe succeed by default."""
    client = AsyncMock(spec=HubClient)
    client.subscribe.return_value = None
    client.unsubscribe.return_value = None
    return client


@pytest.fixture(autouse=True)
def clear_config_cache():
    """Reset cached configuration so monkeypatched env vars take effect."""
    get_database_url.cache_clear()
    yield
    get_database_url.cache_clear()

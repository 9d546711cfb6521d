"""Tests for database engine and session management."""

from unittest.mock import patch

import pytest
from sqlalchemy import select, text

from channel_notifier import database
from channel_notifier.database import create_test_engine, get_session, require_session_factory
from channel_notifier.models import Base, Profile
from tests.support.factories import create_profile


async def test_create_test_engine_shares_one_database():
    # GIVEN: A fresh in-memory engine
    engine, factory = create_test_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # WHEN: One session writes and another reads
    async with factory() as session:
        session.add(create_profile(email="shared@example.com"))
        await session.commit()
    async with factory() as session:
        result = await session.execute(select(Profile.email))

        # THEN: The second session sees the row
        assert result.scalars().all() == ["shared@example.com"]

    await engine.dispose()


async def test_session_executes_queries(async_session):
    result = await async_session.execute(text("SELECT 1"))
    assert result.scalar() == 1


def test_require_session_factory_raises_when_unconfigured():
    with patch.object(database, "async_session_factory", None):
        with pytest.raises(RuntimeError, match="DATABASE_URL"):
            require_session_factory()


async def test_get_session_commits_on_success(session_factory):
    with patch.object(database, "async_session_factory", session_factory):
        sessions = get_session()
        session = await anext(sessions)
        session.add(create_profile(email="committed@example.com"))
        with pytest.raises(StopAsyncIteration):
            await anext(sessions)

    async with session_factory() as check:
        result = await check.execute(select(Profile.email))
        assert result.scalars().all() == ["committed@example.com"]


async def test_get_session_rolls_back_on_error(session_factory):
    with patch.object(database, "async_session_factory", session_factory):
        sessions = get_session()
        session = await anext(sessions)
        session.add(create_profile(email="discarded@example.com"))
        with pytest.raises(ValueError):
            await sessions.athrow(ValueError("handler failed"))

    async with session_factory() as check:
        result = await check.execute(select(Profile.email))
        assert result.scalars().all() == []

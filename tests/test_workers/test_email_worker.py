"""Tests for the email delivery worker."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from channel_notifier.exceptions import EmailDeliveryError
from channel_notifier.models import Notification, NotificationStatus, PlanSubscription
from channel_notifier.workers.email_worker import EmailWorker
from tests.support.factories import add_subscriber, create_notification


@pytest.fixture
def email_sender() -> AsyncMock:
    sender = AsyncMock()
    sender.send.return_value = "email_123"
    return sender


@pytest.fixture
def worker(session_factory, email_sender) -> EmailWorker:
    return EmailWorker(session_factory, email_sender, poll_interval=0.01, batch_size=10)


async def load(session_factory, model, **filters):
    async with session_factory() as session:
        result = await session.execute(select(model).filter_by(**filters))
        return result.scalars().all()


async def test_pending_notification_is_sent_and_counted(
    worker, email_sender, async_session, session_factory
):
    # GIVEN: A subscriber with one pending notification
    profile = await add_subscriber(async_session, email="viewer@example.com", usage_count=3)
    async_session.add(create_notification(profile.id, title="Launch Day Recap"))
    await async_session.commit()

    # WHEN: Delivering pending notifications
    result = await worker.deliver_pending()

    # THEN: The email is sent, the record is marked sent and usage incremented
    assert (result.sent, result.failed, result.skipped) == (1, 0, 0)
    kwargs = email_sender.send.call_args.kwargs
    assert kwargs["to"] == "viewer@example.com"
    assert kwargs["subject"] == "New video: Launch Day Recap"
    assert kwargs["html"] == "<p>New video</p>"
    assert kwargs["text"] == "New video"

    [notification] = await load(session_factory, Notification)
    assert notification.status is NotificationStatus.SENT
    assert notification.sent_at is not None
    [subscription] = await load(session_factory, PlanSubscription, profile_id=profile.id)
    assert subscription.usage_count == 4


async def test_send_failure_marks_record_failed(worker, email_sender, async_session, session_factory):
    profile = await add_subscriber(async_session)
    async_session.add(create_notification(profile.id))
    await async_session.commit()
    email_sender.send.side_effect = EmailDeliveryError("refused", status_code=422)

    result = await worker.deliver_pending()

    assert (result.sent, result.failed) == (0, 1)
    [notification] = await load(session_factory, Notification)
    assert notification.status is NotificationStatus.FAILED
    [subscription] = await load(session_factory, PlanSubscription, profile_id=profile.id)
    assert subscription.usage_count == 0


async def test_profile_without_email_stays_pending(
    worker, email_sender, async_session, session_factory
):
    profile = await add_subscriber(async_session, email=None)
    async_session.add(create_notification(profile.id))
    await async_session.commit()

    result = await worker.deliver_pending()

    assert result.skipped == 1
    email_sender.send.assert_not_awaited()
    [notification] = await load(session_factory, Notification)
    assert notification.status is NotificationStatus.PENDING


async def test_sent_and_failed_records_are_not_picked_up(worker, email_sender, async_session):
    profile = await add_subscriber(async_session)
    async_session.add_all(
        [
            create_notification(profile.id, video_id="V1", status=NotificationStatus.SENT),
            create_notification(profile.id, video_id="V2", status=NotificationStatus.FAILED),
        ]
    )
    await async_session.commit()

    result = await worker.deliver_pending()

    assert (result.sent, result.failed, result.skipped) == (0, 0, 0)
    email_sender.send.assert_not_awaited()


async def test_batch_size_limits_one_pass(worker, email_sender, async_session):
    profile = await add_subscriber(async_session)
    async_session.add_all(
        [create_notification(profile.id, video_id=f"video_{i}") for i in range(3)]
    )
    await async_session.commit()
    worker.batch_size = 2

    first = await worker.deliver_pending()
    second = await worker.deliver_pending()

    assert first.sent == 2
    assert second.sent == 1


async def test_start_and_stop(worker):
    task = asyncio.create_task(worker.start())
    await asyncio.sleep(0.05)

    assert worker.is_running is True
    worker.stop()
    await asyncio.wait_for(task, timeout=2)
    assert worker.is_running is False


async def test_status_write_failure_does_not_abort_batch_or_resend(
    worker, email_sender, async_session, session_factory
):
    # GIVEN: Two pending records, and the first "mark sent" write fails
    first = await add_subscriber(async_session, email="first@example.com")
    second = await add_subscriber(async_session, email="second@example.com")
    async_session.add_all([create_notification(first.id), create_notification(second.id)])
    await async_session.commit()

    mark_sent = worker._mark_sent
    calls = 0

    async def flaky_mark_sent(notification_id, profile_id):
        nonlocal calls
        calls += 1
        if calls == 1:
            raise OperationalError("UPDATE", {}, Exception("database is locked"))
        await mark_sent(notification_id, profile_id)

    worker._mark_sent = flaky_mark_sent

    # WHEN: Delivering a batch
    result = await worker.deliver_pending()

    # THEN: Both were sent and the batch finished
    assert result.sent == 2
    assert email_sender.send.await_count == 2
    statuses = [n.status for n in await load(session_factory, Notification)]
    assert sorted(s.value for s in statuses) == ["pending", "sent"]

    # WHEN: The next tick runs
    await worker.deliver_pending()

    # THEN: Only the status write is retried; nobody is emailed twice
    assert email_sender.send.await_count == 2
    notifications = await load(session_factory, Notification)
    assert all(n.status is NotificationStatus.SENT for n in notifications)
    usage = [s.usage_count for s in await load(session_factory, PlanSubscription)]
    assert usage == [1, 1]

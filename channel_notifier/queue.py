"""Durable message queue backed by the relational store.

Queue semantics follow a destructive-read model: `pop` claims a message and
deletes it in the same transaction, so there is no separate acknowledge step.
A consumer that fails after popping must `send` the payload again.

Claiming uses SELECT ... FOR UPDATE SKIP LOCKED on PostgreSQL, so concurrent
workers never receive the same message; each row is delivered to at most one
claimer. (SQLite, used in tests, ignores the locking clause.)

Usage:
    from channel_notifier.queue import QueueStore

    store = QueueStore(async_session_factory)
    msg_id = await store.send("youtube_data_queue", event.to_payload())
    message = await store.pop("youtube_data_queue")  # None when empty
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from channel_notifier.exceptions import QueueError
from channel_notifier.models import QueueMessageRow, as_utc, utcnow
from channel_notifier.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class QueueMessage:
    """Transient copy of a claimed message.

    Attributes:
        msg_id: Queue-assigned message ID.
        delivery_count: Number of times this row has been handed out,
            including this claim.
        enqueued_at: When the message was sent.
        visibility_deadline: The row's visibility timestamp at claim time.
        payload: JSON payload as sent.
    """

    msg_id: int
    delivery_count: int
    enqueued_at: datetime
    visibility_deadline: datetime
    payload: dict[str, Any]


class QueueStore:
    """Queue operations over the queue_messages table.

    Each operation opens its own short transaction; no connection is held
    between calls.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def send(
        self,
        queue_name: str,
        payload: dict[str, Any],
        delay_seconds: float = 0,
    ) -> int:
        """Append a message to the queue.

        Args:
            queue_name: Logical queue name.
            payload: JSON-serializable payload.
            delay_seconds: Keep the message invisible for this long.

        Returns:
            The new message ID.

        Raises:
            QueueError: If the insert fails.
        """
        now = utcnow()
        row = QueueMessageRow(
            queue_name=queue_name,
            message=payload,
            enqueued_at=now,
            vt=now + timedelta(seconds=delay_seconds),
        )
        try:
            async with self.session_factory() as session:
                session.add(row)
                await session.commit()
        except SQLAlchemyError as e:
            raise QueueError(f"Failed to send message to queue {queue_name}: {e}") from e

        log.debug("queue_message_sent", queue_name=queue_name, msg_id=row.msg_id)
        return row.msg_id

    async def pop(self, queue_name: str) -> QueueMessage | None:
        """Claim and delete the oldest visible message.

        Returns:
            The claimed message, or None if the queue is empty.

        Raises:
            QueueError: If the claim transaction fails.
        """
        try:
            async with self.session_factory() as session, session.begin():
                stmt = (
                    select(QueueMessageRow)
                    .where(
                        QueueMessageRow.queue_name == queue_name,
                        QueueMessageRow.vt <= utcnow(),
                    )
                    .order_by(QueueMessageRow.msg_id.asc())
                    .limit(1)
                    .with_for_update(skip_locked=True)
                )
                result = await session.execute(stmt)
                row = result.scalar_one_or_none()
                if row is None:
                    return None

                message = QueueMessage(
                    msg_id=row.msg_id,
                    delivery_count=row.read_ct + 1,
                    enqueued_at=as_utc(row.enqueued_at),
                    visibility_deadline=as_utc(row.vt),
                    payload=dict(row.message),
                )
                await session.delete(row)
        except SQLAlchemyError as e:
            raise QueueError(f"Failed to pop message from queue {queue_name}: {e}") from e

        return message

    async def length(self, queue_name: str) -> int:
        """Count messages currently in the queue (visible or not)."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(func.count())
                .select_from(QueueMessageRow)
                .where(QueueMessageRow.queue_name == queue_name)
            )
            return int(result.scalar_one())

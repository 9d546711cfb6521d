"""SQLAlchemy 2.0 ORM models.

This module contains all SQLAlchemy models for the notification pipeline.
All models use the Mapped[type] annotation pattern required by SQLAlchemy 2.0.

Ownership:
    Profile, Plan, PlanSubscription: billing/usage state written by the
        dashboard and Stripe handlers; this service only reads them, rolls
        billing periods forward and increments usage.
    ChannelSubscription: profile <-> watched channel edge, created by the
        dashboard; this service maintains the WebSub renewal columns.
    QueueMessageRow: the durable queue (see channel_notifier.queue).
    Notification, UsageAlertLog, VideoSummary: written by this service.

Deduplication:
    Notification carries a unique constraint on (profile_id, video_id). It is
    the store-level second line of defense behind the dedup query in
    services.notification_dispatch, covering races between concurrent workers.
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    """Get current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from the store.

    SQLite drops tzinfo on round-trip; PostgreSQL keeps it. All timestamps in
    this schema are written in UTC, so a naive value is UTC by construction.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class NotificationStatus(enum.Enum):
    """Delivery state of a notification record.

    pending → sent (email delivered, usage incremented)
    pending → failed (provider refused the message)
    """

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class AlertType(enum.Enum):
    """Usage alert kinds, one log row per kind per billing period."""

    LIMIT_REACHED = "limit_reached"
    APPROACHING_LIMIT = "approaching_limit"


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class Profile(Base):
    """A user of the service who subscribes to channels."""

    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    full_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    channel_subscriptions: Mapped[list["ChannelSubscription"]] = relationship(
        "ChannelSubscription", back_populates="profile"
    )
    plan_subscriptions: Mapped[list["PlanSubscription"]] = relationship(
        "PlanSubscription", back_populates="profile"
    )

    def __repr__(self) -> str:
        """Return string representation for debugging.

        Note:
            Email presence only, never the address itself.
        """
        email_info = "set" if self.email else "not_set"
        return f"<Profile(id={self.id!s:.8}, email={email_info})>"


class Plan(Base):
    """Billing plan with its monthly notification allowance."""

    __tablename__ = "plans"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    monthly_email_limit: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("monthly_email_limit >= 0", name="ck_plans_limit_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Plan(name={self.name!r}, monthly_email_limit={self.monthly_email_limit})>"


class PlanSubscription(Base):
    """A profile's billing subscription to a plan, with its usage counter.

    Attributes:
        status: "active" for the subscription currently in force; other values
            (canceled, past_due, ...) are ignored by the eligibility gate.
        start_date: Start of the current billing period.
        end_date: End of the current billing period. When it has passed, the
            eligibility gate rolls the period forward one month and resets
            usage_count before comparing against the plan limit.
        usage_count: Notifications delivered in the current period.
    """

    __tablename__ = "subscriptions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    plan_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("plans.id"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="active")
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    usage_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )

    profile: Mapped["Profile"] = relationship("Profile", back_populates="plan_subscriptions")
    plan: Mapped["Plan"] = relationship("Plan")

    __table_args__ = (
        Index("ix_subscriptions_profile_status", "profile_id", "status"),
        CheckConstraint("usage_count >= 0", name="ck_subscriptions_usage_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<PlanSubscription(profile_id={self.profile_id!s:.8}, status={self.status!r}, "
            f"usage_count={self.usage_count})>"
        )


class ChannelSubscription(Base):
    """Many-to-many edge between a profile and a watched YouTube channel.

    Attributes:
        channel_id: YouTube channel ID (UC...).
        subscribed_at: When the profile added the channel.
        callback_url: WebSub callback last registered for this channel.
        websub_renewed_at: Last successful hub subscribe; NULL means never
            registered. Drives renewal eligibility.
    """

    __tablename__ = "channel_subscriptions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    channel_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    subscribed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    callback_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    websub_renewed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        index=True,  # Renewal scan: WHERE websub_renewed_at IS NULL OR < threshold
    )

    profile: Mapped["Profile"] = relationship("Profile", back_populates="channel_subscriptions")

    __table_args__ = (
        UniqueConstraint("profile_id", "channel_id", name="uq_channel_subscriptions_profile_channel"),
    )

    def __repr__(self) -> str:
        return (
            f"<ChannelSubscription(channel_id={self.channel_id!r}, "
            f"profile_id={self.profile_id!s:.8}, websub_renewed_at={self.websub_renewed_at!s})>"
        )


class QueueMessageRow(Base):
    """Row in the durable message queue.

    Messages are claimed with a destructive pop (SELECT ... FOR UPDATE SKIP
    LOCKED, then DELETE in the same transaction).

    Attributes:
        msg_id: Monotonic message ID (FIFO order).
        queue_name: Logical queue the message belongs to.
        read_ct: Times the message was handed out before this row.
        enqueued_at: When the message was sent.
        vt: Visibility deadline; the message is not claimable before it.
        message: JSON payload (a serialized VideoEvent).
    """

    __tablename__ = "queue_messages"

    msg_id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    queue_name: Mapped[str] = mapped_column(String(100), nullable=False)
    read_ct: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    enqueued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    vt: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    message: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    __table_args__ = (Index("ix_queue_messages_queue_vt", "queue_name", "vt", "msg_id"),)

    def __repr__(self) -> str:
        return (
            f"<QueueMessageRow(msg_id={self.msg_id}, queue_name={self.queue_name!r}, "
            f"read_ct={self.read_ct})>"
        )


class Notification(Base):
    """A notification owed to one profile for one video.

    Created as pending by the queue worker, moved to sent/failed by the email
    delivery worker.
    """

    __tablename__ = "email_notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    channel_id: Mapped[str] = mapped_column(String(64), nullable=False)
    video_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    email_content: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[NotificationStatus] = mapped_column(
        Enum(
            NotificationStatus,
            name="notification_status",
            values_callable=lambda e: [member.value for member in e],
        ),
        nullable=False,
        default=NotificationStatus.PENDING,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    profile: Mapped["Profile"] = relationship("Profile")

    __table_args__ = (
        UniqueConstraint("profile_id", "video_id", name="uq_email_notifications_profile_video"),
    )

    def __repr__(self) -> str:
        return (
            f"<Notification(profile_id={self.profile_id!s:.8}, video_id={self.video_id!r}, "
            f"status={self.status.value!r})>"
        )


class UsageAlertLog(Base):
    """Record of a usage alert sent to a profile.

    One row per (profile_id, alert_type, period_start); the unique constraint
    keeps repeated eligibility checks within one billing period from sending
    the same alert twice.
    """

    __tablename__ = "usage_alert_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    alert_type: Mapped[AlertType] = mapped_column(
        Enum(
            AlertType,
            name="usage_alert_type",
            values_callable=lambda e: [member.value for member in e],
        ),
        nullable=False,
    )
    period_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    current_usage: Mapped[int] = mapped_column(Integer, nullable=False)
    monthly_limit: Mapped[int] = mapped_column(Integer, nullable=False)
    email_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint(
            "profile_id",
            "alert_type",
            "period_start",
            name="uq_usage_alert_logs_profile_type_period",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<UsageAlertLog(profile_id={self.profile_id!s:.8}, "
            f"alert_type={self.alert_type.value!r}, period_start={self.period_start!s})>"
        )


class VideoSummary(Base):
    """Persistent cache of AI summaries, keyed by video.

    Repeated deliveries of the same video read this row instead of calling the
    summarizer again.
    """

    __tablename__ = "video_summaries"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    video_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    brief_summary: Mapped[str] = mapped_column(Text, nullable=False)
    key_points: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    model: Mapped[str | None] = mapped_column(String(100), nullable=True)
    language: Mapped[str | None] = mapped_column(String(20), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def __repr__(self) -> str:
        return f"<VideoSummary(video_id={self.video_id!r}, key_points={len(self.key_points)})>"

"""initial_schema

Revision ID: 20261018_0001_initial_schema
Revises:
Create Date: 2026-10-18

Creates the notification pipeline schema.

Billing state (written by the dashboard and Stripe handlers):
    - profiles: users, optional email
    - plans: monthly_email_limit per plan
    - subscriptions: profile -> plan, billing period and usage_count

Channel watching:
    - channel_subscriptions: profile -> YouTube channel, unique per pair,
      with the WebSub renewal columns (callback_url, websub_renewed_at)

Pipeline state:
    - queue_messages: durable queue, claimed with FOR UPDATE SKIP LOCKED
    - email_notifications: one row per (profile_id, video_id), the store-level
      dedup guarantee
    - usage_alert_logs: one row per (profile_id, alert_type, period_start)
    - video_summaries: AI summary cache, unique per video_id
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261018_0001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

NOTIFICATION_STATUS = sa.Enum("pending", "sent", "failed", name="notification_status")
USAGE_ALERT_TYPE = sa.Enum("limit_reached", "approaching_limit", name="usage_alert_type")


def upgrade() -> None:
    """Create all pipeline tables, constraints and indexes."""
    op.create_table(
        "profiles",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("full_name", sa.String(length=200), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "plans",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("monthly_email_limit", sa.Integer(), nullable=False),
        sa.CheckConstraint("monthly_email_limit >= 0", name="ck_plans_limit_non_negative"),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "subscriptions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("profile_id", sa.Uuid(), nullable=False),
        sa.Column("plan_id", sa.Uuid(), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="0"),
        sa.ForeignKeyConstraint(["profile_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["plan_id"], ["plans.id"]),
        sa.CheckConstraint("usage_count >= 0", name="ck_subscriptions_usage_non_negative"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_subscriptions_profile_id", "subscriptions", ["profile_id"])
    op.create_index("ix_subscriptions_profile_status", "subscriptions", ["profile_id", "status"])

    op.create_table(
        "channel_subscriptions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("channel_id", sa.String(length=64), nullable=False),
        sa.Column("profile_id", sa.Uuid(), nullable=False),
        sa.Column("subscribed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("callback_url", sa.String(length=500), nullable=True),
        sa.Column("websub_renewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["profile_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "profile_id", "channel_id", name="uq_channel_subscriptions_profile_channel"
        ),
    )
    op.create_index(
        "ix_channel_subscriptions_channel_id", "channel_subscriptions", ["channel_id"]
    )
    # Renewal scan: WHERE websub_renewed_at IS NULL OR websub_renewed_at < threshold
    op.create_index(
        "ix_channel_subscriptions_websub_renewed_at",
        "channel_subscriptions",
        ["websub_renewed_at"],
    )

    op.create_table(
        "queue_messages",
        sa.Column("msg_id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("queue_name", sa.String(length=100), nullable=False),
        sa.Column("read_ct", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("enqueued_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("vt", sa.DateTime(timezone=True), nullable=True),
        sa.Column("message", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("msg_id"),
    )
    # Claim query: WHERE queue_name = $1 AND vt <= now() ORDER BY msg_id LIMIT 1
    op.create_index(
        "ix_queue_messages_queue_vt", "queue_messages", ["queue_name", "vt", "msg_id"]
    )

    op.create_table(
        "email_notifications",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("profile_id", sa.Uuid(), nullable=False),
        sa.Column("channel_id", sa.String(length=64), nullable=False),
        sa.Column("video_id", sa.String(length=32), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=True),
        sa.Column("email_content", sa.Text(), nullable=False),
        sa.Column("status", NOTIFICATION_STATUS, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["profile_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "profile_id", "video_id", name="uq_email_notifications_profile_video"
        ),
    )
    op.create_index("ix_email_notifications_video_id", "email_notifications", ["video_id"])
    op.create_index("ix_email_notifications_status", "email_notifications", ["status"])

    op.create_table(
        "usage_alert_logs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("profile_id", sa.Uuid(), nullable=False),
        sa.Column("alert_type", USAGE_ALERT_TYPE, nullable=False),
        sa.Column("period_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("current_usage", sa.Integer(), nullable=False),
        sa.Column("monthly_limit", sa.Integer(), nullable=False),
        sa.Column("email_content", sa.Text(), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["profile_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "profile_id",
            "alert_type",
            "period_start",
            name="uq_usage_alert_logs_profile_type_period",
        ),
    )

    op.create_table(
        "video_summaries",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("video_id", sa.String(length=32), nullable=False),
        sa.Column("brief_summary", sa.Text(), nullable=False),
        sa.Column("key_points", sa.JSON(), nullable=False),
        sa.Column("model", sa.String(length=100), nullable=True),
        sa.Column("language", sa.String(length=20), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_video_summaries_video_id", "video_summaries", ["video_id"], unique=True
    )


def downgrade() -> None:
    """Drop all pipeline tables and enum types."""
    op.drop_index("ix_video_summaries_video_id", table_name="video_summaries")
    op.drop_table("video_summaries")
    op.drop_table("usage_alert_logs")
    op.drop_index("ix_email_notifications_status", table_name="email_notifications")
    op.drop_index("ix_email_notifications_video_id", table_name="email_notifications")
    op.drop_table("email_notifications")
    op.drop_index("ix_queue_messages_queue_vt", table_name="queue_messages")
    op.drop_table("queue_messages")
    op.drop_index("ix_channel_subscriptions_websub_renewed_at", table_name="channel_subscriptions")
    op.drop_index("ix_channel_subscriptions_channel_id", table_name="channel_subscriptions")
    op.drop_table("channel_subscriptions")
    op.drop_index("ix_subscriptions_profile_status", table_name="subscriptions")
    op.drop_index("ix_subscriptions_profile_id", table_name="subscriptions")
    op.drop_table("subscriptions")
    op.drop_table("plans")
    op.drop_table("profiles")
    USAGE_ALERT_TYPE.drop(op.get_bind(), checkfirst=True)
    NOTIFICATION_STATUS.drop(op.get_bind(), checkfirst=True)

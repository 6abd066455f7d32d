"""Notification model for the per-user notification inbox."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Index,
    MetaData,
    String,
    Table,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID

metadata = MetaData()

notifications = Table(
    "notifications",
    metadata,
    Column(
        "id",
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    ),
    Column("user_id", UUID(as_uuid=True), nullable=False),
    Column("notification_type", String(20), nullable=False),
    Column("title", Text, nullable=False),
    Column("message", Text, nullable=False),
    Column("data", JSONB, nullable=True),
    Column("is_read", Boolean, nullable=False, server_default=text("false")),
    Column("read_at", TIMESTAMP(timezone=True), nullable=True),
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    CheckConstraint(
        "notification_type IN ('appointment', 'inventory', 'message', 'user', 'alert', 'success')",
        name="notifications_type_check",
    ),
    Index("idx_notifications_user_id", "user_id"),
    Index("idx_notifications_created_at", "created_at", postgresql_ops={"created_at": "DESC"}),
    Index("idx_notifications_user_unread", "user_id", "is_read"),
)

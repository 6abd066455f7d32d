"""Notification service backed by the notifications table."""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import desc, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import execute_statement
from app.models.notifications import notifications
from app.schemas.notifications import NotificationRecord, NotificationType
from app.services.ports import NotificationRecipient, UserDirectory
from app.services.user_service import UserService

logger = structlog.get_logger(__name__)


class NotificationService:
    """Stores notifications in each recipient's inbox and serves the inbox."""

    def __init__(self, db: AsyncSession, users: UserDirectory | None = None):
        """Initialize service with database session and user directory."""
        self.db = db
        self.users = users or UserService(db)

    async def dispatch(
        self,
        recipient: NotificationRecipient,
        notification_type: NotificationType,
        title: str,
        message: str,
        payload: dict[str, Any],
    ) -> None:
        """
        Create one notification row per recipient.

        Args:
            recipient: Single user or all administrators
            notification_type: Notification type tag
            title: Notification title
            message: Human readable message
            payload: JSON payload stored alongside the message
        """
        if recipient.all_admins:
            user_ids = await self.users.list_admin_ids()
        else:
            user_ids = [recipient.user_id]

        if not user_ids:
            logger.warning("no_notification_recipients", title=title)
            return

        rows = [
            {
                "user_id": user_id,
                "notification_type": notification_type.value,
                "title": title,
                "message": message,
                "data": payload,
            }
            for user_id in user_ids
        ]
        await execute_statement(
            self.db,
            insert(notifications).values(rows),
            "dispatch_notification",
            commit=True,
        )

        logger.info(
            "notification_dispatched",
            title=title,
            notification_type=notification_type.value,
            recipients=len(user_ids),
        )

    async def list_for_user(
        self,
        user_id: UUID,
        limit: int = 5,
        unread_only: bool = False,
    ) -> list[NotificationRecord]:
        """
        Get the newest notifications of a user.

        Args:
            user_id: User ID
            limit: Maximum number of notifications
            unread_only: Skip notifications already read

        Returns:
            Notifications, newest first
        """
        query = select(notifications).where(notifications.c.user_id == user_id)

        if unread_only:
            query = query.where(notifications.c.is_read.is_(False))

        query = query.order_by(desc(notifications.c.created_at)).limit(limit)

        result = await execute_statement(self.db, query, "list_notifications")
        return [NotificationRecord.model_validate(dict(row._mapping)) for row in result.fetchall()]

    async def unread_count(self, user_id: UUID) -> int:
        """Number of unread notifications of a user."""
        stmt = (
            select(func.count())
            .select_from(notifications)
            .where(
                notifications.c.user_id == user_id,
                notifications.c.is_read.is_(False),
            )
        )
        result = await execute_statement(self.db, stmt, "count_unread_notifications")
        return result.scalar() or 0

    async def mark_as_read(self, notification_id: UUID, user_id: UUID) -> bool:
        """
        Mark a notification as read.

        Args:
            notification_id: Notification ID
            user_id: Owner, for verification

        Returns:
            True if updated, False if not found
        """
        stmt = (
            update(notifications)
            .where(
                notifications.c.id == notification_id,
                notifications.c.user_id == user_id,
            )
            .values(is_read=True, read_at=datetime.now(UTC))
        )
        result = await execute_statement(self.db, stmt, "mark_notification_read", commit=True)
        return result.rowcount > 0

    async def mark_all_as_read(self, user_id: UUID) -> int:
        """Mark every unread notification of a user as read; returns the count."""
        stmt = (
            update(notifications)
            .where(
                notifications.c.user_id == user_id,
                notifications.c.is_read.is_(False),
            )
            .values(is_read=True, read_at=datetime.now(UTC))
        )
        result = await execute_statement(self.db, stmt, "mark_all_notifications_read", commit=True)
        return result.rowcount

"""Notification schemas."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class NotificationType(str, Enum):
    """Notification type enumeration."""

    APPOINTMENT = "appointment"
    INVENTORY = "inventory"
    MESSAGE = "message"
    USER = "user"
    ALERT = "alert"
    SUCCESS = "success"


class NotificationRecord(BaseModel):
    """Schema for a stored notification."""

    id: UUID
    user_id: UUID
    notification_type: NotificationType
    title: str
    message: str
    data: dict | None = None
    is_read: bool
    read_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationListResponse(BaseModel):
    """Schema for the notification inbox response."""

    notifications: list[NotificationRecord]
    unread_count: int


class UnreadCountResponse(BaseModel):
    """Schema for the unread counter."""

    unread_count: int = Field(..., ge=0)


class MarkAllReadResponse(BaseModel):
    """Schema for the bulk mark-as-read response."""

    updated: int = Field(..., ge=0)

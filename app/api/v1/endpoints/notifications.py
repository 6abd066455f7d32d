"""Notification inbox endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from app.core.exceptions import NotFoundException
from app.dependencies import CurrentUser, Notifications
from app.schemas.notifications import (
    MarkAllReadResponse,
    NotificationListResponse,
    UnreadCountResponse,
)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get(
    "",
    response_model=NotificationListResponse,
    status_code=status.HTTP_200_OK,
    summary="Get my notifications",
)
async def list_my_notifications(
    current_user: CurrentUser,
    service: Notifications,
    limit: int = Query(5, ge=1, le=100),
    unread_only: bool = Query(False),
) -> NotificationListResponse:
    """
    Get the newest notifications of the authenticated user.

    Args:
        current_user: Authenticated user
        service: Notification service
        limit: Maximum number of notifications
        unread_only: Skip notifications already read

    Returns:
        Notifications, newest first, with the unread counter
    """
    notifications = await service.list_for_user(
        current_user["id"],
        limit=limit,
        unread_only=unread_only,
    )
    unread_count = await service.unread_count(current_user["id"])

    return NotificationListResponse(notifications=notifications, unread_count=unread_count)


@router.get(
    "/unread-count",
    response_model=UnreadCountResponse,
    status_code=status.HTTP_200_OK,
    summary="Count unread notifications",
)
async def get_unread_count(
    current_user: CurrentUser,
    service: Notifications,
) -> UnreadCountResponse:
    """Number of unread notifications of the authenticated user."""
    return UnreadCountResponse(unread_count=await service.unread_count(current_user["id"]))


@router.post(
    "/read-all",
    response_model=MarkAllReadResponse,
    status_code=status.HTTP_200_OK,
    summary="Mark all notifications as read",
)
async def mark_all_notifications_read(
    current_user: CurrentUser,
    service: Notifications,
) -> MarkAllReadResponse:
    """Mark every unread notification of the authenticated user as read."""
    return MarkAllReadResponse(updated=await service.mark_all_as_read(current_user["id"]))


@router.patch(
    "/{notification_id}/read",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Mark notification as read",
)
async def mark_notification_read(
    notification_id: UUID,
    current_user: CurrentUser,
    service: Notifications,
) -> None:
    """
    Mark a notification as read.

    Args:
        notification_id: Notification ID
        current_user: Authenticated user
        service: Notification service

    Raises:
        NotFoundException: If notification not found or not owned by the user
    """
    updated = await service.mark_as_read(notification_id, current_user["id"])
    if not updated:
        raise NotFoundException("Notification not found")

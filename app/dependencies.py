"""FastAPI dependencies."""

from typing import Annotated, Any
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.realtime import ChangeFeed, get_change_feed
from app.core.security import decode_access_token
from app.database import get_db
from app.services.appointment_service import AppointmentService
from app.services.appointment_store import PostgresAppointmentStore
from app.services.notification_service import NotificationService
from app.services.ports import AppointmentStore, UserDirectory
from app.services.slot_service import SlotService
from app.services.user_service import UserService

# Security
security = HTTPBearer()

DatabaseSession = Annotated[AsyncSession, Depends(get_db)]


def user_id_from_token(token: str) -> UUID | None:
    """Return the user ID carried by a valid access token, else None."""
    payload = decode_access_token(token)
    if payload is None:
        return None

    user_id_str = payload.get("sub")
    if user_id_str is None or not isinstance(user_id_str, str):
        return None

    try:
        return UUID(user_id_str)
    except ValueError:
        return None


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> UUID:
    """
    Extract and validate user ID from JWT token.

    Args:
        credentials: Bearer token credentials

    Returns:
        User ID from token

    Raises:
        HTTPException: If token is invalid or expired
    """
    user_id = user_id_from_token(credentials.credentials)

    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user_id


def get_user_directory(db: DatabaseSession) -> UserService:
    """User directory backed by the users table."""
    return UserService(db)


def get_appointment_store(db: DatabaseSession) -> AppointmentStore:
    """Appointment store backed by Postgres."""
    return PostgresAppointmentStore(db)


def get_notification_service(
    db: DatabaseSession,
    users: Annotated[UserDirectory, Depends(get_user_directory)],
) -> NotificationService:
    """Notification dispatcher and inbox."""
    return NotificationService(db, users)


def get_changes() -> ChangeFeed:
    """Process-wide realtime change feed."""
    return get_change_feed()


async def get_current_user(
    user_id: Annotated[UUID, Depends(get_current_user_id)],
    users: Annotated[UserDirectory, Depends(get_user_directory)],
) -> dict[str, Any]:
    """
    Get current user from the user directory.

    Args:
        user_id: User ID from JWT token
        users: User directory

    Returns:
        User data

    Raises:
        HTTPException: If user not found or inactive
    """
    user = await users.get_user_by_id(user_id)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user["is_active"]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )

    return user


def get_appointment_service(
    store: Annotated[AppointmentStore, Depends(get_appointment_store)],
    users: Annotated[UserDirectory, Depends(get_user_directory)],
    notifications: Annotated[NotificationService, Depends(get_notification_service)],
    changes: Annotated[ChangeFeed, Depends(get_changes)],
) -> AppointmentService:
    """Appointment lifecycle service wired to the request's collaborators."""
    return AppointmentService(
        store=store,
        users=users,
        notifications=notifications,
        changes=changes,
        default_duration_minutes=settings.slot_duration_minutes,
    )


def get_slot_service(
    store: Annotated[AppointmentStore, Depends(get_appointment_store)],
) -> SlotService:
    """Slot service using the configured working hours."""
    return SlotService(
        store=store,
        work_start=settings.clinic_work_start,
        work_end=settings.clinic_work_end,
        slot_duration_minutes=settings.slot_duration_minutes,
        step_minutes=settings.slot_step_minutes,
    )


# Type aliases for dependency injection
CurrentUser = Annotated[dict, Depends(get_current_user)]
Users = Annotated[UserService, Depends(get_user_directory)]
Notifications = Annotated[NotificationService, Depends(get_notification_service)]
Appointments = Annotated[AppointmentService, Depends(get_appointment_service)]
Slots = Annotated[SlotService, Depends(get_slot_service)]
Changes = Annotated[ChangeFeed, Depends(get_changes)]

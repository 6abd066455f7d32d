"""Collaborator interfaces the scheduling services are built against.

The services receive implementations of these protocols through their
constructors. Postgres-backed implementations live next to this module; tests
substitute in-memory ones.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, Protocol
from uuid import UUID

from app.schemas.appointments import AppointmentResponse, AppointmentStatus
from app.schemas.notifications import NotificationType


@dataclass(frozen=True)
class AppointmentQuery:
    """Appointment filter understood by every AppointmentStore.

    All set fields are combined with AND.
    """

    provider_id: UUID | None = None
    patient_id: UUID | None = None
    date_exact: date | None = None
    date_from: date | None = None
    date_to: date | None = None
    statuses: frozenset[AppointmentStatus] | None = None


@dataclass(frozen=True)
class NotificationRecipient:
    """Either a single user or every administrator."""

    user_id: UUID | None = None
    all_admins: bool = False

    @classmethod
    def user(cls, user_id: UUID) -> "NotificationRecipient":
        """Address one user."""
        return cls(user_id=user_id)

    @classmethod
    def administrators(cls) -> "NotificationRecipient":
        """Address all administrators."""
        return cls(all_admins=True)


class AppointmentStore(Protocol):
    """Persistence for appointments."""

    async def query_appointments(self, query: AppointmentQuery) -> list[AppointmentResponse]:
        """Return matching appointments ordered by date, then start time."""
        ...

    async def get_appointment(self, appointment_id: UUID) -> AppointmentResponse | None:
        """Return one appointment or None."""
        ...

    async def insert_appointment(self, values: dict[str, Any]) -> AppointmentResponse:
        """Persist a new appointment; raises ConstraintViolationException on overlap."""
        ...

    async def update_appointment_status(
        self,
        appointment_id: UUID,
        status: AppointmentStatus,
        expected_status: AppointmentStatus | None = None,
    ) -> AppointmentResponse | None:
        """Set the status; None when no row matched id (and expected status)."""
        ...


class UserDirectory(Protocol):
    """Read access to user profiles and roles."""

    async def get_user_by_id(self, user_id: UUID) -> dict[str, Any] | None:
        """Return the user row as a dict or None."""
        ...

    async def list_admin_ids(self) -> list[UUID]:
        """IDs of all active administrators."""
        ...


class NotificationDispatcher(Protocol):
    """Accepts notification requests; delivery is its own business."""

    async def dispatch(
        self,
        recipient: NotificationRecipient,
        notification_type: NotificationType,
        title: str,
        message: str,
        payload: dict[str, Any],
    ) -> None:
        """Queue a notification for the recipient."""
        ...

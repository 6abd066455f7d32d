"""Appointment lifecycle: booking, status transitions and listings."""

from datetime import date, datetime, time, timedelta
from uuid import UUID

import structlog

from app.core.exceptions import (
    ConflictException,
    ConstraintViolationException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from app.core.realtime import ChangeEvent, ChangeFeed
from app.scheduling.overlap import BLOCKING_STATUSES, find_conflicts
from app.scheduling.transitions import ensure_transition
from app.schemas.appointments import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
)
from app.services.appointment_notifications import (
    notify_appointment_booked,
    notify_status_changed,
)
from app.services.ports import (
    AppointmentQuery,
    AppointmentStore,
    NotificationDispatcher,
    UserDirectory,
)

logger = structlog.get_logger(__name__)

APPOINTMENTS_TABLE = "appointments"
SLOT_TAKEN_MESSAGE = "slot no longer available"


def resolve_time_range(
    appointment_date: date | None,
    start_time: time | None,
    end_time: time | None,
    duration_minutes: int | None,
    default_duration_minutes: int,
) -> tuple[time, time]:
    """
    Work out the booked interval.

    An explicit end time wins over a duration; with neither, the default
    duration applies. The interval must stay within the appointment date.

    Returns:
        (start_time, end_time)

    Raises:
        ValidationException: If the range is missing or not strictly increasing
    """
    if appointment_date is None or start_time is None:
        raise ValidationException("invalid time range")

    start_time = start_time.replace(tzinfo=None)

    if end_time is None:
        minutes = default_duration_minutes if duration_minutes is None else duration_minutes
        if minutes <= 0:
            raise ValidationException("invalid time range")

        try:
            end_at = datetime.combine(appointment_date, start_time) + timedelta(minutes=minutes)
        except OverflowError as e:
            raise ValidationException("invalid time range") from e
        if end_at.date() != appointment_date:
            raise ValidationException("invalid time range")
        end_time = end_at.time()
    else:
        end_time = end_time.replace(tzinfo=None)

    if end_time <= start_time:
        raise ValidationException("invalid time range")

    return start_time, end_time


def searchable_text(appointment: AppointmentResponse) -> str:
    """Lower-cased flat rendering of every field, for free-text search."""
    values = appointment.model_dump(mode="json").values()
    return " ".join(str(value) for value in values if value is not None).lower()


class AppointmentService:
    """Validates, books and transitions appointments.

    Owns the no-overlap invariant at write time: every booking re-checks the
    provider's calendar right before it is persisted, regardless of what
    slots the caller was shown earlier.
    """

    def __init__(
        self,
        store: AppointmentStore,
        users: UserDirectory,
        notifications: NotificationDispatcher,
        changes: ChangeFeed | None = None,
        default_duration_minutes: int = 30,
    ):
        """Initialize service with its collaborators."""
        self.store = store
        self.users = users
        self.notifications = notifications
        self.changes = changes
        self.default_duration_minutes = default_duration_minutes

    async def book_appointment(
        self,
        data: AppointmentCreate,
        created_by: UUID | None = None,
    ) -> AppointmentResponse:
        """
        Book a new appointment.

        Args:
            data: Booking request
            created_by: ID of the user making the booking

        Returns:
            Persisted appointment

        Raises:
            ValidationException: If the patient or the time range is invalid
            ConflictException: If the slot was taken in the meantime
            UpstreamException: If the store or the notification service failed
        """
        if data.patient_id is None:
            raise ValidationException("missing patient")

        start_time, end_time = resolve_time_range(
            data.appointment_date,
            data.start_time,
            data.end_time,
            data.duration_minutes,
            self.default_duration_minutes,
        )

        if data.provider_id is not None:
            bookings = await self.store.query_appointments(
                AppointmentQuery(
                    provider_id=data.provider_id,
                    date_exact=data.appointment_date,
                    statuses=BLOCKING_STATUSES,
                )
            )
            conflicts = find_conflicts(start_time, end_time, bookings)
            if conflicts:
                logger.info(
                    "appointment_conflict",
                    provider_id=str(data.provider_id),
                    appointment_date=data.appointment_date.isoformat(),
                    start_time=start_time.isoformat(),
                    conflicting_ids=[str(c.id) for c in conflicts],
                )
                raise ConflictException(SLOT_TAKEN_MESSAGE)

        values = {
            "patient_id": data.patient_id,
            "provider_id": data.provider_id,
            "vaccine_id": data.vaccine_id,
            "appointment_date": data.appointment_date,
            "start_time": start_time,
            "end_time": end_time,
            "reason": data.reason,
            "notes": data.notes,
            "created_by": created_by,
            "status": AppointmentStatus.SCHEDULED.value,
        }

        try:
            appointment = await self.store.insert_appointment(values)
        except ConstraintViolationException as e:
            logger.info(
                "appointment_conflict",
                provider_id=str(data.provider_id),
                appointment_date=data.appointment_date.isoformat(),
                start_time=start_time.isoformat(),
                detected_by="store",
            )
            raise ConflictException(SLOT_TAKEN_MESSAGE) from e

        logger.info(
            "appointment_booked",
            appointment_id=str(appointment.id),
            patient_id=str(appointment.patient_id),
            provider_id=str(appointment.provider_id) if appointment.provider_id else None,
        )

        await self._publish("INSERT", appointment)

        patient = await self.users.get_user_by_id(appointment.patient_id)
        await notify_appointment_booked(self.notifications, appointment, patient)

        return appointment

    async def transition_status(
        self,
        appointment_id: UUID,
        new_status: AppointmentStatus,
    ) -> AppointmentResponse:
        """
        Move an appointment to a new status.

        Args:
            appointment_id: Appointment ID
            new_status: Requested status

        Returns:
            Updated appointment

        Raises:
            NotFoundException: If the appointment does not exist
            InvalidTransitionException: If the lifecycle forbids the change
        """
        current = await self.get_appointment(appointment_id)
        ensure_transition(current.status, new_status)

        updated = await self.store.update_appointment_status(
            appointment_id,
            new_status,
            expected_status=current.status,
        )
        if updated is None:
            # Another request changed the status between our read and write
            raise InvalidTransitionException(
                f"Appointment status changed concurrently; cannot set {new_status.value}"
            )

        logger.info(
            "appointment_status_changed",
            appointment_id=str(appointment_id),
            old_status=current.status.value,
            new_status=new_status.value,
        )

        await self._publish("UPDATE", updated)

        patient = await self.users.get_user_by_id(updated.patient_id)
        await notify_status_changed(self.notifications, updated, patient, current.status)

        return updated

    async def get_appointment(self, appointment_id: UUID) -> AppointmentResponse:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
        """
        appointment = await self.store.get_appointment(appointment_id)
        if appointment is None:
            raise NotFoundException("Appointment not found")
        return appointment

    async def list_appointments(
        self,
        filters: AppointmentFilters,
        patient_id: UUID | None = None,
        provider_id: UUID | None = None,
    ) -> AppointmentListResponse:
        """
        List appointments with filtering.

        ``patient_id``/``provider_id`` carry the caller's access scope,
        decided by the API layer from the caller's role.

        Args:
            filters: Date, status and free-text filters
            patient_id: Restrict to one patient
            provider_id: Restrict to one provider

        Returns:
            Appointments ordered by date, then start time
        """
        query = AppointmentQuery(
            provider_id=provider_id,
            patient_id=patient_id,
            date_exact=filters.date_exact,
            date_from=filters.date_from,
            date_to=filters.date_to,
            statuses=frozenset({filters.status}) if filters.status else None,
        )
        items = await self.store.query_appointments(query)

        if filters.search:
            term = filters.search.strip().lower()
            items = [item for item in items if term in searchable_text(item)]

        items = sorted(items, key=lambda item: (item.appointment_date, item.start_time))

        return AppointmentListResponse(total=len(items), items=items)

    async def _publish(self, event: str, appointment: AppointmentResponse) -> None:
        if self.changes is None:
            return
        await self.changes.publish(
            ChangeEvent(
                table=APPOINTMENTS_TABLE,
                event=event,
                record_id=str(appointment.id),
                payload={
                    "status": appointment.status.value,
                    "patient_id": str(appointment.patient_id),
                    "provider_id": str(appointment.provider_id) if appointment.provider_id else None,
                    "appointment_date": appointment.appointment_date.isoformat(),
                },
            )
        )

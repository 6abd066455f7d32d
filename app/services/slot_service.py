"""Slot availability for a provider's day."""

from datetime import date, time
from uuid import UUID

from app.core.exceptions import ValidationException
from app.scheduling.overlap import BLOCKING_STATUSES
from app.scheduling.slots import Slot, generate_slots
from app.services.ports import AppointmentQuery, AppointmentStore


class SlotService:
    """Computes bookable windows from the provider's current bookings.

    Results are recomputed on every call; bookings can change between two
    queries, which the booking path handles by re-checking at write time.
    """

    def __init__(
        self,
        store: AppointmentStore,
        work_start: time,
        work_end: time,
        slot_duration_minutes: int,
        step_minutes: int,
    ):
        """Initialize service with the store and default working hours."""
        self.store = store
        self.work_start = work_start
        self.work_end = work_end
        self.slot_duration_minutes = slot_duration_minutes
        self.step_minutes = step_minutes

    async def get_available_slots(
        self,
        provider_id: UUID | None,
        appointment_date: date,
        work_start: time | None = None,
        work_end: time | None = None,
        slot_duration_minutes: int | None = None,
        step_minutes: int | None = None,
    ) -> list[Slot]:
        """
        Get the available windows of a provider on a date.

        Arguments left as None fall back to the service defaults.

        Args:
            provider_id: Provider whose calendar is checked
            appointment_date: Calendar date
            work_start: Start of working hours
            work_end: End of working hours
            slot_duration_minutes: Window length
            step_minutes: Distance between candidate starts

        Returns:
            Available slots in ascending order; empty without a provider

        Raises:
            ValidationException: If duration or step is not positive, or
                working hours do not end after they start
        """
        duration = self.slot_duration_minutes if slot_duration_minutes is None else slot_duration_minutes
        step = self.step_minutes if step_minutes is None else step_minutes
        start = self.work_start if work_start is None else work_start
        end = self.work_end if work_end is None else work_end

        if duration <= 0 or step <= 0:
            raise ValidationException("slot duration and step must be positive")
        if end <= start:
            raise ValidationException("working hours must end after they start")

        if provider_id is None:
            return []

        bookings = await self.store.query_appointments(
            AppointmentQuery(
                provider_id=provider_id,
                date_exact=appointment_date,
                statuses=BLOCKING_STATUSES,
            )
        )

        return generate_slots(bookings, start, end, duration, step)

"""Tests for the appointment lifecycle service."""

from datetime import date, time
from uuid import uuid4

import pytest

from app.core.exceptions import (
    ConflictException,
    InvalidTransitionException,
    NotFoundException,
    UpstreamException,
    ValidationException,
)
from app.core.realtime import ChangeEvent
from app.schemas.appointments import AppointmentCreate, AppointmentFilters, AppointmentStatus
from app.services.appointment_service import AppointmentService, resolve_time_range

DAY = date(2025, 3, 3)


def booking(patient_user, provider_user, start: time, **overrides) -> AppointmentCreate:
    values = {
        "patient_id": patient_user["id"],
        "provider_id": provider_user["id"],
        "appointment_date": DAY,
        "start_time": start,
        "duration_minutes": 30,
        "reason": "Annual flu shot",
    }
    values.update(overrides)
    return AppointmentCreate(**values)


class TestResolveTimeRange:
    """Tests for working out the booked interval."""

    def test_duration(self) -> None:
        assert resolve_time_range(DAY, time(9, 0), None, 45, 30) == (time(9, 0), time(9, 45))

    def test_default_duration(self) -> None:
        assert resolve_time_range(DAY, time(9, 0), None, None, 30) == (time(9, 0), time(9, 30))

    def test_explicit_end_time_wins(self) -> None:
        assert resolve_time_range(DAY, time(9, 0), time(9, 20), 45, 30) == (
            time(9, 0),
            time(9, 20),
        )

    @pytest.mark.parametrize(
        "appointment_date,start,end,duration",
        [
            (None, time(9, 0), None, 30),
            (DAY, None, None, 30),
            (DAY, time(9, 0), None, 0),
            (DAY, time(9, 0), None, -15),
            (DAY, time(9, 0), time(9, 0), None),
            (DAY, time(9, 0), time(8, 30), None),
            (DAY, time(23, 45), None, 30),
            (DAY, time(9, 0), None, 10**12),
            (date(9999, 12, 31), time(9, 0), None, 24 * 60),
        ],
    )
    def test_invalid_ranges(self, appointment_date, start, end, duration) -> None:
        with pytest.raises(ValidationException) as exc_info:
            resolve_time_range(appointment_date, start, end, duration, 30)

        assert exc_info.value.message == "invalid time range"


class TestBookAppointment:
    """Tests for booking."""

    @pytest.mark.asyncio
    async def test_books_scheduled_appointment(
        self, appointment_service, store, patient_user, provider_user, admin_user
    ) -> None:
        appointment = await appointment_service.book_appointment(
            booking(patient_user, provider_user, time(9, 0)),
            created_by=patient_user["id"],
        )

        assert appointment.status == AppointmentStatus.SCHEDULED
        assert appointment.start_time == time(9, 0)
        assert appointment.end_time == time(9, 30)
        assert appointment.created_by == patient_user["id"]
        assert appointment.id in store.rows

    @pytest.mark.asyncio
    async def test_missing_patient_is_checked_first(self, appointment_service) -> None:
        data = AppointmentCreate(appointment_date=None, start_time=None)

        with pytest.raises(ValidationException) as exc_info:
            await appointment_service.book_appointment(data)

        assert exc_info.value.message == "missing patient"

    @pytest.mark.asyncio
    async def test_invalid_time_range_is_rejected_before_querying(
        self, appointment_service, store, patient_user, provider_user
    ) -> None:
        data = booking(patient_user, provider_user, time(9, 0), end_time=time(8, 0))

        with pytest.raises(ValidationException) as exc_info:
            await appointment_service.book_appointment(data)

        assert exc_info.value.message == "invalid time range"
        assert store.queries == []

    @pytest.mark.asyncio
    async def test_overlapping_booking_conflicts(
        self, appointment_service, store, patient_user, other_patient, provider_user
    ) -> None:
        """09:00-09:30 then 09:15-09:45 for the same provider and date."""
        await appointment_service.book_appointment(booking(patient_user, provider_user, time(9, 0)))

        with pytest.raises(ConflictException) as exc_info:
            await appointment_service.book_appointment(
                booking(other_patient, provider_user, time(9, 15))
            )

        assert exc_info.value.message == "slot no longer available"
        assert exc_info.value.status_code == 409
        assert len(store.rows) == 1

    @pytest.mark.asyncio
    async def test_back_to_back_bookings_are_accepted(
        self, appointment_service, store, patient_user, other_patient, provider_user
    ) -> None:
        await appointment_service.book_appointment(booking(patient_user, provider_user, time(9, 0)))
        await appointment_service.book_appointment(booking(other_patient, provider_user, time(9, 30)))

        assert len(store.rows) == 2

    @pytest.mark.asyncio
    async def test_other_provider_is_not_a_conflict(
        self, appointment_service, store, patient_user, provider_user
    ) -> None:
        await appointment_service.book_appointment(booking(patient_user, provider_user, time(9, 0)))
        await appointment_service.book_appointment(
            booking(patient_user, provider_user, time(9, 0), provider_id=uuid4())
        )

        assert len(store.rows) == 2

    @pytest.mark.asyncio
    async def test_without_provider_no_conflict_check(
        self, appointment_service, store, patient_user, provider_user
    ) -> None:
        data = booking(patient_user, provider_user, time(9, 0), provider_id=None)

        await appointment_service.book_appointment(data)
        await appointment_service.book_appointment(data)

        assert store.queries == []
        assert len(store.rows) == 2

    @pytest.mark.asyncio
    async def test_cancelled_slot_can_be_booked_again(
        self, appointment_service, slot_service, patient_user, other_patient, provider_user
    ) -> None:
        first = await appointment_service.book_appointment(
            booking(patient_user, provider_user, time(9, 0))
        )
        before = await slot_service.get_available_slots(provider_user["id"], DAY)
        assert time(9, 0) not in [slot.start for slot in before]

        await appointment_service.transition_status(first.id, AppointmentStatus.CANCELLED)

        after = await slot_service.get_available_slots(provider_user["id"], DAY)
        assert time(9, 0) in [slot.start for slot in after]
        await appointment_service.book_appointment(booking(other_patient, provider_user, time(9, 0)))

    @pytest.mark.asyncio
    async def test_store_constraint_violation_becomes_conflict(
        self, appointment_service, store, patient_user, other_patient, provider_user
    ) -> None:
        """A booking that slips past the re-check is stopped by the store."""
        await appointment_service.book_appointment(booking(patient_user, provider_user, time(9, 0)))

        async def stale_query(query):
            return []

        store.query_appointments = stale_query

        with pytest.raises(ConflictException) as exc_info:
            await appointment_service.book_appointment(
                booking(other_patient, provider_user, time(9, 15))
            )

        assert exc_info.value.message == "slot no longer available"
        assert len(store.rows) == 1

    @pytest.mark.asyncio
    async def test_notifies_administrators(
        self, appointment_service, notifier, patient_user, provider_user, admin_user
    ) -> None:
        appointment = await appointment_service.book_appointment(
            booking(patient_user, provider_user, time(9, 30))
        )

        assert len(notifier.dispatched) == 1
        sent = notifier.dispatched[0]
        assert sent["recipient"].all_admins
        assert sent["notification_type"].value == "appointment"
        assert sent["title"] == "New Appointment Booked"
        assert sent["message"] == (
            "Patient Jane Doe has booked an appointment for Monday, March 3, 2025 at 09:30 AM."
        )
        assert sent["payload"] == {
            "appointment_id": str(appointment.id),
            "patient_id": str(patient_user["id"]),
            "appointment_date": "2025-03-03",
            "start_time": "09:30:00",
            "end_time": "10:00:00",
        }
        inbox = await notifier.list_for_user(admin_user["id"])
        assert [n.title for n in inbox] == ["New Appointment Booked"]

    @pytest.mark.asyncio
    async def test_unknown_patient_name(
        self, appointment_service, notifier, provider_user
    ) -> None:
        await appointment_service.book_appointment(
            AppointmentCreate(
                patient_id=uuid4(),
                provider_id=provider_user["id"],
                appointment_date=DAY,
                start_time=time(14, 0),
            )
        )

        assert notifier.dispatched[0]["message"].startswith("Patient Unknown Patient has booked")

    @pytest.mark.asyncio
    async def test_publishes_insert_change(
        self, appointment_service, change_feed, patient_user, provider_user
    ) -> None:
        received: list[ChangeEvent] = []
        change_feed.subscribe("appointments", received.append)

        appointment = await appointment_service.book_appointment(
            booking(patient_user, provider_user, time(9, 0))
        )

        assert len(received) == 1
        assert received[0].event == "INSERT"
        assert received[0].record_id == str(appointment.id)

    @pytest.mark.asyncio
    async def test_works_without_change_feed(
        self, store, user_directory, notifier, patient_user, provider_user
    ) -> None:
        service = AppointmentService(store=store, users=user_directory, notifications=notifier)

        appointment = await service.book_appointment(
            booking(patient_user, provider_user, time(9, 0))
        )

        assert appointment.id in store.rows

    @pytest.mark.asyncio
    async def test_notification_failure_propagates(
        self, appointment_service, notifier, patient_user, provider_user
    ) -> None:
        async def failing_dispatch(*args, **kwargs):
            raise UpstreamException("Database unavailable")

        notifier.dispatch = failing_dispatch

        with pytest.raises(UpstreamException):
            await appointment_service.book_appointment(
                booking(patient_user, provider_user, time(9, 0))
            )


class TestTransitionStatus:
    """Tests for status transitions."""

    @pytest.mark.asyncio
    async def test_completes_appointment(
        self, appointment_service, notifier, patient_user, provider_user
    ) -> None:
        appointment = await appointment_service.book_appointment(
            booking(patient_user, provider_user, time(10, 0))
        )

        updated = await appointment_service.transition_status(
            appointment.id, AppointmentStatus.COMPLETED
        )

        assert updated.status == AppointmentStatus.COMPLETED
        sent = notifier.dispatched[-1]
        assert sent["recipient"].user_id == patient_user["id"]
        assert sent["title"] == "Appointment Completed"
        assert sent["message"] == (
            "The appointment for Jane Doe on Monday, March 3, 2025 at 10:00 AM "
            "has been marked as completed."
        )
        assert sent["payload"]["old_status"] == "scheduled"
        assert sent["payload"]["new_status"] == "completed"

    @pytest.mark.asyncio
    async def test_completed_cannot_be_cancelled(
        self, appointment_service, store, patient_user, provider_user
    ) -> None:
        appointment = await appointment_service.book_appointment(
            booking(patient_user, provider_user, time(10, 0))
        )
        await appointment_service.transition_status(appointment.id, AppointmentStatus.COMPLETED)

        with pytest.raises(InvalidTransitionException):
            await appointment_service.transition_status(
                appointment.id, AppointmentStatus.CANCELLED
            )

        assert store.rows[appointment.id].status == AppointmentStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_missing_appointment(self, appointment_service) -> None:
        with pytest.raises(NotFoundException):
            await appointment_service.transition_status(uuid4(), AppointmentStatus.CANCELLED)

    @pytest.mark.asyncio
    async def test_concurrent_change_loses(
        self, appointment_service, store, notifier, patient_user, provider_user
    ) -> None:
        """The second writer sees a status other than the one it read."""
        appointment = await appointment_service.book_appointment(
            booking(patient_user, provider_user, time(10, 0))
        )
        stale = store.rows[appointment.id]
        await store.update_appointment_status(appointment.id, AppointmentStatus.NO_SHOW)

        async def stale_get(appointment_id):
            return stale

        store.get_appointment = stale_get
        dispatched = len(notifier.dispatched)

        with pytest.raises(InvalidTransitionException):
            await appointment_service.transition_status(
                appointment.id, AppointmentStatus.CANCELLED
            )

        assert store.rows[appointment.id].status == AppointmentStatus.NO_SHOW
        assert len(notifier.dispatched) == dispatched

    @pytest.mark.asyncio
    async def test_publishes_update_change(
        self, appointment_service, change_feed, patient_user, provider_user
    ) -> None:
        appointment = await appointment_service.book_appointment(
            booking(patient_user, provider_user, time(10, 0))
        )
        received: list[ChangeEvent] = []
        change_feed.subscribe("appointments", received.append)

        await appointment_service.transition_status(appointment.id, AppointmentStatus.NO_SHOW)

        assert [(e.event, e.payload["status"]) for e in received] == [("UPDATE", "no_show")]


class TestListAppointments:
    """Tests for listing and filtering."""

    @pytest.fixture
    def seeded(self, store, patient_user, other_patient, provider_user):
        return [
            store.add(
                patient_id=patient_user["id"],
                provider_id=provider_user["id"],
                appointment_date=date(2025, 3, 4),
                start_time=time(9, 0),
                end_time=time(9, 30),
                reason="Tetanus booster",
            ),
            store.add(
                patient_id=other_patient["id"],
                provider_id=provider_user["id"],
                appointment_date=date(2025, 3, 3),
                start_time=time(11, 0),
                end_time=time(11, 30),
                reason="Flu shot",
                status=AppointmentStatus.CANCELLED,
            ),
            store.add(
                patient_id=patient_user["id"],
                provider_id=uuid4(),
                appointment_date=date(2025, 3, 3),
                start_time=time(8, 30),
                end_time=time(9, 0),
                reason="Hepatitis B",
            ),
        ]

    @pytest.mark.asyncio
    async def test_orders_by_date_then_start(self, appointment_service, seeded) -> None:
        result = await appointment_service.list_appointments(AppointmentFilters())

        assert result.total == 3
        assert [(a.appointment_date, a.start_time) for a in result.items] == [
            (date(2025, 3, 3), time(8, 30)),
            (date(2025, 3, 3), time(11, 0)),
            (date(2025, 3, 4), time(9, 0)),
        ]

    @pytest.mark.asyncio
    async def test_filters(self, appointment_service, seeded) -> None:
        exact = await appointment_service.list_appointments(
            AppointmentFilters(date_exact=date(2025, 3, 4))
        )
        ranged = await appointment_service.list_appointments(
            AppointmentFilters(date_from=date(2025, 3, 1), date_to=date(2025, 3, 3))
        )
        cancelled = await appointment_service.list_appointments(
            AppointmentFilters(status=AppointmentStatus.CANCELLED)
        )

        assert [a.id for a in exact.items] == [seeded[0].id]
        assert {a.id for a in ranged.items} == {seeded[1].id, seeded[2].id}
        assert [a.id for a in cancelled.items] == [seeded[1].id]

    @pytest.mark.asyncio
    async def test_search_is_case_insensitive_over_all_fields(
        self, appointment_service, seeded
    ) -> None:
        by_reason = await appointment_service.list_appointments(AppointmentFilters(search="FLU"))
        by_status = await appointment_service.list_appointments(
            AppointmentFilters(search="cancelled")
        )

        assert [a.id for a in by_reason.items] == [seeded[1].id]
        assert [a.id for a in by_status.items] == [seeded[1].id]

    @pytest.mark.asyncio
    async def test_scope(self, appointment_service, seeded, patient_user, provider_user) -> None:
        own = await appointment_service.list_appointments(
            AppointmentFilters(), patient_id=patient_user["id"]
        )
        assigned = await appointment_service.list_appointments(
            AppointmentFilters(), provider_id=provider_user["id"]
        )

        assert {a.id for a in own.items} == {seeded[0].id, seeded[2].id}
        assert {a.id for a in assigned.items} == {seeded[0].id, seeded[1].id}

"""Appointment endpoints."""

import asyncio
from datetime import date, time
from typing import Any
from uuid import UUID

import structlog
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from app.core.exceptions import ForbiddenException
from app.core.realtime import ChangeEvent
from app.dependencies import Appointments, Changes, CurrentUser, Slots, Users, user_id_from_token
from app.schemas.appointments import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentStatusUpdate,
    AvailableSlotsResponse,
    SlotResponse,
)
from app.schemas.users import UserRole
from app.services.appointment_service import APPOINTMENTS_TABLE

logger = structlog.get_logger(__name__)

router = APIRouter()


def _ensure_can_view(user: dict[str, Any], appointment: AppointmentResponse) -> None:
    """Patients see their own appointments, providers their assigned ones."""
    role = user["role"]
    if role == UserRole.PATIENT.value and appointment.patient_id != user["id"]:
        raise ForbiddenException("Access denied to this appointment")
    if role == UserRole.PROVIDER.value and appointment.provider_id != user["id"]:
        raise ForbiddenException("Access denied to this appointment")


def _can_see_change(user: dict[str, Any], event: ChangeEvent) -> bool:
    """Apply the viewing rules to a change event's payload."""
    role = user["role"]
    if role == UserRole.ADMIN.value:
        return True
    if role == UserRole.PATIENT.value:
        return event.payload.get("patient_id") == str(user["id"])
    if role == UserRole.PROVIDER.value:
        return event.payload.get("provider_id") == str(user["id"])
    return False


def _ensure_can_transition(
    user: dict[str, Any],
    appointment: AppointmentResponse,
    new_status: AppointmentStatus,
) -> None:
    """Patients may only cancel their own appointments."""
    _ensure_can_view(user, appointment)
    if user["role"] == UserRole.PATIENT.value and new_status != AppointmentStatus.CANCELLED:
        raise ForbiddenException("Patients can only cancel appointments")


@router.post(
    "/",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Appointments"],
    summary="Book appointment",
)
async def book_appointment(
    data: AppointmentCreate,
    current_user: CurrentUser,
    service: Appointments,
) -> AppointmentResponse:
    """
    Book a new appointment.

    The requested window is re-checked against the provider's calendar
    before it is stored; a 409 means the caller should fetch slots again.

    Args:
        data: Booking request
        current_user: Authenticated user
        service: Appointment service

    Returns:
        Created appointment
    """
    if current_user["role"] == UserRole.PATIENT.value and data.patient_id not in (
        None,
        current_user["id"],
    ):
        raise ForbiddenException("Patients can only book appointments for themselves")

    return await service.book_appointment(data, created_by=current_user["id"])


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List appointments",
)
async def list_appointments(
    current_user: CurrentUser,
    service: Appointments,
    date_exact: date | None = Query(None, alias="date"),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    search: str | None = Query(None, max_length=200),
) -> AppointmentListResponse:
    """
    List appointments visible to the authenticated user.

    Patients see their own appointments, providers the ones assigned to
    them and admins all of them.

    Args:
        current_user: Authenticated user
        service: Appointment service
        date_exact: Only this date
        date_from: Earliest date, inclusive
        date_to: Latest date, inclusive
        status_filter: Filter by status
        search: Free-text search over all fields

    Returns:
        Appointments ordered by date and start time
    """
    filters = AppointmentFilters(
        date_exact=date_exact,
        date_from=date_from,
        date_to=date_to,
        status=status_filter,
        search=search,
    )

    role = current_user["role"]
    return await service.list_appointments(
        filters,
        patient_id=current_user["id"] if role == UserRole.PATIENT.value else None,
        provider_id=current_user["id"] if role == UserRole.PROVIDER.value else None,
    )


@router.get(
    "/slots",
    response_model=AvailableSlotsResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Available slots",
)
async def get_available_slots(
    current_user: CurrentUser,
    service: Slots,
    appointment_date: date = Query(..., alias="date"),
    provider_id: UUID | None = Query(None),
    work_start: time | None = Query(None),
    work_end: time | None = Query(None),
    slot_duration_minutes: int | None = Query(None),
    step_minutes: int | None = Query(None),
) -> AvailableSlotsResponse:
    """
    Get bookable windows of a provider on a date.

    Args:
        current_user: Authenticated user
        service: Slot service
        appointment_date: Calendar date
        provider_id: Provider; without one the list is empty
        work_start: Override start of working hours
        work_end: Override end of working hours
        slot_duration_minutes: Override window length
        step_minutes: Override distance between candidate starts

    Returns:
        Available slots in ascending order
    """
    slots = await service.get_available_slots(
        provider_id,
        appointment_date,
        work_start=work_start,
        work_end=work_end,
        slot_duration_minutes=slot_duration_minutes,
        step_minutes=step_minutes,
    )

    return AvailableSlotsResponse(
        provider_id=provider_id,
        appointment_date=appointment_date,
        work_start=service.work_start if work_start is None else work_start,
        work_end=service.work_end if work_end is None else work_end,
        slot_duration_minutes=(
            service.slot_duration_minutes if slot_duration_minutes is None else slot_duration_minutes
        ),
        step_minutes=service.step_minutes if step_minutes is None else step_minutes,
        slots=[
            SlotResponse(start=slot.start, end=slot.end, label=slot.label, available=slot.available)
            for slot in slots
        ],
    )


@router.websocket("/changes")
async def appointment_changes(
    websocket: WebSocket,
    changes: Changes,
    users: Users,
    token: str = Query(...),
) -> None:
    """
    Push appointment change events to a connected client.

    Events only tell the client to re-query; they carry no guarantees.
    Clients receive the changes of appointments they are allowed to view.
    """
    user_id = user_id_from_token(token)
    user = await users.get_user_by_id(user_id) if user_id is not None else None
    if user is None or not user["is_active"]:
        await websocket.close(code=1008)
        return

    await websocket.accept()
    queue: asyncio.Queue[ChangeEvent] = asyncio.Queue(maxsize=100)

    def enqueue(event: ChangeEvent) -> None:
        if not _can_see_change(user, event):
            return
        if queue.full():
            queue.get_nowait()
        queue.put_nowait(event)

    async def forward() -> None:
        while True:
            event = await queue.get()
            await websocket.send_text(event.to_json())

    unsubscribe = changes.subscribe(APPOINTMENTS_TABLE, enqueue)
    sender = asyncio.create_task(forward())
    try:
        # Inbound messages are ignored; receiving only detects the disconnect
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("change_stream_disconnected")
    finally:
        unsubscribe()
        sender.cancel()
        try:
            await sender
        except (asyncio.CancelledError, WebSocketDisconnect):
            pass
        except Exception as e:
            logger.warning("change_stream_send_failed", user_id=str(user["id"]), error=str(e))


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    current_user: CurrentUser,
    service: Appointments,
) -> AppointmentResponse:
    """
    Get a specific appointment by ID.

    Args:
        appointment_id: Appointment ID
        current_user: Authenticated user
        service: Appointment service

    Returns:
        Appointment details
    """
    appointment = await service.get_appointment(appointment_id)
    _ensure_can_view(current_user, appointment)
    return appointment


@router.patch(
    "/{appointment_id}/status",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Update appointment status",
)
async def update_appointment_status(
    appointment_id: UUID,
    data: AppointmentStatusUpdate,
    current_user: CurrentUser,
    service: Appointments,
) -> AppointmentResponse:
    """
    Complete, cancel or mark an appointment as a no-show.

    Args:
        appointment_id: Appointment ID
        data: Requested status
        current_user: Authenticated user
        service: Appointment service

    Returns:
        Updated appointment
    """
    appointment = await service.get_appointment(appointment_id)
    _ensure_can_transition(current_user, appointment, data.status)
    return await service.transition_status(appointment_id, data.status)

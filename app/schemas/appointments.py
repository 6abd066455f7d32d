"""Appointment schemas for request/response validation."""

from datetime import date, datetime, time
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class AppointmentCreate(BaseModel):
    """Schema for booking a new appointment.

    Required-ness of patient, date and start time is checked by the
    lifecycle service so that callers get its error messages.
    """

    patient_id: UUID | None = None
    provider_id: UUID | None = None
    vaccine_id: UUID | None = None
    appointment_date: date | None = None
    start_time: time | None = None
    end_time: time | None = None
    duration_minutes: int | None = None
    reason: str | None = Field(None, max_length=500)
    notes: str | None = Field(None, max_length=1000)


class AppointmentStatusUpdate(BaseModel):
    """Schema for updating appointment status."""

    status: AppointmentStatus


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    patient_id: UUID
    provider_id: UUID | None = None
    vaccine_id: UUID | None = None
    appointment_date: date
    start_time: time
    end_time: time
    status: AppointmentStatus
    reason: str | None = None
    notes: str | None = None
    created_by: UUID | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AppointmentListResponse(BaseModel):
    """Schema for appointment list response."""

    total: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    date_exact: date | None = None
    date_from: date | None = None
    date_to: date | None = None
    status: AppointmentStatus | None = None
    search: str | None = Field(None, max_length=200)


class SlotResponse(BaseModel):
    """A bookable time window."""

    start: time
    end: time
    label: str
    available: bool = True


class AvailableSlotsResponse(BaseModel):
    """Schema for the slot availability response."""

    provider_id: UUID | None
    appointment_date: date
    work_start: time
    work_end: time
    slot_duration_minutes: int
    step_minutes: int
    slots: list[SlotResponse]

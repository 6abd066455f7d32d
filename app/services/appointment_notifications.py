"""Notification requests emitted by the appointment lifecycle."""

from datetime import date, time
from typing import Any

from app.schemas.appointments import AppointmentResponse, AppointmentStatus
from app.schemas.notifications import NotificationType
from app.services.ports import NotificationDispatcher, NotificationRecipient

UNKNOWN_PATIENT = "Unknown Patient"

STATUS_TITLES = {
    AppointmentStatus.COMPLETED: "Appointment Completed",
    AppointmentStatus.CANCELLED: "Appointment Cancelled",
    AppointmentStatus.NO_SHOW: "Appointment Marked as No-Show",
}

STATUS_PHRASES = {
    AppointmentStatus.COMPLETED: "marked as completed",
    AppointmentStatus.CANCELLED: "cancelled",
    AppointmentStatus.NO_SHOW: "marked as a no-show",
}


def format_appointment_date(value: date) -> str:
    """E.g. ``Monday, March 3, 2025``."""
    return f"{value:%A}, {value:%B} {value.day}, {value.year}"


def format_appointment_time(value: time) -> str:
    """E.g. ``09:30 AM``."""
    return value.strftime("%I:%M %p")


def patient_display_name(patient: dict[str, Any] | None) -> str:
    """First and last name of a user row, or a placeholder."""
    if not patient:
        return UNKNOWN_PATIENT
    name = " ".join(part for part in (patient.get("first_name"), patient.get("last_name")) if part)
    return name or UNKNOWN_PATIENT


def appointment_payload(appointment: AppointmentResponse) -> dict[str, Any]:
    """Structured data attached to every appointment notification."""
    return {
        "appointment_id": str(appointment.id),
        "patient_id": str(appointment.patient_id),
        "appointment_date": appointment.appointment_date.isoformat(),
        "start_time": appointment.start_time.isoformat(),
        "end_time": appointment.end_time.isoformat(),
    }


async def notify_appointment_booked(
    dispatcher: NotificationDispatcher,
    appointment: AppointmentResponse,
    patient: dict[str, Any] | None,
) -> None:
    """
    Tell administrators about a new booking.

    Args:
        dispatcher: Notification dispatcher
        appointment: The booked appointment
        patient: Patient user row, if known
    """
    message = (
        f"Patient {patient_display_name(patient)} has booked an appointment for "
        f"{format_appointment_date(appointment.appointment_date)} at "
        f"{format_appointment_time(appointment.start_time)}."
    )

    await dispatcher.dispatch(
        NotificationRecipient.administrators(),
        NotificationType.APPOINTMENT,
        "New Appointment Booked",
        message,
        appointment_payload(appointment),
    )


async def notify_status_changed(
    dispatcher: NotificationDispatcher,
    appointment: AppointmentResponse,
    patient: dict[str, Any] | None,
    old_status: AppointmentStatus,
) -> None:
    """
    Tell the patient that their appointment changed status.

    Args:
        dispatcher: Notification dispatcher
        appointment: Appointment after the change
        patient: Patient user row, if known
        old_status: Status before the change
    """
    new_status = appointment.status
    message = (
        f"The appointment for {patient_display_name(patient)} on "
        f"{format_appointment_date(appointment.appointment_date)} at "
        f"{format_appointment_time(appointment.start_time)} has been "
        f"{STATUS_PHRASES.get(new_status, new_status.value)}."
    )

    payload = appointment_payload(appointment)
    payload["old_status"] = old_status.value
    payload["new_status"] = new_status.value

    await dispatcher.dispatch(
        NotificationRecipient.user(appointment.patient_id),
        NotificationType.APPOINTMENT,
        STATUS_TITLES.get(new_status, "Appointment Updated"),
        message,
        payload,
    )

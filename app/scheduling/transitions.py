"""Appointment status lifecycle."""

from app.core.exceptions import InvalidTransitionException
from app.schemas.appointments import AppointmentStatus

ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset(
        {
            AppointmentStatus.COMPLETED,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.NO_SHOW,
        }
    ),
}

TERMINAL_STATUSES: frozenset[AppointmentStatus] = frozenset(
    {
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }
)


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    """Whether an appointment in ``current`` may move to ``target``."""
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def ensure_transition(current: AppointmentStatus, target: AppointmentStatus) -> None:
    """
    Validate a status change.

    Raises:
        InvalidTransitionException: If the change is not allowed
    """
    if not can_transition(current, target):
        raise InvalidTransitionException(
            f"Cannot change appointment status from {current.value} to {target.value}"
        )

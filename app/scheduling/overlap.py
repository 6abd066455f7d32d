"""Interval arithmetic and conflict detection for appointments.

Appointments occupy half-open intervals ``[start_time, end_time)`` on a single
calendar day, so back-to-back bookings (09:00-09:30 and 09:30-10:00) never
conflict.
"""

from collections.abc import Iterable
from datetime import time
from typing import Protocol, TypeVar

from app.schemas.appointments import AppointmentStatus

# Statuses that still occupy their slot
BLOCKING_STATUSES: frozenset[AppointmentStatus] = frozenset(
    {AppointmentStatus.SCHEDULED, AppointmentStatus.COMPLETED}
)

SECONDS_PER_DAY = 24 * 60 * 60


class TimeInterval(Protocol):
    """Anything with a start and end time of day."""

    start_time: time
    end_time: time


IntervalT = TypeVar("IntervalT", bound=TimeInterval)


def to_seconds(value: time) -> int:
    """Seconds since midnight."""
    return value.hour * 3600 + value.minute * 60 + value.second


def from_seconds(seconds: int) -> time:
    """Time of day for a number of seconds since midnight."""
    if not 0 <= seconds < SECONDS_PER_DAY:
        raise ValueError(f"{seconds} seconds is outside a single day")
    return time(seconds // 3600, (seconds % 3600) // 60, seconds % 60)


def intervals_overlap(a_start, a_end, b_start, b_end) -> bool:
    """Whether ``[a_start, a_end)`` and ``[b_start, b_end)`` intersect."""
    return a_start < b_end and b_start < a_end


def find_conflicts(start: time, end: time, bookings: Iterable[IntervalT]) -> list[IntervalT]:
    """
    Return the bookings that overlap ``[start, end)``.

    Callers are expected to pass bookings already narrowed to one provider,
    one date and the blocking statuses.

    Args:
        start: Requested start time
        end: Requested end time
        bookings: Existing bookings

    Returns:
        Overlapping bookings, in input order
    """
    return [
        booking
        for booking in bookings
        if intervals_overlap(start, end, booking.start_time, booking.end_time)
    ]

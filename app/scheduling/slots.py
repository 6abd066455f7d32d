"""Slot generation for a provider's working day."""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import time

from app.scheduling.overlap import TimeInterval, from_seconds, intervals_overlap, to_seconds


@dataclass(frozen=True)
class Slot:
    """A candidate appointment window. Derived on every query, never stored."""

    start: time
    end: time
    available: bool = True

    @property
    def label(self) -> str:
        """Human readable range, e.g. ``09:00 - 09:30``."""
        return f"{self.start:%H:%M} - {self.end:%H:%M}"


def candidate_slots(
    bookings: Iterable[TimeInterval],
    work_start: time,
    work_end: time,
    slot_duration_minutes: int,
    step_minutes: int,
) -> list[Slot]:
    """
    Build every candidate window of the working day with its availability.

    Candidate starts advance from ``work_start`` by ``step_minutes`` until a
    window of ``slot_duration_minutes`` would run past ``work_end``. When the
    duration is not a multiple of the step the candidates overlap each other.

    Args:
        bookings: Existing blocking appointments of the provider on that day
        work_start: Start of working hours
        work_end: End of working hours
        slot_duration_minutes: Length of each window
        step_minutes: Distance between consecutive candidate starts

    Returns:
        Candidates in ascending start order

    Raises:
        ValueError: If duration or step is not positive
    """
    if slot_duration_minutes <= 0 or step_minutes <= 0:
        raise ValueError("slot duration and step must be positive")

    busy = [(to_seconds(b.start_time), to_seconds(b.end_time)) for b in bookings]
    duration = slot_duration_minutes * 60
    step = step_minutes * 60
    day_end = to_seconds(work_end)

    slots: list[Slot] = []
    cursor = to_seconds(work_start)
    while cursor + duration <= day_end:
        slot_end = cursor + duration
        available = not any(
            intervals_overlap(cursor, slot_end, busy_start, busy_end)
            for busy_start, busy_end in busy
        )
        slots.append(Slot(from_seconds(cursor), from_seconds(slot_end), available))
        cursor += step

    return slots


def generate_slots(
    bookings: Iterable[TimeInterval],
    work_start: time,
    work_end: time,
    slot_duration_minutes: int,
    step_minutes: int,
) -> list[Slot]:
    """Return only the available windows, ascending. See ``candidate_slots``."""
    return [
        slot
        for slot in candidate_slots(
            bookings, work_start, work_end, slot_duration_minutes, step_minutes
        )
        if slot.available
    ]

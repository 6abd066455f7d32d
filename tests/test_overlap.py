"""Tests for interval arithmetic and conflict detection."""

from dataclasses import dataclass
from datetime import time

import pytest

from app.scheduling.overlap import (
    find_conflicts,
    from_seconds,
    intervals_overlap,
    to_seconds,
)


@dataclass
class Booking:
    start_time: time
    end_time: time


@pytest.mark.parametrize(
    "a,b,expected",
    [
        ((time(9, 0), time(9, 30)), (time(9, 15), time(9, 45)), True),
        ((time(9, 0), time(10, 0)), (time(9, 15), time(9, 30)), True),
        ((time(9, 0), time(9, 30)), (time(9, 30), time(10, 0)), False),
        ((time(9, 30), time(10, 0)), (time(9, 0), time(9, 30)), False),
        ((time(9, 0), time(9, 30)), (time(11, 0), time(11, 30)), False),
    ],
)
def test_intervals_overlap(a: tuple, b: tuple, expected: bool) -> None:
    assert intervals_overlap(*a, *b) is expected
    assert intervals_overlap(*b, *a) is expected


def test_find_conflicts_returns_overlapping_bookings_in_order() -> None:
    first = Booking(time(10, 0), time(10, 30))
    second = Booking(time(10, 30), time(11, 0))
    unrelated = Booking(time(13, 0), time(13, 30))

    conflicts = find_conflicts(time(10, 15), time(10, 45), [first, unrelated, second])

    assert conflicts == [first, second]


def test_find_conflicts_adjacent_is_clear() -> None:
    assert find_conflicts(time(10, 30), time(11, 0), [Booking(time(10, 0), time(10, 30))]) == []


def test_seconds_conversion() -> None:
    assert to_seconds(time(9, 30, 15)) == 34215
    assert from_seconds(34215) == time(9, 30, 15)


def test_from_seconds_rejects_values_outside_a_day() -> None:
    with pytest.raises(ValueError):
        from_seconds(24 * 60 * 60)
    with pytest.raises(ValueError):
        from_seconds(-1)

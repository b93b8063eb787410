"""Shift window calculation tests."""

from datetime import date, datetime, timedelta

import pytest

from mealshift.models.shift import Shift
from mealshift.services.shift_window import compute_shift_window, is_overnight, shift_end, shift_start


def _shift(start: str, end: str, break_start: str | None = None, break_end: str | None = None) -> Shift:
    return Shift(name="Test", start_time=start, end_time=end, break_start_time=break_start, break_end_time=break_end)


@pytest.mark.parametrize(
    ("start", "end", "expected"),
    [
        ("08:00", "16:00", False),
        ("22:00", "06:00", True),
        ("23:00", "07:00", True),
        ("08:00", "08:00", True),
        ("08:30", "08:15", True),
        ("08:15", "08:30", False),
        ("00:00", "23:59", False),
    ],
)
def test_is_overnight_matches_clock_comparison(start: str, end: str, expected: bool) -> None:
    assert is_overnight(start, end) is expected


def test_overnight_shift_ends_next_day() -> None:
    shift = _shift("22:00", "06:00")
    day = date(2025, 1, 10)

    assert shift_start(day, shift) == datetime(2025, 1, 10, 22, 0)
    assert shift_end(day, shift) == datetime(2025, 1, 11, 6, 0)


def test_overnight_shift_never_has_negative_duration() -> None:
    day = date(2025, 3, 1)
    for start_hour in range(24):
        for end_hour in range(start_hour + 1):
            shift = _shift(f"{start_hour:02d}:00", f"{end_hour:02d}:00")
            assert shift_end(day, shift) > shift_start(day, shift)


def test_overnight_break_after_midnight_moves_to_next_day() -> None:
    shift = _shift("22:00", "06:00", "00:30", "01:30")

    window = compute_shift_window(date(2025, 1, 10), shift)

    assert window.break_start == datetime(2025, 1, 11, 0, 30)
    assert window.break_end == datetime(2025, 1, 11, 1, 30)
    assert window.pickup_interval() == (datetime(2025, 1, 11, 0, 30), datetime(2025, 1, 11, 1, 30))


def test_break_crossing_midnight_ends_next_day() -> None:
    shift = _shift("20:00", "04:00", "23:30", "00:15")

    window = compute_shift_window(date(2025, 1, 10), shift)

    assert window.break_start == datetime(2025, 1, 10, 23, 30)
    assert window.break_end == datetime(2025, 1, 11, 0, 15)


def test_pickup_interval_without_break_has_early_grace_only() -> None:
    window = compute_shift_window(date(2025, 1, 10), _shift("08:00", "16:00"))

    assert not window.has_break
    assert window.pickup_interval() == (datetime(2025, 1, 10, 7, 30), datetime(2025, 1, 10, 16, 0))
    assert window.end - window.start == timedelta(hours=8)

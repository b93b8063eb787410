"""Absolute shift, break and pickup windows for a calendar date."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Protocol

from mealshift.services.settings_service import parse_hhmm_time

EARLY_CHECKIN_GRACE: timedelta = timedelta(minutes=30)


class ShiftTimes(Protocol):
    start_time: str
    end_time: str
    break_start_time: str | None
    break_end_time: str | None


@dataclass(frozen=True)
class ShiftWindow:
    start: datetime
    end: datetime
    break_start: datetime | None = None
    break_end: datetime | None = None

    @property
    def has_break(self) -> bool:
        return self.break_start is not None and self.break_end is not None

    def pickup_interval(self) -> tuple[datetime, datetime]:
        """Allowed check-in interval: the break, or the shift with early grace."""
        if self.has_break:
            return self.break_start, self.break_end
        return self.start - EARLY_CHECKIN_GRACE, self.end


def is_overnight(start_time: str, end_time: str) -> bool:
    """Return True when the shift ends on the next calendar day."""
    start: time = parse_hhmm_time(start_time)
    end: time = parse_hhmm_time(end_time)
    return end.hour < start.hour or (end.hour == start.hour and end.minute <= start.minute)


def _at(day: date, hhmm: str) -> datetime:
    return datetime.combine(day, parse_hhmm_time(hhmm))


def shift_start(day: date, shift: ShiftTimes) -> datetime:
    return _at(day, shift.start_time)


def shift_end(day: date, shift: ShiftTimes) -> datetime:
    end = _at(day, shift.end_time)
    if is_overnight(shift.start_time, shift.end_time):
        end += timedelta(days=1)
    return end


def compute_shift_window(day: date, shift: ShiftTimes) -> ShiftWindow:
    """Resolve the shift on ``day`` into absolute instants.

    Break times are placed relative to the shift: a break starting before the
    shift start belongs to the next day, and a break end at or before the
    break start is moved past midnight.
    """
    start = shift_start(day, shift)
    end = shift_end(day, shift)
    if not shift.break_start_time or not shift.break_end_time:
        return ShiftWindow(start=start, end=end)

    break_start = _at(day, shift.break_start_time)
    break_end = _at(day, shift.break_end_time)
    if break_start < start:
        break_start += timedelta(days=1)
    if break_end <= break_start:
        break_end += timedelta(days=1)
    return ShiftWindow(start=start, end=end, break_start=break_start, break_end=break_end)

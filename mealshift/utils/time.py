"""Local calendar-day helpers.

Every place that means "a local day" goes through these functions so a date
string is never pushed through a UTC-based constructor.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta

_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


def parse_local_date(value: str) -> date:
    """Build a date from the literal ``YYYY-MM-DD`` components.

    Raises:
        ValueError: when the string is not an ISO calendar date.
    """
    match = _ISO_DATE_RE.match(str(value).strip())
    if match is None:
        raise ValueError(f"Invalid date: {value!r}")
    year, month, day = (int(part) for part in match.groups())
    return date(year, month, day)


def local_midnight(day: date) -> datetime:
    """Return the local-midnight instant that starts ``day``."""
    return datetime.combine(day, time(0, 0))


def date_key(value: date | datetime) -> str:
    """Return the ISO key used for in-memory per-day lookups."""
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def week_start(day: date) -> date:
    """Return Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def sunday_based_weekday(day: date) -> int:
    """Weekday number with 0=Sunday ... 6=Saturday (settings convention)."""
    return (day.weekday() + 1) % 7


def format_clock(instant: datetime) -> str:
    """Render an instant as a ``HH:MM`` clock time for messages."""
    return instant.strftime("%H:%M")


def format_instant(instant: datetime) -> str:
    """Render an instant as ``YYYY-MM-DD HH:MM`` for messages."""
    return instant.strftime("%Y-%m-%d %H:%M")

"""Clock source: the only place the application reads the wall clock."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from mealshift.core.config import settings
from mealshift.utils.time import local_midnight

logger = logging.getLogger(__name__)


class Clock:
    """Authoritative current instant in a fixed local time zone.

    Instants are naive wall-clock datetimes in ``tz_name``. ``offset_seconds``
    is the correction reported by the last NTP synchronisation.
    """

    def __init__(self, tz_name: str = "UTC", offset_seconds: float = 0.0) -> None:
        self.tz = ZoneInfo(tz_name)
        self.offset = timedelta(seconds=offset_seconds)
        self.last_sync: datetime | None = None

    def set_offset(self, offset_seconds: float) -> None:
        """Record the offset measured by an external NTP query."""
        self.offset = timedelta(seconds=offset_seconds)
        self.last_sync = datetime.now(timezone.utc)
        logger.info("[CLOCK] NTP offset set to %.3fs", offset_seconds)

    def now(self) -> datetime:
        corrected = datetime.now(timezone.utc) + self.offset
        return corrected.astimezone(self.tz).replace(tzinfo=None)

    def today(self) -> datetime:
        return local_midnight(self.now().date())

    def today_date(self) -> date:
        return self.now().date()


class FrozenClock(Clock):
    """Clock pinned to a fixed instant; used by tests and replays."""

    def __init__(self, instant: datetime, tz_name: str = "UTC") -> None:
        super().__init__(tz_name=tz_name)
        self.instant = instant

    def now(self) -> datetime:
        return self.instant

    def advance(self, delta: timedelta) -> None:
        self.instant = self.instant + delta


clock: Clock = Clock(tz_name=settings.timezone, offset_seconds=settings.ntp_offset_seconds)


def get_clock() -> Clock:
    """FastAPI dependency returning the process clock."""
    return clock

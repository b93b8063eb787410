"""Cutoff policy: when an order for a (date, shift) may be placed or cancelled."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from mealshift.services.errors import OrderErrorKind
from mealshift.services.settings_service import CutoffSettings
from mealshift.services.shift_window import ShiftTimes, shift_start
from mealshift.utils.time import format_clock, format_instant, sunday_based_weekday, week_start

WEEKDAY_NAMES: tuple[str, ...] = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


@dataclass(frozen=True)
class CutoffDecision:
    allowed: bool
    cutoff: datetime | None = None
    kind: OrderErrorKind | None = None
    reason: str = ""


ALLOWED: CutoffDecision = CutoffDecision(allowed=True)


class CutoffPolicy:
    """Mode-dependent ordering rules built from an explicit settings snapshot.

    All methods are pure: the caller passes ``now`` from the clock source.
    An order is allowed only while ``now < cutoff``.
    """

    def __init__(self, settings: CutoffSettings) -> None:
        self.settings = settings

    # -- cutoff instants -------------------------------------------------

    def _week_boundary(self, monday: date) -> datetime:
        day = self.settings.weekly_cutoff_day
        offset = 6 if day == 0 else day - 1
        return datetime.combine(
            monday + timedelta(days=offset),
            time(self.settings.weekly_cutoff_hour, self.settings.weekly_cutoff_minute),
        )

    def weekly_cutoff(self, order_date: date) -> datetime:
        """Boundary inside the week before the one containing ``order_date``."""
        return self._week_boundary(week_start(order_date) - timedelta(days=7))

    def cutoff_instant(self, order_date: date, shift: ShiftTimes) -> datetime:
        if self.settings.is_weekly:
            return self.weekly_cutoff(order_date)
        lead = timedelta(days=self.settings.cutoff_days, hours=self.settings.cutoff_hours)
        return shift_start(order_date, shift) - lead

    def cancel_cutoff_instant(self, order_date: date, shift: ShiftTimes) -> datetime:
        return self.cutoff_instant(order_date, shift) - timedelta(hours=self.settings.cancel_cutoff_extra_hours)

    # -- decisions -------------------------------------------------------

    def check_window(self, order_date: date, now: datetime) -> CutoffDecision:
        """Date-only bound: max days ahead, or orderable weekday/week."""
        today = now.date()
        if order_date < today:
            return CutoffDecision(False, None, OrderErrorKind.PAST_DATE, "Cannot order for a date in the past")
        if not self.settings.is_weekly:
            max_date = today + timedelta(days=self.settings.max_order_days_ahead)
            if order_date > max_date:
                return CutoffDecision(
                    False,
                    None,
                    OrderErrorKind.WINDOW_EXCEEDED,
                    f"Orders can be placed at most {self.settings.max_order_days_ahead} days ahead",
                )
            return ALLOWED

        weekday = sunday_based_weekday(order_date)
        if weekday not in self.settings.orderable_days:
            return CutoffDecision(
                False, None, OrderErrorKind.WINDOW_EXCEEDED, f"{WEEKDAY_NAMES[weekday]} is not an orderable day"
            )
        weeks_ahead = (week_start(order_date) - week_start(today)).days // 7
        if now >= self._week_boundary(week_start(today)):
            weeks_ahead -= 1
        if weeks_ahead > self.settings.max_weeks_ahead:
            return CutoffDecision(
                False,
                None,
                OrderErrorKind.WINDOW_EXCEEDED,
                f"Orders can be placed at most {self.settings.max_weeks_ahead} week(s) ahead",
            )
        return ALLOWED

    def check_cutoff(self, order_date: date, shift: ShiftTimes, now: datetime, *, shift_name: str = "") -> CutoffDecision:
        cutoff = self.cutoff_instant(order_date, shift)
        if now >= cutoff:
            if self.settings.is_weekly:
                return CutoffDecision(
                    False,
                    cutoff,
                    OrderErrorKind.CUTOFF_PASSED,
                    f"Ordering for the week of {week_start(order_date).isoformat()} closed at {format_instant(cutoff)}",
                )
            label = f" for {shift_name}" if shift_name else ""
            return CutoffDecision(
                False,
                cutoff,
                OrderErrorKind.CUTOFF_PASSED,
                f"Orders{label} on {order_date.isoformat()} must be placed before {format_instant(cutoff)}",
            )
        return CutoffDecision(True, cutoff)

    def check_cancel(self, order_date: date, shift: ShiftTimes, now: datetime, *, shift_name: str = "") -> CutoffDecision:
        cutoff = self.cancel_cutoff_instant(order_date, shift)
        if now >= cutoff:
            label = f" for {shift_name}" if shift_name else ""
            return CutoffDecision(
                False,
                cutoff,
                OrderErrorKind.CANCEL_CUTOFF_PASSED,
                f"Cancellation cutoff{label} passed at {format_clock(cutoff)} on {cutoff.date().isoformat()}",
            )
        return CutoffDecision(True, cutoff)

    def evaluate(self, order_date: date, shift: ShiftTimes, now: datetime) -> CutoffDecision:
        window = self.check_window(order_date, now)
        if not window.allowed:
            return window
        return self.check_cutoff(order_date, shift, now)

    def can_order(self, order_date: date, shift: ShiftTimes, now: datetime) -> bool:
        return self.evaluate(order_date, shift, now).allowed

    def reason(self, order_date: date, shift: ShiftTimes, now: datetime) -> str:
        """Human-readable refusal, empty when ordering is allowed."""
        return self.evaluate(order_date, shift, now).reason

    # -- listing ---------------------------------------------------------

    def orderable_dates(self, now: datetime) -> list[date]:
        """Dates a client may offer; shift cutoffs still apply per candidate."""
        today = now.date()
        if not self.settings.is_weekly:
            return [today + timedelta(days=offset) for offset in range(self.settings.max_order_days_ahead + 1)]

        first_week = week_start(today) + timedelta(days=7)
        if now >= self._week_boundary(week_start(today)):
            first_week += timedelta(days=7)
        dates: list[date] = []
        for week in range(self.settings.max_weeks_ahead):
            monday = first_week + timedelta(days=7 * week)
            for offset in range(7):
                candidate = monday + timedelta(days=offset)
                if sunday_based_weekday(candidate) in self.settings.orderable_days:
                    dates.append(candidate)
        return dates

"""Bulk ordering: many (date, shift) candidates validated against pre-fetched lookups."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, datetime
from typing import Any, NamedTuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from mealshift.core.config import settings
from mealshift.models import Holiday, Order, Shift
from mealshift.services.audit_service import ActorRef
from mealshift.services.capacity_service import CapacitySnapshot, load_capacity_snapshot
from mealshift.services.cutoff_policy import CutoffPolicy
from mealshift.services.errors import OrderError, OrderErrorKind
from mealshift.services.events import ORDER_BULK_CREATED, EventBroadcaster, broadcaster
from mealshift.services.order_service import (
    ShiftSnapshot,
    check_shift,
    duplicate_error,
    get_orderable_user,
    holiday_error,
    insert_order,
    order_payload,
    raise_if_refused,
)
from mealshift.services.settings_service import CutoffSettings, load_cutoff_settings
from mealshift.utils.time import date_key, parse_local_date

logger = logging.getLogger(__name__)


class BulkCandidate(NamedTuple):
    date: str
    shift_id: int


class HolidayEntry(NamedTuple):
    shift_id: int | None
    name: str


class BatchLookups:
    """Everything Phase 2 needs, loaded with a fixed number of queries.

    Rows are held as plain values; the commit after each success expires
    attached ORM instances, and these must stay readable without a query.
    """

    def __init__(
        self,
        ordered_keys: set[str],
        holidays: dict[str, list[HolidayEntry]],
        shifts: dict[int, ShiftSnapshot],
        capacity: CapacitySnapshot | None = None,
        capacity_error: OrderError | None = None,
    ) -> None:
        self.ordered_keys = ordered_keys
        self.holidays = holidays
        self.shifts = shifts
        self.capacity = capacity
        self.capacity_error = capacity_error

    def holiday_for(self, key: str, shift_id: int) -> HolidayEntry | None:
        matches = [h for h in self.holidays.get(key, []) if h.shift_id is None or h.shift_id == shift_id]
        matches.sort(key=lambda h: h.shift_id is not None)
        return matches[0] if matches else None


def load_batch_lookups(
    db: Session,
    *,
    user_id: int,
    dates: list[date],
    shift_ids: set[int],
    canteen_id: int | None,
) -> BatchLookups:
    if not dates:
        return BatchLookups(set(), {}, {})
    start, end = min(dates), max(dates)

    ordered_keys = {
        date_key(order_date)
        for order_date in db.scalars(
            select(Order.order_date).where(
                Order.user_id == user_id,
                Order.order_date >= start,
                Order.order_date <= end,
                Order.status != "CANCELLED",
            )
        )
    }
    holidays: dict[str, list[HolidayEntry]] = defaultdict(list)
    for holiday in db.scalars(
        select(Holiday).where(Holiday.date >= start, Holiday.date <= end, Holiday.is_active.is_(True))
    ):
        holidays[date_key(holiday.date)].append(HolidayEntry(holiday.shift_id, holiday.name))
    shifts = {
        shift.id: ShiftSnapshot.from_model(shift)
        for shift in db.scalars(select(Shift).where(Shift.id.in_(shift_ids)))
    }

    lookups = BatchLookups(ordered_keys, dict(holidays), shifts)
    if canteen_id is not None:
        try:
            lookups.capacity = load_capacity_snapshot(db, canteen_id, start, end)
        except OrderError as exc:
            lookups.capacity_error = exc
    return lookups


def _validate_candidate(
    candidate: BulkCandidate,
    target: date,
    *,
    policy: CutoffPolicy,
    lookups: BatchLookups,
    now: datetime,
) -> ShiftSnapshot:
    """Steps past-date through capacity against the pre-fetched lookups."""
    if target < now.date():
        raise OrderError(OrderErrorKind.PAST_DATE, "Cannot order for a date in the past")
    raise_if_refused(policy.check_window(target, now))
    key = date_key(target)
    if key in lookups.ordered_keys:
        raise duplicate_error(target)
    holiday = lookups.holiday_for(key, candidate.shift_id)
    if holiday is not None:
        raise holiday_error(target, holiday.name)
    shift = check_shift(lookups.shifts.get(candidate.shift_id), candidate.shift_id)
    raise_if_refused(policy.check_cutoff(target, shift, now, shift_name=shift.name))
    if lookups.capacity_error is not None:
        raise lookups.capacity_error
    if lookups.capacity is not None:
        lookups.capacity.ensure_available(shift.id, target)
    return shift


def create_bulk_orders(
    db: Session,
    *,
    user_id: int,
    candidates: list[BulkCandidate],
    now: datetime,
    canteen_id: int | None = None,
    cutoff_settings: CutoffSettings | None = None,
    events: EventBroadcaster = broadcaster,
) -> dict[str, Any]:
    """Place several orders at once; each candidate succeeds or fails on its own.

    The whole request is rejected up front when the list is empty, exceeds
    the candidate cap, or the user cannot order. Otherwise each success is
    committed independently and failures are reported with their kind.
    """
    max_candidates = settings.bulk_order_max_candidates
    if not candidates:
        raise OrderError(OrderErrorKind.INVALID_REQUEST, "No dates were submitted")
    if len(candidates) > max_candidates:
        raise OrderError(
            OrderErrorKind.INVALID_REQUEST,
            f"At most {max_candidates} dates can be ordered at once",
            max_candidates=max_candidates,
        )
    actor = ActorRef.of(get_orderable_user(db, user_id, now))
    policy = CutoffPolicy(cutoff_settings or load_cutoff_settings(db))

    parsed: dict[int, date] = {}
    for index, candidate in enumerate(candidates):
        try:
            parsed[index] = parse_local_date(candidate.date)
        except ValueError:
            continue
    lookups = load_batch_lookups(
        db,
        user_id=actor.id,
        dates=list(parsed.values()),
        shift_ids={candidate.shift_id for candidate in candidates},
        canteen_id=canteen_id,
    )

    success: list[dict[str, Any]] = []
    failed: list[dict[str, Any]] = []
    for index, candidate in enumerate(candidates):
        target = parsed.get(index)
        try:
            if target is None:
                raise OrderError(OrderErrorKind.INVALID_DATE, f"Invalid date: {candidate.date!r}, expected YYYY-MM-DD")
            shift = _validate_candidate(candidate, target, policy=policy, lookups=lookups, now=now)
            order = insert_order(db, actor=actor, shift=shift, order_date=target, canteen_id=canteen_id, now=now)
        except OrderError as exc:
            failed.append(
                {"date": candidate.date, "shiftId": candidate.shift_id, "kind": exc.kind.value, "reason": exc.message}
            )
            continue
        lookups.ordered_keys.add(date_key(target))
        if lookups.capacity is not None:
            lookups.capacity.reserve(shift.id, target)
        success.append({"date": date_key(target), "shiftId": shift.id, "order": order_payload(order)})

    logger.info(
        "[BULK] User %s bulk order: %s created, %s failed", actor.external_id, len(success), len(failed)
    )
    if success:
        events.publish(ORDER_BULK_CREATED, {"count": len(success), "userId": actor.id}, timestamp=now)
    return {
        "success": success,
        "failed": failed,
        "summary": {"total": len(candidates), "successCount": len(success), "failedCount": len(failed)},
    }

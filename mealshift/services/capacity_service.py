"""Canteen capacity checks."""

from __future__ import annotations

from datetime import date
from typing import Protocol

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from mealshift.models import Canteen, CanteenShift, Order
from mealshift.services.errors import OrderError, OrderErrorKind


class CapacityChecker(Protocol):
    def ensure_available(self, db: Session, *, canteen_id: int, shift_id: int, order_date: date) -> None: ...


def resolve_capacity(db: Session, canteen_id: int, shift_id: int) -> int | None:
    """Capacity for a canteen and shift; None means unlimited.

    Raises ``CanteenUnavailable`` when the canteen is missing or inactive.
    """
    canteen = db.get(Canteen, canteen_id)
    if canteen is None or not canteen.is_active:
        raise OrderError(OrderErrorKind.CANTEEN_UNAVAILABLE, f"Canteen {canteen_id} is not available")
    override = db.scalar(
        select(CanteenShift).where(
            CanteenShift.canteen_id == canteen_id,
            CanteenShift.shift_id == shift_id,
            CanteenShift.is_active.is_(True),
        )
    )
    if override is not None and override.capacity is not None:
        return override.capacity
    return canteen.capacity


def capacity_message(canteen_id: int, order_date: date, capacity: int) -> str:
    return f"Canteen {canteen_id} is full on {order_date.isoformat()} (capacity {capacity})"


class CanteenCapacityChecker:
    """Counts non-cancelled orders for (canteen, shift, date) against capacity."""

    def ensure_available(self, db: Session, *, canteen_id: int, shift_id: int, order_date: date) -> None:
        capacity = resolve_capacity(db, canteen_id, shift_id)
        if capacity is None:
            return
        taken = db.scalar(
            select(func.count(Order.id)).where(
                Order.canteen_id == canteen_id,
                Order.shift_id == shift_id,
                Order.order_date == order_date,
                Order.status != "CANCELLED",
            )
        )
        if (taken or 0) >= capacity:
            raise OrderError(
                OrderErrorKind.CAPACITY_EXCEEDED,
                capacity_message(canteen_id, order_date, capacity),
                capacity=capacity,
            )


capacity_checker: CanteenCapacityChecker = CanteenCapacityChecker()


class CapacitySnapshot:
    """Capacity and usage for one canteen over a date range, loaded up front.

    ``reserve`` records orders placed while the snapshot is in use so later
    candidates in the same batch see them.
    """

    def __init__(
        self,
        canteen_id: int,
        default_capacity: int | None,
        overrides: dict[int, int | None],
        usage: dict[tuple[int, str], int],
    ) -> None:
        self.canteen_id = canteen_id
        self.default_capacity = default_capacity
        self.overrides = overrides
        self.usage = usage

    def capacity_for(self, shift_id: int) -> int | None:
        override = self.overrides.get(shift_id)
        return override if override is not None else self.default_capacity

    def ensure_available(self, shift_id: int, order_date: date) -> None:
        capacity = self.capacity_for(shift_id)
        if capacity is None:
            return
        if self.usage.get((shift_id, order_date.isoformat()), 0) >= capacity:
            raise OrderError(
                OrderErrorKind.CAPACITY_EXCEEDED,
                capacity_message(self.canteen_id, order_date, capacity),
                capacity=capacity,
            )

    def reserve(self, shift_id: int, order_date: date) -> None:
        key = (shift_id, order_date.isoformat())
        self.usage[key] = self.usage.get(key, 0) + 1


def load_capacity_snapshot(db: Session, canteen_id: int, start: date, end: date) -> CapacitySnapshot:
    canteen = db.get(Canteen, canteen_id)
    if canteen is None or not canteen.is_active:
        raise OrderError(OrderErrorKind.CANTEEN_UNAVAILABLE, f"Canteen {canteen_id} is not available")
    overrides = {
        row.shift_id: row.capacity
        for row in db.scalars(
            select(CanteenShift).where(CanteenShift.canteen_id == canteen_id, CanteenShift.is_active.is_(True))
        )
    }
    rows = db.execute(
        select(Order.shift_id, Order.order_date, func.count(Order.id))
        .where(
            Order.canteen_id == canteen_id,
            Order.order_date >= start,
            Order.order_date <= end,
            Order.status != "CANCELLED",
        )
        .group_by(Order.shift_id, Order.order_date)
    ).all()
    usage = {(shift_id, order_date.isoformat()): count for shift_id, order_date, count in rows}
    return CapacitySnapshot(canteen.id, canteen.capacity, overrides, usage)

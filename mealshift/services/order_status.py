"""Order status transition helpers."""

from __future__ import annotations

from typing import Any

from sqlalchemy import update
from sqlalchemy.orm import Session

from mealshift.models.order import Order

ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    "ORDERED": {"PICKED_UP", "NO_SHOW", "CANCELLED"},
    "PICKED_UP": set(),
    "NO_SHOW": set(),
    "CANCELLED": set(),
}


def can_transition(current: str, new: str) -> bool:
    """Return whether order can move from current to new status."""
    return new in ALLOWED_TRANSITIONS.get(current, set())


def transition_status(db: Session, order_id: int, *, expected: str, new: str, **values: Any) -> bool:
    """Conditionally move an order out of ``expected`` status.

    The UPDATE only matches while the row still has ``expected`` status, so
    of two racing writers exactly one sees a row count of 1. The caller owns
    the transaction.
    """
    if not can_transition(expected, new):
        raise ValueError(f"Illegal order transition {expected} -> {new}")
    result = db.execute(
        update(Order)
        .where(Order.id == order_id, Order.status == expected)
        .values(status=new, **values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1

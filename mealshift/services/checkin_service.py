"""Kitchen check-in by QR token or employee number."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from mealshift.models import Order, User
from mealshift.services.audit_service import log_action, order_snapshot
from mealshift.services.errors import OrderError, OrderErrorKind
from mealshift.services.events import ORDER_CHECKIN, EventBroadcaster, broadcaster
from mealshift.services.order_service import order_payload
from mealshift.services.order_status import transition_status
from mealshift.services.settings_service import CutoffSettings, load_cutoff_settings
from mealshift.services.shift_window import ShiftTimes, compute_shift_window, is_overnight
from mealshift.utils.time import format_instant

logger = logging.getLogger(__name__)


def validate_checkin_window(order_date: date, shift: ShiftTimes, now: datetime) -> None:
    """Raise when ``now`` falls outside the pickup interval of the shift.

    With a break configured the interval is the break itself; otherwise it
    opens 30 minutes before the shift start and closes at the shift end.
    Both bounds are inclusive.
    """
    opens, closes = compute_shift_window(order_date, shift).pickup_interval()
    if now < opens:
        raise OrderError(
            OrderErrorKind.CHECKIN_TOO_EARLY,
            f"Check-in opens at {format_instant(opens)}",
            opens_at=opens,
        )
    if now > closes:
        raise OrderError(
            OrderErrorKind.CHECKIN_TOO_LATE,
            f"Check-in closed at {format_instant(closes)}",
            closed_at=closes,
        )


def _ensure_checkable(order: Order) -> None:
    if order.status == "PICKED_UP":
        raise OrderError(
            OrderErrorKind.ALREADY_CHECKED_IN,
            "Order was already checked in",
            check_in_at=order.check_in_at,
        )
    if order.status == "CANCELLED":
        raise OrderError(OrderErrorKind.ALREADY_CANCELLED, "Order was cancelled")
    if order.status == "NO_SHOW":
        closes = compute_shift_window(order.order_date, order.shift).pickup_interval()[1]
        raise OrderError(
            OrderErrorKind.CHECKIN_TOO_LATE,
            "Order was already marked as no-show",
            closed_at=closes,
        )


def _check_in(
    db: Session,
    order: Order,
    *,
    actor: User,
    now: datetime,
    operator_canteen_id: int | None,
    cutoff_settings: CutoffSettings | None,
    events: EventBroadcaster,
) -> Order:
    _ensure_checkable(order)
    settings = cutoff_settings or load_cutoff_settings(db)
    if (
        settings.enforce_canteen_checkin
        and operator_canteen_id is not None
        and order.canteen_id is not None
        and order.canteen_id != operator_canteen_id
    ):
        raise OrderError(
            OrderErrorKind.WRONG_CANTEEN,
            f"Order belongs to canteen {order.canteen_id}",
            canteen_id=order.canteen_id,
        )
    validate_checkin_window(order.order_date, order.shift, now)

    before = order_snapshot(order)
    checked_in = transition_status(
        db,
        order.id,
        expected="ORDERED",
        new="PICKED_UP",
        check_in_at=now,
        checked_in_by_id=actor.id,
        checked_in_by=actor.name,
    )
    if not checked_in:
        db.rollback()
        db.refresh(order)
        _ensure_checkable(order)
        raise OrderError(OrderErrorKind.ALREADY_CHECKED_IN, "Order was already checked in")

    log_action(
        db,
        actor=actor,
        action_type="ORDER_CHECKIN",
        order_id=order.id,
        before_snapshot=before,
        after_snapshot={**before, "status": "PICKED_UP"},
    )
    db.commit()
    db.refresh(order)
    logger.info("[CHECKIN] Order %s picked up (operator=%s)", order.id, actor.external_id)
    events.publish(ORDER_CHECKIN, {"order": order_payload(order)}, timestamp=now)
    return order


def check_in(
    db: Session,
    *,
    qr_token: str,
    actor: User,
    now: datetime,
    operator_canteen_id: int | None = None,
    cutoff_settings: CutoffSettings | None = None,
    events: EventBroadcaster = broadcaster,
) -> Order:
    order = db.scalar(select(Order).where(Order.qr_token == qr_token.strip()))
    if order is None:
        raise OrderError(OrderErrorKind.ORDER_NOT_FOUND, "No order matches this QR code")
    return _check_in(
        db,
        order,
        actor=actor,
        now=now,
        operator_canteen_id=operator_canteen_id,
        cutoff_settings=cutoff_settings,
        events=events,
    )


def find_manual_checkin_order(db: Session, user: User, now: datetime) -> Order | None:
    """Yesterday's overnight order while its pickup window is open, else today's order."""
    today = now.date()
    yesterday = today - timedelta(days=1)
    for order in db.scalars(
        select(Order).where(
            Order.user_id == user.id,
            Order.order_date == yesterday,
            Order.status != "CANCELLED",
        )
    ):
        if not is_overnight(order.shift.start_time, order.shift.end_time):
            continue
        opens, closes = compute_shift_window(order.order_date, order.shift).pickup_interval()
        if opens <= now <= closes:
            return order
    return db.scalar(
        select(Order)
        .where(Order.user_id == user.id, Order.order_date == today, Order.status != "CANCELLED")
        .limit(1)
    )


def check_in_manual(
    db: Session,
    *,
    external_id: str,
    actor: User,
    now: datetime,
    operator_canteen_id: int | None = None,
    cutoff_settings: CutoffSettings | None = None,
    events: EventBroadcaster = broadcaster,
) -> Order:
    user = db.scalar(select(User).where(User.external_id == external_id.strip()))
    if user is None:
        raise OrderError(OrderErrorKind.USER_NOT_FOUND, f"Employee {external_id} not found")
    order = find_manual_checkin_order(db, user, now)
    if order is None:
        raise OrderError(OrderErrorKind.ORDER_NOT_FOUND, f"No order for employee {external_id} today")
    return _check_in(
        db,
        order,
        actor=actor,
        now=now,
        operator_canteen_id=operator_canteen_id,
        cutoff_settings=cutoff_settings,
        events=events,
    )

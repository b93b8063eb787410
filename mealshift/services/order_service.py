"""Order creation, cancellation and QR retrieval."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, TypeVar

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mealshift.models import Holiday, Order, Shift, User
from mealshift.services.audit_service import ActorRef, log_action, order_snapshot
from mealshift.services.blacklist_service import ensure_not_blacklisted
from mealshift.services.capacity_service import CapacityChecker, capacity_checker
from mealshift.services.cutoff_policy import CutoffDecision, CutoffPolicy
from mealshift.services.errors import OrderError, OrderErrorKind
from mealshift.services.events import ORDER_CANCELLED, ORDER_CREATED, EventBroadcaster, broadcaster
from mealshift.services.order_status import transition_status
from mealshift.services.qr_codec import QRCodec, generate_qr_token, qr_codec
from mealshift.services.settings_service import CutoffSettings, load_cutoff_settings
from mealshift.utils.time import parse_local_date

logger = logging.getLogger(__name__)

USER_CANCEL_REASON: str = "Cancelled by user"
ADMIN_CANCEL_REASON: str = "Cancelled by administrator"


@dataclass(frozen=True)
class CreatedOrder:
    order: Order
    qr_code: str


@dataclass(frozen=True)
class ShiftSnapshot:
    """Shift fields ordering reads, copied out of the session so commits cannot expire them."""

    id: int
    name: str
    start_time: str
    end_time: str
    break_start_time: str | None
    break_end_time: str | None
    is_active: bool
    meal_price: Decimal

    @classmethod
    def from_model(cls, shift: Shift) -> "ShiftSnapshot":
        return cls(
            id=shift.id,
            name=shift.name,
            start_time=shift.start_time,
            end_time=shift.end_time,
            break_start_time=shift.break_start_time,
            break_end_time=shift.break_end_time,
            is_active=shift.is_active,
            meal_price=shift.meal_price,
        )


ShiftLike = TypeVar("ShiftLike", Shift, ShiftSnapshot)


def order_payload(order: Order) -> dict[str, Any]:
    """Event and API view of an order."""
    return {
        "id": order.id,
        "userId": order.user_id,
        "shiftId": order.shift_id,
        "canteenId": order.canteen_id,
        "orderDate": order.order_date.isoformat(),
        "orderedAt": order.ordered_at.isoformat(),
        "status": order.status,
        "qrToken": order.qr_token,
        "mealPrice": str(order.meal_price),
        "checkInAt": order.check_in_at.isoformat() if order.check_in_at else None,
        "checkedInBy": order.checked_in_by,
        "cancelledBy": order.cancelled_by,
        "cancelReason": order.cancel_reason,
    }


def coerce_order_date(value: str | date) -> date:
    if isinstance(value, date):
        return value
    try:
        return parse_local_date(value)
    except ValueError as exc:
        raise OrderError(OrderErrorKind.INVALID_DATE, f"Invalid date: {value!r}, expected YYYY-MM-DD") from exc


def get_orderable_user(db: Session, user_id: int, now: datetime) -> User:
    """Load the ordering user and reject inactive or blacklisted accounts."""
    user = db.get(User, user_id)
    if user is None or not user.is_active:
        raise OrderError(OrderErrorKind.USER_NOT_FOUND, f"User {user_id} not found", user_id=user_id)
    ensure_not_blacklisted(db, user, now)
    return user


def find_active_order(db: Session, user_id: int, order_date: date) -> Order | None:
    return db.scalar(
        select(Order)
        .where(Order.user_id == user_id, Order.order_date == order_date, Order.status != "CANCELLED")
        .limit(1)
    )


def find_holiday(db: Session, order_date: date, shift_id: int) -> Holiday | None:
    """Active full-day holiday, or one scoped to the requested shift."""
    return db.scalar(
        select(Holiday)
        .where(
            Holiday.date == order_date,
            Holiday.is_active.is_(True),
            (Holiday.shift_id.is_(None)) | (Holiday.shift_id == shift_id),
        )
        .order_by(Holiday.shift_id.is_not(None))
        .limit(1)
    )


def duplicate_error(order_date: date) -> OrderError:
    return OrderError(
        OrderErrorKind.DUPLICATE_ORDER,
        f"You already have an order for {order_date.isoformat()}",
        order_date=order_date,
    )


def holiday_error(holiday_date: date, name: str) -> OrderError:
    return OrderError(
        OrderErrorKind.HOLIDAY_BLOCKED,
        f"Ordering is closed on {holiday_date.isoformat()}: {name}",
        holiday=name,
    )


def check_shift(shift: ShiftLike | None, shift_id: int) -> ShiftLike:
    if shift is None:
        raise OrderError(OrderErrorKind.SHIFT_NOT_FOUND, f"Shift {shift_id} not found", shift_id=shift_id)
    if not shift.is_active:
        raise OrderError(OrderErrorKind.SHIFT_INACTIVE, f"Shift {shift.name} is not active", shift_id=shift_id)
    return shift


def raise_if_refused(decision: CutoffDecision) -> None:
    if not decision.allowed:
        details = {"cutoff": decision.cutoff} if decision.cutoff is not None else {}
        raise OrderError(decision.kind, decision.reason, **details)


def insert_order(
    db: Session,
    *,
    actor: User | ActorRef,
    shift: Shift | ShiftSnapshot,
    order_date: date,
    canteen_id: int | None,
    now: datetime,
) -> Order:
    """Insert and commit one ORDERED row; the partial unique index decides races."""
    order = Order(
        user_id=actor.id,
        shift_id=shift.id,
        canteen_id=canteen_id,
        order_date=order_date,
        ordered_at=now,
        status="ORDERED",
        qr_token=generate_qr_token(),
        meal_price=shift.meal_price,
    )
    db.add(order)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise duplicate_error(order_date) from exc
    log_action(db, actor=actor, action_type="ORDER_CREATED", order_id=order.id, after_snapshot=order_snapshot(order))
    db.commit()
    db.refresh(order)
    return order


def create_order(
    db: Session,
    *,
    user_id: int,
    order_date: str | date,
    shift_id: int,
    now: datetime,
    canteen_id: int | None = None,
    cutoff_settings: CutoffSettings | None = None,
    events: EventBroadcaster = broadcaster,
    codec: QRCodec = qr_codec,
    capacity: CapacityChecker = capacity_checker,
) -> CreatedOrder:
    """Validate and place a single order.

    Checks run in a fixed order and the first failure is raised as an
    :class:`OrderError`: user precondition, date parse, past date, orderable
    window, duplicate, holiday, shift, cutoff, capacity.
    """
    user = get_orderable_user(db, user_id, now)
    target = coerce_order_date(order_date)
    if target < now.date():
        raise OrderError(OrderErrorKind.PAST_DATE, "Cannot order for a date in the past", order_date=target)

    policy = CutoffPolicy(cutoff_settings or load_cutoff_settings(db))
    raise_if_refused(policy.check_window(target, now))

    if find_active_order(db, user.id, target) is not None:
        raise duplicate_error(target)
    holiday = find_holiday(db, target, shift_id)
    if holiday is not None:
        raise holiday_error(holiday.date, holiday.name)
    shift = check_shift(db.get(Shift, shift_id), shift_id)
    raise_if_refused(policy.check_cutoff(target, shift, now, shift_name=shift.name))
    if canteen_id is not None:
        capacity.ensure_available(db, canteen_id=canteen_id, shift_id=shift.id, order_date=target)

    order = insert_order(db, actor=user, shift=shift, order_date=target, canteen_id=canteen_id, now=now)
    logger.info("[ORDER] Created order %s for user %s on %s (%s)", order.id, user.external_id, target, shift.name)
    events.publish(ORDER_CREATED, {"order": order_payload(order)}, timestamp=now)
    return CreatedOrder(order=order, qr_code=codec.render(order.qr_token))


def cancel_order(
    db: Session,
    *,
    order_id: int,
    requester: User,
    now: datetime,
    reason: str | None = None,
    cutoff_settings: CutoffSettings | None = None,
    events: EventBroadcaster = broadcaster,
) -> Order:
    order = db.get(Order, order_id)
    if order is None:
        raise OrderError(OrderErrorKind.ORDER_NOT_FOUND, f"Order {order_id} not found", order_id=order_id)
    if order.user_id != requester.id and not requester.is_privileged:
        raise OrderError(OrderErrorKind.FORBIDDEN, "You can only cancel your own orders")
    if order.status == "CANCELLED":
        raise OrderError(OrderErrorKind.ALREADY_CANCELLED, "Order is already cancelled")
    if order.status != "ORDERED":
        raise OrderError(OrderErrorKind.NOT_CANCELLABLE, f"Order cannot be cancelled in status {order.status}")

    policy = CutoffPolicy(cutoff_settings or load_cutoff_settings(db))
    raise_if_refused(policy.check_cancel(order.order_date, order.shift, now, shift_name=order.shift.name))

    if not reason:
        reason = USER_CANCEL_REASON if order.user_id == requester.id else ADMIN_CANCEL_REASON
    before = order_snapshot(order)
    cancelled = transition_status(
        db,
        order.id,
        expected="ORDERED",
        new="CANCELLED",
        cancelled_by_id=requester.id,
        cancelled_by=requester.name,
        cancel_reason=reason,
    )
    if not cancelled:
        db.rollback()
        raise OrderError(OrderErrorKind.NOT_CANCELLABLE, "Order is no longer ORDERED")

    log_action(
        db,
        actor=requester,
        action_type="ORDER_CANCELLED",
        order_id=order.id,
        before_snapshot=before,
        after_snapshot={**before, "status": "CANCELLED"},
    )
    db.commit()
    db.refresh(order)
    logger.info("[ORDER] Order %s cancelled by %s", order.id, requester.external_id)
    events.publish(ORDER_CANCELLED, {"order": order_payload(order)}, timestamp=now)
    return order


def _cancel_matching(
    db: Session,
    criteria: list,
    *,
    reason: str,
    cancelled_by: str,
    now: datetime,
    commit: bool,
    events: EventBroadcaster | None,
) -> int:
    order_ids = list(db.scalars(select(Order.id).where(Order.status == "ORDERED", *criteria)))
    if not order_ids:
        return 0
    result = db.execute(
        update(Order)
        .where(Order.id.in_(order_ids), Order.status == "ORDERED")
        .values(status="CANCELLED", cancelled_by=cancelled_by, cancel_reason=reason)
        .execution_options(synchronize_session=False)
    )
    if not commit:
        return result.rowcount
    db.commit()
    if events is not None:
        for order in db.scalars(select(Order).where(Order.id.in_(order_ids), Order.status == "CANCELLED")):
            events.publish(ORDER_CANCELLED, {"order": order_payload(order)}, timestamp=now)
    return result.rowcount


def cancel_user_orders(
    db: Session,
    *,
    user: User,
    reason: str,
    cancelled_by: str,
    now: datetime,
    commit: bool = True,
    events: EventBroadcaster | None = broadcaster,
) -> int:
    """Cancel every pending order of ``user`` from today onward.

    With ``commit=False`` the update joins the caller's transaction and no
    events are emitted.
    """
    count = _cancel_matching(
        db,
        [Order.user_id == user.id, Order.order_date >= now.date()],
        reason=reason,
        cancelled_by=cancelled_by,
        now=now,
        commit=commit,
        events=events,
    )
    if count:
        logger.info("[ORDER] Cancelled %s pending orders of user %s", count, user.external_id)
    return count


def cancel_orders_beyond_date(
    db: Session,
    *,
    last_valid_date: date,
    reason: str,
    now: datetime,
    cancelled_by: str = "System",
    events: EventBroadcaster | None = broadcaster,
) -> int:
    """Cancel pending orders dated after ``last_valid_date``."""
    count = _cancel_matching(
        db,
        [Order.order_date > last_valid_date],
        reason=reason,
        cancelled_by=cancelled_by,
        now=now,
        commit=True,
        events=events,
    )
    if count:
        logger.info("[ORDER] Cancelled %s orders after %s", count, last_valid_date)
    return count


def get_qr(db: Session, *, order_id: int, requester: User, codec: QRCodec = qr_codec) -> dict[str, Any]:
    order = db.get(Order, order_id)
    if order is None:
        raise OrderError(OrderErrorKind.ORDER_NOT_FOUND, f"Order {order_id} not found", order_id=order_id)
    if order.user_id != requester.id and not requester.is_privileged:
        raise OrderError(OrderErrorKind.FORBIDDEN, "You can only view your own orders")
    return {"orderId": order.id, "qrToken": order.qr_token, "qrCode": codec.render(order.qr_token)}


def list_user_orders(db: Session, user_id: int, *, start: date | None = None, end: date | None = None) -> list[Order]:
    stmt = select(Order).where(Order.user_id == user_id)
    if start is not None:
        stmt = stmt.where(Order.order_date >= start)
    if end is not None:
        stmt = stmt.where(Order.order_date <= end)
    return list(db.scalars(stmt.order_by(Order.order_date.desc(), Order.id.desc())))

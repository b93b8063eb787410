"""Order creation and cancellation pipeline tests."""

from datetime import date, datetime, timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from mealshift.models import AuditLog, Blacklist, Canteen, CanteenShift, Holiday, Order
from mealshift.services import order_service
from mealshift.services.errors import OrderError, OrderErrorKind
from mealshift.services.events import ORDER_CANCELLED, ORDER_CREATED

NOW = datetime(2025, 1, 9, 20, 0)
TARGET = "2025-01-10"


def _create(db, user, shift, events, order_date=TARGET, now=NOW, **kwargs):
    return order_service.create_order(
        db, user_id=user.id, order_date=order_date, shift_id=shift.id, now=now, events=events, **kwargs
    )


def test_create_order_persists_and_emits(db, make_user, make_shift, events) -> None:
    user = make_user("E100")
    shift = make_shift("Day", "08:00", "16:00")

    created = _create(db, user, shift, events)

    order = created.order
    assert order.status == "ORDERED"
    assert order.order_date == date(2025, 1, 10)
    assert order.ordered_at == NOW
    assert order.qr_token.startswith("ORDER-")
    assert order.meal_price == shift.meal_price
    assert created.qr_code.startswith("data:image/png;base64,")

    emitted = events.history(ORDER_CREATED)
    assert len(emitted) == 1
    assert emitted[0].payload["order"]["id"] == order.id
    assert emitted[0].payload["timestamp"] == NOW.isoformat()

    audit = db.scalar(select(AuditLog).where(AuditLog.order_id == order.id))
    assert audit is not None
    assert audit.action_type == "ORDER_CREATED"


def test_second_order_same_day_is_duplicate(db, make_user, make_shift, events) -> None:
    user = make_user("E101")
    day_shift = make_shift("Day", "08:00", "16:00")
    late_shift = make_shift("Late", "15:00", "23:00")
    _create(db, user, day_shift, events)

    with pytest.raises(OrderError) as exc_info:
        _create(db, user, late_shift, events)

    assert exc_info.value.kind is OrderErrorKind.DUPLICATE_ORDER


def test_storage_rejects_second_active_order(db, make_user, make_shift, events) -> None:
    user = make_user("E102")
    shift = make_shift("Day", "08:00", "16:00")
    _create(db, user, shift, events)

    db.add(
        Order(
            user_id=user.id,
            shift_id=shift.id,
            order_date=date(2025, 1, 10),
            ordered_at=NOW,
            status="ORDERED",
            qr_token="ORDER-manual",
        )
    )
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_lost_insert_race_reports_duplicate(db, make_user, make_shift, events) -> None:
    user = make_user("E103")
    shift = make_shift("Day", "08:00", "16:00")
    _create(db, user, shift, events)

    # Skips the pre-check, as a concurrent request that passed it would.
    with pytest.raises(OrderError) as exc_info:
        order_service.insert_order(db, actor=user, shift=shift, order_date=date(2025, 1, 10), canteen_id=None, now=NOW)

    assert exc_info.value.kind is OrderErrorKind.DUPLICATE_ORDER
    active = db.scalars(select(Order).where(Order.user_id == user.id, Order.status != "CANCELLED")).all()
    assert len(active) == 1


def test_cancel_then_reorder_same_day(db, make_user, make_shift, events) -> None:
    user = make_user("E104")
    shift = make_shift("Day", "08:00", "16:00")
    first = _create(db, user, shift, events).order

    cancelled = order_service.cancel_order(db, order_id=first.id, requester=user, now=NOW, events=events)
    second = _create(db, user, shift, events).order

    assert cancelled.status == "CANCELLED"
    assert cancelled.cancel_reason == order_service.USER_CANCEL_REASON
    assert cancelled.cancelled_by_id == user.id
    assert second.id != first.id
    assert second.status == "ORDERED"
    assert len(events.history(ORDER_CANCELLED)) == 1


@pytest.mark.parametrize("raw", ["2025-1-10", "10/01/2025", "2025-02-30", ""])
def test_invalid_date_is_rejected(db, make_user, make_shift, events, raw: str) -> None:
    user = make_user("E105")
    shift = make_shift("Day", "08:00", "16:00")

    with pytest.raises(OrderError) as exc_info:
        _create(db, user, shift, events, order_date=raw)

    assert exc_info.value.kind is OrderErrorKind.INVALID_DATE


def test_past_date_and_window(db, make_user, make_shift, events) -> None:
    user = make_user("E106")
    shift = make_shift("Day", "08:00", "16:00")

    with pytest.raises(OrderError) as past:
        _create(db, user, shift, events, order_date="2025-01-08")
    with pytest.raises(OrderError) as too_far:
        _create(db, user, shift, events, order_date="2025-01-20")

    assert past.value.kind is OrderErrorKind.PAST_DATE
    assert too_far.value.kind is OrderErrorKind.WINDOW_EXCEEDED


def test_cutoff_passed_carries_cutoff_instant(db, make_user, make_shift, events) -> None:
    user = make_user("E107")
    shift = make_shift("Day", "08:00", "16:00")

    with pytest.raises(OrderError) as exc_info:
        _create(db, user, shift, events, now=datetime(2025, 1, 10, 9, 0))

    error = exc_info.value
    assert error.kind is OrderErrorKind.CUTOFF_PASSED
    assert error.status_code == 403
    assert error.to_payload()["cutoff"] == "2025-01-10T02:00:00"
    assert "02:00" in error.message


def test_holiday_blocks_with_holiday_name(db, make_user, make_shift, events) -> None:
    user = make_user("E108")
    day_shift = make_shift("Day", "08:00", "16:00")
    late_shift = make_shift("Late", "15:00", "23:00")
    db.add(Holiday(date=date(2025, 1, 10), name="Kitchen maintenance", shift_id=day_shift.id, is_active=True))
    db.commit()

    with pytest.raises(OrderError) as exc_info:
        _create(db, user, day_shift, events)
    late_order = _create(db, user, late_shift, events).order

    assert exc_info.value.kind is OrderErrorKind.HOLIDAY_BLOCKED
    assert "Kitchen maintenance" in exc_info.value.message
    assert late_order.shift_id == late_shift.id


def test_missing_and_inactive_shift(db, make_user, make_shift, events) -> None:
    user = make_user("E109")
    inactive = make_shift("Old", "08:00", "16:00", is_active=False)

    with pytest.raises(OrderError) as missing:
        order_service.create_order(db, user_id=user.id, order_date=TARGET, shift_id=999, now=NOW, events=events)
    with pytest.raises(OrderError) as disabled:
        _create(db, user, inactive, events)

    assert missing.value.kind is OrderErrorKind.SHIFT_NOT_FOUND
    assert disabled.value.kind is OrderErrorKind.SHIFT_INACTIVE


def test_blacklisted_user_cannot_order_until_expiry(db, make_user, make_shift, events) -> None:
    user = make_user("E110")
    shift = make_shift("Day", "08:00", "16:00")
    db.add(
        Blacklist(
            user_id=user.id,
            reason="Automatic blacklist after 3 no-shows",
            start_date=NOW - timedelta(days=6),
            end_date=NOW + timedelta(hours=1),
            is_active=True,
        )
    )
    db.commit()

    with pytest.raises(OrderError) as exc_info:
        _create(db, user, shift, events)
    # The row is still flagged active but its end date has passed.
    order = _create(db, user, shift, events, now=NOW + timedelta(hours=2)).order

    assert exc_info.value.kind is OrderErrorKind.USER_BLACKLISTED
    assert order.status == "ORDERED"


def test_canteen_capacity(db, make_user, make_shift, events) -> None:
    shift = make_shift("Day", "08:00", "16:00")
    canteen = Canteen(name="North", capacity=1, is_active=True)
    closed = Canteen(name="South", capacity=10, is_active=False)
    db.add_all([canteen, closed])
    db.commit()
    first, second, third = make_user("E111"), make_user("E112"), make_user("E113")

    _create(db, first, shift, events, canteen_id=canteen.id)
    with pytest.raises(OrderError) as full:
        _create(db, second, shift, events, canteen_id=canteen.id)
    with pytest.raises(OrderError) as unavailable:
        _create(db, third, shift, events, canteen_id=closed.id)

    db.add(CanteenShift(canteen_id=canteen.id, shift_id=shift.id, capacity=2, is_active=True))
    db.commit()
    order = _create(db, second, shift, events, canteen_id=canteen.id).order

    assert full.value.kind is OrderErrorKind.CAPACITY_EXCEEDED
    assert unavailable.value.kind is OrderErrorKind.CANTEEN_UNAVAILABLE
    assert order.canteen_id == canteen.id


def test_cancel_permissions_and_status(db, make_user, make_shift, events) -> None:
    owner = make_user("E114")
    other = make_user("E115")
    admin = make_user("A001", role="ADMIN")
    shift = make_shift("Day", "08:00", "16:00")
    order = _create(db, owner, shift, events).order

    with pytest.raises(OrderError) as forbidden:
        order_service.cancel_order(db, order_id=order.id, requester=other, now=NOW, events=events)
    cancelled = order_service.cancel_order(db, order_id=order.id, requester=admin, now=NOW, events=events)
    with pytest.raises(OrderError) as again:
        order_service.cancel_order(db, order_id=order.id, requester=owner, now=NOW, events=events)
    with pytest.raises(OrderError) as missing:
        order_service.cancel_order(db, order_id=9999, requester=owner, now=NOW, events=events)

    assert forbidden.value.kind is OrderErrorKind.FORBIDDEN
    assert cancelled.cancel_reason == order_service.ADMIN_CANCEL_REASON
    assert cancelled.cancelled_by == admin.name
    assert again.value.kind is OrderErrorKind.ALREADY_CANCELLED
    assert missing.value.kind is OrderErrorKind.ORDER_NOT_FOUND


def test_cancel_after_cutoff_and_after_pickup(db, make_user, make_shift, events) -> None:
    user = make_user("E116")
    shift = make_shift("Day", "08:00", "16:00")
    order = _create(db, user, shift, events).order

    with pytest.raises(OrderError) as late:
        order_service.cancel_order(db, order_id=order.id, requester=user, now=datetime(2025, 1, 10, 2, 0), events=events)

    order.status = "PICKED_UP"
    db.commit()
    with pytest.raises(OrderError) as picked:
        order_service.cancel_order(db, order_id=order.id, requester=user, now=NOW, events=events)

    assert late.value.kind is OrderErrorKind.CANCEL_CUTOFF_PASSED
    assert picked.value.kind is OrderErrorKind.NOT_CANCELLABLE


def test_cancel_user_orders_only_touches_future_pending(db, make_user, make_shift, events) -> None:
    user = make_user("E117")
    shift = make_shift("Day", "08:00", "16:00")
    for day in ("2025-01-10", "2025-01-11", "2025-01-12"):
        _create(db, user, shift, events, order_date=day)
    past = Order(
        user_id=user.id,
        shift_id=shift.id,
        order_date=date(2025, 1, 8),
        ordered_at=NOW - timedelta(days=3),
        status="ORDERED",
        qr_token="ORDER-past",
    )
    db.add(past)
    db.commit()

    count = order_service.cancel_user_orders(
        db, user=user, reason="Blacklisted", cancelled_by="System (Blacklist)", now=NOW, events=events
    )

    assert count == 3
    statuses = dict(db.execute(select(Order.order_date, Order.status).where(Order.user_id == user.id)).all())
    assert statuses[date(2025, 1, 8)] == "ORDERED"
    assert statuses[date(2025, 1, 11)] == "CANCELLED"
    assert len(events.history(ORDER_CANCELLED)) == 3


def test_cancel_orders_beyond_date(db, make_user, make_shift, events) -> None:
    user = make_user("E118")
    shift = make_shift("Day", "08:00", "16:00")
    for day in ("2025-01-10", "2025-01-14", "2025-01-16"):
        _create(db, user, shift, events, order_date=day)

    count = order_service.cancel_orders_beyond_date(
        db, last_valid_date=date(2025, 1, 12), reason="Window reduced", now=NOW, events=events
    )

    assert count == 2
    remaining = db.scalars(select(Order.order_date).where(Order.status == "ORDERED")).all()
    assert remaining == [date(2025, 1, 10)]


def test_get_qr_for_owner_only(db, make_user, make_shift, events) -> None:
    owner = make_user("E119")
    other = make_user("E120")
    operator = make_user("K001", role="CANTEEN")
    shift = make_shift("Day", "08:00", "16:00")
    order = _create(db, owner, shift, events).order

    qr = order_service.get_qr(db, order_id=order.id, requester=owner)
    assert qr["qrToken"] == order.qr_token
    assert qr["qrCode"].startswith("data:image/png;base64,")
    assert order_service.get_qr(db, order_id=order.id, requester=operator)["orderId"] == order.id
    with pytest.raises(OrderError) as exc_info:
        order_service.get_qr(db, order_id=order.id, requester=other)
    assert exc_info.value.kind is OrderErrorKind.FORBIDDEN

"""No-show sweep: unclaimed orders become strikes, strikes become blacklists."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from mealshift.core.config import settings
from mealshift.models import Blacklist, Order, User
from mealshift.services.audit_service import log_action
from mealshift.services.blacklist_service import get_active_blacklist
from mealshift.services.events import ORDER_NOSHOW, USER_BLACKLISTED, EventBroadcaster, broadcaster
from mealshift.services.order_service import cancel_user_orders
from mealshift.services.order_status import transition_status
from mealshift.services.settings_service import CutoffSettings, load_cutoff_settings
from mealshift.services.shift_window import shift_end

logger = logging.getLogger(__name__)

BLACKLIST_CANCELLED_BY: str = "System (Blacklist)"


def noshow_candidates(db: Session, now: datetime, lookback_days: int) -> list[Order]:
    """ORDERED orders whose shift has ended strictly before ``now``."""
    today = now.date()
    orders = db.scalars(
        select(Order)
        .options(selectinload(Order.shift))
        .where(
            Order.status == "ORDERED",
            Order.order_date >= today - timedelta(days=lookback_days),
            Order.order_date <= today,
        )
        .order_by(Order.order_date, Order.id)
    )
    return [order for order in orders if now > shift_end(order.order_date, order.shift)]


def _maybe_blacklist(
    db: Session, user: User, *, now: datetime, cutoff_settings: CutoffSettings
) -> Blacklist | None:
    if user.no_show_count < cutoff_settings.blacklist_strikes:
        return None
    if get_active_blacklist(db, user.id, now) is not None:
        return None
    entry = Blacklist(
        user_id=user.id,
        reason=f"Automatic blacklist after {user.no_show_count} no-shows",
        start_date=now,
        end_date=now + timedelta(days=cutoff_settings.blacklist_duration),
        is_active=True,
    )
    db.add(entry)
    db.flush()
    log_action(
        db,
        actor=None,
        action_type="USER_BLACKLISTED",
        after_snapshot={"user_id": user.id, "blacklist_id": entry.id, "no_show_count": user.no_show_count},
    )
    cancel_user_orders(
        db,
        user=user,
        reason=entry.reason,
        cancelled_by=BLACKLIST_CANCELLED_BY,
        now=now,
        commit=False,
        events=None,
    )
    return entry


def _process_order(
    db: Session, order_id: int, *, now: datetime, cutoff_settings: CutoffSettings
) -> tuple[User, Blacklist | None] | None:
    """Flip one order to NO_SHOW and charge the strike in a single transaction.

    Returns None when another worker already moved the order out of ORDERED.
    """
    if not transition_status(db, order_id, expected="ORDERED", new="NO_SHOW"):
        db.rollback()
        return None

    user = db.scalar(
        select(User).join(Order, Order.user_id == User.id).where(Order.id == order_id).with_for_update()
    )
    user.no_show_count = (user.no_show_count or 0) + 1
    log_action(
        db,
        actor=None,
        action_type="ORDER_NOSHOW",
        order_id=order_id,
        before_snapshot={"status": "ORDERED"},
        after_snapshot={"status": "NO_SHOW", "no_show_count": user.no_show_count},
    )
    db.flush()

    entry: Blacklist | None = None
    savepoint = db.begin_nested()
    try:
        entry = _maybe_blacklist(db, user, now=now, cutoff_settings=cutoff_settings)
        savepoint.commit()
    except SQLAlchemyError:
        savepoint.rollback()
        entry = None
        logger.exception("[NOSHOW] Blacklist creation failed for user %s; strike kept", user.id)
    db.commit()
    return user, entry


def run_noshow_sweep(
    db: Session,
    *,
    now: datetime,
    cutoff_settings: CutoffSettings | None = None,
    lookback_days: int | None = None,
    events: EventBroadcaster = broadcaster,
) -> dict[str, Any]:
    """Mark every ended, unclaimed order as NO_SHOW.

    Each order is handled in its own transaction. A failing order is logged,
    counted and skipped. Running the sweep twice over the same orders does
    nothing the second time.
    """
    policy_settings = cutoff_settings or load_cutoff_settings(db)
    lookback = settings.noshow_lookback_days if lookback_days is None else lookback_days
    order_ids = [order.id for order in noshow_candidates(db, now, lookback)]
    db.commit()

    processed = 0
    failed = 0
    blacklisted: list[dict[str, Any]] = []
    for order_id in order_ids:
        try:
            result = _process_order(db, order_id, now=now, cutoff_settings=policy_settings)
        except SQLAlchemyError:
            db.rollback()
            failed += 1
            logger.exception("[NOSHOW] Failed to process order %s", order_id)
            continue
        if result is None:
            continue
        user, entry = result
        processed += 1
        events.publish(
            ORDER_NOSHOW,
            {"orderId": order_id, "userId": user.id, "userName": user.name, "noShowCount": user.no_show_count},
            timestamp=now,
        )
        if entry is not None:
            logger.warning("[NOSHOW] User %s blacklisted after %s no-shows", user.external_id, user.no_show_count)
            blacklisted.append({"userId": user.id, "userName": user.name, "noShowCount": user.no_show_count})
            events.publish(
                USER_BLACKLISTED,
                {"userId": user.id, "userName": user.name, "noShowCount": user.no_show_count},
                timestamp=now,
            )

    logger.info("[NOSHOW] Sweep done: processed=%s blacklisted=%s failed=%s", processed, len(blacklisted), failed)
    return {"processed": processed, "blacklisted": blacklisted, "failed": failed}


def noshow_stats(db: Session, day: date) -> dict[str, Any]:
    """Pickup statistics for one order date."""
    rows = db.execute(
        select(Order.status, func.count(Order.id))
        .where(Order.order_date == day, Order.status != "CANCELLED")
        .group_by(Order.status)
    ).all()
    counts = {status: count for status, count in rows}
    total = sum(counts.values())
    picked_up = counts.get("PICKED_UP", 0)
    return {
        "date": day.isoformat(),
        "total": total,
        "pickedUp": picked_up,
        "noShows": counts.get("NO_SHOW", 0),
        "pending": counts.get("ORDERED", 0),
        "pickupRate": round(picked_up / total * 100, 1) if total else 0.0,
    }

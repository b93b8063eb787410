"""Blacklist reads, expiry sweep and manual administration.

A blacklist row is in force while ``is_active`` is set and its end date is
either missing or still in the future. ``is_active`` alone may be stale; the
expiry sweep only tidies the flag and no reader depends on it having run.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import and_, or_, select, update
from sqlalchemy.orm import Session

from mealshift.models import Blacklist, User
from mealshift.services.audit_service import log_action
from mealshift.services.errors import OrderError, OrderErrorKind
from mealshift.services.events import USER_BLACKLISTED, EventBroadcaster

logger = logging.getLogger(__name__)


def is_blacklist_active(entry: Blacklist, now: datetime) -> bool:
    return bool(entry.is_active) and (entry.end_date is None or entry.end_date > now)


def active_blacklist_clause(now: datetime):
    """SQL form of :func:`is_blacklist_active`."""
    return and_(Blacklist.is_active.is_(True), or_(Blacklist.end_date.is_(None), Blacklist.end_date > now))


def get_active_blacklist(db: Session, user_id: int, now: datetime) -> Blacklist | None:
    return db.scalar(
        select(Blacklist)
        .where(Blacklist.user_id == user_id, active_blacklist_clause(now))
        .order_by(Blacklist.start_date.desc())
        .limit(1)
    )


def ensure_not_blacklisted(db: Session, user: User, now: datetime) -> None:
    entry = get_active_blacklist(db, user.id, now)
    if entry is None:
        return
    until = f" until {entry.end_date:%Y-%m-%d %H:%M}" if entry.end_date is not None else ""
    raise OrderError(
        OrderErrorKind.USER_BLACKLISTED,
        f"Ordering is suspended{until}: {entry.reason}",
        blacklist_id=entry.id,
        end_date=entry.end_date,
    )


def expire_blacklists(db: Session, now: datetime) -> int:
    """Clear ``is_active`` on rows whose end date has passed."""
    result = db.execute(
        update(Blacklist)
        .where(Blacklist.is_active.is_(True), Blacklist.end_date.is_not(None), Blacklist.end_date <= now)
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    expired = result.rowcount or 0
    if expired:
        logger.info("[BLACKLIST] Expired %s blacklist entries", expired)
    return expired


def create_blacklist(
    db: Session,
    *,
    user: User,
    reason: str,
    now: datetime,
    duration_days: int | None,
    actor: User | None,
    broadcaster: EventBroadcaster,
) -> Blacklist:
    """Manually suspend a user; ``duration_days=None`` means indefinite."""
    if get_active_blacklist(db, user.id, now) is not None:
        raise OrderError(OrderErrorKind.INVALID_REQUEST, f"User {user.external_id} is already blacklisted")
    if duration_days is not None and duration_days < 1:
        raise OrderError(OrderErrorKind.INVALID_REQUEST, "Blacklist duration must be at least one day")

    entry = Blacklist(
        user_id=user.id,
        reason=reason.strip() or "Blacklisted by administrator",
        start_date=now,
        end_date=now + timedelta(days=duration_days) if duration_days is not None else None,
        is_active=True,
    )
    db.add(entry)
    db.flush()
    log_action(
        db,
        actor=actor,
        action_type="USER_BLACKLISTED",
        after_snapshot={"user_id": user.id, "blacklist_id": entry.id, "reason": entry.reason},
    )
    db.commit()
    db.refresh(entry)
    logger.info("[BLACKLIST] User %s blacklisted manually (entry=%s)", user.external_id, entry.id)
    broadcaster.publish(
        USER_BLACKLISTED,
        {"userId": user.id, "userName": user.name, "noShowCount": user.no_show_count},
        timestamp=now,
    )
    return entry


def remove_blacklist(db: Session, blacklist_id: int, *, actor: User | None) -> Blacklist:
    entry = db.get(Blacklist, blacklist_id)
    if entry is None:
        raise OrderError(OrderErrorKind.INVALID_REQUEST, f"Blacklist entry {blacklist_id} not found")
    entry.is_active = False
    log_action(
        db,
        actor=actor,
        action_type="USER_UNBLACKLISTED",
        before_snapshot={"user_id": entry.user_id, "blacklist_id": entry.id},
    )
    db.commit()
    db.refresh(entry)
    logger.info("[BLACKLIST] Entry %s removed", entry.id)
    return entry

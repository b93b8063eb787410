"""Audit log helpers."""

from __future__ import annotations

from typing import Any, NamedTuple

from sqlalchemy.orm import Session

from mealshift.models import AuditLog, Order, User

SYSTEM_ACTOR: str = "System Scheduler"


class ActorRef(NamedTuple):
    """Identity of an acting user, detached from the session."""

    id: int
    external_id: str | None
    name: str

    @classmethod
    def of(cls, user: User) -> "ActorRef":
        return cls(user.id, user.external_id, user.name)


def order_snapshot(order: Order) -> dict[str, Any]:
    """Serializable view of the fields an auditor cares about."""
    return {
        "status": order.status,
        "user_id": order.user_id,
        "shift_id": order.shift_id,
        "order_date": order.order_date.isoformat(),
        "canteen_id": order.canteen_id,
    }


def log_action(
    db: Session,
    *,
    actor: User | ActorRef | None,
    action_type: str,
    order_id: int | None = None,
    before_snapshot: dict[str, Any] | None = None,
    after_snapshot: dict[str, Any] | None = None,
) -> None:
    actor_identifier = SYSTEM_ACTOR
    actor_id = None
    if actor is not None:
        actor_id = actor.id
        actor_identifier = actor.external_id or actor.name

    db.add(
        AuditLog(
            actor_user_id=actor_id,
            actor_identifier=actor_identifier,
            action_type=action_type,
            order_id=order_id,
            before_snapshot=before_snapshot,
            after_snapshot=after_snapshot,
        )
    )

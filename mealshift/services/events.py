"""In-process event broadcaster for order lifecycle events.

Delivery is fire-and-forget: a failing subscriber is logged and skipped.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

logger = logging.getLogger(__name__)

ORDER_CREATED = "order:created"
ORDER_CANCELLED = "order:cancelled"
ORDER_CHECKIN = "order:checkin"
ORDER_NOSHOW = "order:noshow"
ORDER_BULK_CREATED = "order:bulk_created"
USER_BLACKLISTED = "user:blacklisted"

Subscriber = Callable[[str, dict[str, Any]], None]


@dataclass(frozen=True)
class Event:
    name: str
    payload: dict[str, Any]
    timestamp: datetime


class EventBroadcaster:
    """Fan events out to registered subscribers and keep a short history."""

    def __init__(self, history_size: int = 100) -> None:
        self._subscribers: list[Subscriber] = []
        self._history: deque[Event] = deque(maxlen=history_size)
        self._lock = threading.Lock()

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(subscriber)

        def _unsubscribe() -> None:
            with self._lock:
                if subscriber in self._subscribers:
                    self._subscribers.remove(subscriber)

        return _unsubscribe

    def publish(self, name: str, payload: dict[str, Any], *, timestamp: datetime) -> None:
        body = {**payload, "timestamp": timestamp.isoformat()}
        with self._lock:
            self._history.append(Event(name=name, payload=body, timestamp=timestamp))
            subscribers = list(self._subscribers)
        for subscriber in subscribers:
            try:
                subscriber(name, body)
            except Exception:
                logger.exception("[EVENTS] Subscriber failed for %s", name)

    def history(self, name: str | None = None) -> list[Event]:
        with self._lock:
            events = list(self._history)
        if name is None:
            return events
        return [event for event in events if event.name == name]


broadcaster: EventBroadcaster = EventBroadcaster()


def get_broadcaster() -> EventBroadcaster:
    """FastAPI dependency returning the process broadcaster."""
    return broadcaster

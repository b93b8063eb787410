"""Login lockout and per-user API throttling.

Counters live in Redis when ``REDIS_URL`` is set and in process memory
otherwise. When no backend is usable the limiter follows
``RATE_LIMIT_FAIL_OPEN``: allow everything, or refuse everything.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Protocol, TypeVar

import redis

from mealshift.core.config import settings
from mealshift.services.errors import OrderError, OrderErrorKind

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RateLimitBackend(Protocol):
    def hit(self, key: str, window_seconds: int) -> int: ...

    def lock(self, key: str, seconds: int) -> None: ...

    def locked_for(self, key: str) -> int: ...

    def forget(self, key: str) -> None: ...

    def reset(self, *keys: str) -> None: ...


class MemoryBackend:
    """Fixed-window counters held in a dict; suitable for a single process."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._counters: dict[str, tuple[int, float]] = {}
        self._locks: dict[str, float] = {}
        self._mutex = threading.Lock()

    def hit(self, key: str, window_seconds: int) -> int:
        now = self._clock()
        with self._mutex:
            count, expires_at = self._counters.get(key, (0, 0.0))
            if expires_at <= now:
                count, expires_at = 0, now + window_seconds
            count += 1
            self._counters[key] = (count, expires_at)
            return count

    def lock(self, key: str, seconds: int) -> None:
        with self._mutex:
            self._locks[key] = self._clock() + seconds

    def locked_for(self, key: str) -> int:
        with self._mutex:
            until = self._locks.get(key)
            if until is None:
                return 0
            remaining = until - self._clock()
            if remaining <= 0:
                del self._locks[key]
                return 0
            return max(1, int(remaining + 0.999))

    def forget(self, key: str) -> None:
        with self._mutex:
            self._counters.pop(key, None)

    def reset(self, *keys: str) -> None:
        with self._mutex:
            for key in keys:
                self._counters.pop(key, None)
                self._locks.pop(key, None)


class RedisBackend:
    def __init__(self, client: redis.Redis) -> None:
        self.client = client

    def hit(self, key: str, window_seconds: int) -> int:
        pipe = self.client.pipeline()
        pipe.incr(key)
        pipe.expire(key, window_seconds, nx=True)
        count, _ = pipe.execute()
        return int(count)

    def lock(self, key: str, seconds: int) -> None:
        self.client.set(f"{key}:lock", "1", ex=seconds)

    def locked_for(self, key: str) -> int:
        ttl = self.client.ttl(f"{key}:lock")
        return int(ttl) if ttl and ttl > 0 else 0

    def forget(self, key: str) -> None:
        self.client.delete(key)

    def reset(self, *keys: str) -> None:
        if keys:
            self.client.delete(*keys, *(f"{key}:lock" for key in keys))


class RateLimiter:
    def __init__(
        self,
        backend: RateLimitBackend | None,
        *,
        fail_open: bool = True,
        login_max_attempts: int = 5,
        login_window_seconds: int = 300,
        login_lockout_seconds: int = 60,
        api_max_requests: int = 10,
        api_window_seconds: int = 60,
    ) -> None:
        self.backend = backend
        self.fail_open = fail_open
        self.login_max_attempts = login_max_attempts
        self.login_window_seconds = login_window_seconds
        self.login_lockout_seconds = login_lockout_seconds
        self.api_max_requests = api_max_requests
        self.api_window_seconds = api_window_seconds

    def _unavailable(self, reason: str) -> None:
        if self.fail_open:
            logger.warning("[RATELIMIT] %s; allowing request (fail-open)", reason)
            return
        logger.warning("[RATELIMIT] %s; refusing request (fail-closed)", reason)
        raise OrderError(OrderErrorKind.RATE_LIMITED, "Rate limiting is unavailable, try again later")

    def _call(self, operation: Callable[[RateLimitBackend], T]) -> T | None:
        """Run a backend operation; None means the limiter is unavailable and fail-open applies."""
        if self.backend is None:
            self._unavailable("No rate limiting backend configured")
            return None
        try:
            return operation(self.backend)
        except redis.RedisError as exc:
            self._unavailable(f"Rate limiting backend error: {exc}")
            return None

    @staticmethod
    def _login_keys(identity: str, ip: str | None) -> list[str]:
        keys = [f"login:id:{identity.strip().lower()}"]
        if ip:
            keys.append(f"login:ip:{ip}")
        return keys

    def check_login(self, identity: str, ip: str | None) -> None:
        """Raise ``RateLimited`` while the identity or the origin is locked out."""
        for key in self._login_keys(identity, ip):
            remaining = self._call(lambda backend: backend.locked_for(key))
            if remaining:
                raise OrderError(
                    OrderErrorKind.RATE_LIMITED,
                    f"Too many failed login attempts. Try again in {remaining} seconds",
                    retry_after=remaining,
                )

    def record_login_failure(self, identity: str, ip: str | None) -> None:
        for key in self._login_keys(identity, ip):
            count = self._call(lambda backend: backend.hit(key, self.login_window_seconds))
            if count is not None and count >= self.login_max_attempts:
                self._call(lambda backend: backend.lock(key, self.login_lockout_seconds))
                self._call(lambda backend: backend.forget(key))
                logger.warning("[RATELIMIT] Locked %s for %ss", key, self.login_lockout_seconds)

    def record_login_success(self, identity: str, ip: str | None) -> None:
        keys = self._login_keys(identity, ip)
        self._call(lambda backend: backend.reset(*keys))

    def check_api(self, user_id: int, action: str = "bulk") -> None:
        key = f"api:{action}:{user_id}"
        count = self._call(lambda backend: backend.hit(key, self.api_window_seconds))
        if count is not None and count > self.api_max_requests:
            raise OrderError(
                OrderErrorKind.RATE_LIMITED,
                f"Too many requests. Limit is {self.api_max_requests} per {self.api_window_seconds} seconds",
                retry_after=self.api_window_seconds,
            )


def build_rate_limiter() -> RateLimiter:
    backend: RateLimitBackend | None = None
    if settings.rate_limiting_available:
        if settings.redis_url:
            backend = RedisBackend(redis.Redis.from_url(settings.redis_url))
        else:
            backend = MemoryBackend()
    return RateLimiter(
        backend,
        fail_open=settings.rate_limit_fail_open,
        login_max_attempts=settings.login_max_attempts,
        login_window_seconds=settings.login_window_seconds,
        login_lockout_seconds=settings.login_lockout_seconds,
        api_max_requests=settings.bulk_order_max_requests,
        api_window_seconds=settings.bulk_order_window_seconds,
    )


rate_limiter: RateLimiter = build_rate_limiter()


def get_rate_limiter() -> RateLimiter:
    return rate_limiter

"""Fixed-window request counters.

Counters are kept in process memory unless ``REDIS_URL`` is configured, in
which case they live in Redis and are shared between workers. A Redis failure
drops the limiter back to in-memory counters for the rest of the process.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from threading import Lock
from typing import Any

import redis

from eventpass.core.errors import RateLimitError
from eventpass.core.settings import Settings
from eventpass.db.time import Clock, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitPolicy:
    """Limit of ``limit`` requests per ``window_seconds`` for one key space."""

    name: str
    limit: int
    window_seconds: int


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: datetime

    def headers(self) -> dict[str, str]:
        """Return the ``X-RateLimit-*`` response headers for this decision."""
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": self.reset_at.isoformat(),
        }


@dataclass
class _Window:
    count: int
    reset_at: datetime


def policies_from_settings(settings: Settings) -> dict[str, RateLimitPolicy]:
    """Build the general, auth and admin policies from configuration."""
    return {
        "general": RateLimitPolicy(
            "general", settings.rate_limit_requests, settings.rate_limit_window_seconds
        ),
        "auth": RateLimitPolicy(
            "auth", settings.auth_rate_limit_requests, settings.auth_rate_limit_window_seconds
        ),
        "admin": RateLimitPolicy(
            "admin", settings.admin_rate_limit_requests, settings.admin_rate_limit_window_seconds
        ),
    }


def auth_key(client_ip: str, wallet: str | None) -> str:
    return f"{client_ip}:{wallet.lower() if wallet else 'unknown'}"


def admin_key(client_ip: str) -> str:
    return f"admin:{client_ip}"


class RateLimiter:
    """Counts hits per ``(policy, key)`` in fixed windows."""

    def __init__(
        self,
        policies: dict[str, RateLimitPolicy],
        *,
        clock: Clock = utcnow,
        redis_url: str | None = None,
    ) -> None:
        self.policies = policies
        self._clock = clock
        self._windows: dict[tuple[str, str], _Window] = {}
        self._lock = Lock()
        self._redis: Any = None
        if redis_url:
            self._redis = redis.from_url(redis_url)  # type: ignore[no-untyped-call]

    def hit(self, policy_name: str, key: str) -> RateLimitDecision:
        """Count one request and report whether it is within the limit."""
        policy = self.policies[policy_name]
        if self._redis is not None:
            try:
                return self._hit_redis(policy, key)
            except redis.RedisError as err:
                logger.warning("Redis rate limiting unavailable, using memory: %s", err)
                self._redis = None
        return self._hit_memory(policy, key)

    def check(self, policy_name: str, key: str) -> RateLimitDecision:
        """Count one request and raise if it exceeds the limit.

        Raises:
            RateLimitError: Carrying the window reset time and the limit.
        """
        decision = self.hit(policy_name, key)
        if not decision.allowed:
            logger.info("Rate limit %s exceeded for %s", policy_name, key)
            raise RateLimitError(
                "Too many requests, please try again later",
                reset_at=decision.reset_at,
                limit=decision.limit,
            )
        return decision

    def prune(self) -> int:
        """Drop in-memory windows that have already rolled over."""
        now = self._clock()
        with self._lock:
            stale = [key for key, window in self._windows.items() if now >= window.reset_at]
            for key in stale:
                del self._windows[key]
        return len(stale)

    def _hit_memory(self, policy: RateLimitPolicy, key: str) -> RateLimitDecision:
        now = self._clock()
        with self._lock:
            window = self._windows.get((policy.name, key))
            if window is None or now >= window.reset_at:
                window = _Window(
                    count=0, reset_at=now + timedelta(seconds=policy.window_seconds)
                )
                self._windows[(policy.name, key)] = window
            window.count += 1
            count = window.count
            reset_at = window.reset_at
        return self._decide(policy, count, reset_at)

    def _hit_redis(self, policy: RateLimitPolicy, key: str) -> RateLimitDecision:
        redis_key = f"ratelimit:{policy.name}:{key}"
        count = int(self._redis.incr(redis_key))
        if count == 1:
            self._redis.expire(redis_key, policy.window_seconds)
        ttl = int(self._redis.ttl(redis_key))
        if ttl < 0:
            # Counter without expiry (lost EXPIRE); start a fresh window.
            self._redis.expire(redis_key, policy.window_seconds)
            ttl = policy.window_seconds
        return self._decide(policy, count, self._clock() + timedelta(seconds=ttl))

    @staticmethod
    def _decide(policy: RateLimitPolicy, count: int, reset_at: datetime) -> RateLimitDecision:
        return RateLimitDecision(
            allowed=count <= policy.limit,
            limit=policy.limit,
            remaining=max(policy.limit - count, 0),
            reset_at=reset_at,
        )

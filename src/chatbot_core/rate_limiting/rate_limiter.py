"""
Rate Limiter

Per-tenant sliding-window rate limiting for AI requests.

Each tenant gets a log of request timestamps covering the trailing
60-second window. A check prunes the tenant's expired timestamps, then either
admits the request (recording it) or denies it with a retry hint derived from
the oldest timestamp still in the window.

Features:
- Lazy pruning on each check, idle tenants are dropped from the store
- Unlimited mode (limit 0) does no bookkeeping at all
- Injectable monotonic clock for deterministic tests
- Thread-safe store (the count is a soft limit, the data structure is not)

The store lives for the lifetime of the limiter instance. It is not
persisted, and a process restart resets every counter.
"""

import math
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

from chatbot_core.core.config.constants import (
    HEADER_RATE_LIMIT,
    HEADER_RATE_REMAINING,
    HEADER_RETRY_AFTER,
    RATE_LIMIT_WINDOW_MS,
    Stage,
)
from chatbot_core.core.config.settings import Settings, get_settings
from chatbot_core.core.logging import get_logger, log_stage

logger = get_logger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    """
    Result of a single rate-limit check.

    Attributes:
        allowed: Whether the request may proceed
        current_count: In-window requests at decision time (including this
            one when admitted)
        limit: Effective cap used for the decision (0 = unlimited)
        retry_after_seconds: Seconds until the oldest in-window request
            expires; only set on denial
    """
    allowed: bool
    current_count: int
    limit: int
    retry_after_seconds: int | None = None

    @property
    def unlimited(self) -> bool:
        return self.limit == 0

    def headers(self) -> dict[str, str]:
        """Render standard rate limit response headers for this decision."""
        if self.unlimited:
            return {}

        headers = {
            HEADER_RATE_LIMIT: str(self.limit),
            HEADER_RATE_REMAINING: str(max(0, self.limit - self.current_count)),
        }
        if self.retry_after_seconds is not None:
            headers[HEADER_RETRY_AFTER] = str(self.retry_after_seconds)
        return headers


class RateLimiter:
    """
    In-memory per-tenant sliding-window rate limiter.

    Algorithm (per check, limited mode):
    1. Prune timestamps older than the window; drop the tenant if none remain
    2. Count remaining timestamps ``n``
    3. ``n >= limit``: deny, retry after the oldest timestamp leaves the window
    4. Otherwise record ``now`` and admit with count ``n + 1``

    Usage:
        limiter = RateLimiter(limit_per_minute=20)
        decision = limiter.check(tenant_id)
        if not decision.allowed:
            ...  # reply 429 with decision.retry_after_seconds
    """

    WINDOW_MS = RATE_LIMIT_WINDOW_MS

    def __init__(self, limit_per_minute: int = 0, *, clock: Callable[[], float] = time.monotonic):
        """
        Initialize the limiter.

        Args:
            limit_per_minute: Requests per tenant per window; 0 disables limiting
            clock: Monotonic clock returning seconds
        """
        if limit_per_minute < 0:
            raise ValueError("limit_per_minute must be non-negative")

        self._limit = limit_per_minute
        self._clock = clock
        self._store: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

        logger.info(
            "RateLimiter initialized",
            stage=Stage.INITIALIZATION.value,
            limit_per_minute=limit_per_minute,
            window_ms=self.WINDOW_MS,
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **kwargs) -> "RateLimiter":
        """Build a limiter from AI_RATE_LIMIT_PER_MINUTE."""
        settings = settings or get_settings()
        return cls(settings.rate_limit.AI_RATE_LIMIT_PER_MINUTE, **kwargs)

    @property
    def limit(self) -> int:
        return self._limit

    def _now_ms(self) -> float:
        return self._clock() * 1000.0

    def _prune(self, tenant_id: str, now_ms: float) -> deque[float] | None:
        timestamps = self._store.get(tenant_id)
        if timestamps is None:
            return None

        # Timestamps are chronological, so expired ones sit at the left
        while timestamps and now_ms - timestamps[0] >= self.WINDOW_MS:
            timestamps.popleft()

        if not timestamps:
            del self._store[tenant_id]
            return None
        return timestamps

    def check(self, tenant_id: str) -> RateLimitDecision:
        """
        Decide whether ``tenant_id`` may make one more request.

        Never raises; a denial is reported through the returned decision.
        """
        if self._limit <= 0:
            return RateLimitDecision(allowed=True, current_count=0, limit=0)

        with self._lock:
            now_ms = self._now_ms()
            timestamps = self._prune(tenant_id, now_ms)
            count = len(timestamps) if timestamps else 0

            if count >= self._limit:
                oldest = timestamps[0]
                retry_after = math.ceil((oldest + self.WINDOW_MS - now_ms) / 1000)
                decision = RateLimitDecision(
                    allowed=False,
                    current_count=count,
                    limit=self._limit,
                    retry_after_seconds=max(1, retry_after),
                )
            else:
                if timestamps is None:
                    timestamps = self._store[tenant_id] = deque()
                timestamps.append(now_ms)
                decision = RateLimitDecision(
                    allowed=True,
                    current_count=count + 1,
                    limit=self._limit,
                )

        if decision.allowed:
            log_stage(
                logger, Stage.RATE_LIMITING, "Tenant admitted",
                tenant_id=tenant_id, current_count=decision.current_count, limit=decision.limit,
            )
        else:
            log_stage(
                logger, Stage.RATE_LIMITING, "Tenant rate limited", level="warning",
                tenant_id=tenant_id, current_count=decision.current_count,
                limit=decision.limit, retry_after_seconds=decision.retry_after_seconds,
            )
        return decision

    def peek(self, tenant_id: str) -> int:
        """Count a tenant's in-window requests without recording or pruning."""
        with self._lock:
            timestamps = self._store.get(tenant_id)
            if not timestamps:
                return 0
            now_ms = self._now_ms()
            return sum(1 for t in timestamps if now_ms - t < self.WINDOW_MS)

    def tracked_tenants(self) -> list[str]:
        """Tenants that currently hold at least one stored timestamp."""
        with self._lock:
            return list(self._store)

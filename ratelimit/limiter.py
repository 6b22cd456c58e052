"""Per-source token buckets plus a global daily request quota."""

import logging
import math
import threading
import time
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional
from zoneinfo import ZoneInfo

from errors import DailyQuotaExceededError, RateLimitExceededError

logger = logging.getLogger(__name__)


class TokenBucket:
    """Classic token bucket. Not thread-safe on its own."""

    def __init__(self, rate: float, burst: int, now: float):
        self.rate = rate
        self.burst = burst
        self.tokens = float(burst)
        self.last_refill = now

    def _refill(self, now: float):
        elapsed = max(0.0, now - self.last_refill)
        self.tokens = min(float(self.burst), self.tokens + elapsed * self.rate)
        self.last_refill = now

    def try_acquire(self, now: float) -> bool:
        self._refill(now)
        if self.tokens >= 1.0:
            self.tokens -= 1.0
            return True
        return False

    def seconds_until_token(self) -> int:
        if self.rate <= 0:
            return 1
        return max(1, math.ceil((1.0 - self.tokens) / self.rate))


class SourceRateLimiter:
    """One token bucket per request source (client IP)."""

    def __init__(
        self,
        rate: float = 1.0,
        burst: int = 3,
        clock: Callable[[], float] = time.monotonic
    ):
        self.rate = rate
        self.burst = burst
        self.clock = clock
        self._buckets: Dict[str, TokenBucket] = {}
        self._lock = threading.Lock()

    def allow(self, source: str) -> Optional[int]:
        """None when admitted, otherwise seconds to wait."""
        with self._lock:
            now = self.clock()
            bucket = self._buckets.get(source)
            if bucket is None:
                bucket = self._buckets[source] = TokenBucket(self.rate, self.burst, now)
            if bucket.try_acquire(now):
                return None
            return bucket.seconds_until_token()


class DailyQuota:
    """Global request counter that resets at midnight in a fixed timezone."""

    def __init__(
        self,
        limit: int = 1000,
        timezone: str = "America/Los_Angeles",
        now: Optional[Callable[[], datetime]] = None
    ):
        self.limit = limit
        self.tz = ZoneInfo(timezone)
        self._now = now or (lambda: datetime.now(self.tz))
        self._lock = threading.Lock()
        self.count = 0
        self.reset_at = self._next_midnight(self._now())

    def _next_midnight(self, current: datetime) -> datetime:
        local = current.astimezone(self.tz)
        tomorrow = (local + timedelta(days=1)).date()
        return datetime(tomorrow.year, tomorrow.month, tomorrow.day, tzinfo=self.tz)

    def try_acquire(self) -> Optional[int]:
        """None when a unit was taken, otherwise seconds until the reset."""
        with self._lock:
            current = self._now()
            if current >= self.reset_at:
                logger.info(f"Daily quota reset ({self.count} requests served)")
                self.count = 0
                self.reset_at = self._next_midnight(current)

            if self.count >= self.limit:
                return max(1, math.ceil((self.reset_at - current).total_seconds()))

            self.count += 1
            return None

    def release(self):
        """Give back a unit taken by a request that was rejected later."""
        with self._lock:
            if self.count > 0:
                self.count -= 1

    @property
    def remaining(self) -> int:
        with self._lock:
            return max(0, self.limit - self.count)


class RateLimiter:
    """Admission control: daily quota first, then the per-source bucket."""

    def __init__(self, source_limiter: SourceRateLimiter, daily_quota: DailyQuota):
        self.source_limiter = source_limiter
        self.daily_quota = daily_quota

    @classmethod
    def from_settings(cls, settings) -> "RateLimiter":
        return cls(
            SourceRateLimiter(settings.rate_limit_per_second, settings.rate_limit_burst),
            DailyQuota(settings.daily_quota, settings.quota_timezone),
        )

    def check(self, source: str):
        """
        Admit one request from source.

        Raises:
            DailyQuotaExceededError: The global daily limit is used up
            RateLimitExceededError: This source is sending too fast
        """
        wait = self.daily_quota.try_acquire()
        if wait is not None:
            logger.warning("Daily quota exhausted")
            raise DailyQuotaExceededError("Daily quota exceeded", retry_after=wait)

        wait = self.source_limiter.allow(source)
        if wait is not None:
            self.daily_quota.release()
            logger.info(f"Rate limited source, retry after {wait}s")
            raise RateLimitExceededError("Too many requests", retry_after=wait)

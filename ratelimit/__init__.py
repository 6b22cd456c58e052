"""Request admission control."""

from .limiter import TokenBucket, SourceRateLimiter, DailyQuota, RateLimiter

__all__ = [
    "TokenBucket",
    "SourceRateLimiter",
    "DailyQuota",
    "RateLimiter",
]

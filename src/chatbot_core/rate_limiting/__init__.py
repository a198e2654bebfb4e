"""
Rate Limiting Module

Provides per-tenant sliding-window rate limiting.
"""

from .rate_limiter import RateLimitDecision, RateLimiter

__all__ = [
    "RateLimitDecision",
    "RateLimiter",
]

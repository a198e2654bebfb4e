"""
Rate Limiting Exceptions

All exceptions related to rate limiting operations.
"""

from typing import Any

from chatbot_core.core.exceptions.base import ChatbotError


class RateLimitError(ChatbotError):
    """Base exception for rate limiting errors."""
    pass


class RateLimitExceededError(RateLimitError):
    """
    Raised when a tenant exceeds its per-minute quota.

    The limiter itself only returns decisions. Callers raise this error when
    they want a denial to unwind the request, and translate it into a 429
    with a Retry-After hint.
    """

    def __init__(
        self,
        message: str,
        retry_after_seconds: int,
        limit: int,
        current_count: int,
        thread_id: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.retry_after_seconds = retry_after_seconds
        self.limit = limit
        self.current_count = current_count
        details = dict(details or {})
        details.update(
            retry_after_seconds=retry_after_seconds,
            limit=limit,
            current_count=current_count,
        )
        super().__init__(message, thread_id=thread_id, details=details)

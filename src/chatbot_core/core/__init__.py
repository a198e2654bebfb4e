"""
Core Module

Foundational components: configuration, logging and exceptions.
"""

from .exceptions import (
    ChatbotError,
    ConfigurationError,
    ExhaustedError,
    InvocationCancelledError,
    ProviderError,
    ProviderNonRetryableError,
    ProviderRetryableError,
    RateLimitExceededError,
    ValidationError,
)
from .logging import (
    clear_thread_id,
    get_logger,
    get_thread_id,
    log_stage,
    set_thread_id,
    setup_logging,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "set_thread_id",
    "get_thread_id",
    "clear_thread_id",
    "log_stage",
    "ChatbotError",
    "ConfigurationError",
    "ExhaustedError",
    "InvocationCancelledError",
    "ProviderError",
    "ProviderNonRetryableError",
    "ProviderRetryableError",
    "RateLimitExceededError",
    "ValidationError",
]

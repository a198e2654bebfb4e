"""
Exception Module

Structured exception hierarchy for the chatbot core, organized by theme.

Module Structure:
-----------------
- **base.py**: ChatbotError base class + ConfigurationError
- **provider.py**: LLM provider exceptions (retryable / non-retryable / aggregate)
- **rate_limit.py**: Rate limiting exceptions
- **validation.py**: Request validation exceptions

Usage:
------
```python
from chatbot_core.core.exceptions import ExhaustedError, ProviderRateLimitedError
```
"""

from chatbot_core.core.exceptions.base import ChatbotError, ConfigurationError
from chatbot_core.core.exceptions.provider import (
    ExhaustedError,
    InvocationCancelledError,
    NestedToolCallError,
    ProviderAuthenticationError,
    ProviderContentPolicyError,
    ProviderError,
    ProviderNonRetryableError,
    ProviderNotConfiguredError,
    ProviderRateLimitedError,
    ProviderRequestError,
    ProviderRetryableError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from chatbot_core.core.exceptions.rate_limit import RateLimitError, RateLimitExceededError
from chatbot_core.core.exceptions.validation import InvalidInputError, ValidationError

__all__ = [
    # Base
    "ChatbotError",
    "ConfigurationError",
    # Provider
    "ProviderError",
    "ProviderRetryableError",
    "ProviderRateLimitedError",
    "ProviderTimeoutError",
    "ProviderUnavailableError",
    "ProviderNonRetryableError",
    "ProviderAuthenticationError",
    "ProviderRequestError",
    "ProviderContentPolicyError",
    "ProviderNotConfiguredError",
    "NestedToolCallError",
    "ExhaustedError",
    "InvocationCancelledError",
    # Rate Limit
    "RateLimitError",
    "RateLimitExceededError",
    # Validation
    "ValidationError",
    "InvalidInputError",
]

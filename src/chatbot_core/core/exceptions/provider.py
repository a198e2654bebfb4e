"""
LLM Provider Exceptions

All exceptions related to LLM provider operations (Groq, Gemini, OpenAI).

Every provider adapter raises exactly one of two families, so the fallback
invoker never has to guess whether a failure is worth trying elsewhere:

- ProviderRetryableError: quota, rate limiting, timeouts, outages
- ProviderNonRetryableError: bad requests, auth, content policy, missing config
"""

from typing import Any

from chatbot_core.core.exceptions.base import ChatbotError


class ProviderError(ChatbotError):
    """Base exception for LLM provider errors."""

    retryable: bool = False

    @property
    def provider(self) -> str | None:
        """Name of the provider that raised the error, when known."""
        return self.details.get("provider")


# ============================================================================
# Retryable failures
# ============================================================================


class ProviderRetryableError(ProviderError):
    """
    A transient provider failure. Another provider is likely to succeed.
    """

    retryable = True


class ProviderRateLimitedError(ProviderRetryableError):
    """
    Raised when a provider rejects the call for quota or rate reasons.

    Common causes:
    - HTTP 429 from the provider
    - Daily or per-minute token quota exhausted (RESOURCE_EXHAUSTED)
    """
    pass


class ProviderTimeoutError(ProviderRetryableError):
    """
    Raised when a provider request times out.
    """
    pass


class ProviderUnavailableError(ProviderRetryableError):
    """
    Raised when a provider cannot be reached or returns a server error.

    Common causes:
    - Network connectivity issues
    - HTTP 5xx from the provider
    """
    pass


# ============================================================================
# Non-retryable failures
# ============================================================================


class ProviderNonRetryableError(ProviderError):
    """
    A provider failure caused by the request or the account rather than the
    provider's availability.
    """

    retryable = False


class ProviderAuthenticationError(ProviderNonRetryableError):
    """
    Raised when provider authentication fails.

    Common causes:
    - Invalid or expired API key
    - Insufficient permissions
    """
    pass


class ProviderRequestError(ProviderNonRetryableError):
    """
    Raised when the provider rejects the request as malformed, or returns a
    response that cannot be decoded.
    """
    pass


class ProviderContentPolicyError(ProviderNonRetryableError):
    """
    Raised when the provider refuses the conversation on content policy grounds.
    """
    pass


class ProviderNotConfiguredError(ProviderNonRetryableError):
    """
    Raised when a provider is invoked without usable credentials.
    """
    pass


class NestedToolCallError(ProviderNonRetryableError):
    """
    Raised when a provider asks for another tool call while answering a
    tool result. Only one tool round-trip per provider is supported.
    """
    pass


# ============================================================================
# Aggregate failures
# ============================================================================


class ExhaustedError(ProviderError):
    """
    Raised when every configured provider has failed.

    ``failures`` lists one entry per failed attempt, in attempt order, each
    carrying the provider identity and its failure reason.
    """

    def __init__(
        self,
        message: str,
        failures: list[Any] | None = None,
        thread_id: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.failures = list(failures or [])
        details = dict(details or {})
        details.setdefault("failures", [failure.to_dict() for failure in self.failures])
        super().__init__(message, thread_id=thread_id, details=details)

    @property
    def attempted_providers(self) -> list[str]:
        """Provider names in attempt order."""
        return [failure.provider for failure in self.failures]


class InvocationCancelledError(ChatbotError):
    """
    Raised when the caller's deadline for an invocation expires.

    No further provider is tried once this is raised.
    """
    pass

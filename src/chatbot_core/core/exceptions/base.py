"""
Base Exception Class

This module contains the base exception class that all other chatbot
exceptions inherit from, plus ConfigurationError.
"""

from typing import Any


class ChatbotError(Exception):
    """
    Base exception for all chatbot core errors.

    Attributes:
        message: Error message
        thread_id: Thread ID for correlation (if available)
        details: Additional error details (dict)

    Example:
        raise ProviderUnavailableError(
            "Could not connect to Groq",
            thread_id="abc-123",
            details={"provider": "groq"}
        )
    """

    def __init__(
        self, message: str, thread_id: str | None = None, details: dict[str, Any] | None = None
    ):
        self.message = message
        self.thread_id = thread_id
        self.details = (details or {}).copy()
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for logging/API responses.

        Returns:
            Dict with error_type, message, thread_id, and details
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "thread_id": self.thread_id,
            "details": self.details,
        }

    def with_context(self, **context) -> "ChatbotError":
        """
        Add additional context to the error details.

        Returns:
            Self (for method chaining)
        """
        self.details.update(context)
        return self

    def __repr__(self) -> str:
        details_str = f", details={self.details}" if self.details else ""
        thread_id_str = f", thread_id='{self.thread_id}'" if self.thread_id else ""
        return f"{self.__class__.__name__}(message='{self.message}'{thread_id_str}{details_str})"

    @classmethod
    def from_exception(
        cls,
        exc: Exception,
        message: str | None = None,
        thread_id: str | None = None,
        **details
    ) -> "ChatbotError":
        """
        Create an error of this class from another exception.

        Useful for wrapping third-party SDK exceptions with additional context.

        Example:
            >>> try:
            ...     await client.chat.completions.create(...)
            ... except openai.RateLimitError as e:
            ...     raise ProviderRateLimitedError.from_exception(e, provider="openai") from e
        """
        error_message = message or str(exc) or exc.__class__.__name__
        error_details = {
            "original_error": exc.__class__.__name__,
            "original_message": str(exc),
            **details
        }
        return cls(error_message, thread_id=thread_id, details=error_details)


class ConfigurationError(ChatbotError):
    """Raised when configuration is invalid or missing."""
    pass

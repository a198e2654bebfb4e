"""
Validation Exceptions

Exceptions raised when an inbound request fails validation.
"""

from chatbot_core.core.exceptions.base import ChatbotError


class ValidationError(ChatbotError):
    """Base exception for request validation errors."""
    pass


class InvalidInputError(ValidationError):
    """Raised when request input is empty or malformed."""
    pass

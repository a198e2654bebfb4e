"""
System Constants and Enumerations

This module defines system-wide constants and enumerations used across
the chatbot core: rate-limit window, provider identities, message roles,
attempt outcomes and HTTP header names.

Architectural Decision: Centralized constants for maintainability
- Single source of truth for magic numbers
- Type-safe enums for state management
"""

from enum import Enum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Request processing stages used as the ``stage`` field of log entries.

    Format: {SEQUENCE}_{DESCRIPTIVE_NAME}
    """

    INITIALIZATION = "0.0_INITIALIZATION"
    REQUEST_VALIDATION = "1.0_REQUEST_VALIDATION"
    RATE_LIMITING = "2.0_RATE_LIMITING"
    PROVIDER_INVOCATION = "3.0_PROVIDER_INVOCATION"
    TOOL_EXECUTION = "4.0_TOOL_EXECUTION"
    RESPONSE = "5.0_RESPONSE"


# ============================================================================
# Rate Limiting
# ============================================================================

# Trailing window for the per-tenant limiter, in milliseconds
RATE_LIMIT_WINDOW_MS = 60_000


# ============================================================================
# LLM Providers
# ============================================================================


class LLMProvider(str, Enum):
    """
    Supported LLM providers.
    """

    GROQ = "groq"
    GEMINI = "gemini"
    OPENAI = "openai"


# Ordered fallbacks tried after the primary provider
FALLBACK_CHAINS: dict[LLMProvider, tuple[LLMProvider, ...]] = {
    LLMProvider.GROQ: (LLMProvider.GEMINI, LLMProvider.OPENAI),
    LLMProvider.GEMINI: (LLMProvider.GROQ, LLMProvider.OPENAI),
    LLMProvider.OPENAI: (LLMProvider.GROQ, LLMProvider.GEMINI),
}

# Groq models tried, in order, when the primary model is out of quota
GROQ_FALLBACK_MODELS = ("llama-3.1-8b-instant", "allam-2-7b")

# API keys starting with this marker are template placeholders, not real keys
PLACEHOLDER_KEY_PREFIX = "REEMPLAZAR"


class Role(str, Enum):
    """Conversation message roles."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class AttemptOutcome(str, Enum):
    """
    Outcome of one provider attempt within an invocation.
    """

    ANSWERED = "answered"
    TOOL_REQUESTED = "tool_requested"
    RETRYABLE_FAILURE = "retryable_failure"
    NON_RETRYABLE_FAILURE = "non_retryable_failure"


class Intent(str, Enum):
    """Coarse intent detected from an inbound chat message."""

    PURCHASE_INTENT = "purchase_intent"
    GREETING = "greeting"
    COMPLAINT = "complaint"
    INQUIRY = "inquiry"


class Channel(str, Enum):
    """Channels a bot message can arrive from."""

    WEB = "web"
    WHATSAPP = "whatsapp"
    INSTAGRAM = "instagram"
    MESSENGER = "messenger"
    TIKTOK = "tiktok"


# ============================================================================
# Chat defaults
# ============================================================================

EMPTY_ANSWER_FALLBACK = "No pude procesar tu mensaje."
RATE_LIMITED_MESSAGE = "Demasiados mensajes por minuto. Intenta en un momento."
PROVIDERS_DOWN_MESSAGE = "Error procesando el mensaje. Intenta más tarde."


# ============================================================================
# HTTP Headers
# ============================================================================

HEADER_THREAD_ID = "X-Thread-ID"
HEADER_RETRY_AFTER = "Retry-After"
HEADER_RATE_LIMIT = "X-RateLimit-Limit"
HEADER_RATE_REMAINING = "X-RateLimit-Remaining"

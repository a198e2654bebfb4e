"""
Services Module

Provider fallback and the chat request flow built on top of it.
"""

from .chat_service import ChatReply, ChatService, ToolRegistry, detect_intent
from .fallback_invoker import (
    AttemptPhase,
    InvocationResult,
    InvokerState,
    ProviderAttempt,
    ProviderFailure,
    ProviderFallbackInvoker,
)

__all__ = [
    "ChatReply",
    "ChatService",
    "ToolRegistry",
    "detect_intent",
    "AttemptPhase",
    "InvocationResult",
    "InvokerState",
    "ProviderAttempt",
    "ProviderFailure",
    "ProviderFallbackInvoker",
]

"""
LLM Providers Module

Provider-neutral conversation types plus adapters for Groq, Gemini and OpenAI.
"""

from .base_provider import (
    Answer,
    BaseProvider,
    Message,
    ProviderConfig,
    ProviderResponse,
    ToolCall,
    ToolRequest,
    ToolResult,
    ToolSchema,
    is_usable_api_key,
)
from .fake_provider import FakeProvider
from .gemini_provider import GeminiProvider
from .groq_provider import GroqProvider
from .openai_provider import OpenAIProvider
from .registry import build_provider_chain, resolve_chain_order

__all__ = [
    "Answer",
    "BaseProvider",
    "Message",
    "ProviderConfig",
    "ProviderResponse",
    "ToolCall",
    "ToolRequest",
    "ToolResult",
    "ToolSchema",
    "is_usable_api_key",
    "FakeProvider",
    "GeminiProvider",
    "GroqProvider",
    "OpenAIProvider",
    "build_provider_chain",
    "resolve_chain_order",
]

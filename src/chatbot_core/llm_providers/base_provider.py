#!/usr/bin/env python3
"""
Base Provider Abstract Class

This module defines the provider-neutral conversation types and the abstract
base class for all LLM providers. Concrete implementations (Groq, Gemini,
OpenAI) inherit from this class.

Architectural Decision: Abstract base class for consistent patterns
- Common interface for all providers
- Each adapter classifies its own failures as retryable or non-retryable
- Structured logging around every call
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from chatbot_core.core.config.constants import PLACEHOLDER_KEY_PREFIX, Role, Stage
from chatbot_core.core.exceptions import ProviderError, ProviderNotConfiguredError
from chatbot_core.core.logging import get_logger, log_stage

logger = get_logger(__name__)


# ============================================================================
# Conversation types
# ============================================================================


@dataclass(frozen=True)
class Message:
    """A single role-tagged conversation message."""
    role: Role
    content: str

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(Role.SYSTEM, content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(Role.USER, content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(Role.ASSISTANT, content)


@dataclass(frozen=True)
class ToolSchema:
    """
    A callable tool offered to the provider.

    Attributes:
        name: Function name the provider will use to request the tool
        description: What the tool does, shown to the model
        parameters: JSON schema of the tool arguments
    """
    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})


@dataclass(frozen=True)
class ToolCall:
    """A provider's request to invoke a named tool with arguments."""
    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResult:
    """Caller-supplied output of a tool call, fed back to the same provider."""
    call: ToolCall
    content: str


@dataclass
class Answer:
    """
    A direct answer from a provider.

    Attributes:
        content: Text of the answer
        provider: Provider that produced it
        tokens_used: Total tokens reported by the provider (0 if unknown)
        model: Model that produced it
    """
    content: str
    provider: str
    tokens_used: int = 0
    model: str | None = None


@dataclass
class ToolRequest:
    """
    A provider's request to run one or more tools before answering.

    The pending assistant turn (``content`` and ``calls``) is kept so the same
    provider can continue from it once a tool result is available.
    """
    calls: list[ToolCall]
    provider: str
    content: str = ""
    tokens_used: int = 0
    model: str | None = None

    @property
    def call(self) -> ToolCall:
        """The first requested tool call."""
        return self.calls[0]


ProviderResponse = Answer | ToolRequest


@dataclass
class ProviderConfig:
    """
    Configuration for an LLM provider.

    Attributes:
        name: Provider name
        api_key: API key for authentication
        model: Default model to use
        base_url: Base URL for API (None = SDK default)
        timeout: Request timeout in seconds
        temperature: Sampling temperature
        max_tokens: Maximum completion tokens
        fallback_models: Models tried, in order, when ``model`` is out of quota
    """
    name: str
    api_key: str | None
    model: str
    base_url: str | None = None
    timeout: float = 30.0
    temperature: float = 0.7
    max_tokens: int = 800
    fallback_models: tuple[str, ...] = ()


def is_usable_api_key(api_key: str | None) -> bool:
    """An API key is usable when set and not a template placeholder."""
    return bool(api_key and api_key.strip() and not api_key.startswith(PLACEHOLDER_KEY_PREFIX))


class BaseProvider(ABC):
    """
    Abstract base class for LLM providers.

    This class provides:
    - The completion contract used by the fallback invoker
    - Configuration check before any network call
    - Logging around every call

    Subclasses must implement:
    - _complete(): First completion for a conversation
    - _complete_with_tool_result(): Follow-up completion after a tool call
    - health_check(): Provider health check

    Failure contract: subclasses raise ProviderRetryableError or
    ProviderNonRetryableError subclasses only. Translation from SDK
    exceptions happens inside the adapter.
    """

    def __init__(self, config: ProviderConfig):
        """
        Initialize base provider.

        Args:
            config: Provider configuration
        """
        self.config = config
        self.name = config.name

        logger.info(
            "Provider initialized",
            stage=Stage.INITIALIZATION.value,
            provider=config.name,
            model=config.model,
            configured=self.is_configured,
        )

    @property
    def is_configured(self) -> bool:
        """Whether the provider has usable credentials."""
        return is_usable_api_key(self.config.api_key)

    def _ensure_configured(self) -> None:
        if not self.is_configured:
            raise ProviderNotConfiguredError(
                f"{self.name} API key is not configured",
                details={"provider": self.name},
            )

    async def complete(
        self,
        conversation: Sequence[Message],
        tools: Sequence[ToolSchema] | None = None,
    ) -> ProviderResponse:
        """
        Complete a conversation.

        STAGE-3.1: Provider completion

        Args:
            conversation: Ordered role-tagged messages
            tools: Tool schemas the provider may call

        Returns:
            Answer or ToolRequest

        Raises:
            ProviderRetryableError: Quota, timeout or outage
            ProviderNonRetryableError: Bad request, auth, policy or missing config
        """
        self._ensure_configured()

        log_stage(
            logger, Stage.PROVIDER_INVOCATION, "Provider call started",
            provider=self.name, messages=len(conversation), tools=len(tools or ()),
        )

        try:
            response = await self._complete(list(conversation), list(tools or ()))
        except ProviderError as e:
            log_stage(
                logger, Stage.PROVIDER_INVOCATION, "Provider call failed", level="warning",
                provider=self.name, error_type=type(e).__name__, retryable=e.retryable, error=e.message,
            )
            raise

        self._log_response(response)
        return response

    async def complete_with_tool_result(
        self,
        conversation: Sequence[Message],
        request: ToolRequest,
        tool_result: ToolResult,
    ) -> ProviderResponse:
        """
        Continue a conversation after a tool call this provider requested.

        STAGE-3.2: Tool result continuation

        Args:
            conversation: The conversation originally sent to ``complete``
            request: The pending ToolRequest this provider returned
            tool_result: Output of the requested tool
        """
        self._ensure_configured()

        log_stage(
            logger, Stage.PROVIDER_INVOCATION, "Provider continuation started",
            provider=self.name, tool=tool_result.call.name,
        )

        try:
            response = await self._complete_with_tool_result(list(conversation), request, tool_result)
        except ProviderError as e:
            log_stage(
                logger, Stage.PROVIDER_INVOCATION, "Provider continuation failed", level="warning",
                provider=self.name, error_type=type(e).__name__, retryable=e.retryable, error=e.message,
            )
            raise

        self._log_response(response)
        return response

    def _log_response(self, response: ProviderResponse) -> None:
        if isinstance(response, ToolRequest):
            log_stage(
                logger, Stage.PROVIDER_INVOCATION, "Provider requested tool call",
                provider=self.name, model=response.model, tools=[c.name for c in response.calls],
            )
        else:
            log_stage(
                logger, Stage.PROVIDER_INVOCATION, "Provider answered",
                provider=self.name, model=response.model, tokens_used=response.tokens_used,
            )

    @abstractmethod
    async def _complete(
        self,
        conversation: list[Message],
        tools: list[ToolSchema],
    ) -> ProviderResponse:
        """
        Provider-specific completion.

        Args:
            conversation: Conversation messages
            tools: Tool schemas (possibly empty)
        """
        pass

    @abstractmethod
    async def _complete_with_tool_result(
        self,
        conversation: list[Message],
        request: ToolRequest,
        tool_result: ToolResult,
    ) -> ProviderResponse:
        """Provider-specific follow-up completion after a tool call."""
        pass

    @abstractmethod
    async def health_check(self) -> dict[str, Any]:
        """
        Check provider health.

        Returns:
            Dict with health status
        """
        pass

    def describe(self) -> dict[str, Any]:
        """Static description of the provider for health endpoints."""
        return {
            "provider": self.name,
            "model": self.config.model,
            "configured": self.is_configured,
            "timeout": self.config.timeout,
        }

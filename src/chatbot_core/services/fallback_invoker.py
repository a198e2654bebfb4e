"""
Provider Fallback Invoker

Tries an ordered list of LLM providers until one answers.

STATE MACHINE:
--------------
    TRYING(i) --answer--------------------------> SUCCEEDED
    TRYING(i) --tool request--------------------> TOOL_PENDING(i)
    TRYING(i) --failure, i < n-1----------------> TRYING(i+1)
    TRYING(i) --failure, i = n-1----------------> EXHAUSTED

    TOOL_PENDING(i) + tool result --answer------> SUCCEEDED
    TOOL_PENDING(i) + tool result --failure or
                    second tool request---------> TRYING(i+1) / EXHAUSTED

TOOL_PENDING is returned to the caller, who runs the tool (business logic
lives outside this module) and resumes the machine with the result.

Guarantees:
- Providers are tried one at a time, in configuration order
- The first answer wins
- Each provider gets at most one initial call and one continuation
- Both retryable and non-retryable failures fall through to the next
  provider; each failure is recorded with its class
- EXHAUSTED raises ExhaustedError listing every failure in attempt order
- Cancellation propagates immediately; an expired deadline raises
  InvocationCancelledError and no further provider is tried
"""

import asyncio
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeVar

from chatbot_core.core.config.constants import AttemptOutcome, Stage
from chatbot_core.core.exceptions import (
    ConfigurationError,
    ExhaustedError,
    InvocationCancelledError,
    NestedToolCallError,
    ProviderError,
    ProviderNonRetryableError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from chatbot_core.core.logging import get_logger, log_stage
from chatbot_core.llm_providers.base_provider import (
    Answer,
    BaseProvider,
    Message,
    ProviderResponse,
    ToolRequest,
    ToolResult,
    ToolSchema,
)

logger = get_logger(__name__)

T = TypeVar("T")


class InvokerState(str, Enum):
    """States of the fallback state machine."""

    TRYING = "trying"
    TOOL_PENDING = "tool_pending"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


class AttemptPhase(str, Enum):
    """Which call of a provider an attempt refers to."""

    INITIAL = "initial"
    TOOL_RESULT = "tool_result"


@dataclass(frozen=True)
class ProviderFailure:
    """One provider's failure, as reported in ExhaustedError."""
    index: int
    provider: str
    reason: str
    retryable: bool
    error_type: str
    phase: AttemptPhase = AttemptPhase.INITIAL

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "provider": self.provider,
            "reason": self.reason,
            "retryable": self.retryable,
            "error_type": self.error_type,
            "phase": self.phase.value,
        }


@dataclass(frozen=True)
class ProviderAttempt:
    """
    One call made to one provider during an invocation.

    Attributes:
        index: Position of the provider in the chain
        provider: Provider name
        outcome: What the call produced
        phase: Initial call or tool-result continuation
        error: The classified failure, when the call failed
    """
    index: int
    provider: str
    outcome: AttemptOutcome
    phase: AttemptPhase = AttemptPhase.INITIAL
    error: ProviderError | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    def as_failure(self) -> ProviderFailure:
        if self.error is None:
            raise ValueError(f"attempt {self.index} ({self.provider}) did not fail")
        return ProviderFailure(
            index=self.index,
            provider=self.provider,
            reason=self.error.message,
            retryable=self.error.retryable,
            error_type=type(self.error).__name__,
            phase=self.phase,
        )


@dataclass
class InvocationResult:
    """
    Outcome of an invocation that did not exhaust the chain.

    ``state`` is SUCCEEDED (``answer`` is set) or TOOL_PENDING (``request`` is
    set and the caller must resume with a tool result).
    """
    state: InvokerState
    provider_index: int
    provider_name: str
    attempts: list[ProviderAttempt] = field(default_factory=list)
    answer: Answer | None = None
    request: ToolRequest | None = None

    @property
    def succeeded(self) -> bool:
        return self.state == InvokerState.SUCCEEDED

    @property
    def pending(self) -> bool:
        return self.state == InvokerState.TOOL_PENDING

    @property
    def failures(self) -> list[ProviderFailure]:
        """Failed attempts, in attempt order."""
        return [a.as_failure() for a in self.attempts if a.failed]

    @property
    def attempted_providers(self) -> list[str]:
        """Provider names in attempt order (a provider appears once per call)."""
        return [a.provider for a in self.attempts]


def classify_unexpected(error: Exception, provider: str) -> ProviderError:
    """
    Classify an exception that escaped a provider adapter untranslated.

    Builtin timeouts and connection errors are transient; anything else is
    treated as a defect on the request side.
    """
    if isinstance(error, TimeoutError):
        error_class = ProviderTimeoutError
    elif isinstance(error, ConnectionError):
        error_class = ProviderUnavailableError
    else:
        error_class = ProviderNonRetryableError
    return error_class.from_exception(error, provider=provider)


class ProviderFallbackInvoker:
    """
    Sequential call-with-fallback over an ordered provider list.

    Usage:
        invoker = ProviderFallbackInvoker(build_provider_chain(settings))

        result = await invoker.invoke(conversation, tools)
        if result.pending:
            tool_result = await run_tool(result.request.call)
            result = await invoker.resume(result, conversation, tool_result, tools=tools)
        answer = result.answer
    """

    def __init__(self, providers: Sequence[BaseProvider], *, timeout: float | None = None):
        """
        Initialize the invoker.

        Args:
            providers: Providers in priority order; fixed for the invoker's lifetime
            timeout: Optional deadline in seconds for each invoke/continuation

        Raises:
            ConfigurationError: If ``providers`` is empty
        """
        if not providers:
            raise ConfigurationError("ProviderFallbackInvoker needs at least one provider")

        self._providers: tuple[BaseProvider, ...] = tuple(providers)
        self._timeout = timeout

        logger.info(
            "ProviderFallbackInvoker initialized",
            stage=Stage.INITIALIZATION.value,
            providers=self.provider_names,
            timeout=timeout,
        )

    @property
    def providers(self) -> tuple[BaseProvider, ...]:
        return self._providers

    @property
    def provider_names(self) -> list[str]:
        return [p.name for p in self._providers]

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def invoke(
        self,
        conversation: Sequence[Message],
        tools: Sequence[ToolSchema] | None = None,
    ) -> InvocationResult:
        """
        Start at TRYING(0) and run until SUCCEEDED, TOOL_PENDING or EXHAUSTED.

        Raises:
            ExhaustedError: Every provider failed
            InvocationCancelledError: The deadline expired
        """
        return await self._with_deadline(self._walk(0, list(conversation), list(tools or ()), []))

    async def invoke_with_tool_result(
        self,
        provider_index: int,
        conversation: Sequence[Message],
        tool_result: ToolResult,
        *,
        tools: Sequence[ToolSchema] | None = None,
        request: ToolRequest | None = None,
        attempts: Sequence[ProviderAttempt] | None = None,
    ) -> InvocationResult:
        """
        Resume TOOL_PENDING(provider_index) with a tool result.

        Args:
            provider_index: Provider that requested the tool
            conversation: Conversation originally passed to ``invoke``
            tool_result: Output of the requested tool
            tools: Tool schemas, offered again if later providers are tried
            request: The pending ToolRequest (rebuilt from ``tool_result``
                when omitted)
            attempts: Attempts recorded so far, so the final report covers
                the whole invocation

        Raises:
            ValueError: Unknown provider index, or the provider was already
                continued once in this invocation
            ExhaustedError: Every remaining provider failed
            InvocationCancelledError: The deadline expired
        """
        if not 0 <= provider_index < len(self._providers):
            raise ValueError(f"provider_index {provider_index} out of range")

        history = list(attempts or [])
        if any(a.index == provider_index and a.phase == AttemptPhase.TOOL_RESULT for a in history):
            raise ValueError(f"provider {provider_index} already received a tool result")

        provider = self._providers[provider_index]
        request = request or ToolRequest(calls=[tool_result.call], provider=provider.name)

        return await self._with_deadline(
            self._continue(provider_index, list(conversation), tool_result, request, list(tools or ()), history)
        )

    async def resume(
        self,
        result: InvocationResult,
        conversation: Sequence[Message],
        tool_result: ToolResult,
        *,
        tools: Sequence[ToolSchema] | None = None,
    ) -> InvocationResult:
        """Resume a TOOL_PENDING result returned by ``invoke``."""
        if not result.pending:
            raise ValueError("Only a TOOL_PENDING result can be resumed")
        return await self.invoke_with_tool_result(
            result.provider_index,
            conversation,
            tool_result,
            tools=tools,
            request=result.request,
            attempts=result.attempts,
        )

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    async def _with_deadline(self, operation: Awaitable[T]) -> T:
        if self._timeout is None:
            return await operation
        try:
            return await asyncio.wait_for(operation, self._timeout)
        except TimeoutError as e:
            log_stage(
                logger, Stage.PROVIDER_INVOCATION, "Invocation deadline expired", level="warning",
                timeout=self._timeout,
            )
            raise InvocationCancelledError(
                "Invocation deadline expired",
                details={"timeout": self._timeout},
            ) from e

    async def _walk(
        self,
        start: int,
        conversation: list[Message],
        tools: list[ToolSchema],
        attempts: list[ProviderAttempt],
    ) -> InvocationResult:
        for index in range(start, len(self._providers)):
            provider = self._providers[index]
            log_stage(
                logger, Stage.PROVIDER_INVOCATION, "Trying provider",
                state=InvokerState.TRYING.value, index=index, provider=provider.name,
            )

            try:
                response = await provider.complete(conversation, tools)
            except ProviderError as e:
                self._record_failure(attempts, index, provider, e, AttemptPhase.INITIAL)
                continue
            except Exception as e:
                self._record_failure(
                    attempts, index, provider, classify_unexpected(e, provider.name), AttemptPhase.INITIAL
                )
                continue

            return self._settle(attempts, index, provider, response, AttemptPhase.INITIAL)

        raise self._exhausted(attempts)

    async def _continue(
        self,
        index: int,
        conversation: list[Message],
        tool_result: ToolResult,
        request: ToolRequest,
        tools: list[ToolSchema],
        attempts: list[ProviderAttempt],
    ) -> InvocationResult:
        provider = self._providers[index]
        log_stage(
            logger, Stage.PROVIDER_INVOCATION, "Continuing provider with tool result",
            state=InvokerState.TOOL_PENDING.value, index=index, provider=provider.name,
            tool=tool_result.call.name,
        )

        try:
            response = await provider.complete_with_tool_result(conversation, request, tool_result)
        except ProviderError as e:
            self._record_failure(attempts, index, provider, e, AttemptPhase.TOOL_RESULT)
            return await self._walk(index + 1, conversation, tools, attempts)
        except Exception as e:
            self._record_failure(
                attempts, index, provider, classify_unexpected(e, provider.name), AttemptPhase.TOOL_RESULT
            )
            return await self._walk(index + 1, conversation, tools, attempts)

        if isinstance(response, ToolRequest):
            nested = NestedToolCallError(
                f"{provider.name} requested another tool call while answering a tool result",
                details={"provider": provider.name, "tools": [c.name for c in response.calls]},
            )
            self._record_failure(attempts, index, provider, nested, AttemptPhase.TOOL_RESULT)
            return await self._walk(index + 1, conversation, tools, attempts)

        return self._settle(attempts, index, provider, response, AttemptPhase.TOOL_RESULT)

    def _settle(
        self,
        attempts: list[ProviderAttempt],
        index: int,
        provider: BaseProvider,
        response: ProviderResponse,
        phase: AttemptPhase,
    ) -> InvocationResult:
        if isinstance(response, ToolRequest):
            attempts.append(ProviderAttempt(index, provider.name, AttemptOutcome.TOOL_REQUESTED, phase))
            return InvocationResult(
                state=InvokerState.TOOL_PENDING,
                provider_index=index,
                provider_name=provider.name,
                attempts=attempts,
                request=response,
            )

        attempts.append(ProviderAttempt(index, provider.name, AttemptOutcome.ANSWERED, phase))
        log_stage(
            logger, Stage.PROVIDER_INVOCATION, "Provider succeeded",
            state=InvokerState.SUCCEEDED.value, index=index, provider=provider.name,
            fallbacks_used=sum(1 for a in attempts if a.failed),
        )
        return InvocationResult(
            state=InvokerState.SUCCEEDED,
            provider_index=index,
            provider_name=provider.name,
            attempts=attempts,
            answer=response,
        )

    def _record_failure(
        self,
        attempts: list[ProviderAttempt],
        index: int,
        provider: BaseProvider,
        error: ProviderError,
        phase: AttemptPhase,
    ) -> None:
        outcome = AttemptOutcome.RETRYABLE_FAILURE if error.retryable else AttemptOutcome.NON_RETRYABLE_FAILURE
        attempts.append(ProviderAttempt(index, provider.name, outcome, phase, error))

        has_next = index + 1 < len(self._providers)
        log_stage(
            logger, Stage.PROVIDER_INVOCATION,
            "Provider failed, falling back" if has_next else "Last provider failed",
            level="warning",
            index=index,
            provider=provider.name,
            phase=phase.value,
            retryable=error.retryable,
            error_type=type(error).__name__,
            error=error.message,
            next_provider=self._providers[index + 1].name if has_next else None,
        )

    def _exhausted(self, attempts: list[ProviderAttempt]) -> ExhaustedError:
        failures = [a.as_failure() for a in attempts if a.failed]
        logger.error(
            "All providers exhausted",
            stage=Stage.PROVIDER_INVOCATION.value,
            state=InvokerState.EXHAUSTED.value,
            failures=[f.to_dict() for f in failures],
        )
        return ExhaustedError(
            f"All {len(self._providers)} configured providers failed",
            failures=failures,
        )

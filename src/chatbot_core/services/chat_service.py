"""
Chat Service

Composes the rate limiter, the fallback invoker and the tool registry into
one request flow:

    rate limit -> build conversation -> invoke -> [run tool -> resume] -> reply

Architectural Decision: Business tools are injected
- The service never knows what a tool does, only its schema and handler
- A failing or unknown tool becomes an ``Error: ...`` result for the model,
  so a broken handler degrades the answer instead of failing the request
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from chatbot_core.core.config.constants import EMPTY_ANSWER_FALLBACK, RATE_LIMITED_MESSAGE, Intent, Stage
from chatbot_core.core.exceptions import InvalidInputError, RateLimitExceededError
from chatbot_core.core.logging import get_logger, log_stage
from chatbot_core.llm_providers.base_provider import Message, ToolCall, ToolResult, ToolSchema
from chatbot_core.rate_limiting import RateLimitDecision, RateLimiter
from chatbot_core.services.fallback_invoker import ProviderAttempt, ProviderFallbackInvoker

logger = get_logger(__name__)

ToolHandler = Callable[[dict[str, Any]], Awaitable[Any]]

PURCHASE_KEYWORDS = ("comprar", "quiero", "precio", "costo", "cuánto", "pagar", "llevar", "adquirir")
GREETING_KEYWORDS = ("hola", "buenos", "buen día", "buenas", "saludos")
COMPLAINT_KEYWORDS = ("problema", "queja", "mal", "error", "falla", "defecto", "roto")


def detect_intent(message: str, had_tool_result: bool = False) -> Intent:
    """
    Keyword intent classifier.

    A conversation that ran a business tool counts as a purchase. Otherwise
    keyword groups are checked in order: purchase, greeting, complaint.
    """
    if had_tool_result:
        return Intent.PURCHASE_INTENT

    lower = message.lower()
    if any(k in lower for k in PURCHASE_KEYWORDS):
        return Intent.PURCHASE_INTENT
    if any(k in lower for k in GREETING_KEYWORDS):
        return Intent.GREETING
    if any(k in lower for k in COMPLAINT_KEYWORDS):
        return Intent.COMPLAINT
    return Intent.INQUIRY


class ToolRegistry:
    """Tool schemas offered to the model, with the async handlers that run them."""

    def __init__(self):
        self._tools: dict[str, tuple[ToolSchema, ToolHandler]] = {}

    def register(self, schema: ToolSchema, handler: ToolHandler) -> None:
        self._tools[schema.name] = (schema, handler)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    @property
    def schemas(self) -> list[ToolSchema]:
        return [schema for schema, _ in self._tools.values()]

    async def execute(self, call: ToolCall) -> ToolResult:
        """
        Run one tool call.

        Never raises for tool-side problems: they are reported to the model
        as an ``Error: ...`` result.
        """
        entry = self._tools.get(call.name)
        if entry is None:
            log_stage(logger, Stage.TOOL_EXECUTION, "Unknown tool requested", level="warning", tool=call.name)
            return ToolResult(call=call, content=f"Error: unknown tool '{call.name}'")

        _, handler = entry
        try:
            output = await handler(call.arguments)
        except Exception as e:
            log_stage(
                logger, Stage.TOOL_EXECUTION, "Tool handler failed", level="warning",
                tool=call.name, error=str(e), error_type=type(e).__name__,
            )
            return ToolResult(call=call, content=f"Error: {e}")

        log_stage(logger, Stage.TOOL_EXECUTION, "Tool executed", tool=call.name)
        return ToolResult(call=call, content=output if isinstance(output, str) else str(output))


@dataclass
class ChatReply:
    """The bot's reply to one inbound message."""
    message: str
    provider: str
    tokens_used: int
    intent: Intent
    tool_calls: list[ToolResult] = field(default_factory=list)
    attempts: list[ProviderAttempt] = field(default_factory=list)
    rate_limit: RateLimitDecision | None = None


class ChatService:
    """
    One inbound message in, one bot reply out.

    STAGE-2 through STAGE-5 of the bot request.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        invoker: ProviderFallbackInvoker,
        tools: ToolRegistry | None = None,
        system_prompt: str | None = None,
    ):
        self.rate_limiter = rate_limiter
        self.invoker = invoker
        self.tools = tools or ToolRegistry()
        self.system_prompt = system_prompt

    def build_conversation(self, message: str, history: list[Message] | None = None) -> list[Message]:
        conversation: list[Message] = []
        if self.system_prompt:
            conversation.append(Message.system(self.system_prompt))
        conversation.extend(history or [])
        conversation.append(Message.user(message))
        return conversation

    async def respond(
        self,
        tenant_id: str,
        message: str,
        *,
        history: list[Message] | None = None,
    ) -> ChatReply:
        """
        Answer ``message`` on behalf of ``tenant_id``.

        Raises:
            InvalidInputError: Empty message
            RateLimitExceededError: The tenant is over its per-minute quota
            ExhaustedError: Every provider failed
            InvocationCancelledError: The invocation deadline expired
        """
        if not message or not message.strip():
            raise InvalidInputError("Message is required", details={"field": "message"})

        decision = self.rate_limiter.check(tenant_id)
        if not decision.allowed:
            raise RateLimitExceededError(
                RATE_LIMITED_MESSAGE,
                retry_after_seconds=decision.retry_after_seconds,
                limit=decision.limit,
                current_count=decision.current_count,
                details={"tenant_id": tenant_id},
            )

        conversation = self.build_conversation(message, history)
        tools = self.tools.schemas

        result = await self.invoker.invoke(conversation, tools)

        tool_results: list[ToolResult] = []
        # A failed continuation can hand over to a provider that asks for a
        # tool again; the walk only moves forward, so this ends
        while result.pending:
            # Only the first requested call runs; one continuation per provider
            tool_result = await self.tools.execute(result.request.call)
            tool_results.append(tool_result)
            result = await self.invoker.resume(result, conversation, tool_result, tools=tools)

        answer = result.answer
        reply = ChatReply(
            message=answer.content or EMPTY_ANSWER_FALLBACK,
            provider=answer.provider,
            tokens_used=answer.tokens_used,
            intent=detect_intent(message, had_tool_result=bool(tool_results)),
            tool_calls=tool_results,
            attempts=result.attempts,
            rate_limit=decision,
        )

        log_stage(
            logger, Stage.RESPONSE, "Reply ready",
            tenant_id=tenant_id,
            provider=reply.provider,
            intent=reply.intent.value,
            tokens_used=reply.tokens_used,
            tools=[t.call.name for t in tool_results],
        )
        return reply

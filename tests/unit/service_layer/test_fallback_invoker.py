"""
Unit Tests for ProviderFallbackInvoker

Tests ordering, failure classification, the tool-call continuation,
exhaustion reporting, cancellation and deadlines.
"""

import asyncio

import pytest

from chatbot_core.core.config.constants import AttemptOutcome
from chatbot_core.core.exceptions import (
    ConfigurationError,
    ExhaustedError,
    InvocationCancelledError,
    ProviderTimeoutError,
)
from chatbot_core.llm_providers import (
    FakeProvider,
    Message,
    ProviderConfig,
    ToolCall,
    ToolRequest,
    ToolResult,
    ToolSchema,
)
from chatbot_core.services import AttemptPhase, InvokerState, ProviderAttempt, ProviderFallbackInvoker


@pytest.fixture
def conversation():
    return [Message.system("Sos un vendedor."), Message.user("Quiero la remera azul")]


@pytest.fixture
def payment_tool():
    return ToolSchema(
        name="generate_payment_link",
        description="Create a payment link for a product",
        parameters={"type": "object", "properties": {"product_id": {"type": "string"}}, "required": ["product_id"]},
    )


@pytest.mark.unit
class TestConstruction:
    def test_empty_provider_list_rejected(self):
        with pytest.raises(ConfigurationError):
            ProviderFallbackInvoker([])

    def test_provider_order_is_kept(self, providers):
        invoker = ProviderFallbackInvoker([providers.answering("b"), providers.answering("a")])
        assert invoker.provider_names == ["b", "a"]


@pytest.mark.unit
class TestFallbackOrder:
    """Providers are tried one at a time in configuration order."""

    @pytest.mark.asyncio
    async def test_falls_through_retryable_and_non_retryable_to_success(self, providers, conversation):
        a = providers.failing("a")
        b = providers.rejecting("b")
        c = providers.answering("c", content="La remera sale $5000")
        invoker = ProviderFallbackInvoker([a, b, c])

        result = await invoker.invoke(conversation)

        assert result.state == InvokerState.SUCCEEDED
        assert result.answer.content == "La remera sale $5000"
        assert result.provider_index == 2
        assert result.provider_name == "c"
        assert result.attempted_providers == ["a", "b", "c"]
        assert [a.outcome for a in result.attempts] == [
            AttemptOutcome.RETRYABLE_FAILURE,
            AttemptOutcome.NON_RETRYABLE_FAILURE,
            AttemptOutcome.ANSWERED,
        ]
        assert [f.retryable for f in result.failures] == [True, False]

    @pytest.mark.asyncio
    async def test_first_answer_wins(self, providers, conversation):
        first = providers.answering("first")
        second = providers.answering("second")
        invoker = ProviderFallbackInvoker([first, second])

        result = await invoker.invoke(conversation)

        assert result.provider_name == "first"
        assert result.failures == []
        assert second.calls == []

    @pytest.mark.asyncio
    async def test_each_provider_called_once(self, providers, conversation):
        a = providers.failing("a")
        b = providers.answering("b")
        invoker = ProviderFallbackInvoker([a, b])

        await invoker.invoke(conversation)

        assert len(a.calls) == 1
        assert len(b.calls) == 1

    @pytest.mark.asyncio
    async def test_every_provider_sees_the_same_conversation_and_tools(self, providers, conversation, payment_tool):
        a = providers.failing("a")
        b = providers.answering("b")
        invoker = ProviderFallbackInvoker([a, b])

        await invoker.invoke(conversation, [payment_tool])

        for provider in (a, b):
            assert provider.calls[0]["conversation"] == conversation
            assert provider.calls[0]["tools"] == [payment_tool]

    @pytest.mark.asyncio
    async def test_unconfigured_provider_is_a_non_retryable_failure(self, providers, conversation):
        missing = FakeProvider(ProviderConfig(name="missing", api_key=None, model="m"))
        invoker = ProviderFallbackInvoker([missing, providers.answering("b")])

        result = await invoker.invoke(conversation)

        assert result.provider_name == "b"
        assert result.failures[0].error_type == "ProviderNotConfiguredError"
        assert result.failures[0].retryable is False
        assert missing.calls == []


@pytest.mark.unit
class TestExhaustion:
    """When every provider fails the aggregate error lists each failure."""

    @pytest.mark.asyncio
    async def test_exhausted_error_lists_failures_in_attempt_order(self, providers, conversation):
        invoker = ProviderFallbackInvoker([providers.failing("a"), providers.rejecting("b")])

        with pytest.raises(ExhaustedError) as exc_info:
            await invoker.invoke(conversation)

        error = exc_info.value
        assert len(error.failures) == 2
        assert error.attempted_providers == ["a", "b"]
        assert error.failures[0].reason == "a quota exceeded"
        assert error.failures[0].error_type == "ProviderRateLimitedError"
        assert error.failures[1].reason == "b rejected the request"
        assert error.failures[1].retryable is False
        assert [f["provider"] for f in error.details["failures"]] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_single_failing_provider_exhausts(self, providers, conversation):
        invoker = ProviderFallbackInvoker([providers.failing("only")])

        with pytest.raises(ExhaustedError) as exc_info:
            await invoker.invoke(conversation)

        assert exc_info.value.attempted_providers == ["only"]

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_classified_not_raised(self, providers, conversation):
        broken = FakeProvider(ProviderConfig(name="broken", api_key="k", model="m"), script=[RuntimeError("boom")])
        slow = FakeProvider(ProviderConfig(name="slow", api_key="k", model="m"), script=[TimeoutError("read timeout")])
        invoker = ProviderFallbackInvoker([broken, slow])

        with pytest.raises(ExhaustedError) as exc_info:
            await invoker.invoke(conversation)

        broken_failure, slow_failure = exc_info.value.failures
        assert broken_failure.error_type == "ProviderNonRetryableError"
        assert broken_failure.retryable is False
        assert slow_failure.error_type == "ProviderTimeoutError"
        assert slow_failure.retryable is True


@pytest.mark.unit
class TestToolContinuation:
    """A tool request pauses the machine until the caller supplies a result."""

    @pytest.mark.asyncio
    async def test_tool_request_then_answer_uses_one_provider(self, providers, conversation, payment_tool):
        seller = providers.tool_calling("seller")
        backup = providers.answering("backup")
        invoker = ProviderFallbackInvoker([seller, backup])

        pending = await invoker.invoke(conversation, [payment_tool])
        assert pending.state == InvokerState.TOOL_PENDING
        assert pending.provider_index == 0
        assert pending.request.call.name == "generate_payment_link"

        tool_result = ToolResult(call=pending.request.call, content="https://pay.example/abc")
        result = await invoker.resume(pending, conversation, tool_result, tools=[payment_tool])

        assert result.state == InvokerState.SUCCEEDED
        assert result.answer.content == "seller used generate_payment_link"
        assert result.provider_name == "seller"
        assert backup.calls == []
        assert [a.phase for a in result.attempts] == [AttemptPhase.INITIAL, AttemptPhase.TOOL_RESULT]
        assert seller.calls[1]["kind"] == "tool_result"
        assert seller.calls[1]["tool_result"] is tool_result

    @pytest.mark.asyncio
    async def test_invoke_with_tool_result_by_index(self, providers, conversation):
        seller = providers.tool_calling("seller")
        invoker = ProviderFallbackInvoker([seller])

        pending = await invoker.invoke(conversation)
        tool_result = ToolResult(call=pending.request.call, content="ok")
        result = await invoker.invoke_with_tool_result(0, conversation, tool_result)

        assert result.succeeded
        # The request is rebuilt from the tool result when not supplied
        assert seller.calls[1]["request"].call == pending.request.call

    @pytest.mark.asyncio
    async def test_nested_tool_request_falls_through(self, providers, conversation, payment_tool):
        # Continuation asks for yet another tool
        seller = providers.tool_calling("seller", then=[_nested_request("seller")])
        backup = providers.answering("backup", content="Te paso el link")
        invoker = ProviderFallbackInvoker([seller, backup])

        pending = await invoker.invoke(conversation, [payment_tool])
        tool_result = ToolResult(call=pending.request.call, content="https://pay.example/abc")
        result = await invoker.resume(pending, conversation, tool_result, tools=[payment_tool])

        assert result.provider_name == "backup"
        assert result.failures[0].error_type == "NestedToolCallError"
        assert result.failures[0].phase == AttemptPhase.TOOL_RESULT
        # The next provider starts from the original conversation, tools included
        assert backup.calls[0]["conversation"] == conversation
        assert backup.calls[0]["tools"] == [payment_tool]

    @pytest.mark.asyncio
    async def test_nested_tool_request_on_last_provider_exhausts(self, providers, conversation):
        seller = providers.tool_calling("seller", then=[_nested_request("seller")])
        invoker = ProviderFallbackInvoker([seller])

        pending = await invoker.invoke(conversation)
        tool_result = ToolResult(call=pending.request.call, content="ok")

        with pytest.raises(ExhaustedError) as exc_info:
            await invoker.resume(pending, conversation, tool_result)

        assert exc_info.value.failures[0].error_type == "NestedToolCallError"

    @pytest.mark.asyncio
    async def test_continuation_failure_falls_through(self, providers, conversation):
        seller = providers.tool_calling("seller", then=[ProviderTimeoutError("slow", details={"provider": "seller"})])
        backup = providers.answering("backup")
        invoker = ProviderFallbackInvoker([seller, backup])

        pending = await invoker.invoke(conversation)
        result = await invoker.resume(pending, conversation, ToolResult(call=pending.request.call, content="ok"))

        assert result.provider_name == "backup"
        assert result.attempted_providers == ["seller", "seller", "backup"]
        assert result.attempts[1].outcome == AttemptOutcome.RETRYABLE_FAILURE

    @pytest.mark.asyncio
    async def test_continuation_failure_can_hand_over_to_another_tool_request(self, providers, conversation, payment_tool):
        seller = providers.tool_calling("seller", then=[ProviderTimeoutError("slow", details={"provider": "seller"})])
        backup = providers.tool_calling("backup")
        invoker = ProviderFallbackInvoker([seller, backup])

        pending = await invoker.invoke(conversation, [payment_tool])
        tool_result = ToolResult(call=pending.request.call, content="https://pay.example/abc")
        result = await invoker.resume(pending, conversation, tool_result, tools=[payment_tool])

        assert result.pending
        assert result.provider_name == "backup"
        assert result.provider_index == 1
        assert backup.calls[0]["tools"] == [payment_tool]

        final = await invoker.resume(result, conversation, ToolResult(call=result.request.call, content="ok"))

        assert final.succeeded
        assert final.answer.content == "backup used generate_payment_link"
        assert final.attempted_providers == ["seller", "seller", "backup", "backup"]

    @pytest.mark.asyncio
    async def test_provider_continued_at_most_once(self, providers, conversation):
        seller = providers.tool_calling("seller")
        invoker = ProviderFallbackInvoker([seller])

        pending = await invoker.invoke(conversation)
        tool_result = ToolResult(call=pending.request.call, content="ok")
        result = await invoker.resume(pending, conversation, tool_result)

        with pytest.raises(ValueError):
            await invoker.invoke_with_tool_result(0, conversation, tool_result, attempts=result.attempts)

    @pytest.mark.asyncio
    async def test_unknown_provider_index_rejected(self, providers, conversation):
        seller = providers.tool_calling("seller")
        invoker = ProviderFallbackInvoker([seller])
        pending = await invoker.invoke(conversation)

        with pytest.raises(ValueError):
            await invoker.invoke_with_tool_result(3, conversation, ToolResult(call=pending.request.call, content=""))

    @pytest.mark.asyncio
    async def test_only_pending_results_can_be_resumed(self, providers, conversation):
        invoker = ProviderFallbackInvoker([providers.answering("a")])
        result = await invoker.invoke(conversation)

        with pytest.raises(ValueError):
            await invoker.resume(result, conversation, ToolResult(call=None, content=""))


@pytest.mark.unit
class TestProviderAttempt:
    def test_successful_attempt_is_not_a_failure(self):
        attempt = ProviderAttempt(0, "groq", AttemptOutcome.ANSWERED)

        assert attempt.failed is False
        with pytest.raises(ValueError):
            attempt.as_failure()

    def test_failed_attempt_converts(self):
        error = ProviderTimeoutError("slow", details={"provider": "groq"})
        failure = ProviderAttempt(1, "groq", AttemptOutcome.RETRYABLE_FAILURE, AttemptPhase.TOOL_RESULT, error).as_failure()

        assert failure.to_dict() == {
            "index": 1,
            "provider": "groq",
            "reason": "slow",
            "retryable": True,
            "error_type": "ProviderTimeoutError",
            "phase": "tool_result",
        }


@pytest.mark.unit
class TestCancellation:
    """Cancellation is neither success nor a reason to fall back."""

    @pytest.mark.asyncio
    async def test_cancellation_propagates_without_fallback(self, providers, conversation):
        hanging = providers.hanging("hanging")
        backup = providers.answering("backup")
        invoker = ProviderFallbackInvoker([hanging, backup])

        task = asyncio.create_task(invoker.invoke(conversation))
        await hanging.started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert backup.calls == []

    @pytest.mark.asyncio
    async def test_deadline_raises_invocation_cancelled(self, providers, conversation):
        hanging = providers.hanging("hanging")
        backup = providers.answering("backup")
        invoker = ProviderFallbackInvoker([hanging, backup], timeout=0.05)

        with pytest.raises(InvocationCancelledError):
            await invoker.invoke(conversation)
        assert backup.calls == []

    @pytest.mark.asyncio
    async def test_deadline_not_hit_by_fast_providers(self, providers, conversation):
        invoker = ProviderFallbackInvoker([providers.failing("a"), providers.answering("b")], timeout=5)

        result = await invoker.invoke(conversation)

        assert result.provider_name == "b"


def _nested_request(name):
    return ToolRequest(calls=[ToolCall(id="nested", name="lookup_product", arguments={})], provider=name)

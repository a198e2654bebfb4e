"""
Unit Tests for the Gemini Provider

The generative model is replaced through ``model_factory``; responses are
plain namespaces shaped like the SDK's.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from google.api_core import exceptions as google_exceptions

from chatbot_core.core.exceptions import (
    ProviderAuthenticationError,
    ProviderContentPolicyError,
    ProviderRateLimitedError,
    ProviderRequestError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from chatbot_core.llm_providers import (
    Answer,
    GeminiProvider,
    Message,
    ProviderConfig,
    ToolRequest,
    ToolResult,
    ToolSchema,
)
from chatbot_core.llm_providers.gemini_provider import to_gemini_schema


def text_part(text):
    return SimpleNamespace(text=text, function_call=None)


def call_part(name, args):
    return SimpleNamespace(text="", function_call=SimpleNamespace(name=name, args=args))


def response(*parts, finish="STOP", block_reason=None, tokens=9):
    candidate = SimpleNamespace(finish_reason=SimpleNamespace(name=finish), content=SimpleNamespace(parts=list(parts)))
    return SimpleNamespace(
        prompt_feedback=SimpleNamespace(block_reason=block_reason),
        candidates=[candidate] if parts or finish != "STOP" else [],
        usage_metadata=SimpleNamespace(total_token_count=tokens),
    )


def make_provider(*results):
    model = MagicMock()
    model.generate_content_async = AsyncMock(side_effect=list(results))
    factory = MagicMock(return_value=model)
    config = ProviderConfig(name="gemini", api_key="AIza-test", model="gemini-2.5-flash", temperature=0.5, max_tokens=300)
    return GeminiProvider(config, model_factory=factory), factory, model


@pytest.fixture
def conversation():
    return [Message.system("Sos un vendedor."), Message.user("Hola"), Message.assistant("¡Hola!"), Message.user("Precio?")]


@pytest.mark.unit
class TestPayload:
    @pytest.mark.asyncio
    async def test_system_prompt_and_roles(self, conversation):
        provider, factory, model = make_provider(response(text_part("Sale $5000")))

        await provider.complete(conversation)

        args, kwargs = factory.call_args
        assert args == ("gemini-2.5-flash",)
        assert kwargs["system_instruction"] == "Sos un vendedor."
        assert kwargs["tools"] is None
        assert kwargs["generation_config"] == {"temperature": 0.5, "max_output_tokens": 300}

        contents = model.generate_content_async.call_args.args[0]
        assert [c["role"] for c in contents] == ["user", "model", "user"]
        assert contents[2]["parts"] == [{"text": "Precio?"}]

    @pytest.mark.asyncio
    async def test_tools_become_function_declarations(self, conversation):
        tool = ToolSchema(
            name="lookup_product",
            description="Find a product",
            parameters={"type": "object", "properties": {"name": {"type": "string"}}, "required": ["name"]},
        )
        provider, factory, _ = make_provider(response(text_part("ok")))

        await provider.complete(conversation, [tool])

        declaration = factory.call_args.kwargs["tools"][0]["function_declarations"][0]
        assert declaration["name"] == "lookup_product"
        assert declaration["parameters"] == {
            "type": "OBJECT",
            "properties": {"name": {"type": "STRING"}},
            "required": ["name"],
        }

    def test_schema_conversion_drops_unsupported_keys(self):
        schema = {
            "type": "array",
            "items": {"type": "integer", "default": 1},
            "additionalProperties": False,
            "description": "ids",
        }
        assert to_gemini_schema(schema) == {"type": "ARRAY", "description": "ids", "items": {"type": "INTEGER"}}


@pytest.mark.unit
class TestResponses:
    @pytest.mark.asyncio
    async def test_text_answer(self, conversation):
        provider, _, _ = make_provider(response(text_part("Sale "), text_part("$5000")))

        result = await provider.complete(conversation)

        assert result == Answer(content="Sale $5000", provider="gemini", tokens_used=9, model="gemini-2.5-flash")

    @pytest.mark.asyncio
    async def test_function_call(self, conversation):
        provider, _, _ = make_provider(response(call_part("generate_payment_link", {"product_id": "p1"})))

        result = await provider.complete(conversation)

        assert isinstance(result, ToolRequest)
        assert result.call.id == "gemini_call_0"
        assert result.call.arguments == {"product_id": "p1"}

    @pytest.mark.asyncio
    async def test_continuation_sends_function_response(self, conversation):
        provider, _, model = make_provider(
            response(call_part("generate_payment_link", {"product_id": "p1"})),
            response(text_part("Acá está tu link")),
        )
        request = await provider.complete(conversation)

        result = await provider.complete_with_tool_result(
            conversation, request, ToolResult(call=request.call, content="https://pay.example/p1")
        )

        assert result.content == "Acá está tu link"
        contents = model.generate_content_async.call_args.args[0]
        assert contents[-2]["parts"][0]["function_call"]["name"] == "generate_payment_link"
        assert contents[-1]["parts"][0]["function_response"]["response"] == {"result": "https://pay.example/p1"}

    @pytest.mark.asyncio
    async def test_blocked_prompt_is_content_policy(self, conversation):
        provider, _, _ = make_provider(response(text_part(""), block_reason="SAFETY"))

        with pytest.raises(ProviderContentPolicyError):
            await provider.complete(conversation)

    @pytest.mark.asyncio
    async def test_safety_stop_is_content_policy(self, conversation):
        provider, _, _ = make_provider(response(finish="SAFETY"))

        with pytest.raises(ProviderContentPolicyError):
            await provider.complete(conversation)

    @pytest.mark.asyncio
    async def test_no_candidates_is_request_error(self, conversation):
        provider, _, _ = make_provider(response())

        with pytest.raises(ProviderRequestError):
            await provider.complete(conversation)


@pytest.mark.unit
class TestErrorMapping:
    @pytest.mark.parametrize("error, expected", [
        (google_exceptions.ResourceExhausted("quota"), ProviderRateLimitedError),
        (google_exceptions.TooManyRequests("slow down"), ProviderRateLimitedError),
        (google_exceptions.DeadlineExceeded("late"), ProviderTimeoutError),
        (google_exceptions.ServiceUnavailable("down"), ProviderUnavailableError),
        (google_exceptions.InternalServerError("oops"), ProviderUnavailableError),
        (google_exceptions.Unauthenticated("bad key"), ProviderAuthenticationError),
        (google_exceptions.PermissionDenied("no"), ProviderAuthenticationError),
        (google_exceptions.InvalidArgument("bad"), ProviderRequestError),
        (google_exceptions.NotFound("no model"), ProviderRequestError),
        (google_exceptions.BadGateway("proxy"), ProviderUnavailableError),
    ])
    @pytest.mark.asyncio
    async def test_api_errors_are_classified(self, conversation, error, expected):
        provider, _, _ = make_provider(error)

        with pytest.raises(expected) as exc_info:
            await provider.complete(conversation)

        assert exc_info.value.provider == "gemini"


@pytest.mark.unit
class TestHealthCheck:
    @pytest.mark.asyncio
    async def test_healthy_when_model_resolves(self, monkeypatch):
        get_model = MagicMock()
        monkeypatch.setattr("chatbot_core.llm_providers.gemini_provider.genai.get_model", get_model)
        provider, _, _ = make_provider()

        result = await provider.health_check()

        assert result["status"] == "healthy"
        get_model.assert_called_once_with("models/gemini-2.5-flash")

    @pytest.mark.asyncio
    async def test_unhealthy_on_api_error(self, monkeypatch):
        monkeypatch.setattr(
            "chatbot_core.llm_providers.gemini_provider.genai.get_model",
            MagicMock(side_effect=google_exceptions.NotFound("no model")),
        )
        provider, _, _ = make_provider()

        result = await provider.health_check()

        assert result["status"] == "unhealthy"
        assert result["provider"] == "gemini"

    @pytest.mark.asyncio
    async def test_unconfigured_is_reported(self):
        factory = MagicMock()
        provider = GeminiProvider(ProviderConfig(name="gemini", api_key=None, model="gemini-2.5-flash"), model_factory=factory)

        assert (await provider.health_check())["status"] == "not_configured"

#!/usr/bin/env python3
"""
OpenAI LLM Provider Implementation

This module implements the OpenAI provider using the official AsyncOpenAI
client. It handles chat completions with function tools, the tool-result
follow-up turn, and error mapping to the internal exception hierarchy.

Architectural Decision: Use official SDK
- Provides best compatibility with OpenAI features
- SDK retries are disabled; fallback across providers is handled by the
  invoker
"""

import time
from typing import Any

import openai
import orjson
from openai import AsyncOpenAI

from chatbot_core.core.exceptions import (
    ProviderAuthenticationError,
    ProviderContentPolicyError,
    ProviderError,
    ProviderRateLimitedError,
    ProviderRequestError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from chatbot_core.core.logging import get_logger
from chatbot_core.llm_providers.base_provider import (
    Answer,
    BaseProvider,
    Message,
    ProviderConfig,
    ProviderResponse,
    ToolCall,
    ToolRequest,
    ToolResult,
    ToolSchema,
)

logger = get_logger(__name__)


def decode_tool_arguments(raw: str | None, provider: str) -> dict[str, Any]:
    """
    Decode a tool call's JSON argument string.

    Raises:
        ProviderRequestError: If the provider sent arguments that are not a JSON object
    """
    if not raw:
        return {}
    try:
        arguments = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise ProviderRequestError.from_exception(
            e, message=f"{provider} returned malformed tool arguments", provider=provider
        ) from e
    if not isinstance(arguments, dict):
        raise ProviderRequestError(
            f"{provider} returned tool arguments that are not an object",
            details={"provider": provider, "arguments": raw},
        )
    return arguments


class OpenAIProvider(BaseProvider):
    """
    Concrete implementation of the OpenAI LLM provider.

    STAGE-OPENAI: OpenAI provider operations

    Also serves as the base for OpenAI-compatible providers (Groq).
    """

    def __init__(self, config: ProviderConfig, client: AsyncOpenAI | None = None):
        """
        Initialize the OpenAI provider.

        Args:
            config: Configuration object containing API key, model, etc.
            client: Pre-built client (tests inject a mock here)
        """
        super().__init__(config)

        self.client = client or AsyncOpenAI(
            api_key=config.api_key or "",
            base_url=config.base_url or None,
            timeout=config.timeout,
            max_retries=0
        )

    # ------------------------------------------------------------------
    # Payload builders
    # ------------------------------------------------------------------

    @staticmethod
    def _to_messages(conversation: list[Message]) -> list[dict[str, Any]]:
        return [{"role": m.role.value, "content": m.content} for m in conversation]

    @staticmethod
    def _to_tools(tools: list[ToolSchema]) -> list[dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": t.name,
                    "description": t.description,
                    "parameters": t.parameters,
                },
            }
            for t in tools
        ]

    @staticmethod
    def _assistant_tool_turn(request: ToolRequest, call: ToolCall) -> dict[str, Any]:
        return {
            "role": "assistant",
            "content": request.content or None,
            "tool_calls": [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {
                        "name": call.name,
                        "arguments": orjson.dumps(call.arguments).decode(),
                    },
                }
            ],
        }

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    async def _complete(self, conversation: list[Message], tools: list[ToolSchema]) -> ProviderResponse:
        return await self._create(self.config.model, self._to_messages(conversation), tools)

    async def _complete_with_tool_result(
        self,
        conversation: list[Message],
        request: ToolRequest,
        tool_result: ToolResult,
    ) -> ProviderResponse:
        messages = self._to_messages(conversation)
        messages.append(self._assistant_tool_turn(request, tool_result.call))
        messages.append({
            "role": "tool",
            "tool_call_id": tool_result.call.id,
            "content": tool_result.content,
        })
        return await self._create(request.model or self.config.model, messages)

    async def _create(
        self,
        model: str,
        messages: list[dict[str, Any]],
        tools: list[ToolSchema] | None = None,
    ) -> ProviderResponse:
        """
        Run one chat completion and normalize the result.

        STAGE-OPENAI.CREATE: Chat completion
        """
        options: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        if tools:
            options["tools"] = self._to_tools(tools)
            options["tool_choice"] = "auto"

        try:
            completion = await self.client.chat.completions.create(**options)
        except openai.APIError as api_error:
            raise self._map_error(api_error, model) from api_error

        return self._parse_completion(completion, model)

    def _parse_completion(self, completion: Any, model: str) -> ProviderResponse:
        if not completion.choices:
            raise ProviderRequestError(
                f"{self.name} returned no choices",
                details={"provider": self.name, "model": model},
            )

        message = completion.choices[0].message
        tokens_used = completion.usage.total_tokens if completion.usage else 0

        calls = [
            ToolCall(
                id=tc.id,
                name=tc.function.name,
                arguments=decode_tool_arguments(tc.function.arguments, self.name),
            )
            for tc in (message.tool_calls or [])
        ]
        if calls:
            return ToolRequest(
                calls=calls,
                provider=self.name,
                content=message.content or "",
                tokens_used=tokens_used,
                model=model,
            )

        return Answer(
            content=message.content or "",
            provider=self.name,
            tokens_used=tokens_used,
            model=model,
        )

    def _map_error(self, error: openai.APIError, model: str) -> ProviderError:
        """
        Translate an OpenAI SDK exception into the internal hierarchy.

        Order matters: APITimeoutError subclasses APIConnectionError, and
        every HTTP status error subclasses APIStatusError.
        """
        status_code = getattr(error, "status_code", None)

        if isinstance(error, openai.RateLimitError):
            error_class = ProviderRateLimitedError
        elif isinstance(error, openai.APITimeoutError):
            error_class = ProviderTimeoutError
        elif isinstance(error, openai.APIConnectionError):
            error_class = ProviderUnavailableError
        elif isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
            error_class = ProviderAuthenticationError
        elif isinstance(error, openai.BadRequestError):
            error_class = ProviderContentPolicyError if error.code == "content_filter" else ProviderRequestError
        elif isinstance(error, openai.APIStatusError):
            error_class = ProviderUnavailableError if error.status_code >= 500 else ProviderRequestError
        else:
            error_class = ProviderRequestError

        logger.warning(
            "OpenAI-compatible API error",
            stage="OPENAI.ERR",
            provider=self.name,
            model=model,
            status_code=status_code,
            mapped_to=error_class.__name__,
            error=str(error),
        )

        return error_class.from_exception(
            error,
            message=f"{self.name} API error: {error.message}",
            provider=self.name,
            model=model,
            status_code=status_code,
            code=getattr(error, "code", None),
        )

    async def health_check(self) -> dict[str, Any]:
        """
        Perform a health check by listing models.

        Returns:
            Dict containing the health status and latency.
        """
        if not self.is_configured:
            return {"status": "not_configured", "provider": self.name}
        try:
            start_time = time.perf_counter()
            await self.client.models.list()
            duration_ms = (time.perf_counter() - start_time) * 1000

            return {
                "status": "healthy",
                "latency_ms": round(duration_ms, 2),
                "provider": self.name
            }
        except openai.APIError as e:
            return {
                "status": "unhealthy",
                "error": str(e),
                "provider": self.name
            }

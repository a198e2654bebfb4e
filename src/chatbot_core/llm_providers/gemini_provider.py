#!/usr/bin/env python3
"""
Google Gemini LLM Provider Implementation

This module implements the Google Gemini provider using the
google-generativeai library.

Gemini differs from the OpenAI-style providers in three places:
- The system message travels as ``system_instruction``, not as a turn
- Tools are ``function_declarations`` with upper-case schema type names
- A tool result is returned as a ``function_response`` part
"""

import time
from collections.abc import Callable
from typing import Any

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from chatbot_core.core.config.constants import Role
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

# google.api_core exception -> internal class; first match wins
_ERROR_MAP: tuple[tuple[type[Exception], type[ProviderError]], ...] = (
    (google_exceptions.ResourceExhausted, ProviderRateLimitedError),
    (google_exceptions.TooManyRequests, ProviderRateLimitedError),
    (google_exceptions.DeadlineExceeded, ProviderTimeoutError),
    (google_exceptions.ServiceUnavailable, ProviderUnavailableError),
    (google_exceptions.InternalServerError, ProviderUnavailableError),
    (google_exceptions.Unauthenticated, ProviderAuthenticationError),
    (google_exceptions.PermissionDenied, ProviderAuthenticationError),
    (google_exceptions.InvalidArgument, ProviderRequestError),
)

_SCHEMA_KEYS = ("description", "enum", "format", "nullable")


def to_gemini_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """
    Convert a JSON schema into Gemini's schema dialect.

    Type names are upper-cased and keys Gemini rejects (``default``,
    ``additionalProperties``) are dropped.
    """
    converted: dict[str, Any] = {"type": str(schema.get("type", "string")).upper()}
    for key in _SCHEMA_KEYS:
        if key in schema:
            converted[key] = schema[key]
    if "properties" in schema:
        converted["properties"] = {
            name: to_gemini_schema(sub) for name, sub in schema["properties"].items()
        }
    if "items" in schema:
        converted["items"] = to_gemini_schema(schema["items"])
    if schema.get("required"):
        converted["required"] = list(schema["required"])
    return converted


class GeminiProvider(BaseProvider):
    """
    Concrete implementation of the Google Gemini LLM provider.

    STAGE-GEMINI: Gemini provider operations
    """

    def __init__(
        self,
        config: ProviderConfig,
        model_factory: Callable[..., Any] | None = None,
    ):
        """
        Initialize the Gemini provider.

        Args:
            config: Configuration object.
            model_factory: Builds the generative model (tests inject a mock);
                defaults to ``genai.GenerativeModel``
        """
        super().__init__(config)

        # The SDK is configured globally; one key per service instance.
        if self.is_configured and model_factory is None:
            genai.configure(api_key=config.api_key)

        self._model_factory = model_factory or genai.GenerativeModel

    # ------------------------------------------------------------------
    # Payload builders
    # ------------------------------------------------------------------

    @staticmethod
    def _split_system(conversation: list[Message]) -> tuple[str | None, list[Message]]:
        system = next((m.content for m in conversation if m.role == Role.SYSTEM), None)
        return system, [m for m in conversation if m.role != Role.SYSTEM]

    @staticmethod
    def _to_contents(messages: list[Message]) -> list[dict[str, Any]]:
        return [
            {"role": "user" if m.role == Role.USER else "model", "parts": [{"text": m.content}]}
            for m in messages
        ]

    @staticmethod
    def _to_tools(tools: list[ToolSchema]) -> list[dict[str, Any]] | None:
        if not tools:
            return None
        return [{
            "function_declarations": [
                {
                    "name": t.name,
                    "description": t.description,
                    "parameters": to_gemini_schema(t.parameters),
                }
                for t in tools
            ]
        }]

    def _build_model(self, system: str | None, tools: list[ToolSchema]) -> Any:
        return self._model_factory(
            self.config.model,
            system_instruction=system,
            tools=self._to_tools(tools),
            generation_config={
                "temperature": self.config.temperature,
                "max_output_tokens": self.config.max_tokens,
            },
        )

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    async def _complete(self, conversation: list[Message], tools: list[ToolSchema]) -> ProviderResponse:
        system, messages = self._split_system(conversation)
        model = self._build_model(system, tools)
        return await self._generate(model, self._to_contents(messages))

    async def _complete_with_tool_result(
        self,
        conversation: list[Message],
        request: ToolRequest,
        tool_result: ToolResult,
    ) -> ProviderResponse:
        system, messages = self._split_system(conversation)
        model = self._build_model(system, [])

        call = tool_result.call
        contents = self._to_contents(messages)
        contents.append({
            "role": "model",
            "parts": [{"function_call": {"name": call.name, "args": call.arguments}}],
        })
        contents.append({
            "role": "user",
            "parts": [{"function_response": {"name": call.name, "response": {"result": tool_result.content}}}],
        })
        return await self._generate(model, contents)

    async def _generate(self, model: Any, contents: list[dict[str, Any]]) -> ProviderResponse:
        """
        Run one generate_content call and normalize the result.

        STAGE-GEMINI.GENERATE: Content generation
        """
        try:
            response = await model.generate_content_async(
                contents,
                request_options={"timeout": self.config.timeout},
            )
        except google_exceptions.GoogleAPICallError as api_error:
            raise self._map_error(api_error) from api_error

        return self._parse_response(response)

    def _parse_response(self, response: Any) -> ProviderResponse:
        feedback = getattr(response, "prompt_feedback", None)
        if feedback is not None and getattr(feedback, "block_reason", None):
            raise ProviderContentPolicyError(
                f"{self.name} blocked the prompt",
                details={"provider": self.name, "block_reason": str(feedback.block_reason)},
            )

        candidates = list(response.candidates or [])
        if not candidates:
            raise ProviderRequestError(
                f"{self.name} returned no candidates",
                details={"provider": self.name, "model": self.config.model},
            )

        candidate = candidates[0]
        finish_reason = getattr(candidate.finish_reason, "name", str(candidate.finish_reason))
        if finish_reason == "SAFETY":
            raise ProviderContentPolicyError(
                f"{self.name} stopped the answer on safety grounds",
                details={"provider": self.name, "finish_reason": finish_reason},
            )

        parts = list(candidate.content.parts) if candidate.content else []
        usage = getattr(response, "usage_metadata", None)
        tokens_used = getattr(usage, "total_token_count", 0) or 0

        calls = [
            ToolCall(
                id=f"gemini_call_{index}",
                name=part.function_call.name,
                arguments=dict(part.function_call.args or {}),
            )
            for index, part in enumerate(p for p in parts if p.function_call)
        ]
        text = "".join(p.text for p in parts if getattr(p, "text", None))

        if calls:
            return ToolRequest(
                calls=calls,
                provider=self.name,
                content=text,
                tokens_used=tokens_used,
                model=self.config.model,
            )
        return Answer(content=text, provider=self.name, tokens_used=tokens_used, model=self.config.model)

    def _map_error(self, error: google_exceptions.GoogleAPICallError) -> ProviderError:
        """Translate a google.api_core exception into the internal hierarchy."""
        error_class = next(
            (internal for external, internal in _ERROR_MAP if isinstance(error, external)),
            None,
        )
        if error_class is None:
            code = getattr(error, "code", None)
            status = int(code) if isinstance(code, int) else 500
            error_class = ProviderUnavailableError if status >= 500 else ProviderRequestError

        logger.warning(
            "Gemini API error",
            stage="GEMINI.ERR",
            provider=self.name,
            mapped_to=error_class.__name__,
            error=str(error),
        )

        return error_class.from_exception(
            error,
            message=f"{self.name} API error: {error.message}",
            provider=self.name,
            model=self.config.model,
        )

    async def health_check(self) -> dict[str, Any]:
        """Check that the configured model can be resolved."""
        if not self.is_configured:
            return {"status": "not_configured", "provider": self.name}
        try:
            start_time = time.perf_counter()
            genai.get_model(f"models/{self.config.model}")
            duration_ms = (time.perf_counter() - start_time) * 1000
            return {"status": "healthy", "latency_ms": round(duration_ms, 2), "provider": self.name}
        except google_exceptions.GoogleAPICallError as e:
            return {"status": "unhealthy", "error": str(e), "provider": self.name}

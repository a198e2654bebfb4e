#!/usr/bin/env python3
"""
Groq LLM Provider Implementation

Groq's API is OpenAI-compatible, so this provider reuses the AsyncOpenAI
client pointed at Groq's endpoint.

Groq's free tier has small per-model quotas. When the primary model is rate
limited, the provider rotates through its fallback models before giving up.
Only rate limiting triggers a rotation; any other failure ends the attempt.
The model that answered is recorded on the response, and the tool-result
follow-up reuses it.
"""

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt

from chatbot_core.core.exceptions import ProviderRateLimitedError
from chatbot_core.core.logging import get_logger
from chatbot_core.llm_providers.base_provider import Message, ProviderResponse, ToolSchema
from chatbot_core.llm_providers.openai_provider import OpenAIProvider

logger = get_logger(__name__)


class GroqProvider(OpenAIProvider):
    """
    Concrete implementation of the Groq LLM provider.

    STAGE-GROQ: Groq provider operations
    """

    @property
    def models(self) -> list[str]:
        """Primary model followed by its distinct fallback models."""
        fallbacks = [m for m in self.config.fallback_models if m and m != self.config.model]
        return [self.config.model, *dict.fromkeys(fallbacks)]

    def _log_rotation(self, retry_state: RetryCallState) -> None:
        exhausted = self.models[retry_state.attempt_number - 1]
        logger.warning(
            "Groq model out of quota, trying next model",
            stage="GROQ.ROTATE",
            provider=self.name,
            model=exhausted,
            next_model=self.models[retry_state.attempt_number],
        )

    async def _complete(self, conversation: list[Message], tools: list[ToolSchema]) -> ProviderResponse:
        messages = self._to_messages(conversation)
        models = self.models

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(len(models)),
            retry=retry_if_exception_type(ProviderRateLimitedError),
            before_sleep=self._log_rotation,
            reraise=True,
        ):
            with attempt:
                model = models[attempt.retry_state.attempt_number - 1]
                response = await self._create(model, messages, tools)

        if response.model != self.config.model:
            logger.info("Groq answered with fallback model", stage="GROQ.ROTATE", model=response.model)
        return response

from typing import Any

from chatbot_core.core.logging import get_logger
from chatbot_core.llm_providers.base_provider import (
    Answer,
    BaseProvider,
    Message,
    ProviderConfig,
    ProviderResponse,
    ToolRequest,
    ToolResult,
    ToolSchema,
)

logger = get_logger(__name__)

Script = list[ProviderResponse | Exception | str]


class FakeProvider(BaseProvider):
    """
    A scripted LLM provider for local development and tests.

    Each call pops the next scripted step: an Answer or ToolRequest is
    returned, an exception is raised, and a plain string becomes an Answer.
    Once the script runs out, the provider echoes the last user message.
    Every call is recorded in ``calls`` for inspection.
    """

    def __init__(self, config: ProviderConfig | None = None, script: Script | None = None):
        super().__init__(config or ProviderConfig(name="fake", api_key="fake-key", model="fake-model"))
        self.script: Script = list(script or [])
        self.calls: list[dict[str, Any]] = []

    def _next(self, conversation: list[Message]) -> ProviderResponse:
        if not self.script:
            last_user = next((m.content for m in reversed(conversation) if m.role.value == "user"), "")
            return Answer(content=f"echo: {last_user}", provider=self.name, model=self.config.model)

        step = self.script.pop(0)
        if isinstance(step, Exception):
            raise step
        if isinstance(step, str):
            return Answer(content=step, provider=self.name, model=self.config.model)
        return step

    async def _complete(self, conversation: list[Message], tools: list[ToolSchema]) -> ProviderResponse:
        self.calls.append({"kind": "complete", "conversation": conversation, "tools": tools})
        return self._next(conversation)

    async def _complete_with_tool_result(
        self,
        conversation: list[Message],
        request: ToolRequest,
        tool_result: ToolResult,
    ) -> ProviderResponse:
        self.calls.append({
            "kind": "tool_result",
            "conversation": conversation,
            "request": request,
            "tool_result": tool_result,
        })
        return self._next(conversation)

    async def health_check(self) -> dict[str, Any]:
        return {
            "status": "healthy",
            "latency_ms": 0,
            "provider": self.name
        }

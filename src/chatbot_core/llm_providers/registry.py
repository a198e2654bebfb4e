"""
Provider Registry

Builds the ordered provider chain from settings.

The chain starts with AI_PROVIDER and continues with its fallback chain (or
AI_FALLBACK_PROVIDERS when set). Providers without a usable API key are left
out with a warning. The resulting order is fixed for the lifetime of the
invoker that receives it.
"""

from collections.abc import Callable

from chatbot_core.core.config.constants import FALLBACK_CHAINS, GROQ_FALLBACK_MODELS, LLMProvider
from chatbot_core.core.config.settings import Settings, get_settings
from chatbot_core.core.exceptions import ConfigurationError
from chatbot_core.core.logging import get_logger
from chatbot_core.llm_providers.base_provider import BaseProvider, ProviderConfig, is_usable_api_key
from chatbot_core.llm_providers.gemini_provider import GeminiProvider
from chatbot_core.llm_providers.groq_provider import GroqProvider
from chatbot_core.llm_providers.openai_provider import OpenAIProvider

logger = get_logger(__name__)

ProviderBuilder = Callable[[ProviderConfig], BaseProvider]

PROVIDER_CLASSES: dict[LLMProvider, ProviderBuilder] = {
    LLMProvider.GROQ: GroqProvider,
    LLMProvider.GEMINI: GeminiProvider,
    LLMProvider.OPENAI: OpenAIProvider,
}


def _split_csv(value: str | None) -> list[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


def resolve_chain_order(settings: Settings) -> list[LLMProvider]:
    """
    Primary provider followed by its fallbacks, without duplicates.

    Raises:
        ConfigurationError: If AI_FALLBACK_PROVIDERS names an unknown provider
    """
    llm = settings.llm
    primary = LLMProvider(llm.AI_PROVIDER)

    override = _split_csv(llm.AI_FALLBACK_PROVIDERS)
    if override:
        try:
            fallbacks = [LLMProvider(name.lower()) for name in override]
        except ValueError as e:
            raise ConfigurationError.from_exception(
                e, message="AI_FALLBACK_PROVIDERS names an unknown provider", value=llm.AI_FALLBACK_PROVIDERS
            ) from e
    else:
        fallbacks = list(FALLBACK_CHAINS[primary])

    return list(dict.fromkeys([primary, *fallbacks]))


def provider_config(provider: LLMProvider, settings: Settings) -> ProviderConfig:
    """Build the ProviderConfig for one provider from settings."""
    llm = settings.llm
    common = {
        "timeout": llm.AI_PROVIDER_TIMEOUT,
        "temperature": llm.AI_TEMPERATURE,
        "max_tokens": llm.AI_MAX_TOKENS,
    }

    if provider == LLMProvider.GROQ:
        fallback_models = _split_csv(llm.GROQ_FALLBACK_MODELS) or list(GROQ_FALLBACK_MODELS)
        return ProviderConfig(
            name=provider.value,
            api_key=llm.GROQ_API_KEY,
            model=llm.GROQ_MODEL,
            base_url=llm.GROQ_BASE_URL,
            fallback_models=tuple(fallback_models),
            **common,
        )
    if provider == LLMProvider.GEMINI:
        return ProviderConfig(name=provider.value, api_key=llm.GEMINI_API_KEY, model=llm.GEMINI_MODEL, **common)
    return ProviderConfig(
        name=provider.value,
        api_key=llm.OPENAI_API_KEY,
        model=llm.OPENAI_MODEL,
        base_url=llm.OPENAI_BASE_URL,
        **common,
    )


def build_provider_chain(
    settings: Settings | None = None,
    builders: dict[LLMProvider, ProviderBuilder] | None = None,
) -> list[BaseProvider]:
    """
    Build the ordered list of configured providers.

    Args:
        settings: Settings to read (defaults to the global settings)
        builders: Per-provider constructors (tests substitute fakes)

    Raises:
        ConfigurationError: If no provider has a usable API key
    """
    settings = settings or get_settings()
    builders = {**PROVIDER_CLASSES, **(builders or {})}

    chain: list[BaseProvider] = []
    skipped: list[str] = []
    for provider in resolve_chain_order(settings):
        config = provider_config(provider, settings)
        if not is_usable_api_key(config.api_key):
            skipped.append(provider.value)
            logger.warning("Provider skipped: API key not configured", provider=provider.value)
            continue
        chain.append(builders[provider](config))

    if not chain:
        raise ConfigurationError(
            "No AI provider is configured",
            details={"skipped": skipped},
        ).with_context(hint="Set GROQ_API_KEY, GEMINI_API_KEY or OPENAI_API_KEY")

    logger.info(
        "Provider chain built",
        chain=[p.name for p in chain],
        skipped=skipped,
    )
    return chain

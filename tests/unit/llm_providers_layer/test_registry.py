"""
Unit Tests for the Provider Registry

Tests chain ordering, overrides and skipping of unconfigured providers.
"""

import pytest

from chatbot_core.core.config.constants import LLMProvider
from chatbot_core.core.exceptions import ConfigurationError
from chatbot_core.llm_providers import FakeProvider, GeminiProvider, GroqProvider, OpenAIProvider
from chatbot_core.llm_providers.base_provider import is_usable_api_key
from chatbot_core.llm_providers.registry import build_provider_chain, provider_config, resolve_chain_order

FAKE_BUILDERS = {provider: FakeProvider for provider in LLMProvider}


@pytest.mark.unit
class TestChainOrder:
    @pytest.mark.parametrize("primary, expected", [
        ("groq", [LLMProvider.GROQ, LLMProvider.GEMINI, LLMProvider.OPENAI]),
        ("gemini", [LLMProvider.GEMINI, LLMProvider.GROQ, LLMProvider.OPENAI]),
        ("openai", [LLMProvider.OPENAI, LLMProvider.GROQ, LLMProvider.GEMINI]),
    ])
    def test_default_chains(self, make_settings, primary, expected):
        assert resolve_chain_order(make_settings(AI_PROVIDER=primary)) == expected

    def test_override_replaces_fallbacks_and_dedupes(self, make_settings):
        settings = make_settings(AI_PROVIDER="gemini", AI_FALLBACK_PROVIDERS="OpenAI, gemini ,openai")
        assert resolve_chain_order(settings) == [LLMProvider.GEMINI, LLMProvider.OPENAI]

    def test_unknown_override_rejected(self, make_settings):
        with pytest.raises(ConfigurationError):
            resolve_chain_order(make_settings(AI_FALLBACK_PROVIDERS="groq,mistral"))


@pytest.mark.unit
class TestProviderConfig:
    def test_groq_config(self, make_settings):
        config = provider_config(LLMProvider.GROQ, make_settings(GROQ_API_KEY="gsk_x", AI_PROVIDER_TIMEOUT=12))

        assert config.name == "groq"
        assert config.base_url == "https://api.groq.com/openai/v1"
        assert config.fallback_models == ("llama-3.1-8b-instant", "allam-2-7b")
        assert config.timeout == 12

    def test_groq_fallback_models_override(self, make_settings):
        config = provider_config(LLMProvider.GROQ, make_settings(GROQ_FALLBACK_MODELS="a, b"))
        assert config.fallback_models == ("a", "b")

    @pytest.mark.parametrize("key, usable", [
        (None, False),
        ("", False),
        ("   ", False),
        ("REEMPLAZAR_CON_TU_API_KEY", False),
        ("sk-real", True),
    ])
    def test_usable_keys(self, key, usable):
        assert is_usable_api_key(key) is usable


@pytest.mark.unit
class TestBuildChain:
    def test_real_adapters_in_order(self, all_keys_settings):
        chain = build_provider_chain(all_keys_settings)

        assert [type(p) for p in chain] == [GroqProvider, GeminiProvider, OpenAIProvider]
        assert [p.name for p in chain] == ["groq", "gemini", "openai"]

    def test_unconfigured_providers_skipped(self, make_settings):
        settings = make_settings(GROQ_API_KEY="REEMPLAZAR", OPENAI_API_KEY="sk-test")

        chain = build_provider_chain(settings, builders=FAKE_BUILDERS)

        assert [p.name for p in chain] == ["openai"]

    def test_no_configured_provider_is_a_configuration_error(self, make_settings):
        with pytest.raises(ConfigurationError) as exc_info:
            build_provider_chain(make_settings(), builders=FAKE_BUILDERS)

        assert exc_info.value.details["skipped"] == ["groq", "gemini", "openai"]

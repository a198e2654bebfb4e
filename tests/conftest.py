"""
Pytest Configuration and Shared Test Fixtures

This module provides reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.
"""

import pytest

from chatbot_core.core.config.settings import Settings
from chatbot_core.rate_limiting import RateLimiter
from tests.test_fixtures.provider_factory import ProviderTestFactory


# ============================================================================
# Time
# ============================================================================


class FakeClock:
    """
    Manually advanced monotonic clock.

    Returns seconds, like ``time.monotonic``; tests move it in milliseconds.
    """

    def __init__(self, start_ms: float = 1_000_000.0):
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms / 1000

    def advance(self, ms: float) -> None:
        self.now_ms += ms


@pytest.fixture
def fake_clock():
    """A clock that only moves when the test says so."""
    return FakeClock()


@pytest.fixture
def limiter_factory(fake_clock):
    """Build RateLimiters on the shared fake clock."""

    def _build(limit_per_minute: int) -> RateLimiter:
        return RateLimiter(limit_per_minute, clock=fake_clock)

    return _build


# ============================================================================
# Configuration
# ============================================================================


@pytest.fixture
def make_settings(monkeypatch):
    """
    Build Settings isolated from the developer's environment and .env file.
    """
    for name in ("GROQ_API_KEY", "GEMINI_API_KEY", "OPENAI_API_KEY", "AI_PROVIDER",
                 "AI_FALLBACK_PROVIDERS", "AI_RATE_LIMIT_PER_MINUTE", "AI_INVOKE_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)

    def _build(**overrides) -> Settings:
        return Settings(_env_file=None, **overrides)

    return _build


@pytest.fixture
def all_keys_settings(make_settings):
    """Settings with every provider configured."""
    return make_settings(
        GROQ_API_KEY="gsk_test",
        GEMINI_API_KEY="AIza_test",
        OPENAI_API_KEY="sk-test",
    )


# ============================================================================
# Providers
# ============================================================================


@pytest.fixture
def providers():
    """Factory for scripted provider stubs."""
    return ProviderTestFactory

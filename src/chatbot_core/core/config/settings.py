#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

This module provides type-safe, environment-based configuration for the
chatbot core. All configuration is centralized here to ensure consistency
across modules.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- Easy testing with override mechanisms
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from chatbot_core.core.config.constants import LLMProvider


class RateLimitSettings(BaseSettings):
    """
    Per-tenant rate limiting configuration.

    STAGE-2: Rate limiting threshold

    A limit of 0 disables the limiter entirely.
    """

    AI_RATE_LIMIT_PER_MINUTE: int = Field(default=0, ge=0, description="Requests per tenant per minute (0 = unlimited)")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LLMProviderSettings(BaseSettings):
    """
    LLM provider API configurations.

    STAGE-3: LLM provider configuration

    Supports: Groq, Google Gemini, OpenAI
    """

    AI_PROVIDER: LLMProvider = Field(default=LLMProvider.GROQ, description="Primary provider")
    AI_FALLBACK_PROVIDERS: str | None = Field(default=None, description="Comma list overriding the fallback chain")

    # Shared completion parameters
    AI_TEMPERATURE: float = Field(default=0.7, ge=0.0, le=2.0, description="Sampling temperature")
    AI_MAX_TOKENS: int = Field(default=800, gt=0, description="Max completion tokens")
    AI_PROVIDER_TIMEOUT: float = Field(default=30.0, gt=0, description="Per-call provider timeout (seconds)")
    AI_INVOKE_TIMEOUT: float | None = Field(default=None, gt=0, description="Deadline for a whole invocation (seconds)")

    # OpenAI
    OPENAI_API_KEY: str | None = Field(default=None, description="OpenAI API key")
    OPENAI_MODEL: str = Field(default="gpt-4o-mini", description="OpenAI model")
    OPENAI_BASE_URL: str | None = Field(default=None, description="OpenAI base URL override")

    # Groq
    GROQ_API_KEY: str | None = Field(default=None, description="Groq API key")
    GROQ_MODEL: str = Field(default="llama-3.3-70b-versatile", description="Groq primary model")
    GROQ_BASE_URL: str = Field(default="https://api.groq.com/openai/v1", description="Groq base URL")
    GROQ_FALLBACK_MODELS: str | None = Field(default=None, description="Comma list of Groq fallback models")

    # Google Gemini
    GEMINI_API_KEY: str | None = Field(default=None, description="Google Gemini API key")
    GEMINI_MODEL: str = Field(default="gemini-2.5-flash", description="Gemini model")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LoggingSettings(BaseSettings):
    """
    Logging configuration for structured logging.

    STAGE-L: Logging configuration
    """

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ApplicationSettings(BaseSettings):
    """
    General application settings.

    STAGE-0: Application initialization
    """

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment"
    )
    APP_NAME: str = Field(default="Chatbot Core", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration sections.

    STAGE-0: Centralized configuration initialization

    Usage:
        from chatbot_core.core.config import get_settings

        settings = get_settings()
        limit = settings.rate_limit.AI_RATE_LIMIT_PER_MINUTE
        primary = settings.llm.AI_PROVIDER
    """

    # Rate limiting
    AI_RATE_LIMIT_PER_MINUTE: int = Field(default=0, ge=0, description="Requests per tenant per minute (0 = unlimited)")

    # Provider selection and completion parameters
    AI_PROVIDER: LLMProvider = Field(default=LLMProvider.GROQ, description="Primary provider")
    AI_FALLBACK_PROVIDERS: str | None = Field(default=None, description="Comma list overriding the fallback chain")
    AI_TEMPERATURE: float = Field(default=0.7, ge=0.0, le=2.0, description="Sampling temperature")
    AI_MAX_TOKENS: int = Field(default=800, gt=0, description="Max completion tokens")
    AI_PROVIDER_TIMEOUT: float = Field(default=30.0, gt=0, description="Per-call provider timeout (seconds)")
    AI_INVOKE_TIMEOUT: float | None = Field(default=None, gt=0, description="Deadline for a whole invocation (seconds)")

    OPENAI_API_KEY: str | None = Field(default=None, description="OpenAI API key")
    OPENAI_MODEL: str = Field(default="gpt-4o-mini", description="OpenAI model")
    OPENAI_BASE_URL: str | None = Field(default=None, description="OpenAI base URL override")

    GROQ_API_KEY: str | None = Field(default=None, description="Groq API key")
    GROQ_MODEL: str = Field(default="llama-3.3-70b-versatile", description="Groq primary model")
    GROQ_BASE_URL: str = Field(default="https://api.groq.com/openai/v1", description="Groq base URL")
    GROQ_FALLBACK_MODELS: str | None = Field(default=None, description="Comma list of Groq fallback models")

    GEMINI_API_KEY: str | None = Field(default=None, description="Google Gemini API key")
    GEMINI_MODEL: str = Field(default="gemini-2.5-flash", description="Gemini model")

    # Logging settings
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    # Application settings
    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment"
    )
    APP_NAME: str = Field(default="Chatbot Core", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @field_validator("AI_RATE_LIMIT_PER_MINUTE", mode="before")
    @classmethod
    def empty_rate_limit_is_unlimited(cls, v):
        """Treat a set-but-empty AI_RATE_LIMIT_PER_MINUTE as 0 (unlimited)."""
        if isinstance(v, str) and not v.strip():
            return 0
        return v

    @field_validator("AI_PROVIDER", mode="before")
    @classmethod
    def normalize_provider(cls, v):
        """Accept provider names in any case."""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    # Nested configuration views
    @property
    def rate_limit(self) -> 'RateLimitSettings':
        """Get rate limit settings."""
        return RateLimitSettings(AI_RATE_LIMIT_PER_MINUTE=self.AI_RATE_LIMIT_PER_MINUTE)

    @property
    def llm(self) -> 'LLMProviderSettings':
        """Get LLM provider settings."""
        return LLMProviderSettings(
            AI_PROVIDER=self.AI_PROVIDER,
            AI_FALLBACK_PROVIDERS=self.AI_FALLBACK_PROVIDERS,
            AI_TEMPERATURE=self.AI_TEMPERATURE,
            AI_MAX_TOKENS=self.AI_MAX_TOKENS,
            AI_PROVIDER_TIMEOUT=self.AI_PROVIDER_TIMEOUT,
            AI_INVOKE_TIMEOUT=self.AI_INVOKE_TIMEOUT,
            OPENAI_API_KEY=self.OPENAI_API_KEY,
            OPENAI_MODEL=self.OPENAI_MODEL,
            OPENAI_BASE_URL=self.OPENAI_BASE_URL,
            GROQ_API_KEY=self.GROQ_API_KEY,
            GROQ_MODEL=self.GROQ_MODEL,
            GROQ_BASE_URL=self.GROQ_BASE_URL,
            GROQ_FALLBACK_MODELS=self.GROQ_FALLBACK_MODELS,
            GEMINI_API_KEY=self.GEMINI_API_KEY,
            GEMINI_MODEL=self.GEMINI_MODEL,
        )

    @property
    def logging(self) -> 'LoggingSettings':
        """Get logging settings."""
        return LoggingSettings(LOG_LEVEL=self.LOG_LEVEL, LOG_FORMAT=self.LOG_FORMAT)

    @property
    def app(self) -> 'ApplicationSettings':
        """Get application settings."""
        return ApplicationSettings(
            ENVIRONMENT=self.ENVIRONMENT,
            APP_NAME=self.APP_NAME,
            APP_VERSION=self.APP_VERSION,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton).

    Returns:
        Settings: Global settings instance
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """
    Reload settings (useful for testing).

    Returns:
        Settings: New settings instance
    """
    global _settings
    _settings = Settings()
    return _settings

"""
Configuration Module

Centralized, type-safe configuration for the chatbot core.

Components:
-----------
- **settings.py**: Pydantic-based configuration with environment variable loading
- **constants.py**: System-wide constants and enums

Usage:
------
```python
from chatbot_core.core.config import get_settings
from chatbot_core.core.config.constants import LLMProvider

settings = get_settings()
limit = settings.rate_limit.AI_RATE_LIMIT_PER_MINUTE
```

Testing:
-------
```python
import os
from chatbot_core.core.config import reload_settings

os.environ["AI_RATE_LIMIT_PER_MINUTE"] = "3"
settings = reload_settings()
assert settings.rate_limit.AI_RATE_LIMIT_PER_MINUTE == 3
```
"""

from chatbot_core.core.config.constants import (
    FALLBACK_CHAINS,
    GROQ_FALLBACK_MODELS,
    HEADER_RATE_LIMIT,
    HEADER_RATE_REMAINING,
    HEADER_RETRY_AFTER,
    HEADER_THREAD_ID,
    PLACEHOLDER_KEY_PREFIX,
    RATE_LIMIT_WINDOW_MS,
    AttemptOutcome,
    Channel,
    Intent,
    LLMProvider,
    Role,
    Stage,
)
from chatbot_core.core.config.settings import Settings, get_settings, reload_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "reload_settings",
    # Enums
    "AttemptOutcome",
    "Channel",
    "Intent",
    "LLMProvider",
    "Role",
    "Stage",
    # Constants
    "FALLBACK_CHAINS",
    "GROQ_FALLBACK_MODELS",
    "PLACEHOLDER_KEY_PREFIX",
    "RATE_LIMIT_WINDOW_MS",
    # HTTP headers
    "HEADER_RATE_LIMIT",
    "HEADER_RATE_REMAINING",
    "HEADER_RETRY_AFTER",
    "HEADER_THREAD_ID",
]

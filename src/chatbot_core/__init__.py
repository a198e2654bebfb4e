"""
Chatbot Core

Per-tenant rate limiting and multi-provider LLM invocation with fallback
for a multi-tenant chat assistant.
"""

__version__ = "1.0.0"

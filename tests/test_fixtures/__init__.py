"""
Test Fixtures Package

Shared test utilities and helpers for consistent testing across all modules.
"""

from .provider_factory import HangingProvider, ProviderTestFactory

__all__ = ["HangingProvider", "ProviderTestFactory"]

"""
API Module

HTTP routes of the chatbot core.
"""

from .bot_routes import router as bot_router
from .health_routes import router as health_router

__all__ = ["bot_router", "health_router"]

#!/usr/bin/env python3
"""
FastAPI Application Entry Point

Configures the chatbot core application: lifespan, middleware, error
mapping and routes.

Status mapping for ChatbotError subclasses:
    ValidationError           -> 400
    RateLimitExceededError    -> 429 (Retry-After + X-RateLimit-* headers)
    ExhaustedError            -> 503 (generic body; provider detail is logged)
    InvocationCancelledError  -> 504
    anything else             -> 500
"""

import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from chatbot_core.api import bot_router, health_router
from chatbot_core.core.config import Settings, get_settings
from chatbot_core.core.config.constants import (
    HEADER_RATE_LIMIT,
    HEADER_RATE_REMAINING,
    HEADER_RETRY_AFTER,
    HEADER_THREAD_ID,
    PROVIDERS_DOWN_MESSAGE,
)
from chatbot_core.core.exceptions import (
    ChatbotError,
    ExhaustedError,
    InvocationCancelledError,
    RateLimitExceededError,
    ValidationError,
)
from chatbot_core.core.logging import clear_thread_id, get_logger, get_thread_id, set_thread_id, setup_logging
from chatbot_core.llm_providers import build_provider_chain
from chatbot_core.rate_limiting import RateLimiter
from chatbot_core.services import ChatService, ProviderFallbackInvoker

logger = get_logger(__name__)


def build_chat_service(settings: Settings) -> ChatService:
    """Wire limiter, provider chain and invoker from settings."""
    invoker = ProviderFallbackInvoker(
        build_provider_chain(settings),
        timeout=settings.llm.AI_INVOKE_TIMEOUT,
    )
    return ChatService(RateLimiter.from_settings(settings), invoker)


# ============================================================================
# Application Lifespan
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle (startup and shutdown).
    """
    settings: Settings = app.state.settings

    setup_logging(
        log_level=settings.logging.LOG_LEVEL,
        log_format=settings.logging.LOG_FORMAT
    )

    logger.info(
        "Starting chatbot core",
        environment=settings.app.ENVIRONMENT,
        version=settings.app.APP_VERSION
    )

    if app.state.chat_service is None:
        app.state.chat_service = build_chat_service(settings)

    logger.info(
        "Application startup complete",
        providers=app.state.chat_service.invoker.provider_names,
    )

    yield

    logger.info("Application shutdown complete")


# ============================================================================
# Error mapping
# ============================================================================

def error_response(exc: ChatbotError) -> JSONResponse:
    """Render a ChatbotError as the JSON response its class maps to."""
    thread_id = exc.thread_id or get_thread_id() or ""
    headers = {HEADER_THREAD_ID: thread_id}

    if isinstance(exc, ValidationError):
        return JSONResponse(status_code=400, content={"error": exc.message, **exc.to_dict()}, headers=headers)

    if isinstance(exc, RateLimitExceededError):
        headers.update({
            HEADER_RETRY_AFTER: str(exc.retry_after_seconds),
            HEADER_RATE_LIMIT: str(exc.limit),
            HEADER_RATE_REMAINING: "0",
        })
        return JSONResponse(
            status_code=429,
            content={"error": exc.message, "retry_after_seconds": exc.retry_after_seconds},
            headers=headers,
        )

    if isinstance(exc, ExhaustedError):
        return JSONResponse(
            status_code=503,
            content={"error": PROVIDERS_DOWN_MESSAGE, "error_type": "ExhaustedError"},
            headers=headers,
        )

    if isinstance(exc, InvocationCancelledError):
        return JSONResponse(
            status_code=504,
            content={"error": PROVIDERS_DOWN_MESSAGE, "error_type": "InvocationCancelledError"},
            headers=headers,
        )

    return JSONResponse(status_code=500, content=exc.to_dict(), headers=headers)


async def chatbot_exception_handler(request: Request, exc: ChatbotError):
    """Handle chatbot exceptions."""
    log = logger.warning if isinstance(exc, (ValidationError, RateLimitExceededError)) else logger.error
    log(
        f"Chatbot exception: {exc.message}",
        error_type=type(exc).__name__,
        path=request.url.path,
        details=exc.details,
    )
    return error_response(exc)


async def thread_id_middleware(request: Request, call_next):
    """
    Inject thread ID into all requests for correlation.
    """
    thread_id = request.headers.get(HEADER_THREAD_ID) or str(uuid.uuid4())
    set_thread_id(thread_id)

    try:
        response = await call_next(request)
        response.headers[HEADER_THREAD_ID] = thread_id
        return response
    finally:
        clear_thread_id()


# ============================================================================
# Application Factory
# ============================================================================

def create_app(settings: Settings | None = None, chat_service: ChatService | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to run with (defaults to the global settings)
        chat_service: Pre-built service; when omitted it is built from
            settings during startup

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app.APP_NAME,
        version=settings.app.APP_VERSION,
        description="Multi-tenant sales chatbot core with provider fallback",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.settings = settings
    app.state.chat_service = chat_service

    app.middleware("http")(thread_id_middleware)
    app.add_exception_handler(ChatbotError, chatbot_exception_handler)

    app.include_router(health_router)
    app.include_router(bot_router)

    return app


# Create application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "chatbot_core.app:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.app.ENVIRONMENT == "development",
        log_level=settings.logging.LOG_LEVEL.lower()
    )

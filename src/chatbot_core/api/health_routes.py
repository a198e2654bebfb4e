"""
Health Check Routes
"""

import asyncio

from fastapi import APIRouter, Request
from pydantic import BaseModel

router = APIRouter(prefix="/api/health", tags=["Health"])


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str
    version: str
    environment: str
    providers: list[str]
    rate_limit_per_minute: int
    provider_health: list[dict] | None = None


@router.get("", response_model=HealthResponse)
async def health_check(request: Request, deep: bool = False):
    """
    Quick health check endpoint.

    Reports the provider chain in fallback order. With ``deep=true`` every
    provider is also checked; any unhealthy provider marks the service
    ``degraded`` (fallback may still serve requests).
    """
    settings = request.app.state.settings
    chat_service = request.app.state.chat_service
    providers = chat_service.invoker.providers

    status = "healthy"
    provider_health = None
    if deep:
        results = await asyncio.gather(*(p.health_check() for p in providers))
        provider_health = [{**p.describe(), **result} for p, result in zip(providers, results)]
        if any(entry["status"] != "healthy" for entry in provider_health):
            status = "degraded"

    return HealthResponse(
        status=status,
        version=settings.app.APP_VERSION,
        environment=settings.app.ENVIRONMENT,
        providers=chat_service.invoker.provider_names,
        rate_limit_per_minute=chat_service.rate_limiter.limit,
        provider_health=provider_health,
    )

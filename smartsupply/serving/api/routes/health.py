"""
Health Check Endpoints
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from smartsupply.config import Settings, get_settings

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, Any]


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: Settings = Depends(get_settings)) -> HealthResponse:
    """
    Application status plus the engine defaults in effect.

    The assistant check reports whether chat is enabled; no call is made to
    Bedrock.
    """
    checks = {
        "engine": {
            "status": "healthy",
            "default_weeks_to_analyze": settings.engine.default_weeks_to_analyze,
            "default_periods_divisor": settings.engine.default_periods_divisor,
            "target_coverage_weeks": settings.engine.target_coverage_weeks,
            "window_policy": settings.engine.window_policy,
        },
        "assistant": {
            "status": "enabled" if settings.assistant.enabled else "disabled",
            "model_id": settings.assistant.model_id,
        },
    }

    return HealthResponse(
        status="healthy",
        version=settings.version,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc),
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """Returns 200 if the application is running."""
    return {"status": "alive"}

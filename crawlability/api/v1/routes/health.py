"""Health check endpoints for load balancer and monitoring."""

from fastapi import APIRouter
from pydantic import BaseModel

from crawlability.core.config import get_settings

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str
    env: str


@router.get("", response_model=HealthResponse, include_in_schema=False)
async def health_check() -> HealthResponse:
    # The service is stateless; being able to answer is the whole check
    settings = get_settings()
    return HealthResponse(status="healthy", version=settings.APP_VERSION, env=settings.ENV)


@router.get("/ready", include_in_schema=False)
async def readiness() -> dict:
    """Kubernetes readiness check."""
    return {"ready": True}


@router.get("/live", include_in_schema=False)
async def liveness() -> dict:
    """Kubernetes liveness check."""
    return {"alive": True}

"""
Health Check Endpoints

Provides health and readiness checks for orchestration systems.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Request, Response
from pydantic import BaseModel

from crm_analytics.config import get_settings
from crm_analytics.database.connection import check_database_health

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, Any]


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """
    Health check endpoint.

    Checks:
    - Database connectivity (database data source only)
    - Dashboard recomputation state
    """
    settings = get_settings()
    checks: Dict[str, Any] = {}
    overall_status = "healthy"

    if settings.data_source == "database":
        db_health = await check_database_health()
        checks["database"] = db_health
        if db_health.get("status") != "healthy":
            overall_status = "degraded"
    else:
        checks["data_source"] = {"status": "healthy", "type": settings.data_source}

    controller = getattr(request.app.state, "controller", None)
    if controller is not None:
        checks["dashboard"] = {
            "state": controller.state.value,
            "has_snapshot": controller.snapshot is not None,
            "last_error": str(controller.last_error) if controller.last_error else None,
        }
        if controller.last_error is not None and overall_status == "healthy":
            overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        version=settings.version,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc),
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """Returns 200 while the process is running."""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(request: Request, response: Response) -> Dict[str, str]:
    """Ready once the first dashboard snapshot exists."""
    controller = getattr(request.app.state, "controller", None)
    if controller is None or controller.snapshot is None:
        response.status_code = 503
        return {"status": "not_ready", "reason": "no_snapshot"}
    return {"status": "ready"}

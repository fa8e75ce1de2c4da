"""
Health Check Endpoints

Probes for the WhatsApp booking service:
- /health          process is up (no dependency checks)
- /health/live     liveness, with uptime
- /health/ready    PostgreSQL, plus Redis when it backs sessions and reminders
- /health/detailed development-only view with conversation and reminder counts
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.config import settings
from app.core.intelligence import get_session_manager
from app.infra.database import check_db_health
from app.infra.redis import check_redis_health
from app.infra.reminders import get_reminder_scheduler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])

VERSION = "1.0.0"

_start_time: Optional[datetime] = None


def set_start_time() -> None:
    """Record process start; called once from the lifespan."""
    global _start_time
    _start_time = datetime.now(timezone.utc)


def get_uptime_seconds() -> Optional[float]:
    if _start_time is None:
        return None
    return (datetime.now(timezone.utc) - _start_time).total_seconds()


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str
    environment: str


class ReadyResponse(BaseModel):
    """Readiness with one entry per dependency: ok, failed, error or disabled."""
    status: str
    timestamp: datetime
    checks: dict[str, str]


class LiveResponse(BaseModel):
    status: str
    timestamp: datetime
    uptime_seconds: Optional[float] = None


class DetailedHealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str
    environment: str
    uptime_seconds: Optional[float]
    checks: dict[str, str]
    conversations: dict[str, int]
    pending_reminders: int
    config: dict[str, str]


async def _probe(name: str, check) -> str:
    """Run one connectivity check and map it to a status word."""
    try:
        healthy = await check()
    except Exception as e:
        logger.error(f"Health check {name} raised: {e}")
        return "error"

    if not healthy:
        logger.warning(f"Health check {name} failed")
    return "ok" if healthy else "failed"


async def run_checks() -> dict[str, str]:
    """Status of every backing service the webhook depends on."""
    checks = {"database": await _probe("database", check_db_health)}

    if settings.session_backend == "redis":
        checks["redis"] = await _probe("redis", check_redis_health)
    else:
        checks["redis"] = "disabled"

    return checks


def _all_ok(checks: dict[str, str]) -> bool:
    return all(value in ("ok", "disabled") for value in checks.values())


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns 200 if the application is running. Does not check dependencies.",
)
async def health() -> HealthResponse:
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version=VERSION,
        environment=settings.app_env,
    )


@router.get(
    "/ready",
    response_model=ReadyResponse,
    summary="Readiness probe",
    description="Checks database and Redis connectivity. Returns 503 if any dependency is unavailable.",
    responses={
        200: {"description": "All dependencies are ready"},
        503: {"description": "One or more dependencies are unavailable"},
    },
)
async def ready() -> ReadyResponse:
    """
    Readiness probe for the load balancer.

    Redis is only checked when SESSION_BACKEND=redis; otherwise it is
    reported as "disabled" and does not affect the result.
    """
    checks = await run_checks()
    is_ready = _all_ok(checks)

    response = ReadyResponse(
        status="ready" if is_ready else "not_ready",
        timestamp=datetime.now(timezone.utc),
        checks=checks,
    )

    if not is_ready:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(mode="json"),
        )

    return response


@router.get(
    "/live",
    response_model=LiveResponse,
    status_code=status.HTTP_200_OK,
    summary="Liveness probe",
)
async def live() -> LiveResponse:
    return LiveResponse(
        status="alive",
        timestamp=datetime.now(timezone.utc),
        uptime_seconds=get_uptime_seconds(),
    )


@router.get(
    "/detailed",
    response_model=DetailedHealthResponse,
    summary="Detailed health check",
    description="Dependency checks plus conversation and reminder counters. Development only.",
    include_in_schema=settings.is_development,
)
async def detailed() -> DetailedHealthResponse:
    if not settings.is_development:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Not found",
        )

    checks = await run_checks()
    stats = await get_session_manager().get_stats()
    pending = await get_reminder_scheduler().pending_jobs()

    # No secrets here
    config = {
        "app_name": settings.app_name,
        "environment": settings.app_env,
        "debug": str(settings.debug),
        "session_backend": settings.session_backend,
        "timezone": settings.timezone,
        "twilio_configured": str(settings.twilio_configured),
    }

    return DetailedHealthResponse(
        status="healthy" if _all_ok(checks) else "degraded",
        timestamp=datetime.now(timezone.utc),
        version=VERSION,
        environment=settings.app_env,
        uptime_seconds=get_uptime_seconds(),
        checks=checks,
        conversations={"active": stats["active_sessions"], **stats["by_state"]},
        pending_reminders=len(pending),
        config=config,
    )

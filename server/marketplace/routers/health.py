"""Liveness, readiness and service information endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..core.cache import QueryCache
from ..core.config import settings
from ..core.database import get_session_factory
from ..core.dependencies import CacheDependency, WorkerManagerDependency
from ..core.observability import SERVICE_NAME
from ..schemas.health import (
    HealthResponse,
    HealthStatus,
    PingResponse,
    ReadinessResponse,
    ReadinessStatus,
    ServiceInfo,
)
from ..workers.manager import WorkerManager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse, summary="Health Check")
async def health_check() -> HealthResponse:
    """Liveness: the process is up and serving requests."""
    return HealthResponse(
        status=HealthStatus.HEALTHY,
        service=SERVICE_NAME,
        environment=settings.environment,
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    responses={503: {"model": ReadinessResponse}},
    summary="Readiness Check",
)
async def readiness_check(
    cache: QueryCache = CacheDependency,
    session_factory=Depends(get_session_factory),
):
    """
    Readiness: the database answers and the query cache is usable.

    Returns 503 with the failing checks when either is down.
    """
    checks = {"cache": "destroyed" if cache.destroyed else "ok"}
    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except SQLAlchemyError as e:
        logger.warning("Readiness database check failed", extra={"error": str(e)})
        checks["database"] = "unavailable"

    ready = all(value == "ok" for value in checks.values())
    body = ReadinessResponse(
        status=ReadinessStatus.READY if ready else ReadinessStatus.NOT_READY,
        service=SERVICE_NAME,
        checks=checks,
    )
    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=body.model_dump(mode="json"),
    )


@router.get("/info", response_model=ServiceInfo, tags=["Info"], summary="Service Information")
async def service_info(
    cache: QueryCache = CacheDependency,
    workers: WorkerManager = WorkerManagerDependency,
) -> ServiceInfo:
    docs = "/docs" if settings.debug else None
    return ServiceInfo(
        service=SERVICE_NAME,
        description="Equipment rental and brokerage marketplace API",
        environment=settings.environment,
        debug=settings.debug,
        features={
            "authentication": True,
            "query_cache": True,
            "tracing": True,
            "problem_details": True,
        },
        workers=workers.get_worker_status(),
        cache_entries=len(cache),
        endpoints={
            "health": "/health",
            "readiness": "/ready",
            "info": "/info",
            "metrics": "/metrics",
            "docs": docs,
            "redoc": "/redoc" if settings.debug else None,
        },
    )


@router.post("/v1/health/ping", response_model=PingResponse)
async def health_ping() -> PingResponse:
    """RPC-style liveness check returning the server clock."""
    return PingResponse(status=HealthStatus.HEALTHY, timestamp=datetime.now(timezone.utc))

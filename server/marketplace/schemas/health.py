"""Liveness, readiness and service information schemas."""

from datetime import datetime
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field


class HealthStatus(str, Enum):
    """Liveness status."""
    HEALTHY = "healthy"


class ReadinessStatus(str, Enum):
    """Readiness status."""
    READY = "ready"
    NOT_READY = "not_ready"


class HealthResponse(BaseModel):
    """Liveness response: the process is up and serving requests."""

    status: HealthStatus = Field(..., description="Service status")
    service: str = Field(..., description="Service name")
    version: str = Field("1.0.0", description="API version")
    environment: str = Field(..., description="Deployment environment")


class PingResponse(BaseModel):
    """RPC-style liveness response."""

    status: HealthStatus = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current server time (ISO 8601)")
    version: str = Field("1.0.0", description="API version")


class ReadinessResponse(BaseModel):
    """Readiness of each dependency the booking path needs."""

    status: ReadinessStatus
    service: str
    checks: Dict[str, str] = Field(..., description="Dependency name to 'ok' or the failure reason")


class ServiceInfo(BaseModel):
    """Static service description plus live worker and cache state."""

    service: str
    version: str = "1.0.0"
    description: str
    environment: str
    debug: bool
    features: Dict[str, bool]
    workers: Dict[str, bool] = Field(..., description="Worker name to running flag")
    cache_entries: int = Field(..., ge=0, description="Entries currently held by the query cache")
    endpoints: Dict[str, Optional[str]]

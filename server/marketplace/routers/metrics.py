"""Prometheus scrape endpoint."""

from fastapi import APIRouter, Response

from ..core.cache import QueryCache
from ..core.dependencies import CacheDependency
from ..core.observability import get_prometheus_metrics, metrics_collector

router = APIRouter(tags=["Observability"])

PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


@router.get("/metrics", summary="Prometheus Metrics", response_class=Response)
async def metrics(cache: QueryCache = CacheDependency):
    """Booking, cache and request metrics in the Prometheus text format."""
    # Deletes and pattern invalidations leave the size gauge stale until here
    metrics_collector.set_cache_size(len(cache))
    return Response(content=get_prometheus_metrics(), media_type=PROMETHEUS_CONTENT_TYPE)

"""Service layer package."""

from .booking_service import BookingService, ResourceRef
from .catalog_service import CatalogService
from .stats_service import StatsService

__all__ = [
    "BookingService",
    "CatalogService",
    "ResourceRef",
    "StatsService",
]

"""Admin router: catalog management, booking management, stats and cache control."""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.cache import CacheInvalidator, QueryCache
from ..core.database import get_db
from ..core.dependencies import AdminAuth, CacheDependency, CurrentUser
from ..schemas.booking import Booking, BookingListResponse, DeleteBookingRequest, ListBookingsRequest, UpdateBookingStatusRequest
from ..schemas.catalog import (
    Category,
    CreateCategoryRequest,
    CreateListingRequest,
    DeleteCategoryRequest,
    DeleteListingRequest,
    Listing,
    UpdateCategoryRequest,
    UpdateListingRequest,
)
from ..schemas.stats import CacheStats, ClearCacheRequest, ClearCacheResponse, DashboardStats, DashboardStatsRequest
from ..services.booking_service import BookingService
from ..services.catalog_service import CatalogService
from ..services.stats_service import StatsService
from .booking import BOOKING_SERVICE_DEPENDENCY

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/admin", tags=["admin"], dependencies=[AdminAuth])

DB_DEPENDENCY = Depends(get_db)


# Listings

@router.post("/listing/create", response_model=Listing, status_code=status.HTTP_201_CREATED)
async def create_listing(
    request: CreateListingRequest,
    db: AsyncSession = DB_DEPENDENCY,
    cache: QueryCache = CacheDependency,
) -> Listing:
    """Create an equipment or brokerage listing."""
    return await CatalogService(db, cache).create_listing(request)


@router.post("/listing/update", response_model=Listing)
async def update_listing(
    request: UpdateListingRequest,
    db: AsyncSession = DB_DEPENDENCY,
    cache: QueryCache = CacheDependency,
) -> Listing:
    """Partially update a listing."""
    return await CatalogService(db, cache).update_listing(request)


@router.post("/listing/delete", status_code=status.HTTP_204_NO_CONTENT)
async def delete_listing(
    request: DeleteListingRequest,
    db: AsyncSession = DB_DEPENDENCY,
    cache: QueryCache = CacheDependency,
) -> None:
    """Delete a listing that has no active bookings."""
    await CatalogService(db, cache).delete_listing(request.resource_type, request.listing_id)


# Categories

@router.post("/category/create", response_model=Category, status_code=status.HTTP_201_CREATED)
async def create_category(
    request: CreateCategoryRequest,
    db: AsyncSession = DB_DEPENDENCY,
    cache: QueryCache = CacheDependency,
) -> Category:
    """Create a category."""
    category = await CatalogService(db, cache).create_category(request)
    return Category.model_validate(category)


@router.post("/category/update", response_model=Category)
async def update_category(
    request: UpdateCategoryRequest,
    db: AsyncSession = DB_DEPENDENCY,
    cache: QueryCache = CacheDependency,
) -> Category:
    """Rename, re-describe or re-type a category."""
    category = await CatalogService(db, cache).update_category(request)
    return Category.model_validate(category)


@router.post("/category/delete", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(
    request: DeleteCategoryRequest,
    db: AsyncSession = DB_DEPENDENCY,
    cache: QueryCache = CacheDependency,
) -> None:
    """Delete a category no listing uses."""
    await CatalogService(db, cache).delete_category(request.category_id)


# Bookings

@router.post("/booking/list", response_model=BookingListResponse)
async def list_all_bookings(
    request: ListBookingsRequest,
    service: BookingService = BOOKING_SERVICE_DEPENDENCY,
) -> BookingListResponse:
    """List every user's bookings."""
    return await service.list_bookings(request)


@router.post("/booking/update-status", response_model=Booking)
async def update_booking_status(
    request: UpdateBookingStatusRequest,
    service: BookingService = BOOKING_SERVICE_DEPENDENCY,
) -> Booking:
    """Move a booking to PENDING, CONFIRMED or COMPLETED and record admin notes."""
    booking = await service.update_status(request.booking_id, request.status, request.admin_notes)
    return Booking.model_validate(booking)


@router.post("/booking/delete", status_code=status.HTTP_204_NO_CONTENT)
async def delete_booking(
    request: DeleteBookingRequest,
    admin: CurrentUser = AdminAuth,
    service: BookingService = BOOKING_SERVICE_DEPENDENCY,
) -> None:
    """Remove a completed booking."""
    await service.force_delete(request.booking_id)
    logger.info(
        "Admin deleted booking",
        extra={"booking_id": request.booking_id, "admin_id": admin.user_id}
    )


# Dashboard and cache

@router.post("/dashboard/stats", response_model=DashboardStats)
async def dashboard_stats(
    request: DashboardStatsRequest,
    db: AsyncSession = DB_DEPENDENCY,
    cache: QueryCache = CacheDependency,
) -> DashboardStats:
    """Aggregate counts and revenue."""
    return await StatsService(db, cache).get_dashboard_stats(request.period)


@router.post("/cache/stats", response_model=CacheStats)
async def cache_stats(cache: QueryCache = CacheDependency) -> CacheStats:
    """Query cache size and hit rate."""
    return CacheStats(**cache.get_stats())


@router.post("/cache/clear", response_model=ClearCacheResponse)
async def clear_cache(
    request: ClearCacheRequest,
    admin: CurrentUser = AdminAuth,
    cache: QueryCache = CacheDependency,
) -> ClearCacheResponse:
    """Invalidate cached reads matching a key substring, or everything."""
    if request.pattern:
        removed = cache.invalidate_pattern(request.pattern)
    else:
        removed = len(cache)
        CacheInvalidator(cache).all()

    logger.info(
        "Query cache cleared by admin",
        extra={"pattern": request.pattern, "removed": removed, "admin_id": admin.user_id}
    )
    return ClearCacheResponse(removed=removed)

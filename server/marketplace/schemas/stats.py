"""Admin dashboard and cache statistics schemas."""

from decimal import Decimal
from enum import Enum
from typing import List
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.category import CategoryType


class StatsPeriod(str, Enum):
    """Window used for the "recent" figures: bookings and new listings."""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class DashboardStatsRequest(BaseModel):
    """Request schema for dashboard statistics."""

    period: StatsPeriod = Field(StatsPeriod.MONTH, description="Window for recent bookings and new listings")


class CategoryListingCount(BaseModel):
    """Listings of either kind filed under one category."""

    category_id: UUID
    name: str
    type: CategoryType
    listings: int = Field(..., ge=0)


class DashboardStats(BaseModel):
    """Aggregate marketplace figures."""

    period: StatsPeriod
    total_equipment: int = Field(..., ge=0)
    total_brokerage: int = Field(..., ge=0)
    total_bookings: int = Field(..., ge=0)
    pending_bookings: int = Field(..., ge=0)
    confirmed_bookings: int = Field(..., ge=0)
    completed_bookings: int = Field(..., ge=0)
    total_customers: int = Field(..., ge=0, description="Distinct users with at least one booking")
    total_revenue: Decimal = Field(..., description="Sum of confirmed and completed booking totals")
    recent_bookings: int = Field(..., ge=0, description="Bookings created within the period")
    new_equipment: int = Field(..., ge=0, description="Equipment listings created within the period")
    new_brokerage: int = Field(..., ge=0, description="Brokerage listings created within the period")
    listings_by_category: List[CategoryListingCount] = Field(
        default_factory=list, description="Per-category listing counts, ordered by kind then name"
    )


class CacheStats(BaseModel):
    """Query cache counters."""

    size: int = Field(..., ge=0)
    max_size: int = Field(..., ge=1)
    hit_count: int = Field(..., ge=0)
    miss_count: int = Field(..., ge=0)
    hit_rate: float = Field(..., ge=0, description="Hit percentage since the last clear")


class ClearCacheRequest(BaseModel):
    """Admin request to drop cached reads; without a pattern everything goes."""

    pattern: str | None = Field(None, min_length=1, description="Substring of keys to invalidate")


class ClearCacheResponse(BaseModel):
    removed: int = Field(..., ge=0)

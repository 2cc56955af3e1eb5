"""Dashboard statistics service."""

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.cache import CacheKeys, QueryCache
from ..core.config import settings
from ..models.booking import Booking, BookingStatus
from ..models.category import Category
from ..models.listing import Brokerage, Equipment
from ..schemas.stats import CategoryListingCount, DashboardStats, StatsPeriod

logger = logging.getLogger(__name__)

PERIOD_LENGTHS = {
    StatsPeriod.DAY: timedelta(days=1),
    StatsPeriod.WEEK: timedelta(weeks=1),
    StatsPeriod.MONTH: timedelta(days=30),
}

REVENUE_STATUSES = (BookingStatus.CONFIRMED.value, BookingStatus.COMPLETED.value)


class StatsService:
    """Service computing admin dashboard aggregates."""

    def __init__(self, db: AsyncSession, cache: QueryCache):
        self.db = db
        self.get_dashboard_stats = cache.with_cache(
            self._dashboard_stats,
            key_fn=lambda period=StatsPeriod.MONTH: CacheKeys.dashboard_stats(StatsPeriod(period).value),
            ttl=settings.stats_cache_ttl_ms,
        )

    async def _count(self, stmt) -> int:
        return (await self.db.scalar(stmt)) or 0

    async def _listings_by_category(self) -> List[CategoryListingCount]:
        per_category: Counter = Counter()
        for model in (Equipment, Brokerage):
            rows = await self.db.execute(
                select(model.category_id, func.count())
                .where(model.category_id.is_not(None))
                .group_by(model.category_id)
            )
            per_category.update(dict(rows.all()))

        categories = (await self.db.execute(
            select(Category).order_by(Category.type, Category.name)
        )).scalars().all()
        return [
            CategoryListingCount(
                category_id=category.id,
                name=category.name,
                type=category.type,
                listings=per_category[category.id],
            )
            for category in categories
        ]

    async def _dashboard_stats(self, period: StatsPeriod = StatsPeriod.MONTH) -> DashboardStats:
        period = StatsPeriod(period)
        since = datetime.now(timezone.utc).replace(tzinfo=None) - PERIOD_LENGTHS[period]

        status_counts = dict(
            (await self.db.execute(
                select(Booking.status, func.count()).group_by(Booking.status)
            )).all()
        )

        revenue = await self.db.scalar(
            select(func.coalesce(func.sum(Booking.total_price), 0))
            .where(Booking.status.in_(REVENUE_STATUSES))
        )

        stats = DashboardStats(
            period=period,
            total_equipment=await self._count(select(func.count()).select_from(Equipment)),
            total_brokerage=await self._count(select(func.count()).select_from(Brokerage)),
            total_bookings=sum(status_counts.values()),
            pending_bookings=status_counts.get(BookingStatus.PENDING.value, 0),
            confirmed_bookings=status_counts.get(BookingStatus.CONFIRMED.value, 0),
            completed_bookings=status_counts.get(BookingStatus.COMPLETED.value, 0),
            total_customers=await self._count(select(func.count(distinct(Booking.user_id)))),
            total_revenue=Decimal(str(revenue or 0)).quantize(Decimal("0.01")),
            recent_bookings=await self._count(
                select(func.count()).select_from(Booking).where(Booking.created_at >= since)
            ),
            new_equipment=await self._count(
                select(func.count()).select_from(Equipment).where(Equipment.created_at >= since)
            ),
            new_brokerage=await self._count(
                select(func.count()).select_from(Brokerage).where(Brokerage.created_at >= since)
            ),
            listings_by_category=await self._listings_by_category(),
        )

        logger.info(
            "Dashboard stats computed",
            extra={"period": period.value, "total_bookings": stats.total_bookings}
        )
        return stats

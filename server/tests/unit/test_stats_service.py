"""Unit tests for dashboard statistics."""

from decimal import Decimal

import pytest

from marketplace.core.cache import CacheKeys
from marketplace.models import BookingStatus, Category, CategoryType, Equipment, PriceType
from marketplace.schemas.stats import StatsPeriod
from marketplace.services.stats_service import StatsService

from helpers import day


@pytest.mark.asyncio
async def test_dashboard_stats(test_session, cache, equipment, unavailable_equipment, brokerage, make_booking):
    await make_booking(equipment, day(2), day(3), user_id="user-1", status=BookingStatus.PENDING,
                       total_price=Decimal("50.00"))
    await make_booking(equipment, day(5), day(7), user_id="user-2", status=BookingStatus.CONFIRMED,
                       total_price=Decimal("100.00"))
    await make_booking(brokerage, day(-3), day(-2), user_id="user-1", status=BookingStatus.COMPLETED,
                       total_price=Decimal("200.50"))

    stats = await StatsService(test_session, cache).get_dashboard_stats(StatsPeriod.WEEK)

    assert stats.period is StatsPeriod.WEEK
    assert stats.total_equipment == 2
    assert stats.total_brokerage == 1
    assert stats.total_bookings == 3
    assert stats.pending_bookings == 1
    assert stats.confirmed_bookings == 1
    assert stats.completed_bookings == 1
    assert stats.total_customers == 2
    assert stats.total_revenue == Decimal("300.50")
    assert stats.recent_bookings == 3
    assert stats.new_equipment == 2
    assert stats.new_brokerage == 1
    assert [(c.name, c.listings) for c in stats.listings_by_category] == [("Excavators", 1)]


@pytest.mark.asyncio
async def test_empty_dashboard(test_session, cache):
    stats = await StatsService(test_session, cache).get_dashboard_stats()

    assert stats.period is StatsPeriod.MONTH
    assert stats.total_bookings == 0
    assert stats.total_revenue == Decimal("0.00")


@pytest.mark.asyncio
async def test_dashboard_stats_are_cached_per_period(test_session, cache, equipment, make_booking):
    service = StatsService(test_session, cache)
    first = await service.get_dashboard_stats(StatsPeriod.DAY)

    await make_booking(equipment, day(2), day(3))

    assert await service.get_dashboard_stats(StatsPeriod.DAY) is first
    assert cache.has(CacheKeys.dashboard_stats("day"))

    fresh = await service.get_dashboard_stats(StatsPeriod.MONTH)
    assert fresh.total_bookings == 1


@pytest.mark.asyncio
async def test_dashboard_listing_breakdowns(test_session, cache, category, equipment):
    legal = Category(name="Legal", type=CategoryType.BROKERAGE.value)
    test_session.add(legal)
    test_session.add(Equipment(
        title="Old Bulldozer",
        description="Listed long ago",
        price=Decimal("300.00"),
        price_type=PriceType.DAILY.value,
        available=True,
        category_id=category.id,
        created_at=day(-20),
    ))
    await test_session.commit()

    week = await StatsService(test_session, cache).get_dashboard_stats(StatsPeriod.WEEK)

    assert week.total_equipment == 2
    assert week.new_equipment == 1
    assert week.new_brokerage == 0
    assert [(c.name, c.type, c.listings) for c in week.listings_by_category] == [
        ("Legal", CategoryType.BROKERAGE, 0),
        ("Excavators", CategoryType.EQUIPMENT, 2),
    ]
    assert week.listings_by_category[1].category_id == category.id

    month = await StatsService(test_session, cache).get_dashboard_stats(StatsPeriod.MONTH)
    assert month.new_equipment == 2
    assert cache.has(CacheKeys.dashboard_stats("week"))
    assert cache.has(CacheKeys.dashboard_stats("month"))

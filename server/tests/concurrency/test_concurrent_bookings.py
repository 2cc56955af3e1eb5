"""Concurrency tests for booking operations."""

import asyncio
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from marketplace.core.cache import QueryCache
from marketplace.core.database import Base, enable_sqlite_write_locks
from marketplace.core.exceptions import BookingConflictError, NotFoundError
from marketplace.core.locks import KeyedLock
from marketplace.models import Booking, Brokerage, Equipment, PriceType, ResourceType
from marketplace.services.booking_service import BookingService, ResourceRef

from helpers import day


@pytest_asyncio.fixture
async def file_session_factory(tmp_path):
    """Sessions on a file-backed database, one connection per session."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )
    enable_sqlite_write_locks(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def listings(file_session_factory):
    async with file_session_factory() as session:
        excavator = Equipment(title="Excavator", description="", price=Decimal("50"), price_type=PriceType.DAILY.value)
        loader = Equipment(title="Loader", description="", price=Decimal("40"), price_type=PriceType.DAILY.value)
        advisory = Brokerage(title="Advisory", description="", price=Decimal("100"), price_type=PriceType.HOURLY.value)
        session.add_all([excavator, loader, advisory])
        await session.commit()
        return excavator, loader, advisory


def make_service(session_factory, cache, locks) -> BookingService:
    return BookingService(session_factory, cache, locks, backoff=lambda attempt: 0.01, max_attempts=5)


async def count_bookings(session_factory, column, resource_id) -> int:
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(Booking).where(column == resource_id))


@pytest.mark.asyncio
async def test_concurrent_overlapping_requests_create_one_booking(file_session_factory, listings):
    """Many simultaneous requests for overlapping ranges: exactly one wins."""
    excavator, _, _ = listings
    cache = QueryCache()
    locks = KeyedLock()
    ref = ResourceRef(ResourceType.EQUIPMENT, str(excavator.id))

    async def attempt(i: int):
        service = make_service(file_session_factory, cache, locks)
        # Every range covers day 10
        return await service.evaluate_and_create(ref, day(9 + i % 2), day(11 + i % 3), f"customer-{i}")

    results = await asyncio.gather(*(attempt(i) for i in range(20)), return_exceptions=True)

    created = [r for r in results if isinstance(r, Booking)]
    conflicts = [r for r in results if isinstance(r, BookingConflictError)]
    assert len(created) == 1
    assert len(conflicts) == 19

    assert await count_bookings(file_session_factory, Booking.equipment_id, excavator.id) == 1


@pytest.mark.asyncio
async def test_concurrent_requests_for_different_resources_all_succeed(file_session_factory, listings):
    excavator, loader, advisory = listings
    cache = QueryCache()
    locks = KeyedLock()
    refs = [
        ResourceRef(ResourceType.EQUIPMENT, str(excavator.id)),
        ResourceRef(ResourceType.EQUIPMENT, str(loader.id)),
        ResourceRef(ResourceType.BROKERAGE, str(advisory.id)),
    ]

    results = await asyncio.gather(*(
        make_service(file_session_factory, cache, locks).evaluate_and_create(ref, day(5), day(6), "customer-1")
        for ref in refs
    ))

    assert {booking.resource_id for booking in results} == {excavator.id, loader.id, advisory.id}


@pytest.mark.asyncio
async def test_concurrent_disjoint_ranges_on_one_resource(file_session_factory, listings):
    """Back-to-back ranges never conflict, whatever order they commit in."""
    excavator, _, _ = listings
    cache = QueryCache()
    locks = KeyedLock()
    ref = ResourceRef(ResourceType.EQUIPMENT, str(excavator.id))

    results = await asyncio.gather(*(
        make_service(file_session_factory, cache, locks).evaluate_and_create(
            ref, day(10 + i), day(11 + i), f"customer-{i}"
        )
        for i in range(8)
    ))

    assert len(results) == 8
    assert await count_bookings(file_session_factory, Booking.equipment_id, excavator.id) == 8


@pytest.mark.asyncio
async def test_concurrent_cancel_and_rebook(file_session_factory, listings):
    """A slot freed by a cancellation can be taken by exactly one of the racing requests."""
    excavator, _, _ = listings
    cache = QueryCache()
    locks = KeyedLock()
    ref = ResourceRef(ResourceType.EQUIPMENT, str(excavator.id))

    service = make_service(file_session_factory, cache, locks)
    original = await service.evaluate_and_create(ref, day(20), day(22), "owner")
    await service.cancel(str(original.id), "owner")

    results = await asyncio.gather(
        *(
            make_service(file_session_factory, cache, locks).evaluate_and_create(
                ref, day(20), day(22), f"customer-{i}"
            )
            for i in range(5)
        ),
        return_exceptions=True,
    )

    assert sum(isinstance(r, Booking) for r in results) == 1
    assert all(isinstance(r, (Booking, BookingConflictError)) for r in results)


@pytest.mark.asyncio
async def test_overlapping_requests_without_shared_locks_create_one_booking(file_session_factory, listings):
    """Services that share no in-process lock, like separate server processes, still admit one booking."""
    excavator, _, _ = listings
    ref = ResourceRef(ResourceType.EQUIPMENT, str(excavator.id))

    async def attempt(i: int):
        service = make_service(file_session_factory, QueryCache(), KeyedLock())
        return await service.evaluate_and_create(ref, day(9), day(11), f"customer-{i}")

    results = await asyncio.gather(*(attempt(i) for i in range(10)), return_exceptions=True)

    assert sum(isinstance(r, Booking) for r in results) == 1
    assert sum(isinstance(r, BookingConflictError) for r in results) == 9
    assert await count_bookings(file_session_factory, Booking.equipment_id, excavator.id) == 1


@pytest.mark.asyncio
async def test_racing_cancellations_succeed_once(file_session_factory, listings):
    excavator, _, _ = listings
    ref = ResourceRef(ResourceType.EQUIPMENT, str(excavator.id))
    booking = await make_service(file_session_factory, QueryCache(), KeyedLock()).evaluate_and_create(
        ref, day(20), day(22), "owner"
    )

    results = await asyncio.gather(
        *(
            make_service(file_session_factory, QueryCache(), KeyedLock()).cancel(str(booking.id), "owner")
            for _ in range(2)
        ),
        return_exceptions=True,
    )

    assert sum(r is None for r in results) == 1
    assert sum(isinstance(r, NotFoundError) for r in results) == 1
    assert await count_bookings(file_session_factory, Booking.equipment_id, excavator.id) == 0

"""Test configuration and fixtures."""

from datetime import datetime
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from marketplace.core.cache import QueryCache
from marketplace.core.database import Base, get_db, get_session_factory
from marketplace.core.locks import KeyedLock
from marketplace.models import Booking, BookingStatus, Brokerage, Category, Equipment, PriceType, ResourceType
from marketplace.services.booking_service import BookingService

from helpers import bearer

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def test_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def cache():
    """A fresh query cache per test."""
    query_cache = QueryCache(max_entries=100)
    yield query_cache
    query_cache.destroy()


@pytest.fixture
def locks():
    return KeyedLock()


@pytest.fixture
def booking_service(session_factory, cache, locks):
    """Booking service with near-zero retry backoff."""
    return BookingService(session_factory, cache, locks, backoff=lambda attempt: 0.001)


@pytest_asyncio.fixture(scope="function")
async def test_app(session_factory, cache):
    """Create a test FastAPI application around the test database and cache."""
    from marketplace.main import create_app

    app = create_app(cache=cache)

    # Override database dependencies
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    yield app

    # Clean up
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def auth_headers():
    """Bearer headers for an ordinary customer."""
    return bearer("user-1", ("USER",))


@pytest.fixture
def other_auth_headers():
    return bearer("user-2", ("USER",))


@pytest.fixture
def admin_headers():
    return bearer("admin-1", ("ADMIN",))


async def _add(session: AsyncSession, row):
    session.add(row)
    await session.commit()
    await session.refresh(row)
    return row


@pytest_asyncio.fixture
async def category(test_session):
    return await _add(test_session, Category(name="Excavators", description="Earth movers", type="EQUIPMENT"))


@pytest_asyncio.fixture
async def equipment(test_session, category):
    """Available DAILY equipment at $50."""
    return await _add(test_session, Equipment(
        title="Mini Excavator",
        description="1.5 ton mini excavator",
        price=Decimal("50.00"),
        price_type=PriceType.DAILY.value,
        images=["https://example.com/excavator.jpg"],
        features=["Rubber tracks"],
        available=True,
        location="Lagos",
        condition="Good",
        category_id=category.id,
    ))


@pytest_asyncio.fixture
async def unavailable_equipment(test_session):
    return await _add(test_session, Equipment(
        title="Crane",
        description="Tower crane under maintenance",
        price=Decimal("900.00"),
        price_type=PriceType.DAILY.value,
        available=False,
    ))


@pytest_asyncio.fixture
async def brokerage(test_session):
    """Available HOURLY brokerage listing at $100."""
    return await _add(test_session, Brokerage(
        title="Commercial Property Consultation",
        description="Advisory session with a licensed broker",
        price=Decimal("100.00"),
        price_type=PriceType.HOURLY.value,
        available=True,
        location="Abuja",
    ))


@pytest.fixture
def make_booking(test_session):
    """Insert a booking row directly, bypassing the resolver."""

    async def _make(
        listing,
        start: datetime,
        end: datetime,
        user_id: str = "user-1",
        status: BookingStatus = BookingStatus.PENDING,
        total_price: Decimal = Decimal("100.00"),
    ) -> Booking:
        is_equipment = listing.resource_type is ResourceType.EQUIPMENT
        return await _add(test_session, Booking(
            resource_type=listing.resource_type.value,
            equipment_id=listing.id if is_equipment else None,
            brokerage_id=None if is_equipment else listing.id,
            user_id=user_id,
            start_date=start,
            end_date=end,
            status=status.value,
            total_price=total_price,
        ))

    return _make

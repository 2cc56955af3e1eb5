"""Database configuration and async session management."""

from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from .config import settings

# Execution options for a unit that reads then writes and must hold the
# write lock from its first statement. Only SQLite engines set up with
# enable_sqlite_write_locks() act on them; other dialects ignore them.
WRITE_LOCK = {"sqlite_begin": "IMMEDIATE"}


def enable_sqlite_write_locks(engine: AsyncEngine) -> None:
    """
    Let SQLAlchemy, not the driver, open SQLite transactions.

    pysqlite (and aiosqlite on top of it) defers BEGIN until the first
    write, so the reads of a check-then-insert unit run outside any lock.
    With the driver's own transaction handling switched off, every unit
    starts with an explicit BEGIN, and a unit whose connection carries
    ``WRITE_LOCK`` starts with BEGIN IMMEDIATE: it takes the database
    write lock up front, so concurrent writers, in this process or any
    other, queue behind it.
    """
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):
        mode = conn.get_execution_options().get("sqlite_begin", "DEFERRED")
        conn.exec_driver_sql(f"BEGIN {mode}")


_is_sqlite = settings.database_url.startswith("sqlite")
_is_memory = _is_sqlite and ":memory:" in settings.database_url

# Create async engine
engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
    # An in-memory SQLite database lives in a single shared connection
    poolclass=StaticPool if _is_memory else None,
    connect_args={"check_same_thread": False} if _is_sqlite else {},
)
if _is_sqlite and not _is_memory:
    enable_sqlite_write_locks(engine)

# Create async session factory
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Declarative base for all models."""


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency function that yields database sessions.

    Yields:
        AsyncSession: Database session
    """
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# Alias for FastAPI dependency injection
get_db = get_async_session


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Dependency returning the session factory.

    Services that own their transaction boundaries (booking creation and
    cancellation) open their own sessions from this factory.
    """
    return async_session_factory


def dialect_name(session: AsyncSession) -> str:
    """Name of the dialect the session is bound to."""
    return session.get_bind().dialect.name


async def init_db() -> None:
    """Initialize the database by creating all tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()

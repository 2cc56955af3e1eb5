"""FastAPI application initialization and configuration."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from .core.cache import QueryCache
from .core.config import settings
from .core.database import close_db, engine, init_db
from .core.exceptions import (
    ProblemDetailsException,
    generic_exception_handler,
    problem_details_handler,
    validation_exception_handler,
)
from .core.locks import KeyedLock
from .core.middleware import setup_middleware
from .core.observability import (
    instrument_fastapi,
    instrument_sqlalchemy,
    setup_metrics,
    setup_structured_logging,
    setup_tracing,
)
from .routers import (
    admin_router,
    booking_router,
    brokerage_router,
    category_router,
    equipment_router,
    health_router,
    metrics_router,
)
from .workers.manager import WorkerManager

# Configure structured logging
setup_structured_logging()

# Configure traditional logging for compatibility
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)


async def _startup(app: FastAPI) -> None:
    """Wire tracing and metrics, create missing tables, then start the cache sweep."""
    setup_tracing()
    setup_metrics()
    instrument_sqlalchemy(engine)

    await init_db()
    logger.info("Database schema ready")

    await app.state.worker_manager.start_all()


async def _shutdown(app: FastAPI) -> None:
    """Stop workers before the cache they touch, and the cache before the pool."""
    await app.state.worker_manager.stop_all()
    app.state.cache.destroy()
    await close_db()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info(
        "Starting marketplace API",
        extra={
            "environment": settings.environment,
            "debug": settings.debug,
            "cache_max_entries": settings.cache_max_entries,
        }
    )

    try:
        await _startup(app)
    except Exception:
        logger.exception("Failed to initialize application")
        raise

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down marketplace API")
    try:
        await _shutdown(app)
    except Exception:
        logger.exception("Error during application cleanup")

    logger.info("Application shutdown complete")


def create_app(cache: Optional[QueryCache] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        cache: Query cache to serve reads from; a new one sized from
            settings is created when omitted

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    app = FastAPI(
        title="Marketplace API",
        description="RPC-over-HTTP API for equipment rental and brokerage listings with conflict-free bookings",
        version="1.0.0",
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    # Process-wide shared objects, injected into handlers through dependencies
    app.state.cache = cache if cache is not None else QueryCache(max_entries=settings.cache_max_entries)
    app.state.booking_locks = KeyedLock()
    app.state.worker_manager = WorkerManager(
        app.state.cache,
        cache_sweep_interval_seconds=settings.cache_sweep_interval_seconds,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "traceparent", "tracestate"],
    )

    # Setup custom middleware
    setup_middleware(app, enable_logging=True)

    # Instrument FastAPI with OpenTelemetry
    instrument_fastapi(app)

    # Register exception handlers
    app.add_exception_handler(ProblemDetailsException, problem_details_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # Register API routers
    app.include_router(health_router)
    app.include_router(category_router)
    app.include_router(equipment_router)
    app.include_router(brokerage_router)
    app.include_router(booking_router)
    app.include_router(admin_router)
    app.include_router(metrics_router)

    logger.info("FastAPI application created and configured")

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "marketplace.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        access_log=True,
    )

"""FastAPI routers package."""

from .admin import router as admin_router
from .booking import router as booking_router
from .category import router as category_router
from .health import router as health_router
from .listing import brokerage_router, equipment_router
from .metrics import router as metrics_router

__all__ = [
    "admin_router",
    "booking_router",
    "brokerage_router",
    "category_router",
    "equipment_router",
    "health_router",
    "metrics_router",
]

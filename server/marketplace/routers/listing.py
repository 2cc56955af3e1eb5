"""Public listing routers for equipment and brokerage."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.cache import QueryCache
from ..core.database import get_db
from ..core.dependencies import CacheDependency
from ..models.listing import ResourceType
from ..schemas.catalog import GetListingRequest, Listing, SearchListingsRequest, SearchListingsResponse
from ..services.catalog_service import CatalogService

logger = logging.getLogger(__name__)

DB_DEPENDENCY = Depends(get_db)


def build_listing_router(kind: ResourceType) -> APIRouter:
    """Search and detail endpoints for one listing kind, under ``/v1/<kind>``."""
    router = APIRouter(prefix=f"/v1/{kind.value.lower()}", tags=[kind.value.lower()])

    @router.post("/search", response_model=SearchListingsResponse)
    async def search_listings(
        request: SearchListingsRequest,
        db: AsyncSession = DB_DEPENDENCY,
        cache: QueryCache = CacheDependency,
    ) -> SearchListingsResponse:
        """Search listings by text, category, price range and location."""
        return await CatalogService(db, cache).search_listings(kind, request)

    @router.post("/get", response_model=Listing)
    async def get_listing(
        request: GetListingRequest,
        db: AsyncSession = DB_DEPENDENCY,
        cache: QueryCache = CacheDependency,
    ) -> Listing:
        """Get one listing by id."""
        return await CatalogService(db, cache).get_listing(kind, request.listing_id)

    return router


equipment_router = build_listing_router(ResourceType.EQUIPMENT)
brokerage_router = build_listing_router(ResourceType.BROKERAGE)

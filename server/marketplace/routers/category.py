"""Public category router."""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.cache import QueryCache
from ..core.database import get_db
from ..core.dependencies import CacheDependency
from ..schemas.catalog import Category, ListCategoriesRequest
from ..services.catalog_service import CatalogService

router = APIRouter(prefix="/v1/category", tags=["category"])

DB_DEPENDENCY = Depends(get_db)


@router.post("/list", response_model=List[Category])
async def list_categories(
    request: ListCategoriesRequest,
    db: AsyncSession = DB_DEPENDENCY,
    cache: QueryCache = CacheDependency,
) -> List[Category]:
    """List categories, optionally of one listing kind."""
    return await CatalogService(db, cache).list_categories(request.type)

"""Catalog service: categories and equipment/brokerage listings."""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.cache import CacheInvalidator, CacheKeys, QueryCache
from ..core.config import settings
from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..models.booking import ACTIVE_STATUSES, Booking
from ..models.category import Category, CategoryType
from ..models.listing import LISTING_MODELS, Brokerage, Equipment, ListingMixin, ResourceType
from ..schemas.catalog import Category as CategorySchema
from ..schemas.catalog import (
    CreateCategoryRequest,
    CreateListingRequest,
    Listing,
    ResourceAvailability,
    SearchListingsRequest,
    SearchListingsResponse,
    UpdateCategoryRequest,
    UpdateListingRequest,
)
from ..schemas.common import Pagination

logger = logging.getLogger(__name__)

# Fields an admin update may explicitly clear
NULLABLE_LISTING_FIELDS = frozenset({"location", "condition", "category_id"})


def parse_uuid(value: str, resource_type: str) -> UUID:
    """Parse an id from a request; anything that is not a UUID cannot exist."""
    try:
        return UUID(str(value))
    except (ValueError, TypeError):
        raise NotFoundError(resource_type=resource_type, resource_id=str(value))


class CatalogService:
    """
    Service for catalog reads and admin mutations.

    Public reads go through the query cache; every mutation invalidates the
    keys it can affect.
    """

    def __init__(self, db: AsyncSession, cache: QueryCache):
        self.db = db
        self.cache = cache
        self.invalidate = CacheInvalidator(cache)

        self.search_listings = cache.with_cache(
            self._search_listings,
            key_fn=lambda kind, request: CacheKeys.listing_list(kind, request.cache_filters()),
            ttl=settings.listing_cache_ttl_ms,
        )
        self.list_categories = cache.with_cache(
            self._list_categories,
            key_fn=lambda category_type=None: CacheKeys.categories(
                category_type.value if category_type else None
            ),
            ttl=settings.category_cache_ttl_ms,
        )

    @staticmethod
    def _model(kind: ResourceType) -> type[ListingMixin]:
        return LISTING_MODELS[ResourceType(kind)]

    async def _search_listings(self, kind: ResourceType, request: SearchListingsRequest) -> SearchListingsResponse:
        model = self._model(kind)

        conditions = []
        if request.search:
            pattern = f"%{request.search}%"
            conditions.append(or_(model.title.ilike(pattern), model.description.ilike(pattern)))

        if request.category_id:
            try:
                category_uuid = UUID(request.category_id)
            except ValueError:
                raise ValidationError(
                    detail="category_id must be a UUID",
                    errors={"category_id": request.category_id}
                )
            conditions.append(model.category_id == category_uuid)

        if request.min_price is not None:
            conditions.append(model.price >= request.min_price)
        if request.max_price is not None:
            conditions.append(model.price <= request.max_price)
        if request.price_type is not None:
            conditions.append(model.price_type == request.price_type.value)
        if request.location:
            conditions.append(model.location.ilike(f"%{request.location}%"))
        if request.available is not None:
            conditions.append(model.available.is_(request.available))

        base = select(model).where(*conditions)
        total = await self.db.scalar(select(func.count()).select_from(base.subquery()))

        stmt = (
            base.order_by(model.created_at.desc(), model.id)
            .offset(request.offset)
            .limit(request.limit)
        )
        result = await self.db.execute(stmt)
        listings = [Listing.model_validate(row) for row in result.scalars()]

        logger.info(
            "Listing search completed",
            extra={
                "resource_type": ResourceType(kind).value,
                "total_found": total,
                "page": request.page,
                "returned": len(listings),
            }
        )

        return SearchListingsResponse(
            listings=listings,
            pagination=Pagination.build(request.page, request.limit, total or 0),
        )

    async def get_listing(self, kind: ResourceType, listing_id: str) -> Listing:
        """
        Get one listing, read through the cache.

        Raises:
            NotFoundError: If no listing of this kind has the id
        """
        kind = ResourceType(kind)
        key = CacheKeys.listing(kind, listing_id)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        listing_uuid = parse_uuid(listing_id, kind.value.lower())
        row = await self.db.get(self._model(kind), listing_uuid)
        if row is None:
            logger.warning(
                "Listing not found",
                extra={"resource_type": kind.value, "listing_id": listing_id}
            )
            raise NotFoundError(resource_type=kind.value.lower(), resource_id=listing_id)

        listing = Listing.model_validate(row)
        self.cache.set(key, listing, settings.listing_cache_ttl_ms)
        return listing

    async def get_resource_availability(self, kind: ResourceType, resource_id: str) -> Optional[ResourceAvailability]:
        """
        Availability snapshot used by the booking pre-check.

        Returns:
            The snapshot, or None when the resource does not exist
        """
        try:
            listing = await self.get_listing(kind, resource_id)
        except NotFoundError:
            return None

        return ResourceAvailability(
            id=listing.id,
            resource_type=listing.resource_type,
            available=listing.available,
            price=listing.price,
            price_type=listing.price_type,
        )

    async def _list_categories(self, category_type: Optional[CategoryType] = None) -> List[CategorySchema]:
        stmt = select(Category).order_by(Category.name)
        if category_type is not None:
            stmt = stmt.where(Category.type == CategoryType(category_type).value)

        result = await self.db.execute(stmt)
        return [CategorySchema.model_validate(row) for row in result.scalars()]

    async def create_category(self, request: CreateCategoryRequest) -> Category:
        """
        Create a category.

        Raises:
            ConflictError: If a category of the same type already has the name
        """
        stmt = select(Category).where(
            Category.type == request.type.value,
            Category.name == request.name,
        )
        existing = (await self.db.execute(stmt)).scalar_one_or_none()
        if existing:
            raise ConflictError(
                detail=f"Category '{request.name}' already exists",
                conflicting_resource={"id": str(existing.id), "name": existing.name, "type": existing.type}
            )

        category = Category(
            name=request.name,
            description=request.description,
            type=request.type.value,
        )
        self.db.add(category)
        await self.db.commit()
        await self.db.refresh(category)

        self.invalidate.categories()
        logger.info(
            "Category created",
            extra={"category_id": str(category.id), "name": category.name, "type": category.type}
        )
        return category

    async def update_category(self, request: UpdateCategoryRequest) -> Category:
        """
        Rename, re-describe or re-type a category.

        Raises:
            NotFoundError: If the category does not exist
            ConflictError: If another category of the resulting type already
                has the resulting name, or the type changes while listings
                still use the category
        """
        category_uuid = parse_uuid(request.category_id, "category")
        category = await self.db.get(Category, category_uuid)
        if category is None:
            raise NotFoundError(resource_type="category", resource_id=request.category_id)

        changes = request.model_dump(include=request.model_fields_set - {"category_id"})
        name = changes.get("name") or category.name
        category_type = CategoryType(changes.get("type") or category.type).value

        if category_type != category.type:
            in_use = await self._category_usage(category_uuid)
            if in_use:
                raise ConflictError(
                    detail="Category type cannot change while listings use it",
                    conflicting_resource={"id": request.category_id, "listings": in_use}
                )

        if (name, category_type) != (category.name, category.type):
            stmt = select(Category).where(
                Category.type == category_type,
                Category.name == name,
                Category.id != category_uuid,
            )
            existing = (await self.db.execute(stmt)).scalar_one_or_none()
            if existing:
                raise ConflictError(
                    detail=f"Category '{name}' already exists",
                    conflicting_resource={"id": str(existing.id), "name": existing.name, "type": existing.type}
                )

        category.name = name
        category.type = category_type
        if "description" in changes:
            category.description = changes["description"]
        await self.db.commit()
        await self.db.refresh(category)

        self.invalidate.categories()
        logger.info(
            "Category updated",
            extra={"category_id": request.category_id, "fields": sorted(changes)}
        )
        return category

    async def _category_usage(self, category_uuid: UUID) -> int:
        """Number of listings of either kind filed under the category."""
        in_use = 0
        for model in (Equipment, Brokerage):
            in_use += await self.db.scalar(
                select(func.count()).select_from(model).where(model.category_id == category_uuid)
            )
        return in_use

    async def delete_category(self, category_id: str) -> None:
        """
        Delete a category that no listing references.

        Raises:
            NotFoundError: If the category does not exist
            ConflictError: If listings still reference it
        """
        category_uuid = parse_uuid(category_id, "category")
        category = await self.db.get(Category, category_uuid)
        if category is None:
            raise NotFoundError(resource_type="category", resource_id=category_id)

        in_use = await self._category_usage(category_uuid)
        if in_use:
            raise ConflictError(
                detail="Category is still used by listings",
                conflicting_resource={"id": category_id, "listings": in_use}
            )

        await self.db.delete(category)
        await self.db.commit()

        self.invalidate.categories()
        logger.info("Category deleted", extra={"category_id": category_id})

    async def _require_category(self, category_id: Optional[str]) -> Optional[UUID]:
        if category_id is None:
            return None
        category_uuid = parse_uuid(category_id, "category")
        if await self.db.get(Category, category_uuid) is None:
            raise NotFoundError(resource_type="category", resource_id=category_id)
        return category_uuid

    async def _get_row_or_raise(self, kind: ResourceType, listing_id: str) -> ListingMixin:
        kind = ResourceType(kind)
        row = await self.db.get(self._model(kind), parse_uuid(listing_id, kind.value.lower()))
        if row is None:
            raise NotFoundError(resource_type=kind.value.lower(), resource_id=listing_id)
        return row

    async def create_listing(self, request: CreateListingRequest) -> Listing:
        """
        Create an equipment or brokerage listing.

        Raises:
            NotFoundError: If the referenced category does not exist
        """
        kind = request.resource_type
        fields = request.model_dump(exclude={"resource_type", "category_id", "condition"})
        fields["price_type"] = request.price_type.value
        fields["category_id"] = await self._require_category(request.category_id)
        if kind is ResourceType.EQUIPMENT:
            fields["condition"] = request.condition

        row = self._model(kind)(**fields)
        self.db.add(row)
        await self.db.commit()
        await self.db.refresh(row)

        self.invalidate.listing(kind.value)
        self.invalidate.stats()

        logger.info(
            "Listing created",
            extra={"resource_type": kind.value, "listing_id": str(row.id), "title": row.title}
        )
        return Listing.model_validate(row)

    async def update_listing(self, request: UpdateListingRequest) -> Listing:
        """
        Apply a partial update to a listing.

        Raises:
            NotFoundError: If the listing or the new category does not exist
        """
        kind = request.resource_type
        row = await self._get_row_or_raise(kind, request.listing_id)

        changes = {
            field: value
            for field, value in request.model_dump(
                exclude_unset=True, exclude={"resource_type", "listing_id"}
            ).items()
            if value is not None or field in NULLABLE_LISTING_FIELDS
        }
        if "category_id" in changes:
            changes["category_id"] = await self._require_category(changes["category_id"])
        if "price_type" in changes:
            changes["price_type"] = changes["price_type"].value
        if kind is not ResourceType.EQUIPMENT:
            changes.pop("condition", None)

        for field, value in changes.items():
            setattr(row, field, value)

        await self.db.commit()
        await self.db.refresh(row)

        self.invalidate.listing(kind.value, request.listing_id)
        self.invalidate.stats()

        logger.info(
            "Listing updated",
            extra={"resource_type": kind.value, "listing_id": request.listing_id, "fields": sorted(changes)}
        )
        return Listing.model_validate(row)

    async def delete_listing(self, kind: ResourceType, listing_id: str) -> None:
        """
        Delete a listing without active bookings.

        Raises:
            NotFoundError: If the listing does not exist
            ConflictError: If PENDING or CONFIRMED bookings still reference it
        """
        kind = ResourceType(kind)
        row = await self._get_row_or_raise(kind, listing_id)

        column = Booking.equipment_id if kind is ResourceType.EQUIPMENT else Booking.brokerage_id
        active = await self.db.scalar(
            select(func.count()).select_from(Booking).where(
                column == row.id,
                Booking.status.in_(ACTIVE_STATUSES),
            )
        )
        if active:
            raise ConflictError(
                detail="Listing has active bookings",
                conflicting_resource={"id": listing_id, "active_bookings": active}
            )

        await self.db.delete(row)
        await self.db.commit()

        self.invalidate.listing(kind.value, listing_id)
        self.invalidate.bookings()
        self.invalidate.stats()

        logger.info("Listing deleted", extra={"resource_type": kind.value, "listing_id": listing_id})

"""Catalog (category and listing) Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..models.category import CategoryType
from ..models.listing import PriceType, ResourceType
from .common import PageRequest, Pagination


class Category(BaseModel):
    """Category response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(..., description="Unique category ID")
    name: str = Field(..., description="Category name")
    description: Optional[str] = Field(None, description="Category description")
    type: CategoryType = Field(..., description="Listing kind the category groups")


class ListCategoriesRequest(BaseModel):
    """Request schema for listing categories."""

    type: Optional[CategoryType] = Field(None, description="Only categories of this kind")


class CreateCategoryRequest(BaseModel):
    """Admin request to create a category."""

    name: str = Field(..., min_length=1, max_length=100, description="Category name")
    description: Optional[str] = Field(None, max_length=2000, description="Category description")
    type: CategoryType = Field(..., description="Listing kind the category groups")


class UpdateCategoryRequest(BaseModel):
    """Admin partial update of a category. Omitted fields are left unchanged."""

    category_id: str = Field(..., description="Category to update")
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)
    type: Optional[CategoryType] = Field(None, description="New listing kind; only while no listing uses the category")


class DeleteCategoryRequest(BaseModel):
    """Admin request to delete a category."""

    category_id: str = Field(..., description="Category to delete")


class Listing(BaseModel):
    """Equipment or brokerage listing response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(..., description="Unique listing ID")
    resource_type: ResourceType = Field(..., description="Listing kind")
    title: str = Field(..., description="Listing title")
    description: str = Field(..., description="Listing description")
    price: Decimal = Field(..., description="Price per price_type unit")
    price_type: PriceType = Field(..., description="Pricing unit")
    images: List[str] = Field(default_factory=list, description="Image URLs")
    features: List[str] = Field(default_factory=list, description="Feature bullet points")
    available: bool = Field(..., description="Whether the listing can be booked")
    location: Optional[str] = Field(None, description="Location")
    condition: Optional[str] = Field(None, description="Equipment condition")
    category_id: Optional[UUID] = Field(None, description="Category")
    created_at: datetime = Field(..., description="Creation time (ISO 8601)")
    updated_at: datetime = Field(..., description="Last update time (ISO 8601)")


class SearchListingsRequest(PageRequest):
    """Public search over one listing kind."""

    search: Optional[str] = Field(None, max_length=200, description="Text matched against title and description")
    category_id: Optional[str] = Field(None, description="Only listings in this category")
    min_price: Optional[Decimal] = Field(None, ge=0, description="Minimum price")
    max_price: Optional[Decimal] = Field(None, ge=0, description="Maximum price")
    price_type: Optional[PriceType] = Field(None, description="Only listings with this pricing unit")
    location: Optional[str] = Field(None, max_length=255, description="Location substring")
    available: Optional[bool] = Field(True, description="Availability flag; null for all")

    def cache_filters(self) -> Dict[str, Any]:
        """Filters in the flat form used to build cache keys."""
        return self.model_dump(mode="json")


class SearchListingsResponse(BaseModel):
    """Page of listings."""

    listings: List[Listing] = Field(..., description="Listings on this page")
    pagination: Pagination = Field(..., description="Pagination info")


class GetListingRequest(BaseModel):
    """Request schema for fetching one listing."""

    listing_id: str = Field(..., description="Listing to retrieve")


class CreateListingRequest(BaseModel):
    """Admin request to create a listing."""

    resource_type: ResourceType = Field(..., description="Listing kind")
    title: str = Field(..., min_length=1, max_length=200, description="Listing title")
    description: str = Field("", max_length=10000, description="Listing description")
    price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2, description="Price per unit")
    price_type: PriceType = Field(PriceType.DAILY, description="Pricing unit")
    images: List[str] = Field(default_factory=list, description="Image URLs")
    features: List[str] = Field(default_factory=list, description="Feature bullet points")
    available: bool = Field(True, description="Whether the listing can be booked")
    location: Optional[str] = Field(None, max_length=255, description="Location")
    condition: Optional[str] = Field(None, max_length=50, description="Equipment condition")
    category_id: Optional[str] = Field(None, description="Category")


class UpdateListingRequest(BaseModel):
    """Admin partial update of a listing. Omitted fields are left unchanged."""

    resource_type: ResourceType = Field(..., description="Listing kind")
    listing_id: str = Field(..., description="Listing to update")
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=10000)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    price_type: Optional[PriceType] = None
    images: Optional[List[str]] = None
    features: Optional[List[str]] = None
    available: Optional[bool] = None
    location: Optional[str] = Field(None, max_length=255)
    condition: Optional[str] = Field(None, max_length=50)
    category_id: Optional[str] = None


class DeleteListingRequest(BaseModel):
    """Admin request to delete a listing."""

    resource_type: ResourceType = Field(..., description="Listing kind")
    listing_id: str = Field(..., description="Listing to delete")


class ResourceAvailability(BaseModel):
    """The part of a listing the booking resolver cares about."""

    id: UUID
    resource_type: ResourceType
    available: bool
    price: Decimal
    price_type: PriceType

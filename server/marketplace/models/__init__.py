"""Models module exporting all database models."""

from .booking import ACTIVE_STATUSES, Booking, BookingStatus
from .category import Category, CategoryType
from .listing import LISTING_MODELS, Brokerage, Equipment, ListingMixin, PriceType, ResourceType

__all__ = [
    # Catalog entities
    "Category",
    "CategoryType",
    "Equipment",
    "Brokerage",
    "ListingMixin",
    "LISTING_MODELS",
    "PriceType",
    "ResourceType",

    # Booking entity
    "Booking",
    "BookingStatus",
    "ACTIVE_STATUSES",
]

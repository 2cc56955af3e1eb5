"""Equipment and brokerage listing models: the bookable resources."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, CheckConstraint, ForeignKey, Numeric, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, declared_attr, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .booking import Booking
    from .category import Category


class ResourceType(str, Enum):
    """Kinds of bookable resource."""
    EQUIPMENT = "EQUIPMENT"
    BROKERAGE = "BROKERAGE"


class PriceType(str, Enum):
    """Unit a listing's price is quoted in."""
    HOURLY = "HOURLY"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    FIXED = "FIXED"


PRICE_TYPE_CHECK = "price_type IN (" + ", ".join(f"'{p.value}'" for p in PriceType) + ")"


class ListingMixin:
    """Columns shared by every bookable listing."""

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    title: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Price in currency units with two decimals
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    price_type: Mapped[str] = mapped_column(String(20), nullable=False, default=PriceType.DAILY.value)

    images: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    features: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)

    @declared_attr
    def category_id(cls) -> Mapped[UUID | None]:
        return mapped_column(
            Uuid,
            ForeignKey("categories.id", ondelete="SET NULL"),
            nullable=True,
            index=True
        )

    @declared_attr
    def category(cls) -> Mapped["Category | None"]:
        return relationship("Category")

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now(),
        onupdate=func.now()
    )

    resource_type: ResourceType

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__}(id={self.id}, title='{self.title}', "
            f"price={self.price} {self.price_type}, available={self.available})>"
        )


class Equipment(ListingMixin, Base):
    """Rentable piece of equipment."""

    __tablename__ = "equipment"

    resource_type = ResourceType.EQUIPMENT

    condition: Mapped[str | None] = mapped_column(String(50), nullable=True)

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_equipment_price_non_negative"),
        CheckConstraint("length(title) > 0", name="ck_equipment_title_not_empty"),
        CheckConstraint(PRICE_TYPE_CHECK, name="ck_equipment_price_type_valid"),
    )

    bookings: Mapped[list["Booking"]] = relationship(
        "Booking",
        back_populates="equipment",
        passive_deletes=True
    )


class Brokerage(ListingMixin, Base):
    """Brokerage listing (real estate, business, investment, insurance)."""

    __tablename__ = "brokerage"

    resource_type = ResourceType.BROKERAGE

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_brokerage_price_non_negative"),
        CheckConstraint("length(title) > 0", name="ck_brokerage_title_not_empty"),
        CheckConstraint(PRICE_TYPE_CHECK, name="ck_brokerage_price_type_valid"),
    )

    bookings: Mapped[list["Booking"]] = relationship(
        "Booking",
        back_populates="brokerage",
        passive_deletes=True
    )


LISTING_MODELS: dict[ResourceType, type[ListingMixin]] = {
    ResourceType.EQUIPMENT: Equipment,
    ResourceType.BROKERAGE: Brokerage,
}

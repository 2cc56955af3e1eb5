"""Category model definition."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, String, Text, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class CategoryType(str, Enum):
    """Which kind of listing a category groups."""
    EQUIPMENT = "EQUIPMENT"
    BROKERAGE = "BROKERAGE"


class Category(Base):
    """Category grouping equipment or brokerage listings."""

    __tablename__ = "categories"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)

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

    __table_args__ = (
        UniqueConstraint("type", "name", name="uq_category_type_name"),
        CheckConstraint("type IN ('EQUIPMENT', 'BROKERAGE')", name="ck_category_type_valid"),
    )

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, name='{self.name}', type={self.type})>"

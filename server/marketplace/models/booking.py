"""Booking model definition."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import DDL, CheckConstraint, DateTime, ForeignKey, Index, Numeric, String, Text, Uuid, event, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base
from .listing import ResourceType

if TYPE_CHECKING:
    from .listing import Brokerage, Equipment


class BookingStatus(str, Enum):
    """Booking status enumeration."""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"


# Statuses that occupy the resource's calendar
ACTIVE_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)


class Booking(Base):
    """Reservation of one equipment or brokerage listing for a date range."""

    __tablename__ = "bookings"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    resource_type: Mapped[str] = mapped_column(String(20), nullable=False)

    # Exactly one of these is set, matching resource_type
    equipment_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("equipment.id", ondelete="CASCADE"),
        nullable=True
    )
    brokerage_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("brokerage.id", ondelete="CASCADE"),
        nullable=True
    )

    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    # Naive UTC; the range is half-open [start_date, end_date)
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=BookingStatus.PENDING.value,
        index=True
    )
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    phone_number: Mapped[str | None] = mapped_column(String(32), nullable=True)

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
        CheckConstraint("end_date > start_date", name="ck_booking_dates_ordered"),
        CheckConstraint(
            "(equipment_id IS NULL) <> (brokerage_id IS NULL)",
            name="ck_booking_single_resource"
        ),
        CheckConstraint("total_price >= 0", name="ck_booking_total_price_non_negative"),
        CheckConstraint("length(user_id) > 0", name="ck_booking_user_id_not_empty"),
        CheckConstraint("status IN ('PENDING', 'CONFIRMED', 'COMPLETED')", name="ck_booking_status_valid"),
        CheckConstraint(
            "(resource_type = 'EQUIPMENT' AND equipment_id IS NOT NULL)"
            " OR (resource_type = 'BROKERAGE' AND brokerage_id IS NOT NULL)",
            name="ck_booking_resource_type_matches"
        ),
        Index("ix_bookings_equipment_dates", "equipment_id", "start_date", "end_date"),
        Index("ix_bookings_brokerage_dates", "brokerage_id", "start_date", "end_date"),
    )

    equipment: Mapped["Equipment | None"] = relationship("Equipment", back_populates="bookings")
    brokerage: Mapped["Brokerage | None"] = relationship("Brokerage", back_populates="bookings")

    @property
    def resource_id(self) -> UUID:
        """Id of the booked listing, whichever kind it is."""
        return self.equipment_id if self.resource_type == ResourceType.EQUIPMENT.value else self.brokerage_id

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, resource={self.resource_type}:{self.resource_id}, "
            f"user_id='{self.user_id}', {self.start_date} -> {self.end_date}, status={self.status})>"
        )


# PostgreSQL backstop for the overlap rule: two active bookings of the same
# resource cannot both commit, whatever path inserted them. On SQLite the
# booking service runs its re-check and insert under BEGIN IMMEDIATE, which
# serializes writers across processes instead.
event.listen(
    Base.metadata,
    "before_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)

for _column in ("equipment_id", "brokerage_id"):
    event.listen(
        Booking.__table__,
        "after_create",
        DDL(
            f"ALTER TABLE bookings ADD CONSTRAINT ex_bookings_{_column.split('_')[0]}_no_overlap "
            f"EXCLUDE USING gist ({_column} WITH =, tsrange(start_date, end_date, '[)') WITH &&) "
            f"WHERE ({_column} IS NOT NULL AND status IN ('PENDING', 'CONFIRMED'))"
        ).execute_if(dialect="postgresql"),
    )

"""Booking-related Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..models.booking import BookingStatus
from ..models.listing import ResourceType
from .common import PageRequest, Pagination


class CreateBookingRequest(BaseModel):
    """
    Request schema for creating a booking.

    Dates are taken as strings and parsed by the booking service, so a
    malformed timestamp is reported as an invalid date range rather than a
    schema error. Any client-supplied total is ignored; the price is always
    computed from the listing.
    """

    equipment_id: Optional[str] = Field(None, description="Equipment to book")
    brokerage_id: Optional[str] = Field(None, description="Brokerage listing to book")
    start_date: str = Field(..., description="Start of the booking (ISO 8601)")
    end_date: str = Field(..., description="End of the booking, exclusive (ISO 8601)")
    notes: Optional[str] = Field(None, max_length=2000, description="Free-text notes")
    phone_number: Optional[str] = Field(None, max_length=32, description="Contact phone number")

    @model_validator(mode="after")
    def check_single_resource(self) -> "CreateBookingRequest":
        if (self.equipment_id is None) == (self.brokerage_id is None):
            raise ValueError("Exactly one of equipment_id or brokerage_id must be provided")
        return self

    @property
    def resource_type(self) -> ResourceType:
        return ResourceType.EQUIPMENT if self.equipment_id is not None else ResourceType.BROKERAGE

    @property
    def resource_id(self) -> str:
        return self.equipment_id if self.equipment_id is not None else self.brokerage_id


class CancelBookingRequest(BaseModel):
    """Request schema for cancelling a booking."""

    booking_id: str = Field(..., description="Booking to cancel")


class GetBookingRequest(BaseModel):
    """Request schema for getting a booking."""

    booking_id: str = Field(..., description="Booking to retrieve")


class ListBookingsRequest(PageRequest):
    """Request schema for listing bookings."""

    status: Optional[BookingStatus] = Field(None, description="Only bookings in this status")
    resource_type: Optional[ResourceType] = Field(None, description="Only bookings of this resource kind")


class UpdateBookingStatusRequest(BaseModel):
    """Admin request to move a booking between statuses."""

    booking_id: str = Field(..., description="Booking to update")
    status: BookingStatus = Field(..., description="New status")
    admin_notes: Optional[str] = Field(None, max_length=2000, description="Notes visible to admins")


class DeleteBookingRequest(BaseModel):
    """Admin request to remove a completed booking."""

    booking_id: str = Field(..., description="Booking to delete")


class Booking(BaseModel):
    """Booking response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(..., description="Unique booking ID")
    resource_type: ResourceType = Field(..., description="Kind of booked resource")
    equipment_id: Optional[UUID] = Field(None, description="Booked equipment")
    brokerage_id: Optional[UUID] = Field(None, description="Booked brokerage listing")
    user_id: str = Field(..., description="Owner of the booking")
    start_date: datetime = Field(..., description="Start (UTC, inclusive)")
    end_date: datetime = Field(..., description="End (UTC, exclusive)")
    status: BookingStatus = Field(..., description="Booking status")
    total_price: Decimal = Field(..., description="Total price")
    notes: Optional[str] = Field(None, description="Customer notes")
    admin_notes: Optional[str] = Field(None, description="Admin notes")
    phone_number: Optional[str] = Field(None, description="Contact phone number")
    created_at: datetime = Field(..., description="Creation time (ISO 8601)")
    updated_at: datetime = Field(..., description="Last update time (ISO 8601)")


class BookingListResponse(BaseModel):
    """Page of bookings."""

    bookings: List[Booking] = Field(..., description="Bookings on this page")
    pagination: Pagination = Field(..., description="Pagination info")


class CancelBookingResponse(BaseModel):
    """Result of a cancellation; the booking no longer exists afterwards."""

    booking_id: UUID = Field(..., description="Cancelled booking")
    message: str = Field("Booking cancelled successfully", description="Outcome")

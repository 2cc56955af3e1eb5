"""Booking router for customer booking operations."""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.cache import QueryCache
from ..core.database import get_session_factory
from ..core.dependencies import BookingLocksDependency, CacheDependency, CurrentUser, RequiredAuth
from ..core.locks import KeyedLock
from ..schemas.booking import (
    Booking,
    BookingListResponse,
    CancelBookingRequest,
    CancelBookingResponse,
    CreateBookingRequest,
    GetBookingRequest,
    ListBookingsRequest,
)
from ..schemas.common import Problem
from ..services.booking_service import BookingService, ResourceRef

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/v1/booking",
    tags=["booking"],
    responses={401: {"model": Problem}, 422: {"model": Problem}},
)

CREATE_ERRORS = {
    400: {"model": Problem, "description": "Invalid date range or start date in the past"},
    404: {"model": Problem, "description": "Resource not found"},
    409: {"model": Problem, "description": "Resource unavailable or already booked"},
}
CANCEL_ERRORS = {
    403: {"model": Problem, "description": "Not the owner, or the booking is not active"},
    404: {"model": Problem, "description": "Booking not found"},
    409: {"model": Problem, "description": "Too close to the start date"},
}

# Define dependencies to avoid B008 linting errors
SESSION_FACTORY_DEPENDENCY = Depends(get_session_factory)


def get_booking_service(
    session_factory: async_sessionmaker[AsyncSession] = SESSION_FACTORY_DEPENDENCY,
    cache: QueryCache = CacheDependency,
    locks: KeyedLock = BookingLocksDependency,
) -> BookingService:
    """Booking service bound to the application's cache and lock registry."""
    return BookingService(session_factory, cache, locks)


BOOKING_SERVICE_DEPENDENCY = Depends(get_booking_service)


@router.post("/create", response_model=Booking, status_code=status.HTTP_201_CREATED, responses=CREATE_ERRORS)
async def create_booking(
    request: CreateBookingRequest,
    user: CurrentUser = RequiredAuth,
    service: BookingService = BOOKING_SERVICE_DEPENDENCY,
) -> Booking:
    """
    Book a listing for a date range.

    The booking is created in PENDING status with a server-computed price.
    """
    booking = await service.evaluate_and_create(
        ResourceRef(request.resource_type, request.resource_id),
        request.start_date,
        request.end_date,
        requester_id=user.user_id,
        notes=request.notes,
        phone_number=request.phone_number,
    )
    return Booking.model_validate(booking)


@router.post("/cancel", response_model=CancelBookingResponse, responses=CANCEL_ERRORS)
async def cancel_booking(
    request: CancelBookingRequest,
    user: CurrentUser = RequiredAuth,
    service: BookingService = BOOKING_SERVICE_DEPENDENCY,
) -> CancelBookingResponse:
    """Cancel one of the caller's bookings; the booking is removed."""
    await service.cancel(request.booking_id, requester_id=user.user_id)
    return CancelBookingResponse(booking_id=request.booking_id)


@router.post("/get", response_model=Booking)
async def get_booking(
    request: GetBookingRequest,
    user: CurrentUser = RequiredAuth,
    service: BookingService = BOOKING_SERVICE_DEPENDENCY,
) -> Booking:
    """Get a booking owned by the caller (admins may read any booking)."""
    return await service.get_booking(request.booking_id, user)


@router.post("/list", response_model=BookingListResponse)
async def list_bookings(
    request: ListBookingsRequest,
    user: CurrentUser = RequiredAuth,
    service: BookingService = BOOKING_SERVICE_DEPENDENCY,
) -> BookingListResponse:
    """List the caller's bookings, newest first."""
    return await service.list_bookings(request, user_id=user.user_id)

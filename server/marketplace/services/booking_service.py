"""Booking service: conflict-free creation, cancellation and admin management."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional
from uuid import UUID

from sqlalchemy import delete, func, select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.cache import CacheInvalidator, CacheKeys, QueryCache
from ..core.config import settings
from ..core.database import WRITE_LOCK, dialect_name
from ..core.dependencies import CurrentUser
from ..core.exceptions import (
    AuthorizationError,
    BookingConflictError,
    CancellationNotAllowedError,
    CancellationWindowClosedError,
    ConflictError,
    InvalidDateRangeError,
    NotFoundError,
    ResourceNotFoundError,
    ResourceUnavailableError,
    StartDateInPastError,
)
from ..core.locks import KeyedLock
from ..core.observability import metrics_collector
from ..core.retry import exponential_backoff, is_transient_db_error, retry
from ..models.booking import ACTIVE_STATUSES, Booking, BookingStatus
from ..models.listing import LISTING_MODELS, ResourceType
from ..schemas.booking import Booking as BookingSchema
from ..schemas.booking import BookingListResponse, ListBookingsRequest
from ..schemas.common import Pagination
from .catalog_service import CatalogService
from .pricing import compute_total_price, ranges_overlap

logger = logging.getLogger(__name__)

# SQLSTATE raised by PostgreSQL when an exclusion constraint rejects a row
EXCLUSION_VIOLATION = "23P01"


def utcnow() -> datetime:
    """Current time as a naive UTC datetime, the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_timestamp(value: Any) -> datetime:
    """
    Parse an ISO 8601 timestamp into a naive UTC datetime.

    Timezone-aware values are converted to UTC; naive values are taken as
    UTC already.

    Raises:
        InvalidDateRangeError: If the value is not a timestamp
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            raise InvalidDateRangeError(value=value)
    else:
        raise InvalidDateRangeError()

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


@dataclass(frozen=True)
class ResourceRef:
    """Reference to the single listing a booking targets."""

    type: ResourceType
    id: str

    @property
    def lock_key(self) -> str:
        return f"{self.type.value.lower()}:{self.id}"

    def uuid(self) -> UUID:
        try:
            return UUID(str(self.id))
        except ValueError:
            raise ResourceNotFoundError(resource_type=self.type.value, resource_id=self.id)

    def booking_column(self):
        return Booking.equipment_id if self.type is ResourceType.EQUIPMENT else Booking.brokerage_id


class BookingService:
    """
    Service for booking operations.

    Creation runs a cheap pre-check against cached listing data, then
    repeats the authoritative checks and the insert in a single
    transaction. Concurrent requests for the same resource are ordered by an
    in-process lock and, on PostgreSQL, by a transaction-scoped advisory lock,
    so two overlapping requests can never both commit.

    The service opens its own sessions because it owns the transaction
    boundaries and may re-run a transaction after a transient failure.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache: QueryCache,
        locks: KeyedLock,
        *,
        max_attempts: int = settings.booking_tx_max_attempts,
        backoff: Optional[Callable[[int], float]] = None,
        cancellation_window: timedelta = timedelta(hours=settings.cancellation_window_hours),
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.cache = cache
        self.locks = locks
        self.invalidate = CacheInvalidator(cache)
        self.max_attempts = max_attempts
        self.backoff = backoff or exponential_backoff(base=settings.booking_tx_backoff_seconds)
        self.cancellation_window = cancellation_window
        self.clock = clock

    async def evaluate_and_create(
        self,
        resource: ResourceRef,
        start_date: Any,
        end_date: Any,
        requester_id: str,
        notes: Optional[str] = None,
        phone_number: Optional[str] = None,
    ) -> Booking:
        """
        Validate a booking request and create the booking in PENDING status.

        Args:
            resource: Listing to book
            start_date: Inclusive start, ISO 8601 string or datetime
            end_date: Exclusive end, ISO 8601 string or datetime
            requester_id: User the booking will belong to
            notes: Optional customer notes
            phone_number: Optional contact number

        Returns:
            The committed booking

        Raises:
            InvalidDateRangeError: If a date is malformed or end is not after start
            StartDateInPastError: If the start falls before today
            ResourceNotFoundError: If the listing does not exist
            ResourceUnavailableError: If the listing is flagged unavailable
            BookingConflictError: If an active booking overlaps the range
        """
        start = parse_timestamp(start_date)
        end = parse_timestamp(end_date)
        if end <= start:
            raise InvalidDateRangeError()
        if start.date() < self.clock().date():
            raise StartDateInPastError()

        await self._precheck(resource, start, end)

        attempts = 0

        async def attempt() -> Booking:
            nonlocal attempts
            attempts += 1
            if attempts > 1:
                metrics_collector.record_transaction_retry()
            return await self._create_in_transaction(resource, start, end, requester_id, notes, phone_number)

        booking = await retry(
            attempt,
            max_attempts=self.max_attempts,
            backoff=self.backoff,
            retry_on=is_transient_db_error,
        )

        self.invalidate.after_booking_change(resource.type.value, resource.id, requester_id, str(booking.id))
        metrics_collector.record_booking_created(resource.type.value)

        logger.info(
            "Booking created successfully",
            extra={
                "booking_id": str(booking.id),
                "resource_type": resource.type.value,
                "resource_id": resource.id,
                "user_id": requester_id,
                "start_date": start.isoformat(),
                "end_date": end.isoformat(),
                "total_price": str(booking.total_price),
                "attempts": attempts,
            }
        )
        return booking

    async def _precheck(self, resource: ResourceRef, start: datetime, end: datetime) -> None:
        """Reject requests that are bound to fail before taking any lock."""
        async with self.session_factory() as session:
            snapshot = await CatalogService(session, self.cache).get_resource_availability(
                resource.type, resource.id
            )
            if snapshot is None:
                raise ResourceNotFoundError(resource_type=resource.type.value, resource_id=resource.id)
            if not snapshot.available:
                raise ResourceUnavailableError(resource_type=resource.type.value, resource_id=resource.id)

            if await self._find_overlap(session, resource, start, end) is not None:
                self._conflict(resource, start, end, stage="precheck")

    async def _create_in_transaction(
        self,
        resource: ResourceRef,
        start: datetime,
        end: datetime,
        requester_id: str,
        notes: Optional[str],
        phone_number: Optional[str],
    ) -> Booking:
        resource_uuid = resource.uuid()
        model = LISTING_MODELS[resource.type]

        async with self.locks.hold(resource.lock_key):
            async with self.session_factory() as session:
                try:
                    async with session.begin():
                        await session.connection(execution_options=WRITE_LOCK)
                        if dialect_name(session) == "postgresql":
                            await session.execute(
                                text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
                                {"key": resource.lock_key}
                            )

                        listing = await session.get(model, resource_uuid)
                        if listing is None:
                            raise ResourceNotFoundError(resource_type=resource.type.value, resource_id=resource.id)
                        if not listing.available:
                            raise ResourceUnavailableError(resource_type=resource.type.value, resource_id=resource.id)

                        if await self._find_overlap(session, resource, start, end) is not None:
                            self._conflict(resource, start, end, stage="transaction")

                        booking = Booking(
                            resource_type=resource.type.value,
                            equipment_id=resource_uuid if resource.type is ResourceType.EQUIPMENT else None,
                            brokerage_id=resource_uuid if resource.type is ResourceType.BROKERAGE else None,
                            user_id=requester_id,
                            start_date=start,
                            end_date=end,
                            status=BookingStatus.PENDING.value,
                            total_price=compute_total_price(listing.price, listing.price_type, start, end),
                            notes=notes,
                            phone_number=phone_number,
                        )
                        session.add(booking)
                        await session.flush()
                        await session.refresh(booking)
                except IntegrityError as e:
                    if not self._is_overlap_violation(e):
                        raise
                    self._conflict(resource, start, end, stage="constraint")

        return booking

    async def _find_overlap(
        self,
        session: AsyncSession,
        resource: ResourceRef,
        start: datetime,
        end: datetime,
    ) -> Optional[Booking]:
        """First active booking on the resource overlapping ``[start, end)``."""
        stmt = (
            select(Booking)
            .where(
                resource.booking_column() == resource.uuid(),
                Booking.status.in_(ACTIVE_STATUSES),
                ranges_overlap(Booking.start_date, Booking.end_date, start, end),
            )
            .limit(1)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    def _is_overlap_violation(exc: IntegrityError) -> bool:
        sqlstate = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
        return sqlstate == EXCLUSION_VIOLATION or "no_overlap" in str(exc.orig)

    def _conflict(self, resource: ResourceRef, start: datetime, end: datetime, stage: str) -> None:
        metrics_collector.record_booking_conflict(resource.type.value)
        logger.warning(
            "Booking rejected - overlapping booking exists",
            extra={
                "resource_type": resource.type.value,
                "resource_id": resource.id,
                "start_date": start.isoformat(),
                "end_date": end.isoformat(),
                "stage": stage,
            }
        )
        raise BookingConflictError(resource_type=resource.type.value, resource_id=resource.id)

    async def cancel(self, booking_id: str, requester_id: str) -> None:
        """
        Cancel a booking on behalf of its owner. The booking is deleted.

        Args:
            booking_id: Booking to cancel
            requester_id: User asking for the cancellation

        Raises:
            NotFoundError: If the booking does not exist
            CancellationNotAllowedError: If the requester is not the owner or
                the booking is not PENDING or CONFIRMED
            CancellationWindowClosedError: If the booking starts too soon
        """
        booking_uuid = self._parse_booking_id(booking_id)

        async with self.session_factory() as session:
            async with session.begin():
                await session.connection(execution_options=WRITE_LOCK)
                booking = await self._get_for_update(session, booking_uuid)

                if booking.user_id != requester_id or booking.status not in ACTIVE_STATUSES:
                    logger.warning(
                        "Cancellation refused",
                        extra={
                            "booking_id": booking_id,
                            "requester_id": requester_id,
                            "owner_id": booking.user_id,
                            "status": booking.status,
                        }
                    )
                    raise CancellationNotAllowedError(booking_id=booking_id)

                time_until_start = booking.start_date - self.clock()
                if time_until_start < self.cancellation_window:
                    logger.warning(
                        "Cancellation refused - too close to start",
                        extra={
                            "booking_id": booking_id,
                            "start_date": booking.start_date.isoformat(),
                            "hours_until_start": round(time_until_start.total_seconds() / 3600, 2),
                        }
                    )
                    raise CancellationWindowClosedError(booking_id=booking_id)

                resource_type = booking.resource_type
                resource_id = str(booking.resource_id)
                result = await session.execute(
                    delete(Booking)
                    .where(
                        Booking.id == booking_uuid,
                        Booking.user_id == requester_id,
                        Booking.status.in_(ACTIVE_STATUSES),
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    # Already removed by a concurrent cancellation
                    raise NotFoundError(resource_type="booking", resource_id=booking_id)

        self.invalidate.after_booking_change(resource_type, resource_id, requester_id, booking_id)
        metrics_collector.record_booking_cancelled()

        logger.info(
            "Booking cancelled successfully",
            extra={"booking_id": booking_id, "user_id": requester_id, "resource_id": resource_id}
        )

    async def force_delete(self, booking_id: str) -> None:
        """
        Admin removal of a completed booking, with no time restriction.

        Raises:
            NotFoundError: If the booking does not exist
            ConflictError: If the booking is not COMPLETED
        """
        booking_uuid = self._parse_booking_id(booking_id)

        async with self.session_factory() as session:
            async with session.begin():
                await session.connection(execution_options=WRITE_LOCK)
                booking = await self._get_for_update(session, booking_uuid)
                if booking.status != BookingStatus.COMPLETED.value:
                    raise ConflictError(
                        detail="Only completed bookings can be deleted",
                        conflicting_resource={"id": booking_id, "status": booking.status}
                    )

                resource_type = booking.resource_type
                resource_id = str(booking.resource_id)
                user_id = booking.user_id
                await session.delete(booking)

        self.invalidate.after_booking_change(resource_type, resource_id, user_id, booking_id)
        logger.info("Booking deleted by admin", extra={"booking_id": booking_id})

    async def update_status(
        self,
        booking_id: str,
        status: BookingStatus,
        admin_notes: Optional[str] = None,
    ) -> Booking:
        """
        Admin status change. COMPLETED is terminal.

        Raises:
            NotFoundError: If the booking does not exist
            ConflictError: If the booking is COMPLETED and the new status is not
        """
        status = BookingStatus(status)
        booking_uuid = self._parse_booking_id(booking_id)

        async with self.session_factory() as session:
            async with session.begin():
                await session.connection(execution_options=WRITE_LOCK)
                booking = await self._get_for_update(session, booking_uuid)
                previous = booking.status

                if previous == BookingStatus.COMPLETED.value and status is not BookingStatus.COMPLETED:
                    raise ConflictError(
                        detail="Completed bookings cannot change status",
                        conflicting_resource={"id": booking_id, "status": previous}
                    )

                booking.status = status.value
                if admin_notes is not None:
                    booking.admin_notes = admin_notes
                await session.flush()
                await session.refresh(booking)

        self.invalidate.after_booking_change(
            booking.resource_type, str(booking.resource_id), booking.user_id, booking_id
        )
        logger.info(
            "Booking status updated",
            extra={"booking_id": booking_id, "from_status": previous, "to_status": status.value}
        )
        return booking

    async def get_booking(self, booking_id: str, requester: CurrentUser) -> BookingSchema:
        """
        Get one booking; only its owner or an admin may see it.

        Raises:
            NotFoundError: If the booking does not exist
            AuthorizationError: If the requester is neither owner nor admin
        """
        key = CacheKeys.booking(booking_id)
        booking = self.cache.get(key)
        if booking is None:
            booking_uuid = self._parse_booking_id(booking_id)
            async with self.session_factory() as session:
                row = await session.get(Booking, booking_uuid)
                if row is None:
                    raise NotFoundError(resource_type="booking", resource_id=booking_id)
                booking = BookingSchema.model_validate(row)
            self.cache.set(key, booking, settings.booking_cache_ttl_ms)

        if booking.user_id != requester.user_id and not requester.is_admin:
            raise AuthorizationError(detail="You do not have access to this booking")
        return booking

    async def list_bookings(
        self,
        request: ListBookingsRequest,
        user_id: Optional[str] = None,
    ) -> BookingListResponse:
        """
        Page through bookings, newest first, read through the cache.

        Args:
            request: Filters and pagination
            user_id: Restrict to this user's bookings; None lists everyone's
        """
        filters = request.model_dump(mode="json")
        key = CacheKeys.user_bookings(user_id, filters) if user_id else CacheKeys.bookings_list(filters)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        conditions = []
        if user_id:
            conditions.append(Booking.user_id == user_id)
        if request.status is not None:
            conditions.append(Booking.status == request.status.value)
        if request.resource_type is not None:
            conditions.append(Booking.resource_type == request.resource_type.value)

        async with self.session_factory() as session:
            base = select(Booking).where(*conditions)
            total = await session.scalar(select(func.count()).select_from(base.subquery()))
            result = await session.execute(
                base.order_by(Booking.created_at.desc(), Booking.id)
                .offset(request.offset)
                .limit(request.limit)
            )
            bookings = [BookingSchema.model_validate(row) for row in result.scalars()]

        response = BookingListResponse(
            bookings=bookings,
            pagination=Pagination.build(request.page, request.limit, total or 0),
        )
        self.cache.set(key, response, settings.booking_cache_ttl_ms)
        return response

    @staticmethod
    def _parse_booking_id(booking_id: str) -> UUID:
        try:
            return UUID(str(booking_id))
        except ValueError:
            raise NotFoundError(resource_type="booking", resource_id=str(booking_id))

    @staticmethod
    async def _get_for_update(session: AsyncSession, booking_uuid: UUID) -> Booking:
        stmt = select(Booking).where(Booking.id == booking_uuid).with_for_update()
        booking = (await session.execute(stmt)).scalar_one_or_none()
        if booking is None:
            logger.warning("Booking not found", extra={"booking_id": str(booking_uuid)})
            raise NotFoundError(resource_type="booking", resource_id=str(booking_uuid))
        return booking

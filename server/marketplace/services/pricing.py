"""Booking price computation and date-range overlap."""

from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from ..models.listing import PriceType

CENTS = Decimal("0.01")

PRICE_UNITS: dict[PriceType, timedelta] = {
    PriceType.HOURLY: timedelta(hours=1),
    PriceType.DAILY: timedelta(days=1),
    PriceType.WEEKLY: timedelta(weeks=1),
    PriceType.MONTHLY: timedelta(days=30),
}


def billable_units(price_type: PriceType, start: datetime, end: datetime) -> int:
    """Whole pricing units covering ``[start, end)``, rounded up, never less than one."""
    price_type = PriceType(price_type)
    if price_type is PriceType.FIXED:
        return 1

    units, remainder = divmod(end - start, PRICE_UNITS[price_type])
    if remainder:
        units += 1
    return max(1, units)


def compute_total_price(
    price: Decimal,
    price_type: PriceType,
    start: datetime,
    end: datetime,
) -> Decimal:
    """
    Total price of booking a listing for ``[start, end)``.

    A FIXED price is charged as-is. Otherwise the duration is rounded up
    to whole units, so a one hour booking of a DAILY listing costs one day.

    Args:
        price: Listing price per unit
        price_type: Listing pricing unit
        start: Booking start
        end: Booking end (exclusive), after ``start``

    Returns:
        Total rounded to cents
    """
    price = Decimal(price)
    total = price * billable_units(price_type, start, end)
    return total.quantize(CENTS, rounding=ROUND_HALF_UP)


def ranges_overlap(a_start, a_end, b_start, b_end):
    """
    Half-open overlap: ranges that merely touch at an endpoint do not overlap.

    Works on plain datetimes and on SQL column expressions alike, so the
    same rule drives both in-memory checks and the overlap query.
    """
    return (a_start < b_end) & (a_end > b_start)

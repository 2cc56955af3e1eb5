"""Unit tests for booking price computation and range overlap."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from marketplace.models.listing import PriceType
from marketplace.services.pricing import billable_units, compute_total_price, ranges_overlap

DAY_1 = datetime(2030, 6, 1)


def test_daily_three_day_span():
    assert compute_total_price(Decimal("100"), PriceType.DAILY, DAY_1, DAY_1 + timedelta(days=3)) == Decimal("300.00")


def test_daily_one_hour_rounds_up_to_one_day():
    assert compute_total_price(Decimal("100"), PriceType.DAILY, DAY_1, DAY_1 + timedelta(hours=1)) == Decimal("100.00")


def test_partial_unit_rounds_up():
    end = DAY_1 + timedelta(days=2, minutes=1)
    assert billable_units(PriceType.DAILY, DAY_1, end) == 3


@pytest.mark.parametrize(
    "price_type, duration, units",
    [
        (PriceType.HOURLY, timedelta(minutes=90), 2),
        (PriceType.HOURLY, timedelta(hours=3), 3),
        (PriceType.WEEKLY, timedelta(days=8), 2),
        (PriceType.WEEKLY, timedelta(days=7), 1),
        (PriceType.MONTHLY, timedelta(days=30), 1),
        (PriceType.MONTHLY, timedelta(days=31), 2),
        (PriceType.FIXED, timedelta(days=90), 1),
    ],
)
def test_billable_units(price_type, duration, units):
    assert billable_units(price_type, DAY_1, DAY_1 + duration) == units


def test_fixed_price_ignores_duration():
    total = compute_total_price(Decimal("2500.00"), PriceType.FIXED, DAY_1, DAY_1 + timedelta(days=45))
    assert total == Decimal("2500.00")


def test_price_type_accepts_stored_string():
    total = compute_total_price(Decimal("12.50"), "HOURLY", DAY_1, DAY_1 + timedelta(hours=2))
    assert total == Decimal("25.00")


def test_total_is_quantized_to_cents():
    total = compute_total_price(Decimal("19.999"), PriceType.DAILY, DAY_1, DAY_1 + timedelta(days=1))
    assert total == Decimal("20.00")
    assert total.as_tuple().exponent == -2


def test_touching_ranges_do_not_overlap():
    a_start, a_end = DAY_1, DAY_1 + timedelta(days=2)
    assert not ranges_overlap(a_start, a_end, a_end, a_end + timedelta(days=2))
    assert not ranges_overlap(a_end, a_end + timedelta(days=2), a_start, a_end)


def test_intersecting_and_contained_ranges_overlap():
    a_start, a_end = DAY_1, DAY_1 + timedelta(days=2)
    assert ranges_overlap(a_start, a_end, DAY_1 + timedelta(days=1), DAY_1 + timedelta(days=3))
    assert ranges_overlap(a_start, a_end, DAY_1 + timedelta(hours=1), DAY_1 + timedelta(hours=2))
    assert ranges_overlap(a_start, a_end, a_start, a_end)

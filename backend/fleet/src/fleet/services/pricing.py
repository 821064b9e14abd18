"""Rental price calculation."""

import datetime as dt
from decimal import ROUND_HALF_UP, Decimal

from fleet.models import InvalidRange, PriceCalculation

TAX_RATE = Decimal("0.10")
CENTS = Decimal("0.01")


def round_money(amount: Decimal) -> Decimal:
    """Round to cents, halves away from zero."""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def rental_days(start: dt.date, end: dt.date) -> int:
    """Number of rental days in an inclusive span (same day = 1)."""
    if end < start:
        raise InvalidRange()
    return (end - start).days + 1


def calculate_price(
    daily_rate: Decimal,
    start: dt.date,
    end: dt.date,
) -> PriceCalculation:
    """Calculate the price of renting a vehicle from start to end.

    Both endpoints are rental days. Tax is 10% of the subtotal and the
    total is rounded to cents once, from the unrounded sum.

    Args:
        daily_rate: Vehicle daily rate, must be positive
        start: First rental day
        end: Last rental day

    Returns:
        PriceCalculation with breakdown

    Raises:
        InvalidRange: If end is before start or the rate is not positive
    """
    if daily_rate <= 0:
        raise InvalidRange("daily_rate must be positive")
    days = rental_days(start, end)

    subtotal = days * daily_rate
    tax = subtotal * TAX_RATE
    total = round_money(subtotal + tax)

    return PriceCalculation(
        days=days,
        daily_rate=daily_rate,
        subtotal=round_money(subtotal),
        tax=round_money(tax),
        total=total,
    )

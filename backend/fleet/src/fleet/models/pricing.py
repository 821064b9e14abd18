"""Pricing breakdown model."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class PriceCalculation(BaseModel):
    """Price breakdown for an inclusive rental span.

    Amounts are decimals rounded to cents.
    """

    model_config = ConfigDict(strict=True)

    days: int = Field(..., ge=1, description="Rental days, both endpoints included")
    daily_rate: Decimal = Field(..., gt=0, description="Vehicle daily rate")
    subtotal: Decimal = Field(..., ge=0, description="days * daily_rate")
    tax: Decimal = Field(..., ge=0, description="Tax on the subtotal")
    total: Decimal = Field(..., ge=0, description="subtotal + tax, rounded to cents")

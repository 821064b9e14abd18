"""API models for booking endpoints."""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from fleet.models import RentalStatus


class CustomerInput(BaseModel):
    """Customer identity sent with a booking."""

    model_config = ConfigDict(strict=False)

    name: str = Field(..., description="Full name", examples=["Ana Silva"])
    email: str = Field(..., description="Email address", examples=["ana@example.com"])
    phone: str = Field(..., description="Phone number", examples=["+1-555-0100"])


class BookingCreateRequest(BaseModel):
    """Request to book a vehicle.

    Dates are taken as strings and validated by the booking service, so a
    malformed date gets the same error shape as any other invalid field.
    There is no price field: totals are always computed server-side.
    """

    model_config = ConfigDict(
        strict=False,
        json_schema_extra={
            "examples": [
                {
                    "vehicle_id": "VEH-1A2B3C4D5E6F",
                    "customer": {
                        "name": "Ana Silva",
                        "email": "ana@example.com",
                        "phone": "+1-555-0100",
                    },
                    "start_date": "2026-07-15",
                    "end_date": "2026-07-16",
                }
            ]
        },
    )

    vehicle_id: str = Field(..., description="Vehicle to book")
    customer: CustomerInput
    start_date: str = Field(..., description="First rental day (YYYY-MM-DD)")
    end_date: str = Field(..., description="Last rental day (YYYY-MM-DD), inclusive")
    payment_intent_ref: str | None = Field(
        default=None,
        description="Stripe PaymentIntent already confirmed by the client",
        examples=["pi_3ABC123DEF456"],
    )


class StatusUpdateRequest(BaseModel):
    """Request to move a rental to another status."""

    model_config = ConfigDict(strict=False)

    status: RentalStatus = Field(..., description="New rental status")


class DatesUpdateRequest(BaseModel):
    """Request to move a rental to new dates."""

    model_config = ConfigDict(strict=False)

    start_date: str = Field(..., description="New first day (YYYY-MM-DD)")
    end_date: str = Field(..., description="New last day (YYYY-MM-DD)")


class RentalSummary(BaseModel):
    """Compact rental view for listings."""

    model_config = ConfigDict(strict=True)

    rental_id: str
    vehicle_id: str
    start_date: date
    end_date: date
    total_amount: Decimal
    status: RentalStatus


class RentalListResponse(BaseModel):
    """Rentals of one customer."""

    model_config = ConfigDict(strict=True)

    customer_id: str
    rentals: list[RentalSummary]
    total_count: int

"""Booking request and result models used by the coordinator."""

from datetime import date

from pydantic import BaseModel, ConfigDict, Field

from .customer import Customer, CustomerDetails
from .enums import PaymentStatus, RentalStatus
from .payment import Payment
from .pricing import PriceCalculation
from .rental import Rental
from .vehicle import Vehicle


class BookingRequest(BaseModel):
    """A parsed booking request.

    Dates are kept as received; the coordinator owns date validation so
    that every malformed request maps to the same error kind.
    """

    model_config = ConfigDict(strict=False)

    vehicle_id: str = Field(..., description="Vehicle to book")
    customer: CustomerDetails
    start_date: str | date = Field(..., description="First rental day (YYYY-MM-DD)")
    end_date: str | date = Field(..., description="Last rental day (YYYY-MM-DD)")
    payment_intent_ref: str | None = Field(
        default=None,
        description="PaymentIntent already confirmed client-side",
    )


class BookingResult(BaseModel):
    """Result of a committed booking."""

    model_config = ConfigDict(strict=True)

    rental_id: str
    status: RentalStatus
    pricing: PriceCalculation
    customer_id: str
    payment_id: str | None = None
    payment_status: PaymentStatus
    start_date: date
    end_date: date


class BookingDetails(BaseModel):
    """Read projection joining a rental with its related rows."""

    model_config = ConfigDict(strict=True)

    rental: Rental
    customer: Customer | None = None
    vehicle: Vehicle | None = None
    payment: Payment | None = None

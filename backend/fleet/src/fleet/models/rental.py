"""Rental (reservation) model."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .enums import RentalStatus


class Rental(BaseModel):
    """A vehicle reservation over an inclusive date span."""

    model_config = ConfigDict(strict=True)

    rental_id: str = Field(..., description="Unique rental ID")
    customer_id: str = Field(..., description="Reference to Customer")
    vehicle_id: str = Field(..., description="Reference to Vehicle")
    start_date: date = Field(..., description="First rental day")
    end_date: date = Field(..., description="Last rental day (inclusive)")
    total_amount: Decimal = Field(..., ge=0, description="Total incl. tax")
    status: RentalStatus = Field(..., description="Rental status")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")

    @model_validator(mode="after")
    def _check_span(self) -> "Rental":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

    @property
    def is_blocking(self) -> bool:
        """Whether this rental holds its vehicle for its dates."""
        return self.status not in (RentalStatus.CANCELLED, RentalStatus.COMPLETED)


class ScheduleEntry(BaseModel):
    """One row of a vehicle's booking schedule."""

    model_config = ConfigDict(strict=True)

    vehicle_id: str
    rental_id: str
    start_date: date
    end_date: date
    status: RentalStatus

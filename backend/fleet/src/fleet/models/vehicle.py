"""Vehicle model for fleet records."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class Vehicle(BaseModel):
    """A rentable vehicle.

    `availability` is the fleet-level switch (maintenance, retired, ...),
    independent of date-based booking state. `booking_version` is bumped by
    every transaction that changes the vehicle's set of blocking rentals.
    """

    model_config = ConfigDict(strict=True)

    vehicle_id: str = Field(..., description="Unique vehicle ID")
    model: str = Field(..., min_length=1, description="Make and model")
    vehicle_type: str = Field(..., min_length=1, description="Category (sedan, suv, van, ...)")
    daily_rate: Decimal = Field(..., gt=0, decimal_places=2, description="Price per day")
    availability: bool = Field(default=True, description="Fleet-level availability flag")
    seats: int | None = Field(default=None, ge=1, description="Passenger capacity")
    features: list[str] = Field(default_factory=list, description="Optional feature tags")
    booking_version: int = Field(default=0, ge=0, description="Per-vehicle lock token")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")


class VehicleCreate(BaseModel):
    """Data required to add a vehicle to the fleet."""

    model_config = ConfigDict(strict=True)

    model: str = Field(..., min_length=1)
    vehicle_type: str = Field(..., min_length=1)
    daily_rate: Decimal = Field(..., gt=0, decimal_places=2)
    availability: bool = True
    seats: int | None = Field(default=None, ge=1)
    features: list[str] = Field(default_factory=list)


class VehicleUpdate(BaseModel):
    """Fleet-management changes to a vehicle; unset fields stay as they are.

    A new daily rate prices future bookings only. Rentals already booked
    keep their stored total.
    """

    model_config = ConfigDict(strict=True)

    model: str | None = Field(default=None, min_length=1)
    vehicle_type: str | None = Field(default=None, min_length=1)
    daily_rate: Decimal | None = Field(default=None, gt=0, decimal_places=2)
    availability: bool | None = None
    seats: int | None = Field(default=None, ge=1)
    features: list[str] | None = None

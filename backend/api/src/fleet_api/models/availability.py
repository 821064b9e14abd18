"""API models for availability endpoints."""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from fleet.models import PriceCalculation, ScheduleEntry


class AvailabilityResponse(BaseModel):
    """Availability of one vehicle for a date span."""

    model_config = ConfigDict(strict=True)

    vehicle_id: str
    start_date: date
    end_date: date
    is_available: bool
    conflicting_rental_ids: list[str] = Field(default_factory=list)
    pricing: PriceCalculation | None = Field(
        default=None, description="Price for the span if the vehicle is available"
    )


class AvailableVehicle(BaseModel):
    """A vehicle free for the whole requested span."""

    model_config = ConfigDict(strict=True)

    vehicle_id: str
    model: str
    vehicle_type: str
    daily_rate: Decimal
    pricing: PriceCalculation


class SearchResponse(BaseModel):
    """Vehicles available for a span, cheapest first."""

    model_config = ConfigDict(strict=True)

    start_date: date
    end_date: date
    vehicles: list[AvailableVehicle]
    total_count: int


class ScheduleResponse(BaseModel):
    """Booked spans of a vehicle."""

    model_config = ConfigDict(strict=True)

    vehicle_id: str
    entries: list[ScheduleEntry]

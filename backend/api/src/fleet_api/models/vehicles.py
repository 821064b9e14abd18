"""API models for fleet endpoints."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from fleet.models import Vehicle


class VehicleCreateRequest(BaseModel):
    """Request to add a vehicle to the fleet."""

    model_config = ConfigDict(
        strict=False,
        json_schema_extra={
            "examples": [
                {
                    "model": "Toyota Corolla",
                    "vehicle_type": "sedan",
                    "daily_rate": "45.00",
                    "seats": 5,
                    "features": ["bluetooth", "air_conditioning"],
                }
            ]
        },
    )

    model: str = Field(..., min_length=1)
    vehicle_type: str = Field(..., min_length=1)
    daily_rate: Decimal = Field(..., gt=0, decimal_places=2)
    availability: bool = True
    seats: int | None = Field(default=None, ge=1)
    features: list[str] = Field(default_factory=list)


class VehicleUpdateRequest(BaseModel):
    """Request to change a vehicle's fleet record; omitted fields are kept."""

    model_config = ConfigDict(
        strict=False,
        json_schema_extra={"examples": [{"daily_rate": "49.00"}]},
    )

    model: str | None = Field(default=None, min_length=1)
    vehicle_type: str | None = Field(default=None, min_length=1)
    daily_rate: Decimal | None = Field(default=None, gt=0, decimal_places=2)
    availability: bool | None = None
    seats: int | None = Field(default=None, ge=1)
    features: list[str] | None = None


class AvailabilityUpdateRequest(BaseModel):
    """Request to switch a vehicle's fleet-level availability."""

    model_config = ConfigDict(strict=False)

    availability: bool


class VehicleListResponse(BaseModel):
    """Fleet listing."""

    model_config = ConfigDict(strict=True)

    vehicles: list[Vehicle]
    total_count: int

"""Fleet endpoints."""

from fastapi import APIRouter, Depends, Query
from starlette.status import HTTP_201_CREATED

from fleet.models import ErrorCode, NotFound, Vehicle, VehicleCreate, VehicleUpdate
from fleet.services.vehicles import VehicleService
from fleet_api.dependencies import get_vehicle_service
from fleet_api.models.vehicles import (
    AvailabilityUpdateRequest,
    VehicleCreateRequest,
    VehicleListResponse,
    VehicleUpdateRequest,
)

router = APIRouter(tags=["vehicles"])


@router.get("/vehicles", summary="List vehicles", response_model=VehicleListResponse)
async def list_vehicles(
    available_only: bool = Query(default=False),
    vehicle_type: str | None = Query(default=None),
    service: VehicleService = Depends(get_vehicle_service),
) -> VehicleListResponse:
    vehicles = service.list_vehicles(available_only=available_only, vehicle_type=vehicle_type)
    return VehicleListResponse(vehicles=vehicles, total_count=len(vehicles))


@router.get(
    "/vehicles/{vehicle_id}",
    summary="Get vehicle",
    response_model=Vehicle,
    responses={404: {"description": "Vehicle not found"}},
)
async def get_vehicle(
    vehicle_id: str,
    service: VehicleService = Depends(get_vehicle_service),
) -> Vehicle:
    vehicle = service.get_vehicle(vehicle_id)
    if vehicle is None:
        raise NotFound(ErrorCode.VEHICLE_NOT_FOUND, {"vehicle_id": vehicle_id})
    return vehicle


@router.post(
    "/vehicles",
    summary="Add vehicle",
    response_model=Vehicle,
    status_code=HTTP_201_CREATED,
)
async def create_vehicle(
    body: VehicleCreateRequest,
    service: VehicleService = Depends(get_vehicle_service),
) -> Vehicle:
    return service.create_vehicle(
        VehicleCreate(
            model=body.model,
            vehicle_type=body.vehicle_type,
            daily_rate=body.daily_rate,
            availability=body.availability,
            seats=body.seats,
            features=body.features,
        )
    )


@router.put(
    "/vehicles/{vehicle_id}",
    summary="Update vehicle",
    description="""
Change model, type, daily rate, availability, seats or features.

A new daily rate applies to bookings made afterwards; existing rentals keep
their stored totals.
""",
    response_model=Vehicle,
    responses={
        400: {"description": "Invalid or empty update"},
        404: {"description": "Vehicle not found"},
    },
)
async def update_vehicle(
    vehicle_id: str,
    body: VehicleUpdateRequest,
    service: VehicleService = Depends(get_vehicle_service),
) -> Vehicle:
    return service.update_vehicle(vehicle_id, VehicleUpdate(**body.model_dump()))


@router.put(
    "/vehicles/{vehicle_id}/availability",
    summary="Enable or disable vehicle",
    response_model=Vehicle,
    responses={404: {"description": "Vehicle not found"}},
)
async def set_vehicle_availability(
    vehicle_id: str,
    body: AvailabilityUpdateRequest,
    service: VehicleService = Depends(get_vehicle_service),
) -> Vehicle:
    """Switch the fleet-level flag. Existing rentals are not touched."""
    return service.set_availability(vehicle_id, body.availability)

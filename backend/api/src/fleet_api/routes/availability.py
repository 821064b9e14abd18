"""Availability endpoints.

Answers are advisory; booking re-checks under the vehicle lock.
"""

import datetime as dt

from fastapi import APIRouter, Depends, Query

from fleet.models import ErrorCode, NotFound, VehicleUnavailable
from fleet.services.availability import AvailabilityService
from fleet.services.booking import parse_date
from fleet.services.vehicles import VehicleService
from fleet_api.dependencies import get_availability_service, get_vehicle_service
from fleet_api.models.availability import (
    AvailabilityResponse,
    AvailableVehicle,
    ScheduleResponse,
    SearchResponse,
)

router = APIRouter(tags=["availability"])


def _parse_span(start_date: str, end_date: str) -> tuple[dt.date, dt.date]:
    return parse_date(start_date, "start_date"), parse_date(end_date, "end_date")


@router.get(
    "/availability/check",
    summary="Check one vehicle",
    response_model=AvailabilityResponse,
    responses={
        400: {"description": "Invalid dates"},
        409: {"description": "Vehicle missing or disabled"},
    },
)
async def check_availability(
    vehicle_id: str = Query(..., description="Vehicle to check"),
    start_date: str = Query(..., description="First day (YYYY-MM-DD)"),
    end_date: str = Query(..., description="Last day (YYYY-MM-DD)"),
    availability: AvailabilityService = Depends(get_availability_service),
    vehicles: VehicleService = Depends(get_vehicle_service),
) -> AvailabilityResponse:
    """Check whether a vehicle is free for the whole span."""
    start, end = _parse_span(start_date, end_date)
    vehicle = vehicles.get_vehicle(vehicle_id)
    if vehicle is None:
        raise VehicleUnavailable(details={"vehicle_id": vehicle_id})

    result = availability.check_availability(vehicle, start, end)
    return AvailabilityResponse(
        vehicle_id=vehicle_id,
        start_date=start,
        end_date=end,
        is_available=result.is_available,
        conflicting_rental_ids=[c.rental_id for c in result.conflicts],
        pricing=result.pricing if result.is_available else None,
    )


@router.get(
    "/availability/search",
    summary="Search available vehicles",
    response_model=SearchResponse,
    responses={400: {"description": "Invalid dates"}},
)
async def search_available(
    start_date: str = Query(..., description="First day (YYYY-MM-DD)"),
    end_date: str = Query(..., description="Last day (YYYY-MM-DD)"),
    vehicle_type: str | None = Query(default=None, description="Category filter"),
    availability: AvailabilityService = Depends(get_availability_service),
) -> SearchResponse:
    """List vehicles free for the whole span, cheapest first."""
    start, end = _parse_span(start_date, end_date)
    results = availability.search_available_vehicles(start, end, vehicle_type)
    vehicles = [
        AvailableVehicle(
            vehicle_id=r.vehicle.vehicle_id,
            model=r.vehicle.model,
            vehicle_type=r.vehicle.vehicle_type,
            daily_rate=r.vehicle.daily_rate,
            pricing=r.pricing,
        )
        for r in results
    ]
    return SearchResponse(
        start_date=start,
        end_date=end,
        vehicles=vehicles,
        total_count=len(vehicles),
    )


@router.get(
    "/availability/schedule/{vehicle_id}",
    summary="Vehicle schedule",
    response_model=ScheduleResponse,
    responses={404: {"description": "Vehicle not found"}},
)
async def get_schedule(
    vehicle_id: str,
    include_terminal: bool = Query(default=False, description="Include cancelled/completed"),
    availability: AvailabilityService = Depends(get_availability_service),
    vehicles: VehicleService = Depends(get_vehicle_service),
) -> ScheduleResponse:
    """Booked spans of a vehicle, ordered by start date."""
    if vehicles.get_vehicle(vehicle_id) is None:
        raise NotFound(ErrorCode.VEHICLE_NOT_FOUND, {"vehicle_id": vehicle_id})
    entries = availability.get_vehicle_schedule(vehicle_id, include_terminal=include_terminal)
    return ScheduleResponse(vehicle_id=vehicle_id, entries=entries)

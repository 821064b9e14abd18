"""Availability queries over the fleet and vehicle schedules."""

import datetime as dt
from typing import TYPE_CHECKING

from fleet.models import (
    PriceCalculation,
    RequestValidationError,
    ScheduleEntry,
    Vehicle,
)

from .conflicts import ConflictChecker
from .pricing import calculate_price
from .vehicles import VehicleService

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService


class AvailabilityResult:
    """Whether one vehicle can be booked for a span, with its price."""

    def __init__(
        self,
        vehicle: Vehicle,
        start_date: dt.date,
        end_date: dt.date,
        conflicts: list[ScheduleEntry],
    ) -> None:
        self.vehicle = vehicle
        self.start_date = start_date
        self.end_date = end_date
        self.conflicts = conflicts

    @property
    def is_available(self) -> bool:
        return self.vehicle.availability and not self.conflicts

    @property
    def pricing(self) -> PriceCalculation:
        return calculate_price(self.vehicle.daily_rate, self.start_date, self.end_date)


class AvailabilityService:
    """Service for availability checking across the fleet.

    Results are advisory: a vehicle shown as free can still be taken by a
    concurrent booking. BookingService re-checks under the vehicle lock.
    """

    def __init__(self, db: "DynamoDBService") -> None:
        """Initialize availability service.

        Args:
            db: DynamoDB service instance
        """
        self.db = db
        self.vehicles = VehicleService(db)
        self.conflicts = ConflictChecker(db)

    def check_availability(
        self,
        vehicle: Vehicle,
        start_date: dt.date,
        end_date: dt.date,
    ) -> AvailabilityResult:
        """Check one vehicle for an inclusive span.

        Raises:
            RequestValidationError: If end_date is before start_date
        """
        self._validate_span(start_date, end_date)
        conflicts = self.conflicts.find_conflicts(vehicle.vehicle_id, start_date, end_date)
        return AvailabilityResult(vehicle, start_date, end_date, conflicts)

    def search_available_vehicles(
        self,
        start_date: dt.date,
        end_date: dt.date,
        vehicle_type: str | None = None,
    ) -> list[AvailabilityResult]:
        """Find vehicles free for the whole span, cheapest first.

        Args:
            start_date: First rental day
            end_date: Last rental day
            vehicle_type: Optional category filter

        Returns:
            Available vehicles with pricing
        """
        self._validate_span(start_date, end_date)
        results = []
        for vehicle in self.vehicles.list_vehicles(available_only=True, vehicle_type=vehicle_type):
            result = self.check_availability(vehicle, start_date, end_date)
            if result.is_available:
                results.append(result)
        return sorted(results, key=lambda r: (r.vehicle.daily_rate, r.vehicle.vehicle_id))

    def get_vehicle_schedule(
        self,
        vehicle_id: str,
        include_terminal: bool = False,
    ) -> list[ScheduleEntry]:
        """Booked spans of a vehicle, ordered by start date."""
        return self.conflicts.get_schedule(vehicle_id, include_terminal=include_terminal)

    def _validate_span(self, start_date: dt.date, end_date: dt.date) -> None:
        if end_date < start_date:
            raise RequestValidationError(
                "end_date must not be before start_date", field="end_date"
            )

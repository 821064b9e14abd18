"""Vehicle fleet service."""

import datetime as dt
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from boto3.dynamodb.conditions import Attr

from fleet.models import (
    ErrorCode,
    NotFound,
    RequestValidationError,
    Vehicle,
    VehicleCreate,
    VehicleUpdate,
)
from fleet.utils.ids import generate_id
from fleet.utils.logging import get_logger

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService, WriteTransaction

logger = get_logger(__name__)


class VehicleService:
    """Service for fleet records and the per-vehicle booking lock."""

    TABLE = "vehicles"

    def __init__(self, db: "DynamoDBService") -> None:
        """Initialize vehicle service.

        Args:
            db: DynamoDB service instance
        """
        self.db = db

    def create_vehicle(self, data: VehicleCreate) -> Vehicle:
        """Add a vehicle to the fleet.

        Args:
            data: Vehicle attributes

        Returns:
            The stored Vehicle
        """
        now = dt.datetime.now(dt.UTC)
        vehicle = Vehicle(
            vehicle_id=generate_id("VEH"),
            model=data.model,
            vehicle_type=data.vehicle_type,
            daily_rate=data.daily_rate,
            availability=data.availability,
            seats=data.seats,
            features=list(data.features),
            booking_version=0,
            created_at=now,
            updated_at=now,
        )
        self.db.put_item(
            self.TABLE,
            self._vehicle_to_item(vehicle),
            condition_expression="attribute_not_exists(vehicle_id)",
        )
        logger.info("Created vehicle %s (%s)", vehicle.vehicle_id, vehicle.model)
        return vehicle

    def get_vehicle(self, vehicle_id: str) -> Vehicle | None:
        """Get a vehicle by ID (strongly consistent)."""
        item = self.db.get_item(self.TABLE, {"vehicle_id": vehicle_id})
        return self._item_to_vehicle(item) if item else None

    def list_vehicles(
        self,
        available_only: bool = False,
        vehicle_type: str | None = None,
    ) -> list[Vehicle]:
        """List fleet vehicles.

        Args:
            available_only: Only vehicles whose fleet flag is on
            vehicle_type: Optional category filter

        Returns:
            Vehicles ordered by ID
        """
        filter_expr = None
        if available_only:
            filter_expr = Attr("availability").eq(True)
        if vehicle_type:
            type_expr = Attr("vehicle_type").eq(vehicle_type)
            filter_expr = type_expr if filter_expr is None else filter_expr & type_expr

        items = self.db.scan(self.TABLE, filter_expression=filter_expr)
        vehicles = [self._item_to_vehicle(item) for item in items]
        return sorted(vehicles, key=lambda v: v.vehicle_id)

    def update_vehicle(self, vehicle_id: str, data: VehicleUpdate) -> Vehicle:
        """Apply fleet-management changes to a vehicle.

        Only fields set on `data` are written. The booking lock token is
        left alone: a rate change does not touch existing rentals.

        Raises:
            RequestValidationError: If `data` changes nothing
            NotFound: If the vehicle does not exist
        """
        changes = data.model_dump(exclude_none=True)
        if not changes:
            raise RequestValidationError("no vehicle fields to update")

        now = dt.datetime.now(dt.UTC).isoformat()
        names = {f"#{field}": field for field in changes}
        values = {f":{field}": value for field, value in changes.items()}
        values[":now"] = now
        assignments = [f"#{field} = :{field}" for field in changes]
        assignments.append("updated_at = :now")

        attrs = self.db.update_item(
            self.TABLE,
            {"vehicle_id": vehicle_id},
            "SET " + ", ".join(assignments),
            values,
            expression_attribute_names=names,
            condition_expression="attribute_exists(vehicle_id)",
        )
        if attrs is None:
            raise NotFound(ErrorCode.VEHICLE_NOT_FOUND, {"vehicle_id": vehicle_id})
        logger.info("Updated vehicle %s: %s", vehicle_id, ", ".join(sorted(changes)))
        return self._item_to_vehicle(attrs)

    def set_availability(self, vehicle_id: str, available: bool) -> Vehicle:
        """Switch a vehicle's fleet-level availability flag.

        Raises:
            NotFound: If the vehicle does not exist
        """
        attrs = self.db.update_item(
            self.TABLE,
            {"vehicle_id": vehicle_id},
            "SET availability = :available, updated_at = :now",
            {
                ":available": available,
                ":now": dt.datetime.now(dt.UTC).isoformat(),
            },
            condition_expression="attribute_exists(vehicle_id)",
        )
        if attrs is None:
            raise NotFound(ErrorCode.VEHICLE_NOT_FOUND, {"vehicle_id": vehicle_id})
        logger.info("Vehicle %s availability set to %s", vehicle_id, available)
        return self._item_to_vehicle(attrs)

    def lock_for_booking(self, tx: "WriteTransaction", vehicle: Vehicle) -> None:
        """Queue the lock-token bump that guards a vehicle's schedule.

        The update only applies if nobody else changed the vehicle's
        schedule since `vehicle` was read and the vehicle is still rentable.
        Of two transactions that read the same version, at most one commits.
        """
        current = vehicle.booking_version
        if current == 0:
            condition = (
                "(attribute_not_exists(booking_version) OR booking_version = :current)"
                " AND availability = :true"
            )
        else:
            condition = "booking_version = :current AND availability = :true"
        tx.update(
            self.TABLE,
            {"vehicle_id": vehicle.vehicle_id},
            "SET booking_version = :next",
            {":current": current, ":next": current + 1, ":true": True},
            condition=condition,
        )

    def _vehicle_to_item(self, vehicle: Vehicle) -> dict[str, Any]:
        item: dict[str, Any] = {
            "vehicle_id": vehicle.vehicle_id,
            "model": vehicle.model,
            "vehicle_type": vehicle.vehicle_type,
            "daily_rate": vehicle.daily_rate,
            "availability": vehicle.availability,
            "features": vehicle.features,
            "booking_version": vehicle.booking_version,
            "created_at": vehicle.created_at.isoformat(),
            "updated_at": vehicle.updated_at.isoformat(),
        }
        if vehicle.seats is not None:
            item["seats"] = vehicle.seats
        return item

    def _item_to_vehicle(self, item: dict[str, Any]) -> Vehicle:
        seats = item.get("seats")
        return Vehicle(
            vehicle_id=item["vehicle_id"],
            model=item["model"],
            vehicle_type=item["vehicle_type"],
            daily_rate=Decimal(str(item["daily_rate"])),
            availability=bool(item.get("availability", False)),
            seats=int(seats) if seats is not None else None,
            features=list(item.get("features", [])),
            booking_version=int(item.get("booking_version", 0)),
            created_at=dt.datetime.fromisoformat(item["created_at"]),
            updated_at=dt.datetime.fromisoformat(item["updated_at"]),
        )

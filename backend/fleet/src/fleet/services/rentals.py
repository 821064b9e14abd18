"""Rental records and their vehicle-schedule rows.

A rental is stored twice: the `rentals` row is the record of truth and the
`vehicle-schedule` row is its entry in the vehicle's interval index. Every
write here queues both on the same transaction so they never diverge.
"""

import datetime as dt
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from fleet.models import Rental, RentalStatus

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService, WriteTransaction


class RentalRepository:
    """Reads rentals and queues rental writes."""

    TABLE = "rentals"
    SCHEDULE_TABLE = "vehicle-schedule"
    CUSTOMER_INDEX = "customer_id-index"

    def __init__(self, db: "DynamoDBService") -> None:
        self.db = db

    def get_rental(self, rental_id: str) -> Rental | None:
        """Get a rental by ID (strongly consistent)."""
        item = self.db.get_item(self.TABLE, {"rental_id": rental_id})
        return self._item_to_rental(item) if item else None

    def list_for_customer(self, customer_id: str) -> list[Rental]:
        """All rentals of a customer, newest start date first."""
        items = self.db.query_by_gsi(self.TABLE, self.CUSTOMER_INDEX, "customer_id", customer_id)
        rentals = [self._item_to_rental(item) for item in items]
        return sorted(rentals, key=lambda r: (r.start_date, r.rental_id), reverse=True)

    def queue_insert(self, tx: "WriteTransaction", rental: Rental) -> None:
        """Queue a new rental and its schedule row."""
        tx.put(
            self.TABLE,
            self._rental_to_item(rental),
            condition="attribute_not_exists(rental_id)",
        )
        tx.put(self.SCHEDULE_TABLE, self._schedule_item(rental))

    def queue_status(
        self,
        tx: "WriteTransaction",
        rental: Rental,
        status: RentalStatus,
        now: dt.datetime,
    ) -> None:
        """Queue a status change guarded on the status that was read.

        If another transaction changed the status in between, the commit
        is cancelled.
        """
        values = {
            ":status": status.value,
            ":expected": rental.status.value,
            ":now": now.isoformat(),
        }
        tx.update(
            self.TABLE,
            {"rental_id": rental.rental_id},
            "SET #status = :status, updated_at = :now",
            values,
            names={"#status": "status"},
            condition="#status = :expected",
        )
        tx.update(
            self.SCHEDULE_TABLE,
            {"vehicle_id": rental.vehicle_id, "rental_id": rental.rental_id},
            "SET #status = :status",
            {":status": status.value},
            names={"#status": "status"},
        )

    def queue_reschedule(
        self,
        tx: "WriteTransaction",
        rental: Rental,
        start: dt.date,
        end: dt.date,
        total_amount: Decimal,
        now: dt.datetime,
    ) -> None:
        """Queue new dates and total for a rental, guarded on the old dates."""
        tx.update(
            self.TABLE,
            {"rental_id": rental.rental_id},
            "SET start_date = :start, end_date = :end, total_amount = :total, updated_at = :now",
            {
                ":start": start.isoformat(),
                ":end": end.isoformat(),
                ":total": total_amount,
                ":now": now.isoformat(),
                ":old_start": rental.start_date.isoformat(),
                ":old_end": rental.end_date.isoformat(),
                ":expected": rental.status.value,
            },
            names={"#status": "status"},
            condition="start_date = :old_start AND end_date = :old_end AND #status = :expected",
        )
        tx.update(
            self.SCHEDULE_TABLE,
            {"vehicle_id": rental.vehicle_id, "rental_id": rental.rental_id},
            "SET start_date = :start, end_date = :end",
            {":start": start.isoformat(), ":end": end.isoformat()},
        )

    def _schedule_item(self, rental: Rental) -> dict[str, Any]:
        return {
            "vehicle_id": rental.vehicle_id,
            "rental_id": rental.rental_id,
            "start_date": rental.start_date.isoformat(),
            "end_date": rental.end_date.isoformat(),
            "status": rental.status.value,
        }

    def _rental_to_item(self, rental: Rental) -> dict[str, Any]:
        return {
            "rental_id": rental.rental_id,
            "customer_id": rental.customer_id,
            "vehicle_id": rental.vehicle_id,
            "start_date": rental.start_date.isoformat(),
            "end_date": rental.end_date.isoformat(),
            "total_amount": rental.total_amount,
            "status": rental.status.value,
            "created_at": rental.created_at.isoformat(),
            "updated_at": rental.updated_at.isoformat(),
        }

    def _item_to_rental(self, item: dict[str, Any]) -> Rental:
        return Rental(
            rental_id=item["rental_id"],
            customer_id=item["customer_id"],
            vehicle_id=item["vehicle_id"],
            start_date=dt.date.fromisoformat(item["start_date"]),
            end_date=dt.date.fromisoformat(item["end_date"]),
            total_amount=Decimal(str(item["total_amount"])),
            status=RentalStatus(item["status"]),
            created_at=dt.datetime.fromisoformat(item["created_at"]),
            updated_at=dt.datetime.fromisoformat(item["updated_at"]),
        )

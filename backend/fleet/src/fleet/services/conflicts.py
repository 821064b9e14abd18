"""Interval conflict checking for vehicle schedules.

Rentals span inclusive date ranges, so two rentals that share a boundary
day conflict. Only rentals that still hold their vehicle are considered.
"""

import datetime as dt
from typing import TYPE_CHECKING, Any

from boto3.dynamodb.conditions import Attr, Key

from fleet.models import BLOCKING_RENTAL_STATUSES, RentalStatus, ScheduleEntry

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService


def ranges_overlap(a0: dt.date, a1: dt.date, b0: dt.date, b1: dt.date) -> bool:
    """Whether inclusive ranges [a0, a1] and [b0, b1] share at least one day."""
    return a0 <= b1 and b0 <= a1


class ConflictChecker:
    """Finds blocking rentals that overlap a requested span."""

    TABLE = "vehicle-schedule"

    def __init__(self, db: "DynamoDBService") -> None:
        self.db = db

    def find_conflicts(
        self,
        vehicle_id: str,
        start: dt.date,
        end: dt.date,
        exclude_rental_id: str | None = None,
    ) -> list[ScheduleEntry]:
        """Return blocking schedule entries overlapping [start, end].

        Reads the vehicle's schedule partition with a strongly consistent
        query, so rentals committed before this call are always seen.

        Args:
            vehicle_id: Vehicle to check
            start: First requested day
            end: Last requested day
            exclude_rental_id: Rental to ignore (when rescheduling it)

        Returns:
            Conflicting entries ordered by start date
        """
        # ISO dates compare correctly as strings
        filter_expr = (
            Attr("start_date").lte(end.isoformat())
            & Attr("end_date").gte(start.isoformat())
            & Attr("status").is_in([s.value for s in BLOCKING_RENTAL_STATUSES])
        )
        items = self.db.query(
            self.TABLE,
            Key("vehicle_id").eq(vehicle_id),
            filter_expression=filter_expr,
            consistent=True,
        )

        entries = [self._item_to_entry(item) for item in items]
        conflicts = [
            e
            for e in entries
            if e.rental_id != exclude_rental_id
            and e.status in BLOCKING_RENTAL_STATUSES
            and ranges_overlap(start, end, e.start_date, e.end_date)
        ]
        return sorted(conflicts, key=lambda e: e.start_date)

    def has_conflict(
        self,
        vehicle_id: str,
        start: dt.date,
        end: dt.date,
        exclude_rental_id: str | None = None,
    ) -> bool:
        """Whether any blocking rental overlaps [start, end]."""
        return bool(self.find_conflicts(vehicle_id, start, end, exclude_rental_id))

    def get_schedule(
        self,
        vehicle_id: str,
        include_terminal: bool = False,
    ) -> list[ScheduleEntry]:
        """All schedule entries for a vehicle, ordered by start date."""
        items = self.db.query(self.TABLE, Key("vehicle_id").eq(vehicle_id), consistent=True)
        entries = [self._item_to_entry(item) for item in items]
        if not include_terminal:
            entries = [e for e in entries if e.status in BLOCKING_RENTAL_STATUSES]
        return sorted(entries, key=lambda e: (e.start_date, e.rental_id))

    def _item_to_entry(self, item: dict[str, Any]) -> ScheduleEntry:
        return ScheduleEntry(
            vehicle_id=item["vehicle_id"],
            rental_id=item["rental_id"],
            start_date=dt.date.fromisoformat(item["start_date"]),
            end_date=dt.date.fromisoformat(item["end_date"]),
            status=RentalStatus(item["status"]),
        )

"""Unit tests for interval conflict checking."""

from datetime import date, timedelta
from typing import Any

import boto3
import pytest

from fleet.services.conflicts import ConflictChecker, ranges_overlap

D = date(2026, 7, 10)
VEHICLE_ID = "VEH-TEST000001"


def _day(offset: int) -> date:
    return D + timedelta(days=offset)


class TestRangesOverlap:
    """Inclusive-range overlap predicate."""

    @pytest.mark.parametrize(
        ("a", "b", "expected"),
        [
            ((0, 2), (3, 5), False),  # disjoint
            ((0, 2), (2, 4), True),  # shared boundary day
            ((2, 4), (0, 2), True),  # shared boundary day, reversed
            ((0, 10), (3, 4), True),  # containment
            ((3, 3), (3, 3), True),  # same single day
            ((0, 0), (1, 1), False),  # adjacent single days
        ],
    )
    def test_overlap(self, a: tuple[int, int], b: tuple[int, int], expected: bool):
        assert ranges_overlap(_day(a[0]), _day(a[1]), _day(b[0]), _day(b[1])) is expected

    def test_symmetric(self):
        for a0, a1, b0, b1 in [(0, 3, 2, 6), (0, 1, 5, 6), (4, 4, 1, 9)]:
            assert ranges_overlap(_day(a0), _day(a1), _day(b0), _day(b1)) == ranges_overlap(
                _day(b0), _day(b1), _day(a0), _day(a1)
            )


@pytest.fixture
def schedule(dynamodb_tables: Any) -> Any:
    """The vehicle-schedule table, for seeding rows directly."""
    resource = boto3.resource("dynamodb", region_name="eu-west-1")
    return resource.Table("test-fleet-vehicle-schedule")


def _seed(table: Any, rental_id: str, start: int, end: int, status: str = "confirmed") -> None:
    table.put_item(
        Item={
            "vehicle_id": VEHICLE_ID,
            "rental_id": rental_id,
            "start_date": _day(start).isoformat(),
            "end_date": _day(end).isoformat(),
            "status": status,
        }
    )


class TestConflictChecker:
    """Schedule queries against the mocked vehicle-schedule table."""

    def test_empty_schedule_has_no_conflict(self, db: Any, schedule: Any):
        checker = ConflictChecker(db)

        assert checker.has_conflict(VEHICLE_ID, _day(0), _day(3)) is False

    def test_overlapping_rental_conflicts(self, db: Any, schedule: Any):
        _seed(schedule, "RNT-A", 2, 4)
        checker = ConflictChecker(db)

        conflicts = checker.find_conflicts(VEHICLE_ID, _day(4), _day(6))

        assert [c.rental_id for c in conflicts] == ["RNT-A"]

    def test_adjacent_rental_does_not_conflict(self, db: Any, schedule: Any):
        _seed(schedule, "RNT-A", 2, 4)
        checker = ConflictChecker(db)

        assert checker.has_conflict(VEHICLE_ID, _day(5), _day(6)) is False
        assert checker.has_conflict(VEHICLE_ID, _day(0), _day(1)) is False

    @pytest.mark.parametrize("status", ["pending", "confirmed", "active"])
    def test_blocking_statuses_conflict(self, db: Any, schedule: Any, status: str):
        _seed(schedule, "RNT-A", 0, 2, status=status)

        assert ConflictChecker(db).has_conflict(VEHICLE_ID, _day(1), _day(1)) is True

    @pytest.mark.parametrize("status", ["cancelled", "completed"])
    def test_terminal_statuses_do_not_conflict(self, db: Any, schedule: Any, status: str):
        _seed(schedule, "RNT-A", 0, 2, status=status)

        assert ConflictChecker(db).has_conflict(VEHICLE_ID, _day(1), _day(1)) is False

    def test_excluded_rental_ignored(self, db: Any, schedule: Any):
        _seed(schedule, "RNT-A", 0, 2)
        _seed(schedule, "RNT-B", 5, 6)
        checker = ConflictChecker(db)

        assert checker.has_conflict(VEHICLE_ID, _day(1), _day(3), exclude_rental_id="RNT-A") is False
        assert checker.has_conflict(VEHICLE_ID, _day(1), _day(5), exclude_rental_id="RNT-A") is True

    def test_other_vehicles_ignored(self, db: Any, schedule: Any):
        _seed(schedule, "RNT-A", 0, 2)

        assert ConflictChecker(db).has_conflict("VEH-OTHER", _day(0), _day(2)) is False

    def test_schedule_ordered_and_filtered(self, db: Any, schedule: Any):
        _seed(schedule, "RNT-LATE", 8, 9)
        _seed(schedule, "RNT-EARLY", 0, 1)
        _seed(schedule, "RNT-GONE", 3, 4, status="cancelled")
        checker = ConflictChecker(db)

        assert [e.rental_id for e in checker.get_schedule(VEHICLE_ID)] == ["RNT-EARLY", "RNT-LATE"]
        assert len(checker.get_schedule(VEHICLE_ID, include_terminal=True)) == 3

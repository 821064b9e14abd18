"""Unit tests for the DynamoDB wrapper and the write-transaction unit of work."""

from decimal import Decimal
from typing import Any

import pytest

from fleet.models import TransactionFailure
from fleet.services.dynamodb import WriteTransaction, serialize_item


class TestSerialization:
    def test_none_values_dropped(self):
        item = serialize_item({"a": "x", "b": None, "c": Decimal("1.50")})

        assert item == {"a": {"S": "x"}, "c": {"N": "1.50"}}


class TestItemOperations:
    def test_conditional_put_reports_failure(self, db: Any):
        item = {"event_id": "evt_1", "event_type": "x"}

        assert db.put_item("payment-events", item, "attribute_not_exists(event_id)") is True
        assert db.put_item("payment-events", item, "attribute_not_exists(event_id)") is False

    def test_conditional_update_returns_none(self, db: Any):
        result = db.update_item(
            "vehicles",
            {"vehicle_id": "VEH-MISSING"},
            "SET availability = :a",
            {":a": True},
            condition_expression="attribute_exists(vehicle_id)",
        )

        assert result is None

    def test_missing_table_is_transaction_failure(self, db: Any):
        with pytest.raises(TransactionFailure) as exc_info:
            db.get_item("no-such-table", {"id": "1"})

        assert exc_info.value.details == {"operation": "get_item:no-such-table"}

    def test_table_names_prefixed(self, db: Any):
        assert db.table_name("rentals") == "test-fleet-rentals"


class TestWriteTransaction:
    def test_nothing_written_until_commit(self, db: Any):
        tx = db.transaction()
        tx.put("payment-events", {"event_id": "evt_1", "note": None})

        assert db.get_item("payment-events", {"event_id": "evt_1"}) is None
        assert tx.commit() is True
        assert db.get_item("payment-events", {"event_id": "evt_1"}) == {"event_id": "evt_1"}

    def test_failed_condition_rolls_back_everything(self, db: Any):
        db.put_item("payment-events", {"event_id": "evt_1"})
        tx = db.transaction()
        tx.put("payment-events", {"event_id": "evt_2"})
        tx.put("payment-events", {"event_id": "evt_1"}, condition="attribute_not_exists(event_id)")

        assert tx.commit() is False
        assert db.get_item("payment-events", {"event_id": "evt_2"}) is None

    def test_empty_commit(self, db: Any):
        assert db.transaction().commit() is True

    def test_no_writes_after_commit(self, db: Any):
        tx = db.transaction()
        tx.commit()

        with pytest.raises(RuntimeError):
            tx.put("payment-events", {"event_id": "evt_1"})

    def test_item_limit(self, db: Any):
        tx = db.transaction()
        for i in range(WriteTransaction.MAX_ITEMS):
            tx.put("payment-events", {"event_id": f"evt_{i}"})

        with pytest.raises(ValueError):
            tx.put("payment-events", {"event_id": "evt_overflow"})
        assert len(tx) == WriteTransaction.MAX_ITEMS

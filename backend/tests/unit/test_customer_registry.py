"""Unit tests for the email-keyed customer registry."""

from typing import Any

import pytest

from fleet.services.customers import CustomerRegistry


@pytest.fixture
def registry(db: Any) -> CustomerRegistry:
    return CustomerRegistry(db)


class TestUpsert:
    def test_new_email_creates_customer(self, db: Any, registry: CustomerRegistry):
        tx = db.transaction()
        customer_id = registry.upsert(tx, "ana@example.com", "Ana Silva", "+1-555-0100")

        assert customer_id.startswith("CUS-")
        assert tx.commit() is True

        customer = registry.get_customer(customer_id)
        assert customer is not None
        assert customer.name == "Ana Silva"
        assert customer.email == "ana@example.com"
        assert registry.find_customer_id("ana@example.com") == customer_id

    def test_nothing_written_before_commit(self, db: Any, registry: CustomerRegistry):
        tx = db.transaction()
        registry.upsert(tx, "ana@example.com", "Ana Silva", "+1-555-0100")

        assert registry.get_customer_by_email("ana@example.com") is None

    def test_existing_email_reuses_id_and_refreshes_details(
        self, db: Any, registry: CustomerRegistry
    ):
        tx = db.transaction()
        first_id = registry.upsert(tx, "ana@example.com", "Ana Silva", "+1-555-0100")
        tx.commit()

        tx = db.transaction()
        second_id = registry.upsert(tx, "ana@example.com", "Ana S. Costa", "+1-555-0199")
        tx.commit()

        assert second_id == first_id
        customer = registry.get_customer(first_id)
        assert customer is not None
        assert customer.name == "Ana S. Costa"
        assert customer.phone == "+1-555-0199"

    def test_email_match_is_exact(self, db: Any, registry: CustomerRegistry):
        tx = db.transaction()
        lower_id = registry.upsert(tx, "ana@example.com", "Ana", "1")
        tx.commit()

        tx = db.transaction()
        upper_id = registry.upsert(tx, "Ana@example.com", "Ana", "1")
        tx.commit()

        assert upper_id != lower_id

    def test_concurrent_first_insert_loses(self, db: Any, registry: CustomerRegistry):
        """Two transactions racing to register one email: only one commits."""
        tx_a = db.transaction()
        tx_b = db.transaction()
        registry.upsert(tx_a, "ana@example.com", "Ana", "1")
        registry.upsert(tx_b, "ana@example.com", "Ana", "1")

        assert tx_a.commit() is True
        assert tx_b.commit() is False

    def test_unknown_customer(self, registry: CustomerRegistry):
        assert registry.get_customer("CUS-NOPE") is None
        assert registry.get_customer_by_email("nobody@example.com") is None

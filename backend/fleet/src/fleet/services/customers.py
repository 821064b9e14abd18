"""Customer registry: one customer per email address."""

import datetime as dt
from typing import TYPE_CHECKING, Any

from fleet.models import Customer
from fleet.utils.ids import generate_id
from fleet.utils.logging import get_logger

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService, WriteTransaction

logger = get_logger(__name__)


class CustomerRegistry:
    """Resolves booking requesters to customer records.

    Email is the natural key. The `customer-emails` table maps each email
    to its customer ID; inserting into it with an "absent" condition is
    what keeps two concurrent first bookings from creating two customers.
    """

    TABLE = "customers"
    EMAIL_TABLE = "customer-emails"

    def __init__(self, db: "DynamoDBService") -> None:
        self.db = db

    def upsert(
        self,
        tx: "WriteTransaction",
        email: str,
        name: str,
        phone: str,
    ) -> str:
        """Queue the writes that make `email` resolve to a customer.

        Existing customers get their name and phone refreshed; the email
        itself is never rewritten. New customers get an email-index row
        and a customer row. Nothing is written until `tx` commits.

        Args:
            tx: Transaction the writes are queued on
            email: Customer email (exact match)
            name: Display name
            phone: Phone number

        Returns:
            The existing or newly assigned customer ID
        """
        now = dt.datetime.now(dt.UTC).isoformat()
        existing_id = self.find_customer_id(email)

        if existing_id:
            tx.update(
                self.TABLE,
                {"customer_id": existing_id},
                "SET #name = :name, phone = :phone, updated_at = :now",
                {":name": name, ":phone": phone, ":now": now},
                names={"#name": "name"},
                condition="attribute_exists(customer_id)",
            )
            return existing_id

        customer_id = generate_id("CUS")
        tx.put(
            self.EMAIL_TABLE,
            {"email": email, "customer_id": customer_id, "created_at": now},
            condition="attribute_not_exists(email)",
        )
        tx.put(
            self.TABLE,
            {
                "customer_id": customer_id,
                "email": email,
                "name": name,
                "phone": phone,
                "created_at": now,
                "updated_at": now,
            },
            condition="attribute_not_exists(customer_id)",
        )
        logger.info("Registering new customer %s", customer_id)
        return customer_id

    def find_customer_id(self, email: str) -> str | None:
        """Look up a customer ID by exact email (strongly consistent)."""
        item = self.db.get_item(self.EMAIL_TABLE, {"email": email})
        return item["customer_id"] if item else None

    def get_customer(self, customer_id: str) -> Customer | None:
        """Get a customer by ID."""
        item = self.db.get_item(self.TABLE, {"customer_id": customer_id})
        return self._item_to_customer(item) if item else None

    def get_customer_by_email(self, email: str) -> Customer | None:
        """Get a customer by exact email."""
        customer_id = self.find_customer_id(email)
        return self.get_customer(customer_id) if customer_id else None

    def _item_to_customer(self, item: dict[str, Any]) -> Customer:
        return Customer(
            customer_id=item["customer_id"],
            name=item["name"],
            phone=item["phone"],
            email=item["email"],
            created_at=dt.datetime.fromisoformat(item["created_at"]),
            updated_at=dt.datetime.fromisoformat(item["updated_at"]),
        )

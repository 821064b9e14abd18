"""Pytest configuration and fixtures for the fleet booking backend tests.

This module provides reusable fixtures for testing:
- DynamoDB mocking with moto (all tables, test prefix)
- Services wired to the mocked tables
- A seeded vehicle and future-date helpers
"""

import os
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Generator
from unittest.mock import MagicMock

import boto3
import pytest
from moto import mock_aws

# === Environment Setup ===

# Set before any fleet import reads settings
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-1")
os.environ.setdefault("DYNAMODB_TABLE_PREFIX", "test-fleet")
os.environ.setdefault("ENVIRONMENT", "test")

if not os.environ.get("AWS_PROFILE") and not os.environ.get("AWS_ACCESS_KEY_ID"):
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")

TABLE_PREFIX = os.environ["DYNAMODB_TABLE_PREFIX"]
REGION = os.environ["AWS_DEFAULT_REGION"]


# === Date Helpers ===
# Dates 30+ days ahead so past-date validation never interferes


def future(days: int = 0) -> date:
    """A date `days` after the base date (30 days from today)."""
    return date.today() + timedelta(days=30 + days)


def future_str(days: int = 0) -> str:
    """ISO string of future(days)."""
    return future(days).isoformat()


# === Singletons ===


@pytest.fixture(autouse=True)
def reset_singletons() -> Generator[None, None, None]:
    """Reset cached services and settings around each test.

    Tests using mock_aws then get fresh boto3 clients created inside the
    mock context.
    """
    from fleet_api.dependencies import reset_services

    reset_services()
    yield
    reset_services()


# === DynamoDB Fixtures ===


@pytest.fixture
def aws_credentials() -> None:
    """Mocked AWS Credentials for moto."""
    if not os.environ.get("AWS_PROFILE"):
        os.environ["AWS_ACCESS_KEY_ID"] = "testing"
        os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
        os.environ["AWS_SECURITY_TOKEN"] = "testing"
        os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = REGION


def _table_definitions(prefix: str) -> list[dict[str, Any]]:
    def simple(name: str, key: str) -> dict[str, Any]:
        return {
            "TableName": f"{prefix}-{name}",
            "KeySchema": [{"AttributeName": key, "KeyType": "HASH"}],
            "AttributeDefinitions": [{"AttributeName": key, "AttributeType": "S"}],
            "BillingMode": "PAY_PER_REQUEST",
        }

    return [
        simple("vehicles", "vehicle_id"),
        simple("customers", "customer_id"),
        simple("customer-emails", "email"),
        simple("payment-events", "event_id"),
        {
            "TableName": f"{prefix}-rentals",
            "KeySchema": [{"AttributeName": "rental_id", "KeyType": "HASH"}],
            "AttributeDefinitions": [
                {"AttributeName": "rental_id", "AttributeType": "S"},
                {"AttributeName": "customer_id", "AttributeType": "S"},
            ],
            "GlobalSecondaryIndexes": [
                {
                    "IndexName": "customer_id-index",
                    "KeySchema": [{"AttributeName": "customer_id", "KeyType": "HASH"}],
                    "Projection": {"ProjectionType": "ALL"},
                },
            ],
            "BillingMode": "PAY_PER_REQUEST",
        },
        {
            "TableName": f"{prefix}-vehicle-schedule",
            "KeySchema": [
                {"AttributeName": "vehicle_id", "KeyType": "HASH"},
                {"AttributeName": "rental_id", "KeyType": "RANGE"},
            ],
            "AttributeDefinitions": [
                {"AttributeName": "vehicle_id", "AttributeType": "S"},
                {"AttributeName": "rental_id", "AttributeType": "S"},
            ],
            "BillingMode": "PAY_PER_REQUEST",
        },
        {
            "TableName": f"{prefix}-payments",
            "KeySchema": [{"AttributeName": "rental_id", "KeyType": "HASH"}],
            "AttributeDefinitions": [
                {"AttributeName": "rental_id", "AttributeType": "S"},
                {"AttributeName": "provider_ref", "AttributeType": "S"},
            ],
            "GlobalSecondaryIndexes": [
                {
                    "IndexName": "provider_ref-index",
                    "KeySchema": [{"AttributeName": "provider_ref", "KeyType": "HASH"}],
                    "Projection": {"ProjectionType": "ALL"},
                },
            ],
            "BillingMode": "PAY_PER_REQUEST",
        },
    ]


@pytest.fixture
def dynamodb_tables(aws_credentials: None) -> Generator[Any, None, None]:
    """Create all fleet tables in a mocked DynamoDB and yield the client."""
    with mock_aws():
        client = boto3.client("dynamodb", region_name=REGION)
        for table_config in _table_definitions(TABLE_PREFIX):
            client.create_table(**table_config)
        yield client


@pytest.fixture
def db(dynamodb_tables: Any) -> Any:
    """DynamoDBService bound to the mocked tables."""
    from fleet.services.dynamodb import get_dynamodb_service

    return get_dynamodb_service()


@pytest.fixture
def vehicle_service(db: Any) -> Any:
    from fleet.services.vehicles import VehicleService

    return VehicleService(db)


@pytest.fixture
def booking_service(db: Any) -> Any:
    from fleet.services.booking import BookingService

    return BookingService(db)


@pytest.fixture
def reconciler(db: Any) -> Any:
    from fleet.services.reconciliation import PaymentReconciler

    return PaymentReconciler(db)


# === Sample Data Fixtures ===


@pytest.fixture
def vehicle(vehicle_service: Any) -> Any:
    """A rentable sedan at 45.00 per day."""
    from fleet.models import VehicleCreate

    return vehicle_service.create_vehicle(
        VehicleCreate(
            model="Toyota Corolla",
            vehicle_type="sedan",
            daily_rate=Decimal("45.00"),
            seats=5,
            features=["bluetooth"],
        )
    )


@pytest.fixture
def customer_payload() -> dict[str, str]:
    return {
        "name": "Ana Silva",
        "email": "ana@example.com",
        "phone": "+1-555-0100",
    }


@pytest.fixture
def booking_request(vehicle: Any, customer_payload: dict[str, str]) -> dict[str, Any]:
    """A valid two-day booking request for the seeded vehicle."""
    return {
        "vehicle_id": vehicle.vehicle_id,
        "customer": customer_payload,
        "start_date": future_str(0),
        "end_date": future_str(1),
    }


@pytest.fixture
def mock_stripe() -> MagicMock:
    """A StripeService stand-in for tests that never reach Stripe."""
    from fleet.services.stripe_service import StripeService

    return MagicMock(spec=StripeService)

"""Contract tests for POST /api/webhooks/stripe.

Test categories:
- Signature validation (400 ERR_STRIPE_001)
- payment_intent.succeeded processing (200, rental confirmed)
- Idempotent duplicate handling (200, 'duplicate')
- Unhandled event types and unknown rentals (200, 'ignored' / 'skipped')
"""

import hashlib
import hmac
import json
import time
from datetime import date, timedelta
from typing import Any, Generator
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from starlette.status import HTTP_200_OK, HTTP_400_BAD_REQUEST, HTTP_503_SERVICE_UNAVAILABLE

from fleet.models import TransactionFailure

# === Test Configuration ===

TEST_WEBHOOK_SECRET = "whsec_test_secret_for_testing"


# === Helper Functions ===


def _create_stripe_signature(payload: bytes, secret: str = TEST_WEBHOOK_SECRET) -> str:
    """Create a valid Stripe webhook signature.

    Stripe signatures use HMAC-SHA256 with format: t={timestamp},v1={signature}
    """
    timestamp = str(int(time.time()))
    signed_payload = f"{timestamp}.{payload.decode('utf-8')}"
    signature = hmac.new(
        secret.encode("utf-8"),
        signed_payload.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


def _intent_event(
    rental_id: str | None,
    event_id: str = "evt_1ABC123DEF456",
    event_type: str = "payment_intent.succeeded",
    amount: int = 9900,
) -> dict[str, Any]:
    return {
        "id": event_id,
        "type": event_type,
        "created": int(time.time()),
        "data": {
            "object": {
                "id": "pi_3ABC123DEF456",
                "object": "payment_intent",
                "amount": amount,
                "amount_received": amount,
                "currency": "usd",
                "metadata": {"rental_id": rental_id} if rental_id else {},
            },
        },
    }


def _post(client: TestClient, event: dict[str, Any], signature: str | None = None) -> Any:
    payload = json.dumps(event).encode()
    headers = {"Content-Type": "application/json"}
    headers["Stripe-Signature"] = signature or _create_stripe_signature(payload)
    return client.post("/api/webhooks/stripe", content=payload, headers=headers)


# === Test Fixtures ===


@pytest.fixture
def client(dynamodb_tables: Any) -> Generator[TestClient, None, None]:
    """Test client whose StripeService reads a known webhook secret."""
    from fleet.services.stripe_service import StripeService
    from fleet_api.dependencies import get_stripe
    from fleet_api.main import app

    with patch("fleet.services.stripe_service.get_ssm_service") as mock_get_ssm:
        mock_ssm = MagicMock()
        mock_ssm.get_parameter.return_value = TEST_WEBHOOK_SECRET
        mock_get_ssm.return_value = mock_ssm
        stripe_service = StripeService(environment="test")

    app.dependency_overrides[get_stripe] = lambda: stripe_service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def rental_id(booking_service: Any, vehicle: Any) -> str:
    start = date.today() + timedelta(days=30)
    return booking_service.create_booking(
        {
            "vehicle_id": vehicle.vehicle_id,
            "customer": {"name": "Ana Silva", "email": "ana@example.com", "phone": "+1-555-0100"},
            "start_date": start.isoformat(),
            "end_date": (start + timedelta(days=1)).isoformat(),
        }
    ).rental_id


# === Signature validation ===


class TestSignatureValidation:
    def test_missing_signature_header(self, client: TestClient):
        response = client.post(
            "/api/webhooks/stripe",
            content=json.dumps(_intent_event("RNT-1")).encode(),
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "ERR_STRIPE_001"

    def test_invalid_signature(self, client: TestClient):
        response = _post(client, _intent_event("RNT-1"), signature="t=1,v1=deadbeef")

        assert response.status_code == HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "ERR_STRIPE_001"

    def test_signed_with_other_secret(self, client: TestClient):
        event = _intent_event("RNT-1")
        signature = _create_stripe_signature(json.dumps(event).encode(), "whsec_other")

        response = _post(client, event, signature=signature)

        assert response.status_code == HTTP_400_BAD_REQUEST


# === Event processing ===


class TestEventProcessing:
    def test_succeeded_confirms_rental(self, client: TestClient, booking_service: Any, rental_id: str):
        response = _post(client, _intent_event(rental_id))

        assert response.status_code == HTTP_200_OK
        data = response.json()
        assert data["received"] is True
        assert data["event_id"] == "evt_1ABC123DEF456"
        assert data["processing_result"] == "success"

        details = booking_service.get_booking(rental_id)
        assert details.rental.status.value == "confirmed"
        assert details.payment.status.value == "completed"
        assert details.payment.provider_ref == "pi_3ABC123DEF456"

    def test_redelivery_is_duplicate(self, client: TestClient, booking_service: Any, rental_id: str):
        event = _intent_event(rental_id)
        _post(client, event)
        before = booking_service.get_booking(rental_id)

        response = _post(client, event)

        assert response.status_code == HTTP_200_OK
        assert response.json()["processing_result"] == "duplicate"
        assert booking_service.get_booking(rental_id) == before

    def test_failed_payment_keeps_rental_pending(
        self, client: TestClient, booking_service: Any, rental_id: str
    ):
        response = _post(
            client, _intent_event(rental_id, event_type="payment_intent.payment_failed")
        )

        assert response.json()["processing_result"] == "success"
        details = booking_service.get_booking(rental_id)
        assert details.rental.status.value == "pending"
        assert details.payment.status.value == "failed"

    def test_unhandled_event_ignored(self, client: TestClient, rental_id: str):
        response = _post(client, _intent_event(rental_id, event_type="payment_intent.created"))

        assert response.status_code == HTTP_200_OK
        assert response.json()["processing_result"] == "ignored"

    def test_unknown_rental_skipped(self, client: TestClient):
        response = _post(client, _intent_event("RNT-MISSING"))

        assert response.status_code == HTTP_200_OK
        assert response.json()["processing_result"] == "skipped"

    def test_event_without_rental_skipped(self, client: TestClient):
        response = _post(client, _intent_event(None))

        assert response.json()["processing_result"] == "skipped"


class TestStorageFailure:
    def test_transaction_failure_is_503_retryable(self, client: TestClient):
        from fleet_api.dependencies import get_reconciler
        from fleet_api.main import app

        reconciler = MagicMock()
        reconciler.reconcile.side_effect = TransactionFailure(
            details={"operation": "reconcile", "reason": "contention"}
        )
        app.dependency_overrides[get_reconciler] = lambda: reconciler

        response = _post(client, _intent_event("RNT-1"))

        assert response.status_code == HTTP_503_SERVICE_UNAVAILABLE
        data = response.json()
        assert data["error_code"] == "ERR_008"
        assert data["retryable"] is True
        reconciler.reconcile.assert_called_once()

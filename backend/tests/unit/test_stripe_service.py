"""Unit tests for StripeService.

Tests verify the service logic without making actual Stripe API calls.
All Stripe interactions are mocked; webhook signatures are computed with
the same HMAC scheme Stripe uses.
"""

import hashlib
import hmac
import json
import time
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
import stripe

from fleet.models import ProviderEventKind
from fleet.services.ssm_service import SSMServiceError
from fleet.services.stripe_service import (
    StripeService,
    StripeServiceError,
    from_cents,
    parse_provider_event,
    to_cents,
)

# === Test Configuration ===

TEST_SECRET_KEY = "sk_test_abc123xyz"
TEST_WEBHOOK_SECRET = "whsec_test_secret123"
TEST_RENTAL_ID = "RNT-ABC123DEF456"


def sign(payload: bytes, secret: str = TEST_WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header for a payload."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload.decode()}".encode()
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def intent_event(event_type: str = "payment_intent.succeeded", **obj: object) -> dict:
    data_object = {
        "id": "pi_test_456",
        "object": "payment_intent",
        "amount": 14850,
        "amount_received": 14850,
        "metadata": {"rental_id": TEST_RENTAL_ID},
    }
    data_object.update(obj)
    return {"id": "evt_test_123", "type": event_type, "data": {"object": data_object}}


# === Test Fixtures ===


@pytest.fixture
def mock_ssm_service():
    """Mock SSM service for credential retrieval."""
    with patch("fleet.services.stripe_service.get_ssm_service") as mock_get_ssm:
        mock_ssm = MagicMock()
        mock_ssm.get_parameter.side_effect = lambda param: {
            "/fleet/dev/stripe/secret_key": TEST_SECRET_KEY,
            "/fleet/dev/stripe/webhook_secret": TEST_WEBHOOK_SECRET,
        }[param]
        mock_get_ssm.return_value = mock_ssm
        yield mock_ssm


@pytest.fixture
def stripe_service(mock_ssm_service) -> StripeService:
    """StripeService with mocked SSM."""
    return StripeService(environment="dev")


@pytest.fixture
def mock_stripe_client():
    """Mock Stripe client for API calls."""
    with patch("fleet.services.stripe_service.StripeClient") as mock_client_class:
        mock_client = MagicMock()
        mock_client_class.return_value = mock_client
        yield mock_client


def _intent(**overrides):
    intent = MagicMock()
    intent.id = "pi_test_456"
    intent.client_secret = "pi_test_456_secret_789"
    intent.amount = 14850
    intent.currency = "usd"
    intent.status = "requires_payment_method"
    for key, value in overrides.items():
        setattr(intent, key, value)
    return intent


# === Initialization ===


class TestStripeServiceInitialization:
    def test_uses_explicit_environment(self, mock_ssm_service):
        service = StripeService(environment="prod")
        assert service._environment == "prod"

    def test_defaults_to_settings_environment(self, mock_ssm_service):
        service = StripeService()
        assert service._environment == "test"

    def test_client_lazy_initialized(self, stripe_service):
        assert stripe_service._client is None

    def test_raises_error_when_ssm_fails(self, mock_ssm_service, mock_stripe_client):
        mock_ssm_service.get_parameter.side_effect = SSMServiceError("SSM error")
        service = StripeService(environment="dev")

        with pytest.raises(StripeServiceError) as exc_info:
            service._get_client()

        assert "Failed to initialize Stripe client" in str(exc_info.value)

    def test_client_reused_across_calls(self, stripe_service, mock_stripe_client):
        mock_stripe_client.payment_intents.create.return_value = _intent()

        stripe_service.create_payment_intent(amount=Decimal("1.00"), metadata={})
        stripe_service.create_payment_intent(amount=Decimal("2.00"), metadata={})

        with patch("fleet.services.stripe_service.StripeClient") as again:
            stripe_service._get_client()
            again.assert_not_called()


# === create_payment_intent() ===


class TestCreatePaymentIntent:
    def test_sends_amount_in_cents_with_metadata(self, stripe_service, mock_stripe_client):
        mock_stripe_client.payment_intents.create.return_value = _intent()

        result = stripe_service.create_payment_intent(
            amount=Decimal("148.50"),
            metadata={"rental_id": TEST_RENTAL_ID},
            idempotency_key=f"intent_{TEST_RENTAL_ID}_new",
        )

        call_kwargs = mock_stripe_client.payment_intents.create.call_args.kwargs
        assert call_kwargs["params"]["amount"] == 14850
        assert call_kwargs["params"]["currency"] == "usd"
        assert call_kwargs["params"]["metadata"]["rental_id"] == TEST_RENTAL_ID
        assert call_kwargs["options"]["idempotency_key"] == f"intent_{TEST_RENTAL_ID}_new"
        assert result.payment_intent_id == "pi_test_456"
        assert result.client_secret == "pi_test_456_secret_789"
        assert result.amount == Decimal("148.50")

    def test_currency_override(self, stripe_service, mock_stripe_client):
        mock_stripe_client.payment_intents.create.return_value = _intent(currency="eur")

        stripe_service.create_payment_intent(
            amount=Decimal("10.00"), metadata={}, currency="EUR"
        )

        params = mock_stripe_client.payment_intents.create.call_args.kwargs["params"]
        assert params["currency"] == "eur"

    def test_preserves_stripe_error_code(self, stripe_service, mock_stripe_client):
        error = stripe.StripeError("Card declined")
        error.code = "card_declined"
        mock_stripe_client.payment_intents.create.side_effect = error

        with pytest.raises(StripeServiceError) as exc_info:
            stripe_service.create_payment_intent(amount=Decimal("10.00"), metadata={})

        assert "Failed to create payment intent" in str(exc_info.value)
        assert exc_info.value.stripe_error_code == "card_declined"
        assert exc_info.value.signature_invalid is False

    def test_retrieve(self, stripe_service, mock_stripe_client):
        mock_stripe_client.payment_intents.retrieve.return_value = _intent(status="succeeded")

        result = stripe_service.retrieve_payment_intent("pi_test_456")

        assert result.status == "succeeded"
        assert result.client_secret == "pi_test_456_secret_789"
        mock_stripe_client.payment_intents.retrieve.assert_called_once_with("pi_test_456")

    def test_update_amount_in_cents(self, stripe_service, mock_stripe_client):
        mock_stripe_client.payment_intents.update.return_value = _intent(amount=29700)

        result = stripe_service.update_payment_intent_amount("pi_test_456", Decimal("297.00"))

        mock_stripe_client.payment_intents.update.assert_called_once_with(
            "pi_test_456", params={"amount": 29700}
        )
        assert result.amount == Decimal("297.00")
        assert result.client_secret == "pi_test_456_secret_789"

    def test_update_amount_error_wrapped(self, stripe_service, mock_stripe_client):
        error = stripe.StripeError("This PaymentIntent's amount could not be updated")
        error.code = "payment_intent_unexpected_state"
        mock_stripe_client.payment_intents.update.side_effect = error

        with pytest.raises(StripeServiceError) as exc_info:
            stripe_service.update_payment_intent_amount("pi_test_456", Decimal("10.00"))

        assert "Failed to update payment intent" in str(exc_info.value)
        assert exc_info.value.stripe_error_code == "payment_intent_unexpected_state"


# === verify_webhook_signature() ===


class TestVerifyWebhookSignature:
    def test_verifies_valid_signature(self, stripe_service):
        payload = json.dumps(intent_event()).encode()

        event = stripe_service.verify_webhook_signature(payload, sign(payload))

        assert event["id"] == "evt_test_123"
        assert event["data"]["object"]["metadata"]["rental_id"] == TEST_RENTAL_ID

    def test_wrong_secret_rejected(self, stripe_service):
        payload = json.dumps(intent_event()).encode()

        with pytest.raises(StripeServiceError) as exc_info:
            stripe_service.verify_webhook_signature(payload, sign(payload, secret="whsec_other"))

        assert exc_info.value.signature_invalid is True

    def test_tampered_payload_rejected(self, stripe_service):
        payload = json.dumps(intent_event()).encode()
        header = sign(payload)
        tampered = json.dumps(intent_event(amount=1)).encode()

        with pytest.raises(StripeServiceError):
            stripe_service.verify_webhook_signature(tampered, header)

    def test_stale_timestamp_rejected(self, stripe_service):
        payload = json.dumps(intent_event()).encode()
        header = sign(payload, timestamp=int(time.time()) - 3600)

        with pytest.raises(StripeServiceError) as exc_info:
            stripe_service.verify_webhook_signature(payload, header)

        assert exc_info.value.signature_invalid is True

    def test_garbage_header_rejected(self, stripe_service):
        with pytest.raises(StripeServiceError) as exc_info:
            stripe_service.verify_webhook_signature(b"{}", "invalid")

        assert "Invalid webhook signature" in str(exc_info.value)


# === parse_provider_event() ===


class TestParseProviderEvent:
    @pytest.mark.parametrize(
        ("event_type", "kind"),
        [
            ("payment_intent.succeeded", ProviderEventKind.SUCCEEDED),
            ("payment_intent.payment_failed", ProviderEventKind.FAILED),
            ("payment_intent.canceled", ProviderEventKind.CANCELED),
        ],
    )
    def test_handled_types(self, event_type, kind):
        event = parse_provider_event(intent_event(event_type), payload_hash="h")

        assert event.kind == kind
        assert event.event_id == "evt_test_123"
        assert event.provider_ref == "pi_test_456"
        assert event.rental_id == TEST_RENTAL_ID
        assert event.amount == Decimal("148.50")
        assert event.payload_hash == "h"

    def test_unhandled_type_has_no_kind(self):
        event = parse_provider_event(
            {"id": "evt_1", "type": "customer.created", "data": {"object": {"id": "cus_1"}}}
        )

        assert event.kind is None
        assert event.provider_ref is None
        assert event.rental_id is None

    def test_failed_intent_without_amount_received(self):
        event = parse_provider_event(
            intent_event("payment_intent.payment_failed", amount_received=0)
        )

        assert event.amount == Decimal("148.50")


# === create_refund() ===


class TestCreateRefund:
    def test_creates_full_refund(self, stripe_service, mock_stripe_client):
        mock_refund = MagicMock()
        mock_refund.id = "re_test_123"
        mock_refund.amount = 14850
        mock_refund.status = "succeeded"
        mock_stripe_client.refunds.create.return_value = mock_refund

        result = stripe_service.create_refund(payment_intent_id="pi_test_456")

        assert result["refund_id"] == "re_test_123"
        assert result["amount"] == Decimal("148.50")
        assert result["status"] == "succeeded"
        assert "amount" not in mock_stripe_client.refunds.create.call_args.kwargs["params"]

    def test_creates_partial_refund_with_reason(self, stripe_service, mock_stripe_client):
        mock_refund = MagicMock()
        mock_refund.id = "re_test_123"
        mock_refund.amount = 5000
        mock_refund.status = "succeeded"
        mock_stripe_client.refunds.create.return_value = mock_refund

        stripe_service.create_refund(
            payment_intent_id="pi_test_456",
            amount=Decimal("50.00"),
            reason="Vehicle returned early",
        )

        params = mock_stripe_client.refunds.create.call_args.kwargs["params"]
        assert params["amount"] == 5000
        assert params["metadata"]["reason"] == "Vehicle returned early"

    def test_raises_error_on_refund_failure(self, stripe_service, mock_stripe_client):
        mock_stripe_client.refunds.create.side_effect = stripe.StripeError("Refund already exists")

        with pytest.raises(StripeServiceError) as exc_info:
            stripe_service.create_refund(payment_intent_id="pi_test_456")

        assert "Failed to create refund" in str(exc_info.value)


class TestUtilities:
    def test_cents_conversion(self):
        assert to_cents(Decimal("148.50")) == 14850
        assert from_cents(14850) == Decimal("148.50")

    def test_compute_payload_hash(self):
        payload = b'{"id": "evt_123"}'

        assert StripeService.compute_payload_hash(payload) == hashlib.sha256(payload).hexdigest()
        assert StripeService.compute_payload_hash(b"{}") != StripeService.compute_payload_hash(payload)

"""Stripe integration for PaymentIntents, webhooks and refunds.

Uses the StripeClient pattern with API keys from SSM Parameter Store.
Amounts cross this boundary in major units (Decimal dollars); Stripe
itself works in cents.
"""

import hashlib
import json
import logging
from decimal import Decimal
from functools import lru_cache
from typing import Any

import stripe
from stripe import StripeClient

from fleet.config import get_settings
from fleet.models import PaymentIntentResult, ProviderEvent, ProviderEventKind

from .ssm_service import SSMServiceError, get_ssm_service, stripe_parameter_name

logger = logging.getLogger(__name__)

# Stripe event types this system acts on
EVENT_KINDS: dict[str, ProviderEventKind] = {
    "payment_intent.succeeded": ProviderEventKind.SUCCEEDED,
    "payment_intent.payment_failed": ProviderEventKind.FAILED,
    "payment_intent.canceled": ProviderEventKind.CANCELED,
}


class StripeServiceError(Exception):
    """Raised when a Stripe operation fails."""

    def __init__(
        self,
        message: str,
        stripe_error_code: str | None = None,
        *,
        signature_invalid: bool = False,
    ) -> None:
        super().__init__(message)
        self.stripe_error_code = stripe_error_code
        self.signature_invalid = signature_invalid


def to_cents(amount: Decimal) -> int:
    """Convert a major-unit amount to integer cents."""
    return int((amount * 100).to_integral_value())


def from_cents(cents: int) -> Decimal:
    """Convert integer cents to a major-unit Decimal."""
    return (Decimal(cents) / 100).quantize(Decimal("0.01"))


def _intent_result(intent: Any) -> PaymentIntentResult:
    return PaymentIntentResult(
        payment_intent_id=intent.id,
        client_secret=intent.client_secret,
        amount=from_cents(intent.amount),
        currency=intent.currency,
        status=intent.status,
    )


def parse_provider_event(event: dict[str, Any], payload_hash: str = "") -> ProviderEvent:
    """Normalize a verified Stripe event into a ProviderEvent.

    Event types outside EVENT_KINDS get `kind=None`.
    """
    data_object = event.get("data", {}).get("object", {}) or {}
    event_type = str(event.get("type", ""))
    kind = EVENT_KINDS.get(event_type)

    provider_ref = None
    amount = None
    if data_object.get("object") == "payment_intent" or kind is not None:
        provider_ref = data_object.get("id")
        cents = data_object.get("amount_received") or data_object.get("amount")
        if cents is not None:
            amount = from_cents(int(cents))

    metadata = dict(data_object.get("metadata") or {})
    return ProviderEvent(
        event_id=str(event.get("id", "")),
        event_type=event_type,
        kind=kind,
        provider_ref=provider_ref,
        amount=amount,
        metadata=metadata,
        payload_hash=payload_hash,
    )


class StripeService:
    """Service for Stripe payment operations.

    Handles:
    - PaymentIntent creation, retrieval and amount updates
    - Webhook signature validation
    - Refund processing
    """

    def __init__(self, environment: str | None = None) -> None:
        """Initialize Stripe service.

        Args:
            environment: Environment name (dev, prod). Defaults to settings.
        """
        settings = get_settings()
        self._environment = environment or settings.environment
        self._currency = settings.payment_currency
        self._ssm = get_ssm_service()
        self._client: StripeClient | None = None
        self._webhook_secret: str | None = None

    def _get_client(self) -> StripeClient:
        """Get or create the Stripe client (lazy initialization).

        Raises:
            StripeServiceError: If credentials cannot be retrieved.
        """
        if self._client is None:
            try:
                secret_key = self._ssm.get_parameter(
                    stripe_parameter_name(self._environment, "secret_key")
                )
            except SSMServiceError as e:
                raise StripeServiceError(f"Failed to initialize Stripe client: {e}") from e
            self._client = StripeClient(secret_key)
            logger.info("Stripe client initialized for environment: %s", self._environment)
        return self._client

    def _get_webhook_secret(self) -> str:
        if self._webhook_secret is None:
            try:
                self._webhook_secret = self._ssm.get_parameter(
                    stripe_parameter_name(self._environment, "webhook_secret")
                )
            except SSMServiceError as e:
                raise StripeServiceError(f"Failed to get webhook secret: {e}") from e
        return self._webhook_secret

    def create_payment_intent(
        self,
        *,
        amount: Decimal,
        metadata: dict[str, str],
        currency: str | None = None,
        idempotency_key: str | None = None,
    ) -> PaymentIntentResult:
        """Ask Stripe to authorize an amount.

        Args:
            amount: Amount in major units.
            metadata: Attached to the intent; carries `rental_id` so that
                webhook events can be matched back to the rental.
            currency: ISO currency code. Defaults to PAYMENT_CURRENCY.
            idempotency_key: Optional Stripe idempotency key.

        Returns:
            PaymentIntentResult with the intent ID and client secret.

        Raises:
            StripeServiceError: If Stripe rejects the request.
        """
        client = self._get_client()
        currency = (currency or self._currency).lower()
        options: dict[str, Any] = {}
        if idempotency_key:
            options["idempotency_key"] = idempotency_key

        try:
            logger.info(
                "Creating PaymentIntent for %s %s (rental %s)",
                amount,
                currency,
                metadata.get("rental_id", "-"),
            )
            intent = client.payment_intents.create(
                params={
                    "amount": to_cents(amount),
                    "currency": currency,
                    "metadata": metadata,
                    "automatic_payment_methods": {"enabled": True},
                },
                options=options,  # type: ignore[arg-type]
            )
        except stripe.StripeError as e:
            error_code = getattr(e, "code", None)
            logger.error("Stripe PaymentIntent creation failed: %s (code: %s)", e, error_code)
            raise StripeServiceError(
                f"Failed to create payment intent: {e}",
                stripe_error_code=error_code,
            ) from e

        return _intent_result(intent)

    def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentIntentResult:
        """Fetch the current state of a PaymentIntent.

        Raises:
            StripeServiceError: If the intent cannot be retrieved.
        """
        client = self._get_client()
        try:
            intent = client.payment_intents.retrieve(payment_intent_id)
        except stripe.StripeError as e:
            error_code = getattr(e, "code", None)
            logger.error("Stripe PaymentIntent retrieval failed: %s (code: %s)", e, error_code)
            raise StripeServiceError(
                f"Failed to retrieve payment intent: {e}",
                stripe_error_code=error_code,
            ) from e

        return _intent_result(intent)

    def update_payment_intent_amount(
        self, payment_intent_id: str, amount: Decimal
    ) -> PaymentIntentResult:
        """Change the amount of an intent that has not been paid yet.

        Raises:
            StripeServiceError: If Stripe rejects the update.
        """
        client = self._get_client()
        try:
            logger.info("Updating PaymentIntent %s amount to %s", payment_intent_id, amount)
            intent = client.payment_intents.update(
                payment_intent_id,
                params={"amount": to_cents(amount)},
            )
        except stripe.StripeError as e:
            error_code = getattr(e, "code", None)
            logger.error("Stripe PaymentIntent update failed: %s (code: %s)", e, error_code)
            raise StripeServiceError(
                f"Failed to update payment intent: {e}",
                stripe_error_code=error_code,
            ) from e

        return _intent_result(intent)

    def verify_webhook_signature(self, payload: bytes, signature: str) -> dict[str, Any]:
        """Verify a webhook signature and parse the event.

        Args:
            payload: Raw request body bytes.
            signature: Stripe-Signature header value.

        Returns:
            Parsed Stripe event dictionary.

        Raises:
            StripeServiceError: If the signature is invalid.
        """
        webhook_secret = self._get_webhook_secret()

        try:
            event = stripe.Webhook.construct_event(payload, signature, webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.warning("Invalid webhook signature: %s", e)
            raise StripeServiceError("Invalid webhook signature", signature_invalid=True) from e
        except ValueError as e:
            logger.warning("Malformed webhook payload: %s", e)
            raise StripeServiceError("Invalid webhook payload", signature_invalid=True) from e

        logger.info("Webhook signature verified for event: %s", event["id"])
        # Plain dicts all the way down for parse_provider_event
        parsed: dict[str, Any] = json.loads(payload)
        return parsed

    def create_refund(
        self,
        *,
        payment_intent_id: str,
        amount: Decimal | None = None,
        reason: str | None = None,
    ) -> dict[str, Any]:
        """Create a refund for a payment.

        Args:
            payment_intent_id: Stripe PaymentIntent ID (pi_xxx).
            amount: Refund amount in major units. If None, full refund.
            reason: Reason for refund (stored as metadata).

        Returns:
            Dict with refund_id, amount (major units) and status.

        Raises:
            StripeServiceError: If refund creation fails.
        """
        client = self._get_client()

        params: dict[str, Any] = {"payment_intent": payment_intent_id}
        if amount is not None:
            params["amount"] = to_cents(amount)
        if reason:
            params["metadata"] = {"reason": reason}

        try:
            logger.info(
                "Creating refund for PaymentIntent %s, amount %s",
                payment_intent_id,
                amount if amount is not None else "full",
            )
            refund = client.refunds.create(params=params)  # type: ignore[arg-type]
        except stripe.StripeError as e:
            error_code = getattr(e, "code", None)
            logger.error("Stripe refund creation failed: %s (code: %s)", e, error_code)
            raise StripeServiceError(
                f"Failed to create refund: {e}",
                stripe_error_code=error_code,
            ) from e

        return {
            "refund_id": refund.id,
            "amount": from_cents(refund.amount),
            "status": refund.status,
        }

    @staticmethod
    def compute_payload_hash(payload: bytes) -> str:
        """SHA-256 hex digest of a webhook payload, for the event ledger."""
        return hashlib.sha256(payload).hexdigest()


@lru_cache(maxsize=1)
def get_stripe_service() -> StripeService:
    """Get the shared StripeService instance."""
    return StripeService()

"""Webhook endpoint for Stripe payment events.

No authentication: payloads are verified with the Stripe signing secret.
Duplicate deliveries (same event ID) are acknowledged with 200 and a
'duplicate' result so Stripe stops retrying.
"""

from fastapi import APIRouter, Depends, Request

from fleet.models import BookingError, ErrorCode, TransactionFailure
from fleet.services.reconciliation import PaymentReconciler
from fleet.services.stripe_service import StripeService, parse_provider_event
from fleet.utils.logging import get_logger, log_webhook_event
from fleet_api.dependencies import get_reconciler, get_stripe
from fleet_api.models.payments import WebhookResponse

logger = get_logger(__name__)

router = APIRouter(tags=["webhooks"])


@router.post(
    "/webhooks/stripe",
    summary="Receive Stripe webhook events",
    description="""
Handles:
- payment_intent.succeeded: payment completed, rental confirmed
- payment_intent.payment_failed: payment failed, rental back to pending
- payment_intent.canceled: payment canceled, rental cancelled

Other event types are acknowledged with result `ignored`.
""",
    response_model=WebhookResponse,
    responses={
        400: {"description": "Invalid signature or missing header"},
        503: {"description": "Storage failure; Stripe will redeliver"},
    },
)
async def handle_stripe_webhook(
    request: Request,
    stripe_service: StripeService = Depends(get_stripe),
    reconciler: PaymentReconciler = Depends(get_reconciler),
) -> WebhookResponse:
    """Verify, normalize and reconcile one Stripe event."""
    signature = request.headers.get("Stripe-Signature")
    if not signature:
        logger.warning("Webhook request missing Stripe-Signature header")
        raise BookingError(
            code=ErrorCode.INVALID_WEBHOOK_SIGNATURE,
            details={"reason": "Missing Stripe-Signature header"},
        )

    payload = await request.body()
    event = stripe_service.verify_webhook_signature(payload, signature)

    provider_event = parse_provider_event(
        event, payload_hash=StripeService.compute_payload_hash(payload)
    )
    if not provider_event.event_id:
        raise BookingError(
            code=ErrorCode.VALIDATION_FAILED,
            details={"reason": "event has no id", "field": "id"},
        )
    log_webhook_event(logger, provider_event.event_type, provider_event.event_id, result="received")

    try:
        result = reconciler.reconcile(provider_event)
    except TransactionFailure as e:
        log_webhook_event(
            logger,
            provider_event.event_type,
            provider_event.event_id,
            rental_id=provider_event.rental_id,
            error=e.message,
        )
        raise
    return WebhookResponse(
        received=True,
        event_id=result.event_id,
        event_type=result.event_type,
        processing_result=result.processing_result.value,
        message=result.message,
    )

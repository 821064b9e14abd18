"""Payment endpoints.

Provides REST endpoints for:
- Creating a Stripe PaymentIntent for a rental
- Reading a rental's payment and confirming an intent's state at Stripe
- Back-office status correction
- Refunds
"""

from fastapi import APIRouter, Depends

from fleet.models import ErrorCode, NotFound, Payment, PaymentConfirmation, PaymentIntentResult
from fleet.services.payment_service import PaymentService
from fleet_api.dependencies import get_payment_service
from fleet_api.models.payments import (
    PaymentConfirmRequest,
    PaymentIntentRequest,
    PaymentStatusUpdateRequest,
    RefundRequest,
)

router = APIRouter(tags=["payments"])


@router.post(
    "/payments/intent",
    summary="Create PaymentIntent",
    description="""
Create a Stripe PaymentIntent for the rental's server-computed total.

The intent's metadata carries `rental_id`; the rental is confirmed when
the `payment_intent.succeeded` webhook arrives.
""",
    response_model=PaymentIntentResult,
    responses={
        400: {"description": "Rental is terminal or already paid"},
        404: {"description": "Rental not found"},
        502: {"description": "Stripe error"},
    },
)
async def create_payment_intent(
    body: PaymentIntentRequest,
    service: PaymentService = Depends(get_payment_service),
) -> PaymentIntentResult:
    return service.create_payment_intent(body.rental_id)


@router.post(
    "/payments/confirm",
    summary="Confirm payment status",
    description="""
Look up a PaymentIntent at Stripe together with the stored payment that
references it. Read-only; stored state follows the webhooks.
""",
    response_model=PaymentConfirmation,
    responses={502: {"description": "Stripe error or unknown intent"}},
)
async def confirm_payment(
    body: PaymentConfirmRequest,
    service: PaymentService = Depends(get_payment_service),
) -> PaymentConfirmation:
    return service.confirm_payment(body.payment_intent_id)


@router.get(
    "/payments/{rental_id}",
    summary="Get rental payment",
    response_model=Payment,
    responses={404: {"description": "No payment for this rental"}},
)
async def get_payment(
    rental_id: str,
    service: PaymentService = Depends(get_payment_service),
) -> Payment:
    payment = service.get_payment_for_rental(rental_id)
    if payment is None:
        raise NotFound(ErrorCode.PAYMENT_NOT_FOUND, {"rental_id": rental_id})
    return payment


@router.put(
    "/payments/{rental_id}/status",
    summary="Correct payment status",
    response_model=Payment,
    responses={404: {"description": "No payment for this rental"}},
)
async def update_payment_status(
    rental_id: str,
    body: PaymentStatusUpdateRequest,
    service: PaymentService = Depends(get_payment_service),
) -> Payment:
    return service.update_payment_status(rental_id, body.status, body.payment_method)


@router.post(
    "/payments/{rental_id}/refund",
    summary="Refund payment",
    response_model=Payment,
    responses={
        400: {"description": "Payment not refundable"},
        404: {"description": "No payment for this rental"},
        502: {"description": "Stripe error"},
    },
)
async def refund_payment(
    rental_id: str,
    body: RefundRequest,
    service: PaymentService = Depends(get_payment_service),
) -> Payment:
    return service.refund_payment(rental_id, amount=body.amount, reason=body.reason)

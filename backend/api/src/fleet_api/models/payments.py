"""API models for payment endpoints."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from fleet.models import PaymentMethod, PaymentStatus


class PaymentIntentRequest(BaseModel):
    """Request to start paying for a rental."""

    model_config = ConfigDict(strict=False)

    rental_id: str = Field(..., description="Rental to pay for")


class PaymentStatusUpdateRequest(BaseModel):
    """Back-office correction of a payment's status."""

    model_config = ConfigDict(strict=False)

    status: PaymentStatus
    payment_method: PaymentMethod | None = Field(
        default=None, description="How the rental was settled, if not by card"
    )


class PaymentConfirmRequest(BaseModel):
    """Request to look up a PaymentIntent's state at Stripe."""

    model_config = ConfigDict(strict=False)

    payment_intent_id: str = Field(..., min_length=1, examples=["pi_3ABC123DEF456"])


class RefundRequest(BaseModel):
    """Request to refund a completed payment."""

    model_config = ConfigDict(strict=False)

    amount: Decimal | None = Field(
        default=None, gt=0, description="Partial amount; omit for a full refund"
    )
    reason: str | None = Field(default=None, max_length=500)


class WebhookResponse(BaseModel):
    """Acknowledgement returned to Stripe."""

    received: bool
    event_id: str | None = None
    event_type: str | None = None
    processing_result: str  # "success", "duplicate", "skipped", "ignored"
    message: str | None = None

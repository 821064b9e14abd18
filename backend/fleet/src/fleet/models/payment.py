"""Payment model for rental payment records."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from .enums import PaymentMethod, PaymentStatus


class Payment(BaseModel):
    """The governing payment of a rental.

    A rental has at most one payment row. `provider_ref` is the Stripe
    PaymentIntent ID once a provider payment object exists.
    """

    model_config = ConfigDict(strict=True)

    payment_id: str = Field(..., description="Unique payment ID")
    rental_id: str = Field(..., description="Reference to Rental")
    amount: Decimal = Field(..., ge=0, description="Amount charged")
    currency: str = Field(default="usd", description="Currency code")
    payment_method: PaymentMethod = Field(..., description="Payment method used")
    provider_ref: str | None = Field(
        default=None,
        description="External provider reference (PaymentIntent ID)",
        examples=["pi_3ABC123DEF456"],
    )
    status: PaymentStatus = Field(..., description="Payment status")
    payment_date: date | None = Field(default=None, description="Date the payment completed")
    refund_id: str | None = Field(default=None, description="Stripe Refund ID if refunded")
    refund_amount: Decimal | None = Field(default=None, ge=0, description="Refunded amount")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")


class PaymentIntentResult(BaseModel):
    """Result of asking the provider to authorize an amount."""

    model_config = ConfigDict(strict=True)

    payment_intent_id: str
    client_secret: str | None = None
    amount: Decimal
    currency: str
    status: str


class PaymentConfirmation(BaseModel):
    """Provider-side state of a PaymentIntent next to the stored payment."""

    model_config = ConfigDict(strict=True)

    payment_intent_id: str
    intent_status: str = Field(..., description="Stripe PaymentIntent status")
    amount: Decimal
    currency: str
    payment: Payment | None = Field(
        default=None, description="Stored payment referencing this intent, if any"
    )

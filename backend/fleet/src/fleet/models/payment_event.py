"""Payment-provider event models for reconciliation and auditing."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .enums import ProcessingResult, ProviderEventKind


class ProviderEvent(BaseModel):
    """A verified provider notification about a payment intent.

    `kind` is None for event types this system does not act on.
    """

    model_config = ConfigDict(strict=True)

    event_id: str = Field(..., description="Provider event ID (evt_xxx)")
    event_type: str = Field(..., description="Raw provider event type")
    kind: ProviderEventKind | None = Field(default=None, description="Normalized kind")
    provider_ref: str | None = Field(default=None, description="PaymentIntent ID")
    amount: Decimal | None = Field(default=None, ge=0, description="Amount in major units")
    metadata: dict[str, Any] = Field(default_factory=dict)
    payload_hash: str = Field(default="", description="SHA-256 of the raw payload")

    @property
    def rental_id(self) -> str | None:
        value = self.metadata.get("rental_id")
        return str(value) if value else None


class PaymentEventRecord(BaseModel):
    """Ledger row for a processed provider event.

    Used for:
    - Idempotency: the same event never applies twice
    - Auditing: track all webhook deliveries
    """

    model_config = ConfigDict(strict=True)

    event_id: str
    event_type: str
    processed_at: datetime
    payload_hash: str
    rental_id: str | None = None
    provider_ref: str | None = None
    processing_result: ProcessingResult
    error_message: str | None = None


class ReconcileResult(BaseModel):
    """Outcome of reconciling one provider event."""

    model_config = ConfigDict(strict=True)

    event_id: str
    event_type: str
    processing_result: ProcessingResult
    rental_id: str | None = None
    payment_id: str | None = None
    message: str | None = None

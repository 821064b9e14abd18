"""Payment service for rental payments.

Each rental has at most one governing payment, stored under the rental's
ID. Provider-side work (intents, refunds) goes through StripeService; this
service keeps the stored payment row in step with it.
"""

import datetime as dt
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from fleet.models import (
    TERMINAL_RENTAL_STATUSES,
    ErrorCode,
    NotFound,
    Payment,
    PaymentConfirmation,
    PaymentIntentResult,
    PaymentMethod,
    PaymentStatus,
    RequestValidationError,
)
from fleet.utils.ids import generate_id
from fleet.utils.logging import get_logger, log_payment_operation

from .rentals import RentalRepository
from .stripe_service import to_cents

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService, WriteTransaction
    from .stripe_service import StripeService

logger = get_logger(__name__)

# Intent states in which the customer has not paid yet
OPEN_INTENT_STATUSES = frozenset(
    {"requires_payment_method", "requires_confirmation", "requires_action"}
)


def payment_to_item(payment: Payment) -> dict[str, Any]:
    """Convert a Payment to its stored form."""
    return {
        "rental_id": payment.rental_id,
        "payment_id": payment.payment_id,
        "amount": payment.amount,
        "currency": payment.currency,
        "payment_method": payment.payment_method.value,
        "provider_ref": payment.provider_ref,
        "status": payment.status.value,
        "payment_date": payment.payment_date.isoformat() if payment.payment_date else None,
        "refund_id": payment.refund_id,
        "refund_amount": payment.refund_amount,
        "created_at": payment.created_at.isoformat(),
        "updated_at": payment.updated_at.isoformat(),
    }


def item_to_payment(item: dict[str, Any]) -> Payment:
    """Convert a stored item to a Payment."""
    payment_date = item.get("payment_date")
    refund_amount = item.get("refund_amount")
    return Payment(
        payment_id=item["payment_id"],
        rental_id=item["rental_id"],
        amount=Decimal(str(item["amount"])),
        currency=item.get("currency", "usd"),
        payment_method=PaymentMethod(item["payment_method"]),
        provider_ref=item.get("provider_ref"),
        status=PaymentStatus(item["status"]),
        payment_date=dt.date.fromisoformat(payment_date) if payment_date else None,
        refund_id=item.get("refund_id"),
        refund_amount=Decimal(str(refund_amount)) if refund_amount is not None else None,
        created_at=dt.datetime.fromisoformat(item["created_at"]),
        updated_at=dt.datetime.fromisoformat(item["updated_at"]),
    )


class PaymentService:
    """Service for stored payments and provider payment operations."""

    TABLE = "payments"
    PROVIDER_REF_INDEX = "provider_ref-index"

    def __init__(
        self,
        db: "DynamoDBService",
        stripe_service: "StripeService | None" = None,
    ) -> None:
        """Initialize payment service.

        Args:
            db: DynamoDB service instance
            stripe_service: Stripe client wrapper. Resolved lazily so that
                read-only use never needs provider credentials.
        """
        self.db = db
        self.rentals = RentalRepository(db)
        self._stripe = stripe_service

    @property
    def stripe(self) -> "StripeService":
        if self._stripe is None:
            from .stripe_service import get_stripe_service

            self._stripe = get_stripe_service()
        return self._stripe

    def build_payment(
        self,
        rental_id: str,
        amount: Decimal,
        status: PaymentStatus,
        provider_ref: str | None = None,
        payment_method: PaymentMethod = PaymentMethod.CARD,
        currency: str | None = None,
    ) -> Payment:
        """Build a new Payment for a rental (not stored)."""
        now = dt.datetime.now(dt.UTC)
        return Payment(
            payment_id=generate_id("PAY"),
            rental_id=rental_id,
            amount=amount,
            currency=currency or self.db.settings.payment_currency,
            payment_method=payment_method,
            provider_ref=provider_ref,
            status=status,
            payment_date=now.date() if status == PaymentStatus.COMPLETED else None,
            created_at=now,
            updated_at=now,
        )

    def queue_insert(self, tx: "WriteTransaction", payment: Payment) -> None:
        """Queue a payment row; fails the commit if the rental already has one."""
        tx.put(
            self.TABLE,
            payment_to_item(payment),
            condition="attribute_not_exists(rental_id)",
        )

    def queue_amount_update(
        self,
        tx: "WriteTransaction",
        rental_id: str,
        amount: Decimal,
        now: dt.datetime,
    ) -> None:
        """Queue a new amount for a still-pending payment."""
        tx.update(
            self.TABLE,
            {"rental_id": rental_id},
            "SET amount = :amount, updated_at = :now",
            {
                ":amount": amount,
                ":now": now.isoformat(),
                ":pending": PaymentStatus.PENDING.value,
            },
            names={"#status": "status"},
            condition="#status = :pending",
        )

    def get_payment_for_rental(self, rental_id: str) -> Payment | None:
        """Get the governing payment of a rental."""
        item = self.db.get_item(self.TABLE, {"rental_id": rental_id})
        return item_to_payment(item) if item else None

    def get_payment_by_provider_ref(self, provider_ref: str) -> Payment | None:
        """Find a payment by its Stripe PaymentIntent ID."""
        items = self.db.query_by_gsi(
            self.TABLE, self.PROVIDER_REF_INDEX, "provider_ref", provider_ref
        )
        return item_to_payment(items[0]) if items else None

    def update_payment_status(
        self,
        rental_id: str,
        status: PaymentStatus,
        payment_method: PaymentMethod | None = None,
    ) -> Payment:
        """Set a payment's status directly (back-office correction).

        Args:
            rental_id: Rental whose payment is corrected
            status: New payment status
            payment_method: Set when the rental was settled outside Stripe
                (cash or bank transfer at the counter)

        Raises:
            NotFound: If the rental has no payment
        """
        now = dt.datetime.now(dt.UTC)
        update = "SET #status = :status, updated_at = :now"
        values: dict[str, Any] = {":status": status.value, ":now": now.isoformat()}
        if status == PaymentStatus.COMPLETED:
            update += ", payment_date = if_not_exists(payment_date, :today)"
            values[":today"] = now.date().isoformat()
        if payment_method is not None:
            update += ", payment_method = :method"
            values[":method"] = payment_method.value

        attrs = self.db.update_item(
            self.TABLE,
            {"rental_id": rental_id},
            update,
            values,
            expression_attribute_names={"#status": "status"},
            condition_expression="attribute_exists(rental_id)",
        )
        if attrs is None:
            raise NotFound(ErrorCode.PAYMENT_NOT_FOUND, {"rental_id": rental_id})
        log_payment_operation(logger, "update_payment_status", rental_id=rental_id, status=status.value)
        return item_to_payment(attrs)

    def create_payment_intent(self, rental_id: str) -> PaymentIntentResult:
        """Create (or bring up to date) the Stripe PaymentIntent for a rental.

        The intent carries the rental ID in its metadata. While the stored
        payment's intent is still awaiting payment it is reused, and its
        amount is moved to the rental's current total if a reschedule
        changed it. A new intent replaces one Stripe has cancelled. The
        stored pending payment row always references the returned intent.

        Raises:
            NotFound: If the rental does not exist
            RequestValidationError: If the rental is terminal, already paid,
                or its intent is already being settled
            StripeServiceError: If Stripe rejects the request
        """
        rental = self.rentals.get_rental(rental_id)
        if rental is None:
            raise NotFound(ErrorCode.RENTAL_NOT_FOUND, {"rental_id": rental_id})
        if rental.status in TERMINAL_RENTAL_STATUSES:
            raise RequestValidationError(f"rental is {rental.status.value}", field="rental_id")

        existing = self.get_payment_for_rental(rental_id)
        if existing and existing.status in (PaymentStatus.COMPLETED, PaymentStatus.REFUNDED):
            raise RequestValidationError("rental is already paid", field="rental_id")

        intent = None
        if existing and existing.provider_ref:
            intent = self._reuse_intent(existing.provider_ref, rental.total_amount)

        if intent is None:
            # Keyed by what the intent replaces and by the amount, so a retry
            # replays while a changed total gets its own intent
            basis = (existing.provider_ref or existing.payment_id) if existing else "new"
            intent = self.stripe.create_payment_intent(
                amount=rental.total_amount,
                metadata={"rental_id": rental_id},
                idempotency_key=f"intent_{rental_id}_{basis}_{to_cents(rental.total_amount)}",
            )

        if existing is None:
            payment = self.build_payment(
                rental_id,
                rental.total_amount,
                PaymentStatus.PENDING,
                provider_ref=intent.payment_intent_id,
                currency=intent.currency,
            )
            self.db.put_item(
                self.TABLE,
                payment_to_item(payment),
                condition_expression="attribute_not_exists(rental_id)",
            )
        else:
            self.db.update_item(
                self.TABLE,
                {"rental_id": rental_id},
                "SET provider_ref = :ref, #status = :pending, amount = :amount, updated_at = :now",
                {
                    ":ref": intent.payment_intent_id,
                    ":pending": PaymentStatus.PENDING.value,
                    ":amount": rental.total_amount,
                    ":now": dt.datetime.now(dt.UTC).isoformat(),
                },
                expression_attribute_names={"#status": "status"},
            )

        log_payment_operation(
            logger,
            "create_payment_intent",
            rental_id=rental_id,
            amount=rental.total_amount,
            status=intent.status,
            payment_intent_id=intent.payment_intent_id,
        )
        return intent

    def _reuse_intent(self, payment_intent_id: str, total: Decimal) -> PaymentIntentResult | None:
        """The stored intent, re-priced if needed; None if Stripe cancelled it."""
        current = self.stripe.retrieve_payment_intent(payment_intent_id)
        if current.status == "canceled":
            return None
        if current.status not in OPEN_INTENT_STATUSES:
            raise RequestValidationError(
                f"payment intent is {current.status}", field="rental_id"
            )
        if current.amount != total:
            return self.stripe.update_payment_intent_amount(payment_intent_id, total)
        return current

    def confirm_payment(self, payment_intent_id: str) -> PaymentConfirmation:
        """Report a PaymentIntent's state at Stripe with the payment it backs.

        Read-only: stored state changes only through webhook reconciliation.

        Raises:
            StripeServiceError: If Stripe does not know the intent
        """
        intent = self.stripe.retrieve_payment_intent(payment_intent_id)
        return PaymentConfirmation(
            payment_intent_id=intent.payment_intent_id,
            intent_status=intent.status,
            amount=intent.amount,
            currency=intent.currency,
            payment=self.get_payment_by_provider_ref(payment_intent_id),
        )

    def refund_payment(
        self,
        rental_id: str,
        amount: Decimal | None = None,
        reason: str | None = None,
    ) -> Payment:
        """Refund a completed card payment through Stripe.

        Args:
            rental_id: Rental whose payment is refunded
            amount: Partial amount; full payment amount if None
            reason: Stored with the Stripe refund

        Raises:
            NotFound: If the rental has no payment
            RequestValidationError: If the payment cannot be refunded
            StripeServiceError: If Stripe rejects the refund
        """
        payment = self.get_payment_for_rental(rental_id)
        if payment is None:
            raise NotFound(ErrorCode.PAYMENT_NOT_FOUND, {"rental_id": rental_id})
        if payment.status != PaymentStatus.COMPLETED or not payment.provider_ref:
            raise RequestValidationError(
                f"payment is {payment.status.value} and cannot be refunded", field="rental_id"
            )
        if amount is not None and not (Decimal("0") < amount <= payment.amount):
            raise RequestValidationError("refund amount out of range", field="amount")

        refund = self.stripe.create_refund(
            payment_intent_id=payment.provider_ref,
            amount=amount,
            reason=reason,
        )
        refunded = refund["amount"] if amount is None else amount

        attrs = self.db.update_item(
            self.TABLE,
            {"rental_id": rental_id},
            "SET #status = :refunded, refund_id = :refund_id, refund_amount = :amount, updated_at = :now",
            {
                ":refunded": PaymentStatus.REFUNDED.value,
                ":refund_id": refund["refund_id"],
                ":amount": refunded,
                ":now": dt.datetime.now(dt.UTC).isoformat(),
                ":completed": PaymentStatus.COMPLETED.value,
            },
            expression_attribute_names={"#status": "status"},
            condition_expression="#status = :completed",
        )
        if attrs is None:
            # Stripe accepted the refund but the row moved underneath us
            logger.error(
                "Refund %s recorded at Stripe but payment row for %s changed",
                refund["refund_id"],
                rental_id,
            )
            raise RequestValidationError("payment changed during refund", field="rental_id")

        log_payment_operation(
            logger,
            "refund_payment",
            payment_id=payment.payment_id,
            rental_id=rental_id,
            amount=refunded,
            status=PaymentStatus.REFUNDED.value,
            refund_id=refund["refund_id"],
        )
        return item_to_payment(attrs)

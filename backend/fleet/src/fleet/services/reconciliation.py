"""Payment reconciliation for provider webhook events.

Stripe delivers events at least once and in no guaranteed order. Each
event is applied in a single transaction together with its ledger row in
`payment-events`; the ledger row is written with an "absent" condition, so
a redelivered event cancels its own transaction and changes nothing.

Transition rules (rental side, see next_rental_status):

    succeeded  pending/confirmed -> confirmed, others unchanged
    failed     pending/confirmed -> pending, others unchanged
    canceled   anything but completed -> cancelled

A failure or cancellation for a payment that already completed is stale
and ignored. Events whose metadata lacks the rental ID cannot be acted on
and are skipped.
"""

import datetime as dt
import time
from typing import TYPE_CHECKING, Any

from fleet.models import (
    PaymentEventRecord,
    PaymentStatus,
    ProcessingResult,
    ProviderEvent,
    ProviderEventKind,
    ReconcileResult,
    RentalStatus,
    TransactionFailure,
)
from fleet.utils.logging import get_logger, log_webhook_event

from .payment_service import PaymentService
from .rentals import RentalRepository

if TYPE_CHECKING:
    from fleet.models import Payment, Rental

    from .dynamodb import DynamoDBService, WriteTransaction

logger = get_logger(__name__)

PAYMENT_STATUS_FOR_KIND: dict[ProviderEventKind, PaymentStatus] = {
    ProviderEventKind.SUCCEEDED: PaymentStatus.COMPLETED,
    ProviderEventKind.FAILED: PaymentStatus.FAILED,
    ProviderEventKind.CANCELED: PaymentStatus.CANCELED,
}

# Payments in these states are settled; late failure/cancel events are stale
SETTLED_PAYMENT_STATUSES = frozenset({PaymentStatus.COMPLETED, PaymentStatus.REFUNDED})


def next_rental_status(kind: ProviderEventKind, current: RentalStatus) -> RentalStatus:
    """Rental status after a payment event of the given kind."""
    if kind == ProviderEventKind.SUCCEEDED:
        if current in (RentalStatus.PENDING, RentalStatus.CONFIRMED):
            return RentalStatus.CONFIRMED
        return current
    if kind == ProviderEventKind.FAILED:
        if current in (RentalStatus.PENDING, RentalStatus.CONFIRMED):
            return RentalStatus.PENDING
        return current
    if current == RentalStatus.COMPLETED:
        return current
    return RentalStatus.CANCELLED


class PaymentReconciler:
    """Applies verified provider events to payments and rentals."""

    LEDGER_TABLE = "payment-events"

    def __init__(self, db: "DynamoDBService") -> None:
        self.db = db
        self.settings = db.settings
        self.rentals = RentalRepository(db)
        self.payments = PaymentService(db)

    def is_event_processed(self, event_id: str) -> bool:
        """Whether the ledger already holds this event."""
        return self.db.get_item(self.LEDGER_TABLE, {"event_id": event_id}) is not None

    def reconcile(self, event: ProviderEvent) -> ReconcileResult:
        """Apply one provider event exactly once.

        Args:
            event: Verified, normalized provider event

        Returns:
            ReconcileResult describing what happened

        Raises:
            TransactionFailure: Storage failure, contention or timeout.
                Nothing was applied; the provider will redeliver.
        """
        kind = event.kind
        if kind is None:
            return self._finish_without_changes(
                event, ProcessingResult.IGNORED, "event type not handled"
            )

        rental_id = event.rental_id
        if not rental_id:
            return self._finish_without_changes(
                event, ProcessingResult.SKIPPED, "no rental_id in metadata"
            )

        deadline = time.monotonic() + self.settings.transaction_timeout_seconds
        for attempt in range(1, self.settings.booking_max_attempts + 1):
            if time.monotonic() > deadline:
                raise TransactionFailure(details={"operation": "reconcile", "reason": "timeout"})

            if self.is_event_processed(event.event_id):
                return self._duplicate(event, rental_id)

            rental = self.rentals.get_rental(rental_id)
            if rental is None:
                return self._finish_without_changes(
                    event, ProcessingResult.SKIPPED, f"rental {rental_id} not found", rental_id
                )

            payment = self.payments.get_payment_for_rental(rental_id)
            stale = self._stale_reason(event, payment)
            if stale:
                return self._finish_without_changes(
                    event,
                    ProcessingResult.IGNORED,
                    stale,
                    rental_id,
                    payment.payment_id if payment else None,
                )

            now = dt.datetime.now(dt.UTC)
            tx = self.db.transaction()
            self._queue_ledger(tx, event, ProcessingResult.SUCCESS, rental_id, now)
            payment_id = self._queue_payment(tx, kind, event, rental, payment, now)

            new_status = next_rental_status(kind, rental.status)
            if new_status != rental.status:
                self.rentals.queue_status(tx, rental, new_status, now)
            elif kind == ProviderEventKind.SUCCEEDED and rental.status in (
                RentalStatus.CANCELLED,
                RentalStatus.COMPLETED,
            ):
                logger.warning(
                    "Payment succeeded for %s rental %s; left unchanged",
                    rental.status.value,
                    rental_id,
                )

            if tx.commit():
                message = f"rental {rental.status.value} -> {new_status.value}"
                log_webhook_event(
                    logger,
                    event.event_type,
                    event.event_id,
                    rental_id=rental_id,
                    payment_id=payment_id,
                    result=ProcessingResult.SUCCESS.value,
                    transition=message,
                )
                return ReconcileResult(
                    event_id=event.event_id,
                    event_type=event.event_type,
                    processing_result=ProcessingResult.SUCCESS,
                    rental_id=rental_id,
                    payment_id=payment_id,
                    message=message,
                )

            logger.info("Reconcile attempt %d for event %s was cancelled", attempt, event.event_id)

        # A lost race with a redelivery of the same event is a duplicate
        if self.is_event_processed(event.event_id):
            return self._duplicate(event, rental_id)
        raise TransactionFailure(details={"operation": "reconcile", "reason": "contention"})

    def _stale_reason(self, event: ProviderEvent, payment: "Payment | None") -> str | None:
        if payment is None or event.kind == ProviderEventKind.SUCCEEDED:
            return None
        if payment.status in SETTLED_PAYMENT_STATUSES:
            return f"payment already {payment.status.value}"
        if payment.provider_ref and event.provider_ref and payment.provider_ref != event.provider_ref:
            return "event refers to a superseded payment intent"
        return None

    def _queue_payment(
        self,
        tx: "WriteTransaction",
        kind: ProviderEventKind,
        event: ProviderEvent,
        rental: "Rental",
        payment: "Payment | None",
        now: dt.datetime,
    ) -> str:
        status = PAYMENT_STATUS_FOR_KIND[kind]

        if payment is None:
            # Provider knew about this payment before we did
            new_payment = self.payments.build_payment(
                rental.rental_id,
                event.amount if event.amount is not None else rental.total_amount,
                status,
                provider_ref=event.provider_ref,
            )
            self.payments.queue_insert(tx, new_payment)
            return new_payment.payment_id

        if payment.status in SETTLED_PAYMENT_STATUSES:
            # Success replayed on a settled payment; only the ledger changes
            return payment.payment_id

        update = "SET #status = :status, updated_at = :now"
        values: dict[str, Any] = {
            ":status": status.value,
            ":now": now.isoformat(),
            ":expected": payment.status.value,
        }
        if event.provider_ref:
            update += ", provider_ref = :ref"
            values[":ref"] = event.provider_ref
        if status == PaymentStatus.COMPLETED:
            update += ", payment_date = :today"
            values[":today"] = now.date().isoformat()

        tx.update(
            PaymentService.TABLE,
            {"rental_id": rental.rental_id},
            update,
            values,
            names={"#status": "status"},
            condition="#status = :expected",
        )
        return payment.payment_id

    def _queue_ledger(
        self,
        tx: "WriteTransaction",
        event: ProviderEvent,
        result: ProcessingResult,
        rental_id: str | None,
        now: dt.datetime,
        error_message: str | None = None,
    ) -> None:
        tx.put(
            self.LEDGER_TABLE,
            self._ledger_item(event, result, rental_id, now, error_message),
            condition="attribute_not_exists(event_id)",
        )

    def _ledger_item(
        self,
        event: ProviderEvent,
        result: ProcessingResult,
        rental_id: str | None,
        now: dt.datetime,
        error_message: str | None = None,
    ) -> dict[str, Any]:
        record = PaymentEventRecord(
            event_id=event.event_id,
            event_type=event.event_type,
            processed_at=now,
            payload_hash=event.payload_hash,
            rental_id=rental_id,
            provider_ref=event.provider_ref,
            processing_result=result,
            error_message=error_message,
        )
        item = record.model_dump()
        item["processed_at"] = record.processed_at.isoformat()
        item["processing_result"] = record.processing_result.value
        return item

    def _finish_without_changes(
        self,
        event: ProviderEvent,
        result: ProcessingResult,
        message: str,
        rental_id: str | None = None,
        payment_id: str | None = None,
    ) -> ReconcileResult:
        """Record an event that changes no rental or payment."""
        recorded = self.db.put_item(
            self.LEDGER_TABLE,
            self._ledger_item(event, result, rental_id, dt.datetime.now(dt.UTC), message),
            condition_expression="attribute_not_exists(event_id)",
        )
        if not recorded:
            return self._duplicate(event, rental_id)

        log_webhook_event(
            logger,
            event.event_type,
            event.event_id,
            rental_id=rental_id,
            payment_id=payment_id,
            result=result.value,
            reason=message,
        )
        return ReconcileResult(
            event_id=event.event_id,
            event_type=event.event_type,
            processing_result=result,
            rental_id=rental_id,
            payment_id=payment_id,
            message=message,
        )

    def _duplicate(self, event: ProviderEvent, rental_id: str | None) -> ReconcileResult:
        log_webhook_event(
            logger,
            event.event_type,
            event.event_id,
            rental_id=rental_id,
            result=ProcessingResult.DUPLICATE.value,
        )
        return ReconcileResult(
            event_id=event.event_id,
            event_type=event.event_type,
            processing_result=ProcessingResult.DUPLICATE,
            rental_id=rental_id,
            message="event already processed",
        )

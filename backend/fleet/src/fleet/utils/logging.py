"""Structured logging utilities with correlation ID support.

Provides:
- Correlation ID context management for request tracing
- Structured logging formatter for consistent log output
- Helpers for booking, payment and webhook operation logging

Usage:
    from fleet.utils.logging import get_logger, set_correlation_id

    # In middleware/request handler:
    set_correlation_id(request.headers.get("X-Correlation-ID"))

    # In service code:
    logger = get_logger(__name__)
    logger.info("Creating booking", extra={"vehicle_id": "VEH-123"})
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Any

# Context variable for correlation ID - thread-safe and async-safe
_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)

NO_CORRELATION_ID = "no-correlation-id"


def generate_correlation_id() -> str:
    """Generate a new UUID-based correlation ID."""
    return str(uuid.uuid4())


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Set the correlation ID for the current request context.

    Args:
        correlation_id: Optional existing correlation ID. If None, generates new one.

    Returns:
        The correlation ID that was set
    """
    cid = correlation_id or generate_correlation_id()
    _correlation_id.set(cid)
    return cid


def get_correlation_id() -> str | None:
    """Get the current correlation ID, or None if not set."""
    return _correlation_id.get()


def clear_correlation_id() -> None:
    """Clear the correlation ID context."""
    _correlation_id.set(None)


class CorrelationIdFilter(logging.Filter):
    """Logging filter that adds correlation_id to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or NO_CORRELATION_ID
        return True


class StructuredFormatter(logging.Formatter):
    """Formatter that prefixes each line with the correlation ID."""

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = get_correlation_id() or NO_CORRELATION_ID

        base = super().format(record)

        # Prefix for easy grep/filtering
        return f"[{record.correlation_id}] {base}"


def get_logger(name: str) -> logging.Logger:
    """Get a logger with correlation ID support.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if not any(isinstance(f, CorrelationIdFilter) for f in logger.filters):
        logger.addFilter(CorrelationIdFilter())

    return logger


def configure_logging(level: int = logging.INFO) -> None:
    """Install the structured formatter on the root logger.

    Safe to call more than once; an existing handler is reused.
    """
    root = logging.getLogger()
    root.setLevel(level)
    if not root.handlers:
        root.addHandler(logging.StreamHandler())
    formatter = StructuredFormatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    for handler in root.handlers:
        handler.setFormatter(formatter)
        if not any(isinstance(f, CorrelationIdFilter) for f in handler.filters):
            handler.addFilter(CorrelationIdFilter())


def _emit(
    logger: logging.Logger,
    headline: str,
    context: dict[str, Any],
    *,
    level: int,
) -> None:
    msg_parts = [headline]
    for key, value in context.items():
        if key in ("operation", "event_type", "event_id"):
            continue
        msg_parts.append(f"{key}={value}")
    logger.log(level, " | ".join(msg_parts), extra=context)


def _compact(**fields: Any) -> dict[str, Any]:
    return {k: v for k, v in fields.items() if v is not None and v != ""}


def log_booking_operation(
    logger: logging.Logger,
    operation: str,
    *,
    rental_id: str | None = None,
    vehicle_id: str | None = None,
    customer_id: str | None = None,
    status: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log a booking operation with structured context.

    Args:
        logger: Logger instance
        operation: Operation name (e.g., "create_booking", "reschedule_rental")
        rental_id: Rental ID if available
        vehicle_id: Vehicle ID if available
        customer_id: Customer ID if available
        status: Resulting rental status
        error: Error description if the operation failed
        **extra: Additional context fields
    """
    context = {"operation": operation}
    context.update(
        _compact(
            rental_id=rental_id,
            vehicle_id=vehicle_id,
            customer_id=customer_id,
            status=status,
            error=error,
        )
    )
    context.update(extra)
    level = logging.WARNING if error else logging.INFO
    _emit(logger, f"Booking operation: {operation}", context, level=level)


def log_payment_operation(
    logger: logging.Logger,
    operation: str,
    *,
    payment_id: str | None = None,
    rental_id: str | None = None,
    amount: Any = None,
    status: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log a payment operation with structured context.

    Args:
        logger: Logger instance
        operation: Operation name (e.g., "create_payment_intent", "refund_payment")
        payment_id: Payment ID if available
        rental_id: Rental ID if available
        amount: Amount in major currency units if relevant
        status: Payment/transaction status
        error: Error message if operation failed
        **extra: Additional context fields
    """
    context = {"operation": operation}
    context.update(
        _compact(
            payment_id=payment_id,
            rental_id=rental_id,
            amount=amount,
            status=status,
            error=error,
        )
    )
    context.update(extra)
    level = logging.ERROR if error else logging.INFO
    _emit(logger, f"Payment operation: {operation}", context, level=level)


def log_webhook_event(
    logger: logging.Logger,
    event_type: str,
    event_id: str,
    *,
    rental_id: str | None = None,
    payment_id: str | None = None,
    result: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log a provider webhook event with structured context.

    Args:
        logger: Logger instance
        event_type: Stripe event type (e.g., "payment_intent.succeeded")
        event_id: Stripe event ID
        rental_id: Associated rental ID if available
        payment_id: Associated payment ID if available
        result: Processing result (received, success, duplicate, skipped, ignored)
        error: Error message if processing failed
        **extra: Additional context fields
    """
    context = {"event_type": event_type, "event_id": event_id}
    context.update(
        _compact(rental_id=rental_id, payment_id=payment_id, result=result, error=error)
    )
    context.update(extra)

    if error:
        level = logging.ERROR
    elif result in ("duplicate", "skipped"):
        level = logging.WARNING
    else:
        level = logging.INFO
    _emit(logger, f"Webhook event: {event_type} ({event_id})", context, level=level)

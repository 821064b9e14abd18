"""Enumeration types for fleet booking data models."""

from enum import Enum


class RentalStatus(str, Enum):
    """Status of a rental (reservation)."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Rentals in these states no longer hold their vehicle
TERMINAL_RENTAL_STATUSES: frozenset[RentalStatus] = frozenset(
    {RentalStatus.CANCELLED, RentalStatus.COMPLETED}
)

BLOCKING_RENTAL_STATUSES: frozenset[RentalStatus] = frozenset(
    set(RentalStatus) - TERMINAL_RENTAL_STATUSES
)


class PaymentStatus(str, Enum):
    """Status of the governing payment for a rental."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELED = "canceled"


class PaymentMethod(str, Enum):
    """Supported payment methods."""

    CARD = "card"
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"


class ProviderEventKind(str, Enum):
    """Normalized payment-provider event kinds."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"


class ProcessingResult(str, Enum):
    """Outcome of handling one provider event."""

    SUCCESS = "success"
    DUPLICATE = "duplicate"
    SKIPPED = "skipped"
    IGNORED = "ignored"

"""Pydantic models for fleet booking data entities."""

from .booking import BookingDetails, BookingRequest, BookingResult
from .customer import Customer, CustomerDetails
from .enums import (
    BLOCKING_RENTAL_STATUSES,
    TERMINAL_RENTAL_STATUSES,
    PaymentMethod,
    PaymentStatus,
    ProcessingResult,
    ProviderEventKind,
    RentalStatus,
)
from .errors import (
    ERROR_KINDS,
    ERROR_MESSAGES,
    ERROR_RECOVERY,
    RETRYABLE_ERRORS,
    BookingConflict,
    BookingError,
    ErrorCode,
    ErrorKind,
    InvalidRange,
    NotFound,
    RequestValidationError,
    ToolError,
    TransactionFailure,
    VehicleUnavailable,
)
from .payment import Payment, PaymentConfirmation, PaymentIntentResult
from .payment_event import PaymentEventRecord, ProviderEvent, ReconcileResult
from .pricing import PriceCalculation
from .rental import Rental, ScheduleEntry
from .vehicle import Vehicle, VehicleCreate, VehicleUpdate

__all__ = [
    # Enums
    "BLOCKING_RENTAL_STATUSES",
    "TERMINAL_RENTAL_STATUSES",
    "PaymentMethod",
    "PaymentStatus",
    "ProcessingResult",
    "ProviderEventKind",
    "RentalStatus",
    # Entities
    "Customer",
    "CustomerDetails",
    "Payment",
    "PaymentConfirmation",
    "PaymentIntentResult",
    "PriceCalculation",
    "Rental",
    "ScheduleEntry",
    "Vehicle",
    "VehicleCreate",
    "VehicleUpdate",
    # Booking
    "BookingDetails",
    "BookingRequest",
    "BookingResult",
    # Provider events
    "PaymentEventRecord",
    "ProviderEvent",
    "ReconcileResult",
    # Errors
    "BookingConflict",
    "BookingError",
    "ErrorCode",
    "ErrorKind",
    "ERROR_KINDS",
    "ERROR_MESSAGES",
    "ERROR_RECOVERY",
    "InvalidRange",
    "NotFound",
    "RequestValidationError",
    "RETRYABLE_ERRORS",
    "ToolError",
    "TransactionFailure",
    "VehicleUnavailable",
]

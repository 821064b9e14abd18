"""Standard error codes for fleet booking operations.

Every failure surfaced to a caller carries an error code, a kind, a
human-readable message and a recovery hint. Storage-layer detail is never
part of the message; it is logged where the failure is caught.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ErrorCode(str, Enum):
    """Standard error codes."""

    # Booking error codes (ERR_001-ERR_008)
    VALIDATION_FAILED = "ERR_001"
    VEHICLE_UNAVAILABLE = "ERR_002"
    BOOKING_CONFLICT = "ERR_003"
    RENTAL_NOT_FOUND = "ERR_004"
    PAYMENT_NOT_FOUND = "ERR_005"
    CUSTOMER_NOT_FOUND = "ERR_006"
    VEHICLE_NOT_FOUND = "ERR_007"
    TRANSACTION_FAILED = "ERR_008"

    # Stripe/Payment error codes (ERR_STRIPE_001-ERR_STRIPE_002)
    INVALID_WEBHOOK_SIGNATURE = "ERR_STRIPE_001"
    STRIPE_API_ERROR = "ERR_STRIPE_002"


class ErrorKind(str, Enum):
    """Caller-facing error taxonomy."""

    VALIDATION_ERROR = "ValidationError"
    VEHICLE_UNAVAILABLE = "VehicleUnavailable"
    BOOKING_CONFLICT = "BookingConflict"
    NOT_FOUND = "NotFound"
    TRANSACTION_FAILURE = "TransactionFailure"
    PROVIDER_ERROR = "ProviderError"


ERROR_KINDS: dict[ErrorCode, ErrorKind] = {
    ErrorCode.VALIDATION_FAILED: ErrorKind.VALIDATION_ERROR,
    ErrorCode.VEHICLE_UNAVAILABLE: ErrorKind.VEHICLE_UNAVAILABLE,
    ErrorCode.BOOKING_CONFLICT: ErrorKind.BOOKING_CONFLICT,
    ErrorCode.RENTAL_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.PAYMENT_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.CUSTOMER_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.VEHICLE_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.TRANSACTION_FAILED: ErrorKind.TRANSACTION_FAILURE,
    ErrorCode.INVALID_WEBHOOK_SIGNATURE: ErrorKind.PROVIDER_ERROR,
    ErrorCode.STRIPE_API_ERROR: ErrorKind.PROVIDER_ERROR,
}

# Human-readable error messages
ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.VALIDATION_FAILED: "The booking request is invalid",
    ErrorCode.VEHICLE_UNAVAILABLE: "The vehicle does not exist or is not available for rental",
    ErrorCode.BOOKING_CONFLICT: "The vehicle is already booked for the selected dates",
    ErrorCode.RENTAL_NOT_FOUND: "Rental not found",
    ErrorCode.PAYMENT_NOT_FOUND: "Payment not found",
    ErrorCode.CUSTOMER_NOT_FOUND: "Customer not found",
    ErrorCode.VEHICLE_NOT_FOUND: "Vehicle not found",
    ErrorCode.TRANSACTION_FAILED: "The operation could not be completed, nothing was saved",
    ErrorCode.INVALID_WEBHOOK_SIGNATURE: "Invalid webhook signature",
    ErrorCode.STRIPE_API_ERROR: "Payment provider error occurred",
}

# Recovery suggestions for callers
ERROR_RECOVERY: dict[ErrorCode, str] = {
    ErrorCode.VALIDATION_FAILED: "Correct the request fields and try again",
    ErrorCode.VEHICLE_UNAVAILABLE: "Choose a different vehicle",
    ErrorCode.BOOKING_CONFLICT: "Choose different dates or a different vehicle",
    ErrorCode.RENTAL_NOT_FOUND: "Verify the rental ID",
    ErrorCode.PAYMENT_NOT_FOUND: "Verify the rental has a payment",
    ErrorCode.CUSTOMER_NOT_FOUND: "Verify the customer ID",
    ErrorCode.VEHICLE_NOT_FOUND: "Verify the vehicle ID",
    ErrorCode.TRANSACTION_FAILED: "Retry the same request",
    ErrorCode.INVALID_WEBHOOK_SIGNATURE: "Verify webhook secret configuration",
    ErrorCode.STRIPE_API_ERROR: "Try again or contact support",
}

# Codes a client may retry. BOOKING_CONFLICT only makes sense after
# changing the dates or the vehicle.
RETRYABLE_ERRORS: frozenset[ErrorCode] = frozenset(
    {ErrorCode.BOOKING_CONFLICT, ErrorCode.TRANSACTION_FAILED}
)


class ToolError(BaseModel):
    """Standard error response format for failed operations."""

    model_config = ConfigDict(strict=True)

    success: bool = False
    error_code: ErrorCode
    kind: ErrorKind
    message: str
    recovery: str
    retryable: bool = False
    details: Optional[dict[str, str]] = None

    @classmethod
    def from_code(
        cls,
        code: ErrorCode,
        details: Optional[dict[str, str]] = None,
    ) -> "ToolError":
        """Create a ToolError from an error code.

        Args:
            code: The error code
            details: Optional additional context about the error

        Returns:
            A ToolError with the message and recovery hint for the code.
        """
        return cls(
            error_code=code,
            kind=ERROR_KINDS[code],
            message=ERROR_MESSAGES[code],
            recovery=ERROR_RECOVERY[code],
            retryable=code in RETRYABLE_ERRORS,
            details=details,
        )


class BookingError(Exception):
    """Exception raised by booking operations.

    Can be caught and converted to a ToolError for API responses.
    """

    code: ErrorCode = ErrorCode.VALIDATION_FAILED

    def __init__(
        self,
        code: Optional[ErrorCode] = None,
        details: Optional[dict[str, str]] = None,
    ):
        if code is not None:
            self.code = code
        self.kind = ERROR_KINDS[self.code]
        self.message = ERROR_MESSAGES[self.code]
        self.recovery = ERROR_RECOVERY[self.code]
        self.details = details
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        return self.code in RETRYABLE_ERRORS

    def to_tool_error(self) -> ToolError:
        """Convert this exception to a ToolError for responses."""
        return ToolError.from_code(self.code, self.details)


class RequestValidationError(BookingError):
    """Malformed, missing or illogical input. Never touches storage."""

    code = ErrorCode.VALIDATION_FAILED

    def __init__(self, reason: str, field: Optional[str] = None):
        details = {"reason": reason}
        if field:
            details["field"] = field
        super().__init__(details=details)
        self.reason = reason


class InvalidRange(RequestValidationError):
    """End date precedes start date (or the rate is not positive)."""

    def __init__(self, reason: str = "end_date must not be before start_date"):
        super().__init__(reason, field="end_date")


class VehicleUnavailable(BookingError):
    """Vehicle missing or disabled at fleet level."""

    code = ErrorCode.VEHICLE_UNAVAILABLE


class BookingConflict(BookingError):
    """An overlapping non-terminal rental exists for the vehicle."""

    code = ErrorCode.BOOKING_CONFLICT


class NotFound(BookingError):
    """Referenced rental, payment, customer or vehicle is absent."""

    code = ErrorCode.RENTAL_NOT_FOUND


class TransactionFailure(BookingError):
    """Storage-layer abort, contention or timeout. Safe to retry as-is."""

    code = ErrorCode.TRANSACTION_FAILED

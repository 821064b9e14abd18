"""FastAPI exception handlers for converting domain errors to HTTP responses.

Every error body has the ToolError shape:
{success, error_code, kind, message, recovery, retryable, details}.

The ErrorCode-to-HTTP status mapping:
- 400 Bad Request: Invalid input, invalid webhook signature
- 404 Not Found: Unknown rental, payment, customer or vehicle
- 409 Conflict: Vehicle unavailable or already booked
- 502 Bad Gateway: Payment provider failure
- 503 Service Unavailable: Storage failure, nothing was written

Usage:
    from fleet_api.exceptions import register_exception_handlers
    register_exception_handlers(app)
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError as FastAPIValidationError
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
    HTTP_503_SERVICE_UNAVAILABLE,
)

from fleet.models.errors import BookingError, ErrorCode, ToolError
from fleet.services.stripe_service import StripeServiceError
from fleet.utils.logging import get_logger

logger = get_logger(__name__)

# Map ErrorCode to HTTP status codes
ERROR_CODE_TO_HTTP_STATUS: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_FAILED: HTTP_400_BAD_REQUEST,
    ErrorCode.VEHICLE_UNAVAILABLE: HTTP_409_CONFLICT,
    ErrorCode.BOOKING_CONFLICT: HTTP_409_CONFLICT,
    ErrorCode.RENTAL_NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorCode.PAYMENT_NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorCode.CUSTOMER_NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorCode.VEHICLE_NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorCode.TRANSACTION_FAILED: HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.INVALID_WEBHOOK_SIGNATURE: HTTP_400_BAD_REQUEST,
    ErrorCode.STRIPE_API_ERROR: HTTP_502_BAD_GATEWAY,
}


def get_http_status_for_error(code: ErrorCode) -> int:
    """Get HTTP status code for an ErrorCode, defaulting to 400."""
    return ERROR_CODE_TO_HTTP_STATUS.get(code, HTTP_400_BAD_REQUEST)


def _error_response(code: ErrorCode, details: dict[str, str] | None = None) -> JSONResponse:
    tool_error = ToolError.from_code(code, details)
    return JSONResponse(
        status_code=get_http_status_for_error(code),
        content=tool_error.model_dump(mode="json"),
    )


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    """Convert a BookingError to its ToolError response."""
    if exc.code == ErrorCode.TRANSACTION_FAILED:
        logger.warning("Transaction failure on %s %s", request.method, request.url.path)
    return _error_response(exc.code, exc.details)


async def stripe_error_handler(request: Request, exc: StripeServiceError) -> JSONResponse:
    """Convert a StripeServiceError to a provider error response.

    Provider messages are logged, not returned.
    """
    logger.error("Stripe error on %s: %s", request.url.path, exc)
    if exc.signature_invalid:
        return _error_response(ErrorCode.INVALID_WEBHOOK_SIGNATURE)
    details = {"stripe_error_code": exc.stripe_error_code} if exc.stripe_error_code else None
    return _error_response(ErrorCode.STRIPE_API_ERROR, details)


async def request_validation_handler(
    request: Request, exc: FastAPIValidationError
) -> JSONResponse:
    """Report malformed request bodies and parameters as ERR_001."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = [str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path")]
    details = {"reason": str(first.get("msg", "invalid request"))}
    if loc:
        details["field"] = ".".join(loc)
    return _error_response(ErrorCode.VALIDATION_FAILED, details)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback for uncaught exceptions; never exposes internals."""
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error_code": "ERR_INTERNAL",
            "message": "An unexpected error occurred",
            "recovery": "Please try again later or contact support",
            "details": None,
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(BookingError, booking_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StripeServiceError, stripe_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(FastAPIValidationError, request_validation_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_exception_handler)

"""Services for the fleet booking backend."""

from .availability import AvailabilityService
from .booking import BookingService
from .conflicts import ConflictChecker, ranges_overlap
from .customers import CustomerRegistry
from .dynamodb import DynamoDBService, WriteTransaction, get_dynamodb_service
from .payment_service import PaymentService
from .pricing import calculate_price
from .reconciliation import PaymentReconciler, next_rental_status
from .rentals import RentalRepository
from .ssm_service import SSMService, SSMServiceError, get_ssm_service
from .stripe_service import StripeService, StripeServiceError, get_stripe_service
from .vehicles import VehicleService

__all__ = [
    "DynamoDBService",
    "WriteTransaction",
    "get_dynamodb_service",
    "AvailabilityService",
    "BookingService",
    "ConflictChecker",
    "ranges_overlap",
    "CustomerRegistry",
    "PaymentReconciler",
    "next_rental_status",
    "PaymentService",
    "RentalRepository",
    "VehicleService",
    "calculate_price",
    "SSMService",
    "SSMServiceError",
    "get_ssm_service",
    "StripeService",
    "StripeServiceError",
    "get_stripe_service",
]

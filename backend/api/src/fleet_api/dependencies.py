"""FastAPI dependency injection providers for fleet services.

Services are lazily instantiated and cached with @lru_cache, all sharing
the DynamoDBService singleton.

Usage in routes:
    from fleet_api.dependencies import get_booking_service

    @router.post("/bookings")
    async def create_booking(
        service: BookingService = Depends(get_booking_service),
    ):
        ...

Service Dependency Graph:
    DynamoDBService (singleton via get_dynamodb_service)
        ├── VehicleService
        ├── AvailabilityService
        ├── BookingService
        ├── PaymentService ── StripeService
        └── PaymentReconciler

Testing:
    Use reset_services() to clear cached instances between tests.
"""

from functools import lru_cache

from fleet.config import get_settings
from fleet.services.availability import AvailabilityService
from fleet.services.booking import BookingService
from fleet.services.dynamodb import get_dynamodb_service
from fleet.services.payment_service import PaymentService
from fleet.services.reconciliation import PaymentReconciler
from fleet.services.stripe_service import StripeService, get_stripe_service
from fleet.services.vehicles import VehicleService


@lru_cache
def get_vehicle_service() -> VehicleService:
    """Get cached VehicleService instance."""
    return VehicleService(db=get_dynamodb_service())


@lru_cache
def get_availability_service() -> AvailabilityService:
    """Get cached AvailabilityService instance."""
    return AvailabilityService(db=get_dynamodb_service())


@lru_cache
def get_booking_service() -> BookingService:
    """Get cached BookingService instance."""
    return BookingService(db=get_dynamodb_service())


def get_stripe() -> StripeService:
    """Get the shared StripeService (separate hook so tests can override it)."""
    return get_stripe_service()


@lru_cache
def get_payment_service() -> PaymentService:
    """Get cached PaymentService instance.

    Stripe is resolved lazily by the service on first provider call.
    """
    return PaymentService(db=get_dynamodb_service())


@lru_cache
def get_reconciler() -> PaymentReconciler:
    """Get cached PaymentReconciler instance."""
    return PaymentReconciler(db=get_dynamodb_service())


def reset_services() -> None:
    """Clear all cached service instances.

    Call this in test fixtures to ensure clean state between tests.
    Also resets the DynamoDB singleton and cached settings.
    """
    from fleet.services.dynamodb import reset_dynamodb_service

    get_vehicle_service.cache_clear()
    get_availability_service.cache_clear()
    get_booking_service.cache_clear()
    get_payment_service.cache_clear()
    get_reconciler.cache_clear()
    get_stripe_service.cache_clear()

    reset_dynamodb_service()
    get_settings.cache_clear()

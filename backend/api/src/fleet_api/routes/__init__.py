"""API routes package.

Routers are organized by domain:

- bookings: Booking creation and rental management
- availability: Vehicle availability checks and search
- vehicles: Fleet management
- payments: PaymentIntents, payment status, refunds
- webhooks: Stripe event delivery

All routers are registered in main.py with /api prefix.
"""

from fleet_api.routes.availability import router as availability_router
from fleet_api.routes.bookings import router as bookings_router
from fleet_api.routes.payments import router as payments_router
from fleet_api.routes.vehicles import router as vehicles_router
from fleet_api.routes.webhooks import router as webhooks_router

__all__ = [
    "availability_router",
    "bookings_router",
    "payments_router",
    "vehicles_router",
    "webhooks_router",
]

"""API-specific request/response models.

Modules:
- bookings: Booking request/response models
- availability: Availability check and search models
- vehicles: Fleet management models
- payments: Payment intent, status and refund models
"""

__all__: list[str] = []

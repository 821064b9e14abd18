"""Booking endpoints.

Provides REST endpoints for:
- Creating bookings (rental + customer + optional payment, atomically)
- Retrieving a booking with its customer, vehicle and payment
- Changing a rental's status or dates
- Listing a customer's rentals and finding a customer by email
"""

from fastapi import APIRouter, Depends, Query
from starlette.status import HTTP_201_CREATED

from fleet.models import (
    BookingDetails,
    BookingRequest,
    BookingResult,
    Customer,
    CustomerDetails,
    Rental,
)
from fleet.services.booking import BookingService
from fleet_api.dependencies import get_booking_service
from fleet_api.models.bookings import (
    BookingCreateRequest,
    DatesUpdateRequest,
    RentalListResponse,
    RentalSummary,
    StatusUpdateRequest,
)

router = APIRouter(tags=["bookings"])


@router.post(
    "/bookings",
    summary="Book a vehicle",
    description="""
Book a vehicle for an inclusive date span.

Validates the request, checks the vehicle's schedule, prices the rental
server-side and commits rental, customer and (with `payment_intent_ref`)
payment in one transaction.

**Notes:**
- Both dates are rental days; a same-day rental is one day
- Start date must not be in the past
- Returns 409 if the vehicle is unavailable or already booked
""",
    response_model=BookingResult,
    status_code=HTTP_201_CREATED,
    responses={
        201: {"description": "Booking created"},
        400: {"description": "Invalid request"},
        409: {"description": "Vehicle unavailable or dates already booked"},
        503: {"description": "Storage failure, nothing was saved; retry"},
    },
)
async def create_booking(
    body: BookingCreateRequest,
    service: BookingService = Depends(get_booking_service),
) -> BookingResult:
    """Create a booking."""
    request = BookingRequest(
        vehicle_id=body.vehicle_id,
        customer=CustomerDetails(
            name=body.customer.name,
            email=body.customer.email,
            phone=body.customer.phone,
        ),
        start_date=body.start_date,
        end_date=body.end_date,
        payment_intent_ref=body.payment_intent_ref,
    )
    return service.create_booking(request)


@router.get(
    "/bookings/{rental_id}",
    summary="Get booking",
    response_model=BookingDetails,
    responses={404: {"description": "Rental not found"}},
)
async def get_booking(
    rental_id: str,
    service: BookingService = Depends(get_booking_service),
) -> BookingDetails:
    """Get a rental with its customer, vehicle and payment."""
    return service.get_booking(rental_id)


@router.put(
    "/bookings/{rental_id}/status",
    summary="Change rental status",
    response_model=Rental,
    responses={
        404: {"description": "Rental not found"},
        409: {"description": "Reviving the rental would double-book the vehicle"},
    },
)
async def update_booking_status(
    rental_id: str,
    body: StatusUpdateRequest,
    service: BookingService = Depends(get_booking_service),
) -> Rental:
    """Move a rental to a new lifecycle status."""
    return service.update_rental_status(rental_id, body.status)


@router.put(
    "/bookings/{rental_id}/dates",
    summary="Reschedule rental",
    response_model=Rental,
    responses={
        400: {"description": "Invalid dates or terminal rental"},
        404: {"description": "Rental not found"},
        409: {"description": "New dates overlap another rental"},
    },
)
async def reschedule_booking(
    rental_id: str,
    body: DatesUpdateRequest,
    service: BookingService = Depends(get_booking_service),
) -> Rental:
    """Move a rental to new dates and reprice it."""
    return service.reschedule_rental(rental_id, body.start_date, body.end_date)


@router.get(
    "/customers/{customer_id}/bookings",
    summary="List customer bookings",
    response_model=RentalListResponse,
    responses={404: {"description": "Customer not found"}},
)
async def list_customer_bookings(
    customer_id: str,
    service: BookingService = Depends(get_booking_service),
) -> RentalListResponse:
    """List a customer's rentals, newest first."""
    rentals = service.list_customer_bookings(customer_id)
    return RentalListResponse(
        customer_id=customer_id,
        rentals=[
            RentalSummary(
                rental_id=r.rental_id,
                vehicle_id=r.vehicle_id,
                start_date=r.start_date,
                end_date=r.end_date,
                total_amount=r.total_amount,
                status=r.status,
            )
            for r in rentals
        ],
        total_count=len(rentals),
    )


@router.get(
    "/customers",
    summary="Find customer by email",
    response_model=Customer,
    responses={
        400: {"description": "Malformed email"},
        404: {"description": "No customer with this email"},
    },
)
async def find_customer(
    email: str = Query(..., description="Email the customer booked with"),
    service: BookingService = Depends(get_booking_service),
) -> Customer:
    return service.find_customer(email)
